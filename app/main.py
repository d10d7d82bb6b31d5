"""
Chunked File Hub
- /api/uploads : resumable chunked uploads (init, chunks, status, complete)
- /api/files   : single-shot upload, listing, download
- /uploads/<category>/<name> : finished files, served statically
"""

from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from app.api.deps import get_store
from app.api.routes.files import router as files_router
from app.api.routes.uploads import router as uploads_router
from app.core.config import settings
from app.core.errors import register_exception_handlers
from app.core.logging import configure_logging
from app.services.categories import CATEGORIES

@asynccontextmanager
async def lifespan(app: FastAPI):
    # storage dirs must exist before the static mounts serve anything
    app.dependency_overrides.get(get_store, get_store)()
    yield

app = FastAPI(title="Chunked File Hub", version="0.2.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS, allow_credentials=True,
    allow_methods=["*"], allow_headers=["*"],
)

configure_logging()
register_exception_handlers(app)

# Finished files, one mount per category so the temp area is never exposed
for _cat in CATEGORIES:
    app.mount(
        f"/uploads/{_cat}",
        StaticFiles(directory=Path(settings.UPLOAD_ROOT) / _cat, check_dir=False),
        name=f"uploads-{_cat}",
    )

# APIs
app.include_router(uploads_router, prefix="/api/uploads", tags=["uploads"])
app.include_router(files_router, prefix="/api/files", tags=["files"])

@app.get("/health")
def health():
    return {"status": "ok"}
