from fastapi import APIRouter, Depends, UploadFile, File
from starlette.concurrency import run_in_threadpool
from starlette.responses import FileResponse

from app.api.deps import get_library
from app.services.library import FileLibrary

router = APIRouter()

@router.post("/upload")
async def upload(file: UploadFile = File(...), library: FileLibrary = Depends(get_library)):
    data = await file.read()
    stored = await run_in_threadpool(library.store_single, file.filename or "", data)
    return stored.to_dict()

@router.get("")
def list_files(library: FileLibrary = Depends(get_library)):
    return [f.to_dict() for f in library.list_files()]

@router.get("/{category}/{name}/download")
def download(category: str, name: str, library: FileLibrary = Depends(get_library)):
    path = library.resolve_download(category, name)
    return FileResponse(path, media_type="application/octet-stream", filename=path.name)
