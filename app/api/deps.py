# app/api/deps.py
"""
Service wiring for the routes. Built once from settings; tests swap them via
app.dependency_overrides.
"""

from functools import lru_cache

from app.core.config import settings
from app.services.assembler import ChunkAssembler
from app.services.blobstore import BlobStore
from app.services.categories import CATEGORIES
from app.services.library import FileLibrary
from app.services.sessions import UploadSessionManager


@lru_cache
def get_store() -> BlobStore:
    return BlobStore(settings.UPLOAD_ROOT, tmp_dir=settings.TMP_DIR_NAME, categories=CATEGORIES)


@lru_cache
def get_library() -> FileLibrary:
    return FileLibrary(get_store())


@lru_cache
def get_sessions() -> UploadSessionManager:
    store = get_store()
    return UploadSessionManager(
        store,
        ChunkAssembler(store, get_library()),
        max_chunk_bytes=settings.MAX_CHUNK_BYTES,
        max_total_chunks=settings.MAX_TOTAL_CHUNKS,
    )
