"""Shared fixtures: every test gets its own storage root under tmp_path."""

import os
import tempfile

# must run before app.core.config is imported anywhere
_SCRATCH = tempfile.mkdtemp(prefix="chunked-file-hub-")
os.environ["UPLOAD_ROOT"] = os.path.join(_SCRATCH, "uploads")
os.environ["LOG_DIR"] = os.path.join(_SCRATCH, "logs")

import pytest
from fastapi.testclient import TestClient

from app.api.deps import get_library, get_sessions, get_store
from app.main import app
from app.services.assembler import ChunkAssembler
from app.services.blobstore import BlobStore
from app.services.categories import CATEGORIES
from app.services.library import FileLibrary
from app.services.sessions import UploadSessionManager


@pytest.fixture
def store(tmp_path):
    return BlobStore(tmp_path / "uploads", tmp_dir="tmp", categories=CATEGORIES)


@pytest.fixture
def library(store):
    return FileLibrary(store)


@pytest.fixture
def assembler(store, library):
    return ChunkAssembler(store, library)


@pytest.fixture
def manager(store, assembler):
    return UploadSessionManager(store, assembler, max_chunk_bytes=1024, max_total_chunks=50)


@pytest.fixture
def client(store, library, manager):
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_library] = lambda: library
    app.dependency_overrides[get_sessions] = lambda: manager
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
