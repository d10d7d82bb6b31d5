# app/services/library.py
"""
Permanent, category-partitioned file area.

- promote(): move a finished blob into <category>/<ms>-<name> atomically
- store_single(): non-chunked upload path
- list_files() / resolve_download(): read-only projections for the API
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List
from urllib.parse import quote

from app.core.errors import FileNotFound, InvalidRequest
from app.services.blobstore import BlobStore, sanitize_filename
from app.services.categories import CATEGORIES, classify_filename

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredFile:
    category: str
    name: str
    size: int

    @property
    def url(self) -> str:
        return f"/uploads/{self.category}/{quote(self.name)}"

    def to_dict(self) -> Dict:
        return {"name": self.name, "category": self.category, "url": self.url, "size": self.size}


class FileLibrary:
    def __init__(self, store: BlobStore):
        self.store = store
        # name selection + rename must not interleave, or two same-named
        # promotions in one millisecond would replace each other
        self._promote_lock = threading.Lock()

    def _unique_name(self, category: str, safe_name: str) -> str:
        stamp = int(time.time() * 1000)
        candidate = f"{stamp}-{safe_name}"
        counter = 1
        while self.store.exists(category, candidate):
            candidate = f"{stamp}-{counter}-{safe_name}"
            counter += 1
        return candidate

    def promote(self, src: Path, file_name: str) -> StoredFile:
        safe_name = sanitize_filename(file_name)
        category = classify_filename(safe_name)
        with self._promote_lock:
            final_name = self._unique_name(category, safe_name)
            self.store.rename(src, self.store.path(category, final_name))
        stored = StoredFile(category=category, name=final_name, size=self.store.size(category, final_name))
        logger.info(f"Stored {file_name!r} as {stored.url} ({stored.size} bytes)")
        return stored

    def store_single(self, file_name: str, data: bytes) -> StoredFile:
        safe_name = sanitize_filename(file_name)
        if not data:
            raise InvalidRequest("File missing or empty")
        scratch = self.store.write(self.store.tmp_dir, f"single-{time.time_ns()}-{safe_name}", data)
        try:
            return self.promote(scratch, safe_name)
        except Exception:
            self.store.delete(self.store.tmp_dir, scratch.name)
            raise

    def list_files(self) -> List[StoredFile]:
        out = []
        for cat in CATEGORIES:
            for name in self.store.list_dir(cat):
                out.append(StoredFile(category=cat, name=name, size=self.store.size(cat, name)))
        return out

    def resolve_download(self, category: str, name: str) -> Path:
        if category not in CATEGORIES:
            raise FileNotFound(f"Unknown category: {category}")
        try:
            path = self.store.path(category, name)
        except InvalidRequest:
            raise FileNotFound("File not found")
        if path.parent != self.store.path(category) or not path.is_file():
            raise FileNotFound("File not found")
        return path
