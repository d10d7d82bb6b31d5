# app/services/sessions.py
"""
Resumable upload sessions.

Each session is a JSON manifest in the temp area (<id>.json) plus one blob per
received chunk (<id>.part<index>). All manifest mutation for a session runs
under that session's lock, and completion holds the same lock across
validate + assemble + discard, so a chunk arriving mid-assembly waits and then
finds the session gone.
"""

from __future__ import annotations

import itertools
import json
import logging
import re
import secrets
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from app.core.errors import (
    IncompleteUpload,
    InvalidChunkIndex,
    InvalidRequest,
    MissingChunkData,
    SessionNotFound,
    StorageFailure,
)
from app.services.assembler import ChunkAssembler, CompletionPlan
from app.services.blobstore import BlobStore, sanitize_filename
from app.services.library import StoredFile

logger = logging.getLogger(__name__)

_SESSION_ID = re.compile(r"[0-9]+-[0-9]+-[0-9a-f]+")
_MANIFEST_SUFFIX = ".json"


def _is_positive_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


@dataclass
class UploadSession:
    id: str
    file_name: str
    total_chunks: int
    uploaded_chunks: Set[int] = field(default_factory=set)
    created_at: float = field(default_factory=time.time)

    @property
    def missing_chunks(self) -> Set[int]:
        return set(range(1, self.total_chunks + 1)) - self.uploaded_chunks

    @property
    def is_complete(self) -> bool:
        return len(self.uploaded_chunks) == self.total_chunks

    def sorted_chunks(self) -> List[int]:
        return sorted(self.uploaded_chunks)

    def to_manifest(self) -> Dict:
        return {
            "fileName": self.file_name,
            "totalChunks": self.total_chunks,
            "uploadedChunks": self.sorted_chunks(),
            "createdAt": self.created_at,
        }

    @classmethod
    def from_manifest(cls, session_id: str, data: Dict) -> "UploadSession":
        total = data["totalChunks"]
        chunks = set(data.get("uploadedChunks") or [])
        if not _is_positive_int(total) or not all(_is_positive_int(i) and i <= total for i in chunks):
            raise ValueError("manifest fields out of range")
        return cls(
            id=session_id,
            file_name=str(data["fileName"]),
            total_chunks=total,
            uploaded_chunks=chunks,
            created_at=float(data.get("createdAt", 0.0)),
        )


def chunk_blob_name(session_id: str, index: int) -> str:
    return f"{session_id}.part{index}"


class UploadSessionManager:
    def __init__(
        self,
        store: BlobStore,
        assembler: ChunkAssembler,
        max_chunk_bytes: Optional[int] = None,
        max_total_chunks: Optional[int] = None,
    ):
        self.store = store
        self.assembler = assembler
        self.max_chunk_bytes = max_chunk_bytes
        self.max_total_chunks = max_total_chunks
        self._counter = itertools.count(1)
        self._locks: Dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    # ---- internals ----

    def _new_id(self) -> str:
        return f"{int(time.time() * 1000)}-{next(self._counter)}-{secrets.token_hex(8)}"

    def _lock_for(self, session_id: str) -> threading.RLock:
        with self._locks_guard:
            lock = self._locks.get(session_id)
            if lock is None:
                lock = self._locks[session_id] = threading.RLock()
            return lock

    def _forget_lock(self, session_id: str) -> None:
        with self._locks_guard:
            self._locks.pop(session_id, None)

    def _check_id(self, session_id: str) -> None:
        if not session_id or not _SESSION_ID.fullmatch(session_id):
            raise SessionNotFound(session_id)

    @contextmanager
    def _locked(self, session_id: str):
        self._check_id(session_id)
        with self._lock_for(session_id):
            try:
                yield
            except SessionNotFound:
                self._forget_lock(session_id)
                raise

    def _load(self, session_id: str) -> UploadSession:
        self._check_id(session_id)
        name = session_id + _MANIFEST_SUFFIX
        if not self.store.exists(self.store.tmp_dir, name):
            raise SessionNotFound(session_id)
        raw = self.store.read(self.store.tmp_dir, name)
        try:
            return UploadSession.from_manifest(session_id, json.loads(raw))
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Failed to parse manifest {name}: {e}")
            raise SessionNotFound(session_id)

    def _save(self, session: UploadSession) -> None:
        payload = json.dumps(session.to_manifest()).encode("utf-8")
        self.store.write(self.store.tmp_dir, session.id + _MANIFEST_SUFFIX, payload)

    # ---- operations ----

    def create_session(self, file_name: str, total_chunks: int) -> UploadSession:
        if not file_name or not isinstance(file_name, str):
            raise InvalidRequest("fileName required")
        if not _is_positive_int(total_chunks):
            raise InvalidRequest("totalChunks must be a positive integer")
        if self.max_total_chunks and total_chunks > self.max_total_chunks:
            raise InvalidRequest(f"totalChunks exceeds limit of {self.max_total_chunks}")
        # reject names that cannot be stored now rather than at completion
        sanitize_filename(file_name)

        session = UploadSession(id=self._new_id(), file_name=file_name, total_chunks=total_chunks)
        self._save(session)
        logger.info(f"Initialized upload {session.id} for {file_name!r} ({total_chunks} chunks)")
        return session

    def register_chunk(self, session_id: str, index: int, data: bytes) -> List[int]:
        with self._locked(session_id):
            session = self._load(session_id)
            if not isinstance(index, int) or isinstance(index, bool) or not 1 <= index <= session.total_chunks:
                raise InvalidChunkIndex(index, session.total_chunks)
            if not data:
                raise InvalidRequest("Chunk data missing or empty")
            if self.max_chunk_bytes and len(data) > self.max_chunk_bytes:
                raise InvalidRequest(f"Chunk exceeds limit of {self.max_chunk_bytes} bytes")

            # blob first, bookkeeping second
            self.store.write(self.store.tmp_dir, chunk_blob_name(session_id, index), data)
            session.uploaded_chunks.add(index)
            self._save(session)

        logger.info(f"[{session_id}] chunk {index}/{session.total_chunks} stored ({len(data)} bytes)")
        return session.sorted_chunks()

    def get_status(self, session_id: str) -> UploadSession:
        with self._locked(session_id):
            return self._load(session_id)

    def validate_completion(self, session_id: str) -> CompletionPlan:
        with self._locked(session_id):
            session = self._load(session_id)
            if not session.is_complete:
                raise IncompleteUpload(session_id, session.missing_chunks)
            chunks = []
            for index in range(1, session.total_chunks + 1):
                name = chunk_blob_name(session_id, index)
                if not self.store.exists(self.store.tmp_dir, name):
                    raise MissingChunkData(session_id, index)
                chunks.append(name)
            return CompletionPlan(
                session_id=session_id,
                file_name=session.file_name,
                total_chunks=session.total_chunks,
                chunks=chunks,
            )

    def complete(self, session_id: str) -> StoredFile:
        """Validate, assemble and promote; the manifest is removed only after promotion."""
        with self._locked(session_id):
            plan = self.validate_completion(session_id)
            stored = self.assembler.assemble(plan)
            self.store.delete(self.store.tmp_dir, session_id + _MANIFEST_SUFFIX)
        self._forget_lock(session_id)
        logger.info(f"Completed upload {session_id} -> {stored.url}")
        return stored

    def list_sessions(self) -> List[UploadSession]:
        out = []
        for name in self.store.list_dir(self.store.tmp_dir):
            if not name.endswith(_MANIFEST_SUFFIX):
                continue
            session_id = name[: -len(_MANIFEST_SUFFIX)]
            if not _SESSION_ID.fullmatch(session_id):
                continue
            try:
                out.append(self.get_status(session_id))
            except (SessionNotFound, StorageFailure):
                # raced with completion/deletion, or unreadable
                continue
        return out

    def delete_session(self, session_id: str) -> None:
        tmp = self.store.tmp_dir
        with self._locked(session_id):
            if not self.store.exists(tmp, session_id + _MANIFEST_SUFFIX):
                raise SessionNotFound(session_id)
            prefix = session_id + "."
            for name in self.store.list_dir(tmp):
                if name.startswith(prefix) and name != session_id + _MANIFEST_SUFFIX:
                    self.store.delete(tmp, name)
            self.store.delete(tmp, session_id + _MANIFEST_SUFFIX)
        self._forget_lock(session_id)
        logger.info(f"Deleted upload session {session_id}")
