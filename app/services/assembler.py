# app/services/assembler.py
"""
Ordered chunk concatenation and promotion.

Chunks are appended to a scratch blob in ascending index order, the scratch
blob is renamed into its category directory, and only then are the chunk
blobs deleted. Until the rename succeeds nothing is lost, so a failed
completion can simply be retried.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List

from app.core.errors import StorageFailure
from app.services.blobstore import BlobStore
from app.services.library import FileLibrary, StoredFile

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompletionPlan:
    session_id: str
    file_name: str
    total_chunks: int
    chunks: List[str]  # chunk blob names in the temp area, index 1..N in order


class ChunkAssembler:
    def __init__(self, store: BlobStore, library: FileLibrary):
        self.store = store
        self.library = library

    def assemble(self, plan: CompletionPlan) -> StoredFile:
        tmp = self.store.tmp_dir
        scratch = f"{plan.session_id}.assembling"

        # truncates leftovers from an earlier failed attempt
        self.store.write(tmp, scratch, b"")
        try:
            for index, chunk in enumerate(plan.chunks, start=1):
                data = self.store.read(tmp, chunk)
                self.store.append(tmp, scratch, data)
                logger.debug(f"[{plan.session_id}] appended part{index} ({len(data)} bytes)")
            stored = self.library.promote(self.store.path(tmp, scratch), plan.file_name)
        except Exception:
            logger.exception(f"Assembly failed for {plan.session_id}; chunks kept for retry")
            self.store.delete(tmp, scratch)
            raise

        # the file is in place; leftover chunks must not fail the upload
        for chunk in plan.chunks:
            try:
                self.store.delete(tmp, chunk)
            except StorageFailure as e:
                logger.warning(f"[{plan.session_id}] could not remove {chunk}: {e.message}")
        logger.info(f"[{plan.session_id}] assembled {plan.total_chunks} chunks into {stored.url}")
        return stored
