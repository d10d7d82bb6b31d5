# app/services/blobstore.py
"""
Local-directory blob store.

Blobs are addressed as (directory, name) under a single root. The root holds
one directory per category plus a temporary area for manifests, chunk blobs
and assembly scratch files. Every OSError surfaces as StorageFailure.
"""

from __future__ import annotations

import os
import re
import stat
import uuid
from pathlib import Path
from typing import Iterable, List, Union

from app.core.errors import InvalidRequest, StorageFailure

_SCRATCH_PREFIX = ".~"
_UNSAFE_CHARS = re.compile(r'[\x00-\x1f\x7f<>:"|?*]')
# leaves room for the "<ms>-<n>-" and "single-<ns>-" prefixes under NAME_MAX
_MAX_NAME_BYTES = 200
_MAX_EXT_BYTES = 32

PathLike = Union[str, Path]


def sanitize_filename(name: str) -> str:
    """
    Reduce a client-supplied file name to a single safe path component.
    Directory parts (either separator) are dropped.
    """
    if not name:
        raise InvalidRequest("fileName required")
    base = name.replace("\\", "/").rsplit("/", 1)[-1]
    base = base.encode("utf-8", "ignore").decode("utf-8")
    base = _UNSAFE_CHARS.sub("_", base).strip().lstrip(".")
    if not base:
        raise InvalidRequest(f"Unusable file name: {name!r}")
    return _cap_bytes(base)


def _utf8_prefix(text: str, limit: int) -> str:
    return text.encode("utf-8")[:limit].decode("utf-8", "ignore")


def _cap_bytes(base: str) -> str:
    # cut the stem so the extension, and with it the category, survives
    if len(base.encode("utf-8")) <= _MAX_NAME_BYTES:
        return base
    stem, ext = os.path.splitext(base)
    if len(ext.encode("utf-8")) > _MAX_EXT_BYTES:
        stem, ext = base, ""
    return _utf8_prefix(stem, _MAX_NAME_BYTES - len(ext.encode("utf-8"))).rstrip() + ext


class BlobStore:
    def __init__(self, root: PathLike, tmp_dir: str = "tmp", categories: Iterable[str] = ()):
        self.root = Path(root).resolve()
        self.tmp_dir = tmp_dir
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            for d in (tmp_dir, *categories):
                (self.root / d).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageFailure(f"Cannot prepare storage root {self.root}: {e}", e) from e

    # ---- addressing ----

    def path(self, directory: str, name: str = "") -> Path:
        p = (self.root / directory / name).resolve()
        if p != self.root and self.root not in p.parents:
            raise InvalidRequest(f"Path escapes storage root: {directory}/{name}")
        return p

    # ---- primitives ----

    def write(self, directory: str, name: str, data: bytes) -> Path:
        """Replace the blob atomically: scratch file, fsync, rename."""
        dst = self.path(directory, name)
        scratch = dst.with_name(f"{_SCRATCH_PREFIX}{uuid.uuid4().hex}")
        try:
            with open(scratch, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(scratch, dst)
        except OSError as e:
            self._discard(scratch)
            raise StorageFailure(f"Write failed for {directory}/{name}: {e}", e) from e
        return dst

    def append(self, directory: str, name: str, data: bytes) -> None:
        p = self.path(directory, name)
        try:
            with open(p, "ab") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
        except OSError as e:
            raise StorageFailure(f"Append failed for {directory}/{name}: {e}", e) from e

    def read(self, directory: str, name: str) -> bytes:
        try:
            return self.path(directory, name).read_bytes()
        except OSError as e:
            raise StorageFailure(f"Read failed for {directory}/{name}: {e}", e) from e

    def rename(self, src: Path, dst: Path) -> None:
        try:
            os.replace(src, dst)
        except OSError as e:
            raise StorageFailure(f"Rename {src} -> {dst} failed: {e}", e) from e

    def delete(self, directory: str, name: str) -> None:
        try:
            self.path(directory, name).unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise StorageFailure(f"Delete failed for {directory}/{name}: {e}", e) from e

    def exists(self, directory: str, name: str) -> bool:
        p = self.path(directory, name)
        try:
            return stat.S_ISREG(os.stat(p).st_mode)
        except (FileNotFoundError, NotADirectoryError):
            return False
        except OSError as e:
            raise StorageFailure(f"Stat failed for {directory}/{name}: {e}", e) from e

    def list_dir(self, directory: str) -> List[str]:
        d = self.path(directory)
        try:
            return sorted(
                e.name for e in os.scandir(d)
                if e.is_file() and not e.name.startswith(_SCRATCH_PREFIX)
            )
        except FileNotFoundError:
            return []
        except OSError as e:
            raise StorageFailure(f"Listing {directory} failed: {e}", e) from e

    def size(self, directory: str, name: str) -> int:
        try:
            return self.path(directory, name).stat().st_size
        except OSError as e:
            raise StorageFailure(f"Stat failed for {directory}/{name}: {e}", e) from e

    @staticmethod
    def _discard(p: Path) -> None:
        try:
            p.unlink()
        except OSError:
            pass
