# app/core/errors.py
"""
Upload error taxonomy and its HTTP translation.

Services raise these; routes let them propagate and the handlers installed by
register_exception_handlers() render them as JSON:

    {"error": "<code>", "detail": "<message>", ...extra}
"""

from typing import Any, Dict, Iterable, Optional
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class UploadError(Exception):
    status_code = 500
    code = "upload_error"

    def __init__(self, message: str, **extra: Any):
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.code, "detail": self.message, **self.extra}


class InvalidRequest(UploadError):
    status_code = 400
    code = "invalid_request"


class InvalidChunkIndex(UploadError):
    status_code = 400
    code = "invalid_chunk_index"

    def __init__(self, index: int, total_chunks: int):
        super().__init__(
            f"Chunk index {index} out of range; must be between 1 and {total_chunks}",
            index=index,
            totalChunks=total_chunks,
        )


class SessionNotFound(UploadError):
    status_code = 404
    code = "session_not_found"

    def __init__(self, session_id: str):
        super().__init__(f"Upload session not found: {session_id}", sessionId=session_id)


class FileNotFound(UploadError):
    status_code = 404
    code = "file_not_found"


class IncompleteUpload(UploadError):
    status_code = 409
    code = "incomplete_upload"

    def __init__(self, session_id: str, missing: Iterable[int]):
        missing = sorted(missing)
        super().__init__(
            f"Not all chunks uploaded yet for {session_id}; missing {len(missing)}",
            missingChunks=missing,
        )


class MissingChunkData(UploadError):
    """Manifest says the chunk arrived but its blob is gone; re-upload that index."""
    status_code = 409
    code = "missing_chunk_data"

    def __init__(self, session_id: str, index: int):
        super().__init__(f"Missing chunk data for {session_id}: part{index}", index=index)


class StorageFailure(UploadError):
    status_code = 500
    code = "storage_failure"

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


def _handle_upload_error(request: Request, exc: UploadError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s rejected (%s): %s", request.method, request.url.path, exc.code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def _handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    # malformed or missing fields are InvalidRequest like any other client error
    fields = [".".join(str(p) for p in err.get("loc", ())) for err in exc.errors()]
    return _handle_upload_error(request, InvalidRequest("Malformed request", fields=fields))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(UploadError, _handle_upload_error)
    app.add_exception_handler(RequestValidationError, _handle_validation_error)
