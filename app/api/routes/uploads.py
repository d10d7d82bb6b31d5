from typing import List, Optional
from pydantic import BaseModel, Field
from fastapi import APIRouter, Depends, File, Form, UploadFile
from starlette.concurrency import run_in_threadpool

from app.api.deps import get_sessions
from app.core.config import settings
from app.services.reaper import reap_stale_sessions
from app.services.sessions import UploadSessionManager

router = APIRouter()

class InitUploadRequest(BaseModel):
    fileName: str
    totalChunks: int

class InitUploadResponse(BaseModel):
    sessionId: str

class ChunkResponse(BaseModel):
    sessionId: str
    uploadedChunks: List[int]

class StatusResponse(BaseModel):
    sessionId: str
    fileName: str
    totalChunks: int
    uploadedChunks: List[int]

class CompleteResponse(BaseModel):
    storedPath: str
    category: str
    name: str
    size: int

class ReapRequest(BaseModel):
    maxAgeSeconds: Optional[float] = Field(default=None, ge=0)

@router.post("/init", response_model=InitUploadResponse)
def init_upload(body: InitUploadRequest, sessions: UploadSessionManager = Depends(get_sessions)):
    session = sessions.create_session(body.fileName, body.totalChunks)
    return InitUploadResponse(sessionId=session.id)

@router.post("/reap")
def reap(body: Optional[ReapRequest] = None, sessions: UploadSessionManager = Depends(get_sessions)):
    max_age = body.maxAgeSeconds if body and body.maxAgeSeconds is not None else settings.SESSION_TTL_SECONDS
    return {"reaped": reap_stale_sessions(sessions, max_age)}

@router.post("/{session_id}/chunks", response_model=ChunkResponse)
async def upload_chunk(
    session_id: str,
    chunkIndex: int = Form(...),
    chunk: UploadFile = File(...),
    sessions: UploadSessionManager = Depends(get_sessions),
):
    data = await chunk.read()
    uploaded = await run_in_threadpool(sessions.register_chunk, session_id, chunkIndex, data)
    return ChunkResponse(sessionId=session_id, uploadedChunks=uploaded)

@router.get("/{session_id}", response_model=StatusResponse)
def upload_status(session_id: str, sessions: UploadSessionManager = Depends(get_sessions)):
    s = sessions.get_status(session_id)
    return StatusResponse(
        sessionId=s.id, fileName=s.file_name, totalChunks=s.total_chunks, uploadedChunks=s.sorted_chunks()
    )

@router.post("/{session_id}/complete", response_model=CompleteResponse)
def complete_upload(session_id: str, sessions: UploadSessionManager = Depends(get_sessions)):
    stored = sessions.complete(session_id)
    return CompleteResponse(storedPath=stored.url, category=stored.category, name=stored.name, size=stored.size)

@router.delete("/{session_id}")
def cancel_upload(session_id: str, sessions: UploadSessionManager = Depends(get_sessions)):
    sessions.delete_session(session_id)
    return {"sessionId": session_id, "deleted": True}
