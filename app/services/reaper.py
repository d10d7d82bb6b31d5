# app/services/reaper.py
import logging
import time
from typing import List, Optional

from app.core.errors import SessionNotFound
from app.services.sessions import UploadSessionManager

logger = logging.getLogger(__name__)

def reap_stale_sessions(
    manager: UploadSessionManager,
    max_age_seconds: float,
    now: Optional[float] = None,
) -> List[str]:
    """
    Delete abandoned upload sessions older than max_age_seconds.
    Returns the ids that were removed.
    """
    now = time.time() if now is None else now
    reaped = []
    for session in manager.list_sessions():
        if now - session.created_at <= max_age_seconds:
            continue
        try:
            manager.delete_session(session.id)
        except SessionNotFound:
            # completed or deleted since listing
            continue
        reaped.append(session.id)
    if reaped:
        logger.info(f"Reaped {len(reaped)} stale upload session(s)")
    return reaped
