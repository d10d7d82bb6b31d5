
import os
from dataclasses import dataclass, field
from typing import List
from dotenv import load_dotenv

load_dotenv(override=True)

def _csv(value: str) -> List[str]:
    return [v.strip() for v in value.split(",") if v.strip()]

@dataclass
class Settings:
    UPLOAD_ROOT: str = os.getenv("UPLOAD_ROOT", "uploads")
    TMP_DIR_NAME: str = os.getenv("TMP_DIR_NAME", "tmp")
    MAX_CHUNK_BYTES: int = int(os.getenv("MAX_CHUNK_BYTES", str(50 * 1024 * 1024)))
    MAX_TOTAL_CHUNKS: int = int(os.getenv("MAX_TOTAL_CHUNKS", "100000"))
    SESSION_TTL_SECONDS: int = int(os.getenv("SESSION_TTL_SECONDS", "86400"))
    LOG_DIR: str = os.getenv("LOG_DIR", "logs")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    CORS_ORIGINS: List[str] = field(default_factory=lambda: _csv(os.getenv("CORS_ORIGINS", "*")))

settings = Settings()
