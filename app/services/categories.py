# app/services/categories.py
from pathlib import PurePosixPath

IMAGES = "images"
VIDEOS = "videos"
DOCS = "docs"
OTHERS = "others"

CATEGORIES = (IMAGES, VIDEOS, DOCS, OTHERS)

_TABLE = {
    **{ext: IMAGES for ext in (".jpg", ".jpeg", ".png", ".gif", ".bmp", ".webp")},
    **{ext: VIDEOS for ext in (".mp4", ".avi", ".mov", ".mkv", ".webm")},
    **{ext: DOCS for ext in (".pdf", ".doc", ".docx", ".xls", ".xlsx", ".txt", ".ppt", ".pptx")},
}

def classify(extension: str) -> str:
    """Map an extension such as '.PDF' to its storage category; unknown -> 'others'."""
    return _TABLE.get((extension or "").lower(), OTHERS)

def classify_filename(filename: str) -> str:
    return classify(PurePosixPath(filename.replace("\\", "/")).suffix)
