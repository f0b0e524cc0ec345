from __future__ import annotations
from pathlib import Path
from typing import Tuple
from fastapi import HTTPException, UploadFile
from starlette import status
import mimetypes

ALLOWED_DOCUMENTS = {
    "application/pdf",
    "text/plain",
    "text/markdown",
    "text/x-markdown",
}

# browsers often send .md as octet-stream
_SUFFIX_TYPES = {".pdf": "application/pdf", ".txt": "text/plain", ".md": "text/markdown"}


def document_mime(f: UploadFile) -> str:
    mime = (f.content_type or "").split(";")[0].strip().lower()
    if mime in ALLOWED_DOCUMENTS:
        return mime
    suffix = Path(f.filename or "").suffix.lower()
    return _SUFFIX_TYPES.get(suffix) or mimetypes.guess_type(f.filename or "")[0] or mime or "application/octet-stream"


def read_upload(f: UploadFile, max_mb: int) -> Tuple[bytes, int, str]:
    """
    Read the upload into memory in 1 MB chunks. Returns (data, size_bytes, mime).
    Nothing is written to disk.
    """
    chunks = []
    size = 0
    while True:
        chunk = f.file.read(1024 * 1024)
        if not chunk:
            break
        size += len(chunk)
        if size > max_mb * 1024 * 1024:
            raise HTTPException(status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, "File too large")
        chunks.append(chunk)
    return b"".join(chunks), size, document_mime(f)
