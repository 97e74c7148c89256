# backend/crm/api/uploads.py
from __future__ import annotations

from fastapi import UploadFile

from crm.services.attachments import MAX_FILE_SIZE


async def read_upload(file: UploadFile, limit: int = MAX_FILE_SIZE) -> bytes:
    """
    Read an uploaded file, holding at most `limit + 1` bytes in memory.

    An oversized upload comes back truncated to `limit + 1` bytes so the
    size check downstream still rejects it.
    """
    return await file.read(limit + 1)
