from __future__ import annotations

from datetime import datetime
from typing import Optional

from crm.schemas.base import CamelModel


class AttachmentOut(CamelModel):
    """Attachment metadata. The payload is never part of this shape."""

    id: str
    filename: str
    mime_type: str
    size: int
    created_at: datetime
    storage_provider: Optional[str] = None
    storage_reference: Optional[str] = None
    storage_url: Optional[str] = None
    contact_id: Optional[str] = None
    log_entry_id: Optional[str] = None


class AttachmentSummary(CamelModel):
    """Attachment metadata as embedded in contact and log entry listings."""

    id: str
    filename: str
    mime_type: str
    size: int
    created_at: datetime


class DeleteResponse(CamelModel):
    success: bool = True
