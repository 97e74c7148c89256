# backend/crm/api/deps.py
from __future__ import annotations

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from crm.db.session import get_db
from crm.services.attachment_storage import AttachmentStorageService
from crm.services.attachments import AttachmentService


def get_attachment_storage(request: Request) -> AttachmentStorageService:
    """The storage service built once by create_app()."""
    return request.app.state.attachment_storage


def get_attachment_service(
    db: Session = Depends(get_db),
    storage: AttachmentStorageService = Depends(get_attachment_storage),
) -> AttachmentService:
    return AttachmentService(db=db, storage=storage)
