# backend/crm/crud/attachments.py
from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from crm.models.attachment import Attachment


def get_attachment(db: Session, attachment_id: str) -> Attachment | None:
    return db.get(Attachment, attachment_id)


def list_attachments(
    db: Session,
    contact_id: str | None = None,
    log_entry_id: str | None = None,
) -> list[Attachment]:
    """Attachments of one parent, newest first. `data` is a deferred column and stays unloaded."""
    stmt = select(Attachment)
    if contact_id:
        stmt = stmt.where(Attachment.contact_id == contact_id)
    if log_entry_id:
        stmt = stmt.where(Attachment.log_entry_id == log_entry_id)
    stmt = stmt.order_by(Attachment.created_at.desc(), Attachment.id.desc())
    return list(db.execute(stmt).scalars().all())
