# backend/crm/crud/log_entries.py
from __future__ import annotations

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from crm.crud.tags import ensure_tags
from crm.db.base import utcnow
from crm.models.log_entry import LogEntry

_WITH_ATTACHMENTS = selectinload(LogEntry.attachments)


def get_log_entry(db: Session, log_entry_id: str) -> LogEntry | None:
    stmt = select(LogEntry).where(LogEntry.id == log_entry_id).options(_WITH_ATTACHMENTS)
    return db.execute(stmt).scalar_one_or_none()


def log_entry_exists(db: Session, log_entry_id: str) -> bool:
    stmt = select(LogEntry.id).where(LogEntry.id == log_entry_id)
    return db.execute(stmt).first() is not None


def list_log_entries(db: Session) -> list[LogEntry]:
    stmt = select(LogEntry).options(_WITH_ATTACHMENTS).order_by(LogEntry.date.desc())
    return list(db.execute(stmt).scalars().all())


def create_log_entry(
    db: Session,
    title: str,
    content: str = "",
    date: datetime | None = None,
    tags: list[str] | None = None,
) -> LogEntry:
    tags = tags or []
    entry = LogEntry(title=title, content=content, date=date or utcnow(), tags=tags)

    db.add(entry)
    ensure_tags(db, tags)
    db.commit()
    db.refresh(entry)
    return entry


def update_log_entry(db: Session, entry: LogEntry, **fields) -> LogEntry:
    for key, value in fields.items():
        setattr(entry, key, value)

    if "tags" in fields:
        ensure_tags(db, fields["tags"])

    db.add(entry)
    db.commit()
    db.refresh(entry)
    return entry


def delete_log_entry(db: Session, entry: LogEntry) -> None:
    db.delete(entry)
    db.commit()
