from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from crm.core.exceptions import NotFoundError
from crm.crud import log_entries as crud
from crm.db.session import get_db
from crm.models.log_entry import LogEntry
from crm.schemas.attachment import DeleteResponse
from crm.schemas.log_entry import LogEntryIn, LogEntryOut
from crm.services.search import fuzzy_search, matches_tag, search_text

logger = logging.getLogger(__name__)

router = APIRouter(prefix='/api/logs', tags=['logs'])


def _get_or_404(db: Session, log_entry_id: str) -> LogEntry:
    entry = crud.get_log_entry(db, log_entry_id)
    if entry is None:
        raise NotFoundError('Log entry not found', details={'log_entry_id': log_entry_id})
    return entry


@router.get('', response_model=List[LogEntryOut])
def list_log_entries(
    q: Optional[str] = Query(default=None, description='Words that must all appear in title, content or tags'),
    tag: Optional[str] = Query(default=None, description='Only entries carrying this tag'),
    db: Session = Depends(get_db),
):
    """List log entries, newest date first."""
    return [
        e for e in crud.list_log_entries(db)
        if fuzzy_search(q, search_text(e.title, e.content, tags=e.tags)) and matches_tag(e.tags, tag)
    ]


@router.post('', response_model=LogEntryOut, status_code=status.HTTP_201_CREATED)
def create_log_entry(payload: LogEntryIn, db: Session = Depends(get_db)):
    entry = crud.create_log_entry(
        db,
        title=payload.title,
        content=payload.content,
        date=payload.date,
        tags=payload.tags or [],
    )
    logger.info(f"Created log entry {entry.id}")
    return entry


@router.get('/{log_entry_id}', response_model=LogEntryOut)
def get_log_entry(log_entry_id: str, db: Session = Depends(get_db)):
    return _get_or_404(db, log_entry_id)


@router.put('/{log_entry_id}', response_model=LogEntryOut)
def update_log_entry(log_entry_id: str, payload: LogEntryIn, db: Session = Depends(get_db)):
    """Update a log entry. Fields other than title are only changed when sent."""
    entry = _get_or_404(db, log_entry_id)

    fields = {'title': payload.title}
    sent = payload.model_fields_set
    if 'content' in sent:
        fields['content'] = payload.content
    if 'date' in sent and payload.date is not None:
        fields['date'] = payload.date
    if 'tags' in sent:
        fields['tags'] = payload.tags or []

    entry = crud.update_log_entry(db, entry, **fields)
    logger.info(f"Updated log entry {entry.id}")
    return entry


@router.delete('/{log_entry_id}', response_model=DeleteResponse)
def delete_log_entry(log_entry_id: str, db: Session = Depends(get_db)):
    """Delete a log entry together with its attachments."""
    entry = _get_or_404(db, log_entry_id)
    crud.delete_log_entry(db, entry)
    logger.info(f"Deleted log entry {log_entry_id}")
    return DeleteResponse(success=True)
