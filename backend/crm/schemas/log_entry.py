from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import Field, field_validator

from crm.schemas.attachment import AttachmentSummary
from crm.schemas.base import CamelModel, to_naive_utc
from crm.security.sanitizer import InputSanitizer


class LogEntryIn(CamelModel):
    """Body for creating or updating a log entry. A missing date means now."""

    title: str = Field(..., description='Title (required, max 255 chars)')
    content: Optional[str] = Field(default='', description='Entry body')
    date: Optional[datetime] = None
    tags: Optional[List[str]] = None

    @field_validator('title')
    @classmethod
    def validate_title(cls, v: str) -> str:
        return InputSanitizer.sanitize_required_line(v, 'Title')

    @field_validator('content')
    @classmethod
    def validate_content(cls, v: Optional[str]) -> str:
        return InputSanitizer.sanitize_text(v, strip=True)

    @field_validator('date')
    @classmethod
    def validate_date(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(v)

    @field_validator('tags')
    @classmethod
    def validate_tags(cls, v: Optional[List[str]]) -> List[str]:
        return InputSanitizer.normalize_tags(v)


class LogEntryOut(CamelModel):
    id: str
    title: str
    content: str
    date: datetime
    tags: List[str]
    created_at: datetime
    updated_at: datetime
    attachments: List[AttachmentSummary] = []
