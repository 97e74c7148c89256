from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import Field, field_validator

from crm.schemas.attachment import AttachmentSummary
from crm.schemas.base import CamelModel
from crm.security.sanitizer import InputSanitizer
from crm.services.attachments import MAX_FILE_SIZE


class ContactIn(CamelModel):
    """Body for creating or updating a contact."""

    name: str = Field(..., description='Display name (required, max 255 chars)')
    notes: Optional[str] = Field(default='', description='Free-form notes')
    tags: Optional[List[str]] = Field(default=None, description='Tags, normalized to lower case')
    avatar: Optional[str] = Field(default=None, description='Avatar as a base64 image data URL')

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        return InputSanitizer.sanitize_required_line(v, 'Name')

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, v: Optional[str]) -> str:
        return InputSanitizer.sanitize_text(v)

    @field_validator('tags')
    @classmethod
    def validate_tags(cls, v: Optional[List[str]]) -> List[str]:
        return InputSanitizer.normalize_tags(v)

    @field_validator('avatar')
    @classmethod
    def validate_avatar(cls, v: Optional[str]) -> Optional[str]:
        return InputSanitizer.validate_avatar(v, max_bytes=MAX_FILE_SIZE)


class ContactOut(CamelModel):
    id: str
    name: str
    notes: str
    tags: List[str]
    avatar: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    attachments: List[AttachmentSummary] = []
