"""
Attachment upload, listing, download and deletion.

Upload path: validate_upload -> storage.store_payload -> parent check ->
single commit of the attachment row. A row therefore only ever exists with
a complete payload behind it.

The declared MIME type of an upload is trusted as-is; no content sniffing
is done.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from crm.core.exceptions import NotFoundError, StorageError, ValidationError
from crm.crud.attachments import get_attachment, list_attachments
from crm.crud.contacts import contact_exists
from crm.crud.log_entries import log_entry_exists
from crm.models.attachment import Attachment
from crm.security.sanitizer import InputSanitizer
from crm.services.attachment_storage import AttachmentStorageService, StorageRecord

logger = logging.getLogger(__name__)

MAX_FILE_SIZE = 5 * 1024 * 1024  # 5 MB

ALLOWED_MIME_TYPES = frozenset({
    # Images
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/webp",
    # Documents
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "text/plain",
    # Archives
    "application/zip",
    "application/x-zip-compressed",
})


@dataclass(frozen=True)
class UploadCandidate:
    filename: str
    mime_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class DownloadedAttachment:
    content: bytes
    filename: str
    mime_type: str
    size: int


def normalize_mime_type(mime_type: Optional[str]) -> str:
    return (mime_type or "").split(";")[0].strip().lower()


def is_allowed_mime_type(mime_type: Optional[str]) -> bool:
    return normalize_mime_type(mime_type) in ALLOWED_MIME_TYPES


def _parent_ids(contact_id: Optional[str], log_entry_id: Optional[str]) -> tuple[Optional[str], Optional[str]]:
    """Blank ids count as absent. Exactly one must remain."""
    contact_id = contact_id or None
    log_entry_id = log_entry_id or None

    if not contact_id and not log_entry_id:
        raise ValidationError("Either contactId or logEntryId must be provided")

    if contact_id and log_entry_id:
        raise ValidationError("Cannot attach to both contact and log entry")

    return contact_id, log_entry_id


def validate_upload(
    candidate: Optional[UploadCandidate],
    contact_id: Optional[str] = None,
    log_entry_id: Optional[str] = None,
) -> tuple[Optional[str], Optional[str]]:
    """
    Check an upload before anything is stored.

    Returns the normalized (contact_id, log_entry_id) pair.

    Raises:
        ValidationError: no file, neither or both parents, file larger than
            MAX_FILE_SIZE, or MIME type outside ALLOWED_MIME_TYPES.
    """
    if candidate is None:
        raise ValidationError("No file provided")

    parents = _parent_ids(contact_id, log_entry_id)

    if candidate.size > MAX_FILE_SIZE:
        raise ValidationError(
            f"File size exceeds {MAX_FILE_SIZE // (1024 * 1024)}MB limit",
            details={"max_size": MAX_FILE_SIZE},
        )

    if not is_allowed_mime_type(candidate.mime_type):
        raise ValidationError(
            "File type not allowed",
            details={"mime_type": candidate.mime_type},
        )

    return parents


class AttachmentService:
    """Per-request attachment operations over one database session."""

    def __init__(self, db: Session, storage: AttachmentStorageService):
        self.db = db
        self.storage = storage

    def upload(
        self,
        candidate: Optional[UploadCandidate],
        contact_id: Optional[str] = None,
        log_entry_id: Optional[str] = None,
    ) -> Attachment:
        contact_id, log_entry_id = validate_upload(candidate, contact_id, log_entry_id)

        stored = self.storage.store_payload(candidate.data)

        try:
            self._ensure_parent_exists(contact_id, log_entry_id)
        except NotFoundError:
            self._discard_payload(stored)
            raise

        attachment = Attachment(
            filename=InputSanitizer.sanitize_filename(candidate.filename),
            mime_type=normalize_mime_type(candidate.mime_type),
            size=candidate.size,
            data=stored.data,
            storage_provider=stored.storage_provider,
            storage_reference=stored.storage_reference,
            storage_url=stored.storage_url,
            contact_id=contact_id,
            log_entry_id=log_entry_id,
        )

        try:
            self.db.add(attachment)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            self._discard_payload(stored)
            # Parent deleted between the check and the commit
            self._ensure_parent_exists(contact_id, log_entry_id)
            raise
        except Exception:
            self.db.rollback()
            self._discard_payload(stored)
            raise

        self.db.refresh(attachment)
        logger.info(
            f"Stored attachment {attachment.id} ({attachment.filename}, {attachment.size} bytes) "
            f"for {'contact ' + contact_id if contact_id else 'log entry ' + log_entry_id}"
        )
        return attachment

    def list_for_parent(
        self,
        contact_id: Optional[str] = None,
        log_entry_id: Optional[str] = None,
    ) -> list[Attachment]:
        contact_id, log_entry_id = _parent_ids(contact_id, log_entry_id)
        return list_attachments(self.db, contact_id=contact_id, log_entry_id=log_entry_id)

    def get(self, attachment_id: str) -> Attachment:
        attachment = get_attachment(self.db, attachment_id)
        if attachment is None:
            raise NotFoundError("Attachment not found", details={"attachment_id": attachment_id})
        return attachment

    def download(self, attachment_id: str) -> DownloadedAttachment:
        attachment = self.get(attachment_id)
        content = self.storage.read_payload(attachment)

        if len(content) != attachment.size:
            raise StorageError(
                f"Attachment {attachment.id} payload is {len(content)} bytes, expected {attachment.size}"
            )

        return DownloadedAttachment(
            content=content,
            filename=attachment.filename,
            mime_type=attachment.mime_type,
            size=attachment.size,
        )

    def delete(self, attachment_id: str) -> None:
        attachment = self.get(attachment_id)

        self._discard_payload(attachment)

        try:
            self.db.delete(attachment)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Deleted attachment {attachment_id}")

    def _ensure_parent_exists(self, contact_id: Optional[str], log_entry_id: Optional[str]) -> None:
        if contact_id and not contact_exists(self.db, contact_id):
            raise NotFoundError("Contact not found", details={"contact_id": contact_id})
        if log_entry_id and not log_entry_exists(self.db, log_entry_id):
            raise NotFoundError("Log entry not found", details={"log_entry_id": log_entry_id})

    def _discard_payload(self, record: StorageRecord) -> None:
        # Best-effort: a storage backend failure must not block the caller
        try:
            self.storage.delete_payload(record)
        except Exception as e:
            logger.warning(f"Failed to remove attachment payload ({record.storage_provider}): {e}")
