from __future__ import annotations

import logging
from typing import List, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile, status

from crm.api.deps import get_attachment_service
from crm.api.uploads import read_upload
from crm.schemas.attachment import AttachmentOut, DeleteResponse
from crm.services.attachments import AttachmentService, UploadCandidate

logger = logging.getLogger(__name__)

router = APIRouter(prefix='/api/attachments', tags=['attachments'])


def content_disposition(filename: str) -> str:
    """
    `attachment; filename="<name>"`, plus an RFC 5987 `filename*` when the name
    cannot be sent as a latin-1 header value.
    """
    try:
        filename.encode('ascii')
    except UnicodeEncodeError:
        fallback = filename.encode('ascii', 'ignore').decode('ascii') or 'download'
        return f'attachment; filename="{fallback}"; filename*=utf-8\'\'{quote(filename)}'
    return f'attachment; filename="{filename}"'


@router.post('', response_model=AttachmentOut, status_code=status.HTTP_201_CREATED)
async def upload_attachment(
    file: Optional[UploadFile] = File(default=None),
    contact_id: Optional[str] = Form(default=None, alias='contactId'),
    log_entry_id: Optional[str] = Form(default=None, alias='logEntryId'),
    service: AttachmentService = Depends(get_attachment_service),
):
    """
    Upload a file for exactly one contact or log entry.

    Returns the attachment metadata; the payload is never echoed back.
    """
    candidate = None
    if file is not None:
        content = await read_upload(file)
        candidate = UploadCandidate(
            filename=file.filename or 'unnamed',
            mime_type=file.content_type or '',
            data=content,
        )

    return service.upload(candidate, contact_id=contact_id, log_entry_id=log_entry_id)


@router.get('', response_model=List[AttachmentOut])
def list_attachments(
    contact_id: Optional[str] = Query(default=None, alias='contactId'),
    log_entry_id: Optional[str] = Query(default=None, alias='logEntryId'),
    service: AttachmentService = Depends(get_attachment_service),
):
    """List attachment metadata for one parent, newest first."""
    return service.list_for_parent(contact_id=contact_id, log_entry_id=log_entry_id)


@router.get('/{attachment_id}')
def download_attachment(
    attachment_id: str,
    service: AttachmentService = Depends(get_attachment_service),
):
    """Return the raw attachment bytes with transfer headers."""
    download = service.download(attachment_id)

    return Response(
        content=download.content,
        headers={
            'Content-Type': download.mime_type,
            'Content-Disposition': content_disposition(download.filename),
            'Content-Length': str(download.size),
        },
    )


@router.get('/{attachment_id}/metadata', response_model=AttachmentOut)
def get_attachment_metadata(
    attachment_id: str,
    service: AttachmentService = Depends(get_attachment_service),
):
    return service.get(attachment_id)


@router.delete('/{attachment_id}', response_model=DeleteResponse)
def delete_attachment(
    attachment_id: str,
    service: AttachmentService = Depends(get_attachment_service),
):
    service.delete(attachment_id)
    return DeleteResponse(success=True)
