from __future__ import annotations

import logging
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from sqlalchemy.orm import Session

from crm.api.uploads import read_upload
from crm.core.exceptions import NotFoundError, ValidationError
from crm.crud import contacts as crud
from crm.db.session import get_db
from crm.models.contact import Contact
from crm.schemas.attachment import DeleteResponse
from crm.schemas.contact import ContactIn, ContactOut
from crm.security.sanitizer import InputSanitizer
from crm.services.attachments import MAX_FILE_SIZE, normalize_mime_type
from crm.services.search import fuzzy_search, matches_tag, search_text

logger = logging.getLogger(__name__)

router = APIRouter(prefix='/api/contacts', tags=['contacts'])


def _get_or_404(db: Session, contact_id: str) -> Contact:
    contact = crud.get_contact(db, contact_id)
    if contact is None:
        raise NotFoundError('Contact not found', details={'contact_id': contact_id})
    return contact


@router.get('', response_model=List[ContactOut])
def list_contacts(
    q: Optional[str] = Query(default=None, description='Words that must all appear in name, notes or tags'),
    tag: Optional[str] = Query(default=None, description='Only contacts carrying this tag'),
    sort: Literal['updated', 'name'] = Query(default='updated'),
    db: Session = Depends(get_db),
):
    """List contacts with their attachment metadata."""
    contacts = [
        c for c in crud.list_contacts(db)
        if fuzzy_search(q, search_text(c.name, c.notes, tags=c.tags)) and matches_tag(c.tags, tag)
    ]

    if sort == 'name':
        contacts.sort(key=lambda c: c.name.casefold())

    return contacts


@router.post('', response_model=ContactOut, status_code=status.HTTP_201_CREATED)
def create_contact(payload: ContactIn, db: Session = Depends(get_db)):
    contact = crud.create_contact(
        db,
        name=payload.name,
        notes=payload.notes,
        tags=payload.tags or [],
        avatar=payload.avatar,
    )
    logger.info(f"Created contact {contact.id}")
    return contact


@router.get('/{contact_id}', response_model=ContactOut)
def get_contact(contact_id: str, db: Session = Depends(get_db)):
    return _get_or_404(db, contact_id)


@router.put('/{contact_id}', response_model=ContactOut)
def update_contact(contact_id: str, payload: ContactIn, db: Session = Depends(get_db)):
    """Update a contact. Fields other than name are only changed when sent."""
    contact = _get_or_404(db, contact_id)

    fields = {'name': payload.name}
    sent = payload.model_fields_set
    if 'notes' in sent:
        fields['notes'] = payload.notes
    if 'tags' in sent:
        fields['tags'] = payload.tags or []
    if 'avatar' in sent:
        fields['avatar'] = payload.avatar

    contact = crud.update_contact(db, contact, **fields)
    logger.info(f"Updated contact {contact.id}")
    return contact


@router.delete('/{contact_id}', response_model=DeleteResponse)
def delete_contact(contact_id: str, db: Session = Depends(get_db)):
    """Delete a contact together with its attachments."""
    contact = _get_or_404(db, contact_id)
    crud.delete_contact(db, contact)
    logger.info(f"Deleted contact {contact_id}")
    return DeleteResponse(success=True)


@router.put('/{contact_id}/avatar', response_model=ContactOut)
async def upload_avatar(
    contact_id: str,
    file: Optional[UploadFile] = File(default=None),
    db: Session = Depends(get_db),
):
    """Replace the contact's avatar with an uploaded image."""
    contact = _get_or_404(db, contact_id)

    if file is None:
        raise ValidationError('No file provided')

    mime_type = normalize_mime_type(file.content_type)
    if mime_type not in InputSanitizer.AVATAR_MIME_TYPES:
        raise ValidationError('Avatar must be an image', details={'mime_type': file.content_type})

    content = await read_upload(file)
    if len(content) > MAX_FILE_SIZE:
        raise ValidationError(
            f"File size exceeds {MAX_FILE_SIZE // (1024 * 1024)}MB limit",
            details={'max_size': MAX_FILE_SIZE},
        )

    contact = crud.update_contact(db, contact, avatar=InputSanitizer.to_data_url(mime_type, content))
    logger.info(f"Updated avatar for contact {contact.id} ({len(content)} bytes)")
    return contact


@router.delete('/{contact_id}/avatar', response_model=ContactOut)
def delete_avatar(contact_id: str, db: Session = Depends(get_db)):
    contact = _get_or_404(db, contact_id)
    return crud.update_contact(db, contact, avatar=None)
