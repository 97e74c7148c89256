# backend/crm/crud/contacts.py
from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from crm.crud.tags import ensure_tags
from crm.models.contact import Contact

_WITH_ATTACHMENTS = selectinload(Contact.attachments)


def get_contact(db: Session, contact_id: str) -> Contact | None:
    stmt = select(Contact).where(Contact.id == contact_id).options(_WITH_ATTACHMENTS)
    return db.execute(stmt).scalar_one_or_none()


def contact_exists(db: Session, contact_id: str) -> bool:
    stmt = select(Contact.id).where(Contact.id == contact_id)
    return db.execute(stmt).first() is not None


def list_contacts(db: Session) -> list[Contact]:
    stmt = select(Contact).options(_WITH_ATTACHMENTS).order_by(Contact.updated_at.desc())
    return list(db.execute(stmt).scalars().all())


def create_contact(
    db: Session,
    name: str,
    notes: str = "",
    tags: list[str] | None = None,
    avatar: str | None = None,
) -> Contact:
    tags = tags or []
    c = Contact(name=name, notes=notes, tags=tags, avatar=avatar)

    db.add(c)
    ensure_tags(db, tags)
    db.commit()
    db.refresh(c)
    return c


def update_contact(db: Session, contact: Contact, **fields) -> Contact:
    for key, value in fields.items():
        setattr(contact, key, value)

    if "tags" in fields:
        ensure_tags(db, fields["tags"])

    db.add(contact)
    db.commit()
    db.refresh(contact)
    return contact


def delete_contact(db: Session, contact: Contact) -> None:
    db.delete(contact)
    db.commit()
