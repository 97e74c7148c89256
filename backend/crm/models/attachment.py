# backend/crm/models/attachment.py
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from crm.db.base import Base, new_id, utcnow


class Attachment(Base):
    __tablename__ = "attachments"
    __table_args__ = (
        # Exactly one parent: a contact or a log entry
        CheckConstraint(
            "(contact_id IS NULL) != (log_entry_id IS NULL)",
            name="ck_attachments_single_parent",
        ),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)

    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    mime_type: Mapped[str] = mapped_column(String(127), nullable=False)
    size: Mapped[int] = mapped_column(Integer, nullable=False)

    # Inline payload (base64) for the database provider, empty for out-of-band providers.
    # Deferred: only loaded when a download touches it.
    data: Mapped[str] = mapped_column(Text, nullable=False, default="", deferred=True)
    storage_provider: Mapped[str | None] = mapped_column(String(64), nullable=True)
    storage_reference: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    storage_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)

    contact_id: Mapped[str | None] = mapped_column(
        ForeignKey("contacts.id", ondelete="CASCADE"), index=True, nullable=True
    )
    log_entry_id: Mapped[str | None] = mapped_column(
        ForeignKey("log_entries.id", ondelete="CASCADE"), index=True, nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    contact = relationship("Contact", back_populates="attachments")
    log_entry = relationship("LogEntry", back_populates="attachments")
