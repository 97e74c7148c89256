# backend/crm/models/tag.py
from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from crm.db.base import Base, new_id

DEFAULT_TAG_COLOR = "#6b7280"


class Tag(Base):
    __tablename__ = "tags"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(64), unique=True, index=True, nullable=False)
    color: Mapped[str] = mapped_column(String(16), nullable=False, default=DEFAULT_TAG_COLOR)
