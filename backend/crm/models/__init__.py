# backend/crm/models/__init__.py
from .contact import Contact
from .log_entry import LogEntry
from .tag import Tag
from .attachment import Attachment

__all__ = ["Contact", "LogEntry", "Tag", "Attachment"]
