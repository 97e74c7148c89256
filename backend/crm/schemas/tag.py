from __future__ import annotations

from crm.schemas.base import CamelModel


class TagOut(CamelModel):
    id: str
    name: str
    color: str
