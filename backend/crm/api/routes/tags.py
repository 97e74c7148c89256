from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from crm.crud.tags import list_tags
from crm.db.session import get_db
from crm.schemas.tag import TagOut

router = APIRouter(prefix='/api/tags', tags=['tags'])


@router.get('', response_model=List[TagOut])
def get_tags(db: Session = Depends(get_db)):
    """All known tags, alphabetically."""
    return list_tags(db)
