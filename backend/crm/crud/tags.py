# backend/crm/crud/tags.py
from __future__ import annotations

from typing import Iterable

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from crm.db.base import new_id
from crm.models.tag import DEFAULT_TAG_COLOR, Tag

_UPSERT_INSERTS = {
    "sqlite": sqlite_insert,
    "postgresql": postgresql_insert,
}


def list_tags(db: Session) -> list[Tag]:
    stmt = select(Tag).order_by(Tag.name.asc())
    return list(db.execute(stmt).scalars().all())


def ensure_tags(db: Session, names: Iterable[str]) -> None:
    """
    Add any tag names not yet in the tags table.

    Names are expected to be normalized already. The insert runs immediately
    inside the session's transaction and skips names that already exist,
    including ones committed by a concurrent request. Does not commit.
    """
    wanted = list(dict.fromkeys(names))
    if not wanted:
        return

    dialect = db.get_bind().dialect.name
    insert = _UPSERT_INSERTS.get(dialect)
    if insert is None:
        _ensure_tags_with_savepoints(db, wanted)
        return

    stmt = insert(Tag).values(
        [{"id": new_id(), "name": name, "color": DEFAULT_TAG_COLOR} for name in wanted]
    ).on_conflict_do_nothing(index_elements=[Tag.name])
    db.execute(stmt)


def _ensure_tags_with_savepoints(db: Session, names: list[str]) -> None:
    for name in names:
        try:
            with db.begin_nested():
                db.add(Tag(name=name))
        except IntegrityError:
            # Already present
            continue
