# backend/crm/db/session.py
from __future__ import annotations

from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from crm.core.config import settings

DATABASE_URL = settings.database_url


def is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def enable_sqlite_foreign_keys(target: Engine) -> Engine:
    """
    Turn on foreign key enforcement for every new SQLite connection.

    SQLite ships with it off, which would leave `ON DELETE CASCADE` and the
    attachment parent references unchecked.
    """

    @event.listens_for(target, "connect")
    def _set_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return target


def build_engine(url: str, **kwargs) -> Engine:
    if not is_sqlite(url):
        return create_engine(url, **kwargs)

    connect_args = {"check_same_thread": False, **kwargs.pop("connect_args", {})}
    return enable_sqlite_foreign_keys(create_engine(url, connect_args=connect_args, **kwargs))


engine = build_engine(DATABASE_URL)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
