# backend/crm/db/init_db.py
from sqlalchemy.engine import Engine

from crm.db.base import Base
from crm.db.session import engine as default_engine

# Models must be imported so that their tables are registered on Base.metadata
from crm import models  # noqa: F401


def init_db(engine: Engine | None = None) -> None:
    Base.metadata.create_all(bind=engine or default_engine)
