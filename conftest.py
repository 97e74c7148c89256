"""
Pytest fixtures shared by the API and service tests.

Every test gets its own in-memory SQLite database. The app's `get_db`
dependency is overridden to hand out sessions bound to it.
"""
import os

# Must be set before crm.core.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("APP_ENV", "test")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from crm import models  # noqa: F401
from crm.db.base import Base
from crm.db.session import build_engine, get_db
from crm.main import create_app
from crm.services.attachment_storage import AttachmentStorageService


@pytest.fixture
def engine():
    engine = build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def storage():
    return AttachmentStorageService()


@pytest.fixture
def app(session_factory, storage):
    app = create_app(attachment_storage=storage, create_tables=False)

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    return app


@pytest.fixture
def client(app):
    # Unhandled errors must come back as 500 responses, not test exceptions
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c


@pytest.fixture
def contact(client):
    resp = client.post("/api/contacts", json={"name": "Ada Lovelace", "tags": ["Friend"]})
    assert resp.status_code == 201
    return resp.json()


@pytest.fixture
def log_entry(client):
    resp = client.post(
        "/api/logs",
        json={"title": "Coffee with Ada", "content": "Talked about engines", "date": "2024-03-01T10:00:00"},
    )
    assert resp.status_code == 201
    return resp.json()
