"""Shared test fixtures for the StudyDrive test suite.

Tests run against a throwaway SQLite file and a temporary content store.
Every test gets freshly created tables, an empty storage root, and a cleared
rate limiter.
"""

import os
import tempfile

# Point the app at test resources before any package import reads settings.
_TMP_DIR = tempfile.mkdtemp(prefix="studydrive-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ["STORAGE_ROOT"] = os.path.join(_TMP_DIR, "storage")
os.environ["AUTH_ENABLED"] = "false"
os.environ["LOG_FORMAT"] = "text"

import pytest
from fastapi.testclient import TestClient

from studydrive import models  # noqa: F401  (registers tables on Base.metadata)
from studydrive.core.config import settings
from studydrive.core.rate_limit import limiter
from studydrive.database import Base, SessionLocal, engine, get_db
from studydrive.main import app
from studydrive.models import Drive
from studydrive.services.content_store import ContentStore
from studydrive.services.drive_service import DriveService
from studydrive.services.file_service import FileService

ALICE = "user-alice"
BOB = "user-bob"


@pytest.fixture(autouse=True)
def _clean_state(tmp_path, monkeypatch):
    """Recreate all tables and give each test its own storage root."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    monkeypatch.setattr(settings, "storage_root", str(tmp_path / "storage"))
    limiter.reset()
    yield


@pytest.fixture()
def db():
    """Per-test database session."""
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture()
def store():
    return ContentStore()


@pytest.fixture()
def client(db):
    """FastAPI TestClient with the DB dependency overridden to use the test session."""

    def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def alice_headers() -> dict:
    return {"X-User-Id": ALICE}


@pytest.fixture()
def bob_headers() -> dict:
    return {"X-User-Id": BOB}


@pytest.fixture()
def set_quota(db):
    """Create (if needed) a user's drive and force its usage and limit."""

    def _set(user_id: str, limit: int, used: int = 0) -> Drive:
        drive = DriveService(db).ensure_drive(user_id)
        drive.storage_limit = limit
        drive.storage_used = used
        db.commit()
        return drive

    return _set


@pytest.fixture()
def upload(db, store):
    """Upload bytes through the real ingest pipeline."""

    def _upload(user_id: str = ALICE, name: str = "notes.txt", data: bytes = b"hello", **kwargs):
        return FileService(db, store).upload(user_id, data, name, mime_type="text/plain", **kwargs)

    return _upload
