"""
Pytest configuration and shared fixtures.

Test environment variables are set before any creatorhub import so that
settings and the engine pick them up.
"""

import itertools
import os
from datetime import datetime, timedelta, timezone

import pytest

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_creatorhub.db")
os.environ.setdefault("LOG_LEVEL", "WARNING")

# Clear settings cache before any app imports to ensure test env vars are used
from creatorhub.config import get_settings  # noqa: E402
get_settings.cache_clear()

from fastapi.testclient import TestClient  # noqa: E402

from creatorhub import models, utils  # noqa: E402,F401
from creatorhub.main import app  # noqa: E402
from creatorhub.storage import Base, SessionLocal, engine, upsert_user  # noqa: E402


CLOCK_START = datetime(2025, 1, 15, 10, 0, 0, tzinfo=timezone.utc)


def ts(seconds: int) -> str:
    """Stored timestamp `seconds` after the test clock start."""
    return utils.format_timestamp(CLOCK_START + timedelta(seconds=seconds))


def auth(user_id: str, role: str = "creator") -> dict:
    """Identity headers as forwarded by the auth proxy."""
    return {"X-User-Id": user_id, "X-User-Role": role}


@pytest.fixture(autouse=True)
def ticking_clock(monkeypatch):
    """Every message creation sees a clock one second later than the previous one."""
    ticks = itertools.count(1)
    monkeypatch.setattr(utils, "utc_timestamp", lambda: ts(next(ticks)))


@pytest.fixture(scope="function")
def db():
    """Database session on fresh tables for each test."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def users(db):
    """Three registered users: alice and bob are creators, carol is an admin."""
    upsert_user(db, "alice", email="alice@example.com", first_name="Alice")
    upsert_user(db, "bob", email="bob@example.com", first_name="Bob")
    upsert_user(db, "carol", email="carol@example.com", first_name="Carol", role="admin")
    return ("alice", "bob", "carol")


@pytest.fixture(scope="function")
def client():
    """Create test client with fresh database for each test."""
    Base.metadata.create_all(bind=engine)

    with TestClient(app) as test_client:
        yield test_client

    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def registered_client(client):
    """Client where alice, bob and carol have each made one request."""
    for user_id, role in (("alice", "creator"), ("bob", "creator"), ("carol", "admin")):
        response = client.get("/api/me", headers=auth(user_id, role))
        assert response.status_code == 200
    return client
