import os

os.environ.setdefault("ENVIRONMENT", "test")

from contextlib import asynccontextmanager  # noqa: E402
from datetime import UTC, datetime  # noqa: E402

import pytest  # noqa: E402

from app.db.pool import db_pool  # noqa: E402
from app.features.profile_engagement.domain import ProfileRecord  # noqa: E402

FIXED_NOW = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)


class FakeSink:
    def __init__(self):
        self.events = []

    async def record(self, event) -> bool:
        self.events.append(event)
        return True


class FakeConnection:
    """Stands in for a psycopg connection handed out by db_pool.transaction()."""


@pytest.fixture
def fixed_now():
    return FIXED_NOW


@pytest.fixture
def fake_sink():
    return FakeSink()


@pytest.fixture
def make_profile():
    def _make(**overrides):
        values = {"id": 1, "user_id": 10}
        values.update(overrides)
        return ProfileRecord(**values)

    return _make


@pytest.fixture
def fake_transaction(monkeypatch):
    """Patch db_pool.transaction() to yield a shared fake connection."""
    conn = FakeConnection()
    opened = []

    @asynccontextmanager
    async def _transaction():
        opened.append(conn)
        yield conn

    monkeypatch.setattr(db_pool, "transaction", _transaction)
    _transaction.connection = conn
    _transaction.opened = opened
    return _transaction
