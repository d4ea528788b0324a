from datetime import UTC
from unittest.mock import AsyncMock

import pytest
from psycopg.types.json import Jsonb

from app.db.helpers import DatabaseError
from app.infrastructure.analytics import AnalyticsEvent, AnalyticsEventSink


def _event():
    return AnalyticsEvent(
        event_name="profile_trust_score_changed",
        entity_type="profile",
        entity_id=42,
        user_id=7,
        context={"delta": 1.5},
    )


@pytest.mark.asyncio
async def test_record_inserts_event(monkeypatch):
    execute_mock = AsyncMock(return_value=1)
    monkeypatch.setattr("app.infrastructure.analytics.event_sink.execute_query", execute_mock)

    stored = await AnalyticsEventSink().record(_event())

    assert stored is True
    query, params = execute_mock.await_args.args
    assert "INSERT INTO analytics_events" in query
    assert params[0] == "profile_trust_score_changed"
    assert params[1] == "system"
    assert params[3] == "42"
    assert isinstance(params[6], Jsonb)


@pytest.mark.asyncio
async def test_record_never_raises(monkeypatch):
    execute_mock = AsyncMock(side_effect=DatabaseError("boom", operation="execute"))
    monkeypatch.setattr("app.infrastructure.analytics.event_sink.execute_query", execute_mock)

    stored = await AnalyticsEventSink().record(_event())

    assert stored is False


def test_event_timestamp_defaults_to_utc():
    assert _event().occurred_at.tzinfo is UTC
