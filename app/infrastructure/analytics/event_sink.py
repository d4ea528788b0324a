"""
AnalyticsEventSink - fire-and-forget ingestion of product analytics events.

Events are written to the ``analytics_events`` table and mirrored to the
structured logs. Recording never raises: a failed insert is logged with
enough context to replay the event by hand.

Usage:
    from app.infrastructure.analytics import AnalyticsEvent, analytics_sink

    await analytics_sink.record(
        AnalyticsEvent(
            event_name="profile_trust_score_changed",
            entity_type="profile",
            entity_id=42,
            user_id=7,
            context={"previous_score": 61.2, "next_score": 72.4},
        )
    )
"""

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from functools import partial
from typing import Any

from psycopg.types.json import Jsonb

from app.db.helpers import execute_query
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

_dumps = partial(json.dumps, default=str)


@dataclass(slots=True)
class AnalyticsEvent:
    event_name: str
    entity_type: str
    entity_id: int | str | None = None
    user_id: int | str | None = None
    actor_type: str = "system"
    source: str = "profile_engagement"
    context: dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_name": self.event_name,
            "actor_type": self.actor_type,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "user_id": self.user_id,
            "source": self.source,
            "context": self.context,
            "occurred_at": self.occurred_at.isoformat(),
        }


class AnalyticsEventSink:
    """
    Writes analytics events to PostgreSQL.

    Safe to call after a transaction commits; it opens its own pooled
    connection and never propagates failures.
    """

    async def record(self, event: AnalyticsEvent) -> bool:
        """
        Persist one event.

        Returns:
            True if stored, False if the insert failed (never raises)
        """
        logger.info(
            "Analytics event",
            event_name=event.event_name,
            entity_type=event.entity_type,
            entity_id=event.entity_id,
            user_id=event.user_id,
        )

        try:
            await execute_query(
                """
                INSERT INTO analytics_events (
                    event_name, actor_type, entity_type, entity_id,
                    user_id, source, context, occurred_at
                ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                """,
                (
                    event.event_name,
                    event.actor_type,
                    event.entity_type,
                    None if event.entity_id is None else str(event.entity_id),
                    event.user_id,
                    event.source,
                    Jsonb(event.context, dumps=_dumps),
                    event.occurred_at,
                ),
            )
            return True

        except Exception as e:
            # Analytics must never fail the caller
            logger.error(
                "Failed to write analytics event",
                error=str(e),
                error_type=type(e).__name__,
                fallback_data=event.to_dict(),
            )
            return False


# Global singleton instance
analytics_sink = AnalyticsEventSink()
