"""
Analytics diff reporter.

Compares before/after profile snapshots and emits analytics events only
when something meaningful moved. Every emission is best-effort: failures
are logged and swallowed so they never affect a recompute's outcome.
"""

from __future__ import annotations

from typing import Any, Protocol

from app.features.profile_engagement.pipeline.targeting import (
    ProfileSnapshot,
    TargetingDiff,
    derive_targeting,
    diff_targeting,
)
from app.infrastructure.analytics import AnalyticsEvent, analytics_sink
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

TRUST_SCORE_CHANGED = "profile_trust_score_changed"
ENGAGEMENT_REFRESHED = "profile_engagement_refreshed"
TARGETING_CHANGED = "profile_targeting_changed"
ENTITY_TYPE = "profile"

# Smaller moves within the same tier are rounding noise
TRUST_SCORE_NOISE_THRESHOLD = 0.05


class EventSink(Protocol):
    async def record(self, event: AnalyticsEvent) -> bool: ...


def _targeting_diff(previous: ProfileSnapshot, current: ProfileSnapshot) -> TargetingDiff:
    return diff_targeting(derive_targeting(previous), derive_targeting(current))


def _metric_change(before: int, after: int) -> dict[str, int]:
    return {"before": before, "after": after, "delta": after - before}


class AnalyticsDiffReporter:
    def __init__(self, sink: EventSink | None = None):
        self.sink = sink or analytics_sink

    async def report_trust_score_change(
        self,
        previous: ProfileSnapshot,
        current: ProfileSnapshot,
        *,
        reason: str | None = None,
    ) -> bool:
        """
        Emit ``profile_trust_score_changed`` unless the move is noise.

        Returns:
            True if the sink stored the event
        """
        previous_score = previous.metrics.trust_score or 0.0
        next_score = current.metrics.trust_score or 0.0
        delta = round(next_score - previous_score, 4)
        tier_changed = previous.metrics.trust_score_level != current.metrics.trust_score_level

        if abs(delta) < TRUST_SCORE_NOISE_THRESHOLD and not tier_changed:
            logger.debug(
                "Trust score change suppressed",
                profile_id=current.profile_id,
                delta=delta,
            )
            return False

        context = {
            "previous_score": previous.metrics.trust_score,
            "next_score": current.metrics.trust_score,
            "delta": delta,
            "previous_level": previous.metrics.trust_score_level,
            "next_level": current.metrics.trust_score_level,
            "tier_changed": tier_changed,
            "targeting": _targeting_diff(previous, current).to_dict(),
        }
        if reason:
            context["reason"] = reason
        return await self._emit(TRUST_SCORE_CHANGED, current, context)

    async def report_engagement_refresh(
        self,
        previous: ProfileSnapshot,
        current: ProfileSnapshot,
        *,
        reason: str | None = None,
    ) -> bool:
        """Emit ``profile_engagement_refreshed`` when counts moved or a reason was given."""
        likes = _metric_change(previous.metrics.likes_count, current.metrics.likes_count)
        followers = _metric_change(
            previous.metrics.followers_count, current.metrics.followers_count
        )

        if likes["delta"] == 0 and followers["delta"] == 0 and not reason:
            return False

        context = {
            "likes": likes,
            "followers": followers,
            "reason": reason,
            "targeting": _targeting_diff(previous, current).to_dict(),
        }
        return await self._emit(ENGAGEMENT_REFRESHED, current, context)

    async def report_targeting_change(
        self,
        previous: ProfileSnapshot,
        current: ProfileSnapshot,
        *,
        reason: str | None = None,
    ) -> bool:
        """Emit ``profile_targeting_changed`` when the stage or segment set moved."""
        diff = _targeting_diff(previous, current)
        if not diff.has_changes:
            return False

        context = diff.to_dict()
        if reason:
            context["reason"] = reason
        return await self._emit(TARGETING_CHANGED, current, context)

    async def _emit(self, event_name: str, snapshot: ProfileSnapshot, context: dict[str, Any]) -> bool:
        event = AnalyticsEvent(
            event_name=event_name,
            entity_type=ENTITY_TYPE,
            entity_id=snapshot.profile_id,
            user_id=snapshot.user_id,
            context=context,
        )
        try:
            return await self.sink.record(event)
        except Exception as e:
            logger.error(
                "Analytics emission failed",
                event_name=event_name,
                profile_id=snapshot.profile_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False


analytics_diff_reporter = AnalyticsDiffReporter()
