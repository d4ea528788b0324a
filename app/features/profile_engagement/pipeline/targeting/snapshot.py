"""
Profile snapshots - comparable captures of derived metrics and targeting inputs.

Snapshots are immutable and only ever compared before/after a recompute;
they are never persisted.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime
from types import MappingProxyType
from typing import Any

from app.features.profile_engagement.domain.models import ProfileRecord
from app.features.profile_engagement.pipeline.scoring.service import TrustScoreEngine

METRIC_FIELDS = (
    "trust_score",
    "trust_score_level",
    "profile_completion",
    "likes_count",
    "followers_count",
    "connections_count",
    "engagement_refreshed_at",
)

_EMPTY_MAPPING: Mapping[str, Any] = MappingProxyType({})


def _freeze_list(values: Iterable[Any] | None) -> tuple:
    frozen = []
    for value in values or ():
        if isinstance(value, Mapping):
            frozen.append(MappingProxyType(dict(value)))
        else:
            frozen.append(value)
    return tuple(frozen)


def _freeze_mapping(value: Mapping[str, Any] | None) -> Mapping[str, Any]:
    if not value:
        return _EMPTY_MAPPING
    return MappingProxyType(dict(value))


def _as_int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def _as_float(value: Any) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True, slots=True)
class SnapshotMetrics:
    trust_score: float | None = None
    trust_score_level: str | None = None
    profile_completion: float | None = None
    likes_count: int = 0
    followers_count: int = 0
    connections_count: int = 0
    engagement_refreshed_at: datetime | None = None

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> SnapshotMetrics:
        trust_score = _as_float(values.get("trust_score"))
        level = values.get("trust_score_level")
        if level is None and trust_score is not None:
            level = TrustScoreEngine.level_for(trust_score)
        return cls(
            trust_score=trust_score,
            trust_score_level=level,
            profile_completion=_as_float(values.get("profile_completion")),
            likes_count=_as_int(values.get("likes_count")),
            followers_count=_as_int(values.get("followers_count")),
            connections_count=_as_int(values.get("connections_count")),
            engagement_refreshed_at=values.get("engagement_refreshed_at"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "trust_score": self.trust_score,
            "trust_score_level": self.trust_score_level,
            "profile_completion": self.profile_completion,
            "likes_count": self.likes_count,
            "followers_count": self.followers_count,
            "connections_count": self.connections_count,
            "engagement_refreshed_at": (
                self.engagement_refreshed_at.isoformat() if self.engagement_refreshed_at else None
            ),
        }


@dataclass(frozen=True, slots=True)
class ProfileSnapshot:
    profile_id: int
    user_id: int | None
    metrics: SnapshotMetrics = field(default_factory=SnapshotMetrics)
    launchpad_eligibility: Mapping[str, Any] = field(default_factory=lambda: _EMPTY_MAPPING)
    volunteer_badges: tuple = ()
    status_flags: tuple = ()
    pipeline_insights: tuple = ()

    @classmethod
    def from_overview(cls, overview: Mapping[str, Any]) -> ProfileSnapshot:
        """
        Build a snapshot from a profile overview payload.

        Metrics may be nested under ``metrics`` or sit at the top level;
        nested values win.
        """
        metric_values = {key: overview.get(key) for key in METRIC_FIELDS if key in overview}
        nested = overview.get("metrics")
        if isinstance(nested, Mapping):
            metric_values.update({key: nested[key] for key in METRIC_FIELDS if key in nested})

        profile_id = overview.get("profile_id", overview.get("id"))
        return cls(
            profile_id=_as_int(profile_id),
            user_id=overview.get("user_id"),
            metrics=SnapshotMetrics.from_mapping(metric_values),
            launchpad_eligibility=_freeze_mapping(overview.get("launchpad_eligibility")),
            volunteer_badges=_freeze_list(overview.get("volunteer_badges")),
            status_flags=_freeze_list(overview.get("status_flags")),
            pipeline_insights=_freeze_list(overview.get("pipeline_insights")),
        )

    @classmethod
    def from_record(
        cls,
        profile: ProfileRecord,
        *,
        connections_count: int = 0,
        overrides: Mapping[str, Any] | None = None,
    ) -> ProfileSnapshot:
        """Build a snapshot from a raw profile row, optionally overriding metrics."""
        metric_values = {
            "trust_score": profile.trust_score,
            "trust_score_level": profile.trust_score_level,
            "profile_completion": profile.profile_completion,
            "likes_count": profile.likes_count,
            "followers_count": profile.followers_count,
            "connections_count": connections_count,
            "engagement_refreshed_at": profile.engagement_refreshed_at,
        }
        if overrides:
            unknown = set(overrides) - set(METRIC_FIELDS)
            if unknown:
                raise ValueError(f"Unknown snapshot metric overrides: {', '.join(sorted(unknown))}")
            metric_values.update(overrides)
            if "trust_score" in overrides and "trust_score_level" not in overrides:
                metric_values["trust_score_level"] = None

        return cls(
            profile_id=profile.id,
            user_id=profile.user_id,
            metrics=SnapshotMetrics.from_mapping(metric_values),
            launchpad_eligibility=_freeze_mapping(profile.launchpad_eligibility),
            volunteer_badges=_freeze_list(profile.volunteer_badges),
            status_flags=_freeze_list(profile.status_flags),
            pipeline_insights=_freeze_list(profile.pipeline_insights),
        )

    def with_metrics(self, **changes: Any) -> ProfileSnapshot:
        return replace(self, metrics=replace(self.metrics, **changes))

    def to_dict(self) -> dict[str, Any]:
        return {
            "profile_id": self.profile_id,
            "user_id": self.user_id,
            "metrics": self.metrics.to_dict(),
            "launchpad_eligibility": dict(self.launchpad_eligibility),
            "volunteer_badges": list(self.volunteer_badges),
            "status_flags": list(self.status_flags),
            "pipeline_insights": [
                dict(item) if isinstance(item, Mapping) else item for item in self.pipeline_insights
            ],
        }
