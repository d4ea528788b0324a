"""
Targeting segmenter - maps a snapshot onto a funnel stage and audience segments.

Segments are additive tags; the stage is a single escalating value where a
later rule overrides an earlier one.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from app.features.profile_engagement.pipeline.scoring.classifiers import (
    count_pipeline_wins,
    launchpad_status_score,
    normalize_flags,
)

from .snapshot import ProfileSnapshot

STAGE_AWARENESS = "awareness"
STAGE_CONSIDERATION = "consideration"
STAGE_READY = "ready"
STAGE_PRIME = "prime"

SEGMENT_ORDER = (
    "profile_ready",
    "audience_builder",
    "high_intent_talent",
    "launchpad_ready",
    "volunteer_advocate",
    "delivery_proven",
    "premium_candidate",
    "instant_book_ready",
)

VOLUNTEER_ADVOCATE_FLAGS = frozenset({"volunteer_active", "mentor"})
DELIVERY_PROVEN_FLAGS = frozenset({"preferred_talent", "jobs_board_featured"})
INSTANT_BOOK_FLAG = "instant_book"


@dataclass(frozen=True, slots=True)
class TargetingResult:
    stage: str
    segments: tuple[str, ...]
    metrics: Mapping[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"stage": self.stage, "segments": list(self.segments), "metrics": dict(self.metrics)}


@dataclass(frozen=True, slots=True)
class TargetingDiff:
    previous_stage: str | None
    next_stage: str
    segments_added: tuple[str, ...]
    segments_removed: tuple[str, ...]

    @property
    def stage_changed(self) -> bool:
        return self.previous_stage != self.next_stage

    @property
    def has_changes(self) -> bool:
        return self.stage_changed or bool(self.segments_added) or bool(self.segments_removed)

    def to_dict(self) -> dict[str, Any]:
        return {
            "previous_stage": self.previous_stage,
            "next_stage": self.next_stage,
            "stage_changed": self.stage_changed,
            "segments_added": list(self.segments_added),
            "segments_removed": list(self.segments_removed),
        }


def derive_targeting(snapshot: ProfileSnapshot) -> TargetingResult:
    metrics = snapshot.metrics
    trust = metrics.trust_score or 0.0
    completion = metrics.profile_completion or 0.0
    likes = metrics.likes_count
    followers = metrics.followers_count
    connections = metrics.connections_count

    eligibility = snapshot.launchpad_eligibility or {}
    status_score = launchpad_status_score(eligibility.get("status"))
    cohorts = eligibility.get("cohorts") or ()
    cohort_count = len(cohorts) if isinstance(cohorts, (list, tuple)) else 0
    flags = normalize_flags(snapshot.status_flags)
    badge_count = len([badge for badge in snapshot.volunteer_badges if badge])
    wins = count_pipeline_wins(snapshot.pipeline_insights)

    matched = {
        "profile_ready": completion >= 70 or trust >= 45,
        "audience_builder": likes >= 40 or followers >= 60 or connections >= 50,
        "high_intent_talent": followers >= 200 or (trust >= 80 and likes >= 80),
        "launchpad_ready": status_score >= 0.62 or cohort_count > 0,
        "volunteer_advocate": badge_count >= 2 or bool(flags & VOLUNTEER_ADVOCATE_FLAGS),
        "delivery_proven": wins >= 1 or bool(flags & DELIVERY_PROVEN_FLAGS),
        "premium_candidate": wins >= 3 or trust >= 90,
        "instant_book_ready": INSTANT_BOOK_FLAG in flags,
    }
    segments = tuple(name for name in SEGMENT_ORDER if matched[name])

    stage = STAGE_AWARENESS
    if matched["profile_ready"] or matched["audience_builder"] or trust >= 45:
        stage = STAGE_CONSIDERATION
    if matched["launchpad_ready"] or matched["delivery_proven"] or trust >= 70:
        stage = STAGE_READY
    if (
        matched["premium_candidate"]
        or (matched["launchpad_ready"] and matched["delivery_proven"])
        or trust >= 88
    ):
        stage = STAGE_PRIME

    return TargetingResult(
        stage=stage,
        segments=segments,
        metrics={
            "trust_score": metrics.trust_score,
            "trust_score_level": metrics.trust_score_level,
            "profile_completion": metrics.profile_completion,
            "likes_count": likes,
            "followers_count": followers,
            "connections_count": connections,
            "launchpad_status_score": status_score,
            "launchpad_cohort_count": cohort_count,
            "volunteer_badge_count": badge_count,
            "pipeline_wins": wins,
        },
    )


def diff_targeting(previous: TargetingResult | None, current: TargetingResult) -> TargetingDiff:
    previous_segments = set(previous.segments) if previous else set()
    current_segments = set(current.segments)
    return TargetingDiff(
        previous_stage=previous.stage if previous else None,
        next_stage=current.stage,
        segments_added=tuple(sorted(current_segments - previous_segments)),
        segments_removed=tuple(sorted(previous_segments - current_segments)),
    )
