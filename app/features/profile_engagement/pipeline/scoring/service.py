"""
Trust score engine - weighs profile signals into a 0-100 trust score.

Pure computation: given the same inputs and the same ``as_of`` instant the
result is identical. Nothing here reads the database or the clock except
for the ``as_of`` default.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

from app.features.profile_engagement.domain.models import (
    ProfileRecord,
    ProfileReference,
    TrustScoreComponent,
    TrustScoreResult,
)

from .classifiers import (
    availability_family,
    count_interview_stages,
    count_pipeline_wins,
    count_volunteer_highlights,
    launchpad_status_score,
    normalize_flags,
)


def clamp(value: float, lower: float = 0.0, upper: float = 1.0) -> float:
    if value is None or math.isnan(value):
        return lower
    return max(lower, min(upper, value))


def log_saturating(value: float | int | None, saturation: float) -> float:
    """log10(v + 1) / log10(s + 1), clamped to [0, 1]."""
    numeric = max(float(value or 0), 0.0)
    return clamp(math.log10(numeric + 1) / math.log10(saturation + 1))


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _to_float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


@dataclass(slots=True)
class AvailabilitySignal:
    status: str | None = None
    hours_per_week: float | None = None
    updated_at: datetime | None = None


class TrustScoreEngine:
    WEIGHTS = {
        "foundation": 0.25,
        "social_proof": 0.15,
        "launchpad_readiness": 0.20,
        "volunteer_commitment": 0.15,
        "delivery_performance": 0.15,
        "availability_freshness": 0.05,
        "compliance": 0.05,
    }
    LABELS = {
        "foundation": "Profile foundation",
        "social_proof": "Social proof",
        "launchpad_readiness": "Launchpad readiness",
        "volunteer_commitment": "Volunteer commitment",
        "delivery_performance": "Delivery performance",
        "availability_freshness": "Availability freshness",
        "compliance": "Compliance",
    }
    LEVELS = ((85.0, "platinum"), (70.0, "gold"), (55.0, "silver"))
    DEFAULT_LEVEL = "emerging"

    FOLLOWER_SATURATION = 1500
    LIKE_SATURATION = 400
    CONNECTION_SATURATION = 120

    LAUNCHPAD_FLAG_BONUSES = {
        "launchpad_alumni": 0.15,
        "launchpad_fast_track": 0.05,
        "launchpad_coach": 0.05,
    }
    LAUNCHPAD_FLAG_CAP = 0.25
    VOLUNTEER_FLAG_BONUSES = {
        "volunteer_active": 0.2,
        "mentor": 0.1,
        "safeguarded": 0.1,
        "community_leader": 0.1,
    }
    VOLUNTEER_FLAG_CAP = 0.35
    DELIVERY_FLAG_BONUSES = {
        "preferred_talent": 0.15,
        "jobs_board_featured": 0.1,
        "instant_book": 0.05,
    }
    DELIVERY_FLAG_CAP = 0.3

    VERIFIED_FLAGS = frozenset({"verified", "identity_verified"})
    KYC_FLAGS = frozenset({"kyc_verified", "kyc"})
    KYB_FLAGS = frozenset({"kyb_verified", "kyb"})
    INSURANCE_FLAGS = frozenset({"insured", "compliance_passed"})

    def score(
        self,
        *,
        profile_completion: float | None,
        references: Sequence[ProfileReference] = (),
        metrics: Mapping[str, Any] | None = None,
        availability: AvailabilitySignal | None = None,
        volunteer_badges: Iterable[Any] | None = None,
        status_flags: Iterable[Any] | None = None,
        impact_highlights: Sequence[Any] | None = None,
        pipeline_insights: Sequence[Any] | None = None,
        launchpad_eligibility: Mapping[str, Any] | None = None,
        profile_updated_at: datetime | None = None,
        as_of: datetime | None = None,
    ) -> TrustScoreResult:
        """
        Compute the weighted trust score.

        Args:
            profile_completion: Completion percentage (0-100)
            references: Profile references
            metrics: likes_count / followers_count / connections_count
            availability: Availability status, hours and last update
            volunteer_badges: Badge identifiers
            status_flags: Profile status flags
            impact_highlights: Highlight dicts with title/description
            pipeline_insights: Pipeline items with a status string
            launchpad_eligibility: Mapping with status/score/cohorts/track
            profile_updated_at: Fallback anchor for the review date
            as_of: Reference instant for recency and staleness

        Returns:
            TrustScoreResult with score, level, breakdown and review date
        """
        now = _as_utc(as_of) or datetime.now(UTC)
        metrics = metrics or {}
        availability = availability or AvailabilitySignal()
        flags = normalize_flags(status_flags)
        badges = [badge for badge in (volunteer_badges or []) if badge]
        highlights = list(impact_highlights or [])
        pipeline = list(pipeline_insights or [])

        components = {
            "foundation": self._foundation(profile_completion),
            "social_proof": self._social_proof(references, metrics, now),
            "launchpad_readiness": self._launchpad_readiness(launchpad_eligibility, flags),
            "volunteer_commitment": self._volunteer_commitment(badges, highlights, flags),
            "delivery_performance": self._delivery_performance(pipeline, highlights, flags),
            "availability_freshness": self._availability_freshness(availability, now),
            "compliance": self._compliance(flags, references),
        }

        breakdown: list[TrustScoreComponent] = []
        total = 0.0
        for key, weight in self.WEIGHTS.items():
            component_score = clamp(components[key])
            contribution = component_score * weight * 100
            total += contribution
            breakdown.append(
                TrustScoreComponent(
                    key=key,
                    label=self.LABELS[key],
                    weight=weight,
                    score=round(component_score, 4),
                    contribution=round(contribution, 2),
                )
            )

        final_score = round(clamp(total, 0.0, 100.0), 2)
        level = self.level_for(final_score)
        review_at = self._recommended_review_at(
            components,
            final_score,
            anchor=_as_utc(availability.updated_at) or _as_utc(profile_updated_at) or now,
        )

        return TrustScoreResult(
            score=final_score,
            level=level,
            breakdown=breakdown,
            recommended_review_at=review_at,
        )

    def score_profile(
        self,
        profile: ProfileRecord,
        references: Sequence[ProfileReference],
        *,
        profile_completion: float,
        likes_count: int,
        followers_count: int,
        connections_count: int,
        as_of: datetime | None = None,
    ) -> TrustScoreResult:
        """Convenience wrapper that pulls every input from a profile record."""
        return self.score(
            profile_completion=profile_completion,
            references=references,
            metrics={
                "likes_count": likes_count,
                "followers_count": followers_count,
                "connections_count": connections_count,
            },
            availability=AvailabilitySignal(
                status=profile.availability_status,
                hours_per_week=profile.available_hours_per_week,
                updated_at=profile.availability_updated_at,
            ),
            volunteer_badges=profile.volunteer_badges,
            status_flags=profile.status_flags,
            impact_highlights=profile.impact_highlights,
            pipeline_insights=profile.pipeline_insights,
            launchpad_eligibility=profile.launchpad_eligibility,
            profile_updated_at=profile.updated_at,
            as_of=as_of,
        )

    @classmethod
    def level_for(cls, score: float | None) -> str:
        value = score or 0.0
        for threshold, level in cls.LEVELS:
            if value >= threshold:
                return level
        return cls.DEFAULT_LEVEL

    def _foundation(self, profile_completion: float | None) -> float:
        return clamp(_to_float(profile_completion) / 100.0)

    def _social_proof(
        self,
        references: Sequence[ProfileReference],
        metrics: Mapping[str, Any],
        now: datetime,
    ) -> float:
        reference_confidence = self._reference_confidence(references, now)
        network_signal = (
            0.5 * log_saturating(metrics.get("followers_count"), self.FOLLOWER_SATURATION)
            + 0.25 * log_saturating(metrics.get("likes_count"), self.LIKE_SATURATION)
            + 0.25 * log_saturating(metrics.get("connections_count"), self.CONNECTION_SATURATION)
        )
        return clamp(0.55 * reference_confidence + 0.45 * network_signal)

    def _reference_confidence(self, references: Sequence[ProfileReference], now: datetime) -> float:
        total = 0.0
        for reference in references:
            multiplier = 1.0 if reference.is_verified else 0.6
            weight = clamp(_to_float(reference.weight, 0.5))
            total += multiplier * (0.6 + 0.4 * weight) + self._reference_recency_bonus(
                reference.last_interacted_at, now
            )
        return clamp(total / 5)

    def _reference_recency_bonus(self, last_interacted_at: datetime | None, now: datetime) -> float:
        interacted = _as_utc(last_interacted_at)
        if interacted is None:
            return 0.0
        days = (now - interacted).total_seconds() / 86400
        if days <= 90:
            return 0.25
        if days <= 180:
            return 0.15
        if days <= 365:
            return 0.05
        return 0.0

    def _launchpad_readiness(
        self, eligibility: Mapping[str, Any] | None, flags: set[str]
    ) -> float:
        eligibility = eligibility or {}
        status_score = launchpad_status_score(eligibility.get("status"))
        eligibility_score = clamp(_to_float(eligibility.get("score")) / 100.0)
        cohorts = eligibility.get("cohorts") or []
        cohort_count = len(cohorts) if isinstance(cohorts, (list, tuple)) else 0
        flag_bonus = min(
            sum(bonus for flag, bonus in self.LAUNCHPAD_FLAG_BONUSES.items() if flag in flags),
            self.LAUNCHPAD_FLAG_CAP,
        )
        track = eligibility.get("track")
        track_bonus = 0.05 if isinstance(track, str) and track.strip() else 0.0

        return clamp(
            0.5 * status_score
            + 0.3 * eligibility_score
            + cohort_count * 0.08
            + flag_bonus
            + track_bonus
        )

    def _volunteer_commitment(
        self, badges: list[Any], highlights: list[Any], flags: set[str]
    ) -> float:
        volunteer_highlights = count_volunteer_highlights(highlights)
        flag_bonus = min(
            sum(bonus for flag, bonus in self.VOLUNTEER_FLAG_BONUSES.items() if flag in flags),
            self.VOLUNTEER_FLAG_CAP,
        )
        return clamp(
            0.45 * (len(badges) / 4) + 0.25 * (volunteer_highlights * 0.2) + flag_bonus
        )

    def _delivery_performance(
        self, pipeline: list[Any], highlights: list[Any], flags: set[str]
    ) -> float:
        wins = count_pipeline_wins(pipeline)
        interviews = count_interview_stages(pipeline)
        highlight_signal = clamp(len(highlights) / 4)
        flag_bonus = min(
            sum(bonus for flag, bonus in self.DELIVERY_FLAG_BONUSES.items() if flag in flags),
            self.DELIVERY_FLAG_CAP,
        )
        return clamp(
            0.45 * (wins / 3)
            + 0.25 * (len(pipeline) / 6)
            + 0.2 * highlight_signal
            + 0.1 * (interviews / 4)
            + flag_bonus
        )

    def _availability_freshness(self, availability: AvailabilitySignal, now: datetime) -> float:
        updated_at = _as_utc(availability.updated_at)
        if updated_at is None:
            base = 0.4
        else:
            days = (now - updated_at).total_seconds() / 86400
            if days <= 14:
                base = 1.0
            elif days <= 30:
                base = 0.8
            elif days <= 60:
                base = 0.6
            elif days <= 90:
                base = 0.45
            elif days <= 180:
                base = 0.25
            else:
                base = 0.1

        family = availability_family(availability.status)
        if family == "available":
            base += 0.15
        elif family == "limited":
            base += 0.05
        elif family == "unavailable":
            base -= 0.2

        if availability.hours_per_week is not None:
            hours = _to_float(availability.hours_per_week)
            if hours <= 0:
                base -= 0.1
            elif hours >= 30:
                base += 0.1
            elif hours >= 15:
                base += 0.05

        return clamp(base)

    def _compliance(self, flags: set[str], references: Sequence[ProfileReference]) -> float:
        score = 0.35
        if flags & self.VERIFIED_FLAGS:
            score += 0.2
        if flags & self.KYC_FLAGS:
            score += 0.15
        if flags & self.KYB_FLAGS:
            score += 0.1
        if "safeguarded" in flags:
            score += 0.1
        if flags & self.INSURANCE_FLAGS:
            score += 0.05
        if any(reference.is_verified for reference in references):
            score += 0.05
        return clamp(score)

    def _recommended_review_at(
        self, components: dict[str, float], final_score: float, anchor: datetime
    ) -> datetime:
        availability = components["availability_freshness"]
        launchpad = components["launchpad_readiness"]
        volunteer = components["volunteer_commitment"]
        delivery = components["delivery_performance"]

        if availability < 0.4:
            window_days = 30
        elif (launchpad >= 0.7 and volunteer >= 0.6) or final_score >= 90:
            window_days = 60
        else:
            window_days = 45
            if delivery < 0.3:
                window_days = max(window_days - 10, 40)

        return anchor + timedelta(days=window_days)


trust_score_engine = TrustScoreEngine()
