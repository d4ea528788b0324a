"""
Domain models for the profile engagement feature.

Lightweight dataclasses shared by repositories, pipeline stages and the
worker. Business rules live in the pipeline packages, not here.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

APPRECIATION_TYPES = ("like", "celebrate", "support", "endorse", "applause")

# Only these types count toward likes_count. Kept separate from
# APPRECIATION_TYPES so a new non-positive type never inflates the count.
POSITIVE_APPRECIATION_TYPES = frozenset({"like", "celebrate", "support", "endorse", "applause"})

FOLLOWER_STATUSES = ("active", "muted", "blocked")
ACTIVE_FOLLOWER_STATUS = "active"

JOB_STATUS_PENDING = "pending"
JOB_STATUS_COMPLETED = "completed"
JOB_STATUS_FAILED = "failed"


@dataclass(slots=True)
class ProfileReference:
    """A reference vouching for the profile owner."""

    is_verified: bool = False
    weight: float | None = None
    last_interacted_at: datetime | None = None


@dataclass(slots=True)
class ProfileRecord:
    """Represents a profiles row with the fields the scoring pipeline reads."""

    id: int
    user_id: int | None
    headline: str | None = None
    bio: str | None = None
    mission_statement: str | None = None
    education: str | None = None
    location: str | None = None
    skills: list[str] = field(default_factory=list)
    areas_of_focus: list[str] = field(default_factory=list)
    qualifications: list[Any] = field(default_factory=list)
    experience_entries: list[Any] = field(default_factory=list)
    portfolio_links: list[Any] = field(default_factory=list)
    preferred_engagements: list[Any] = field(default_factory=list)
    collaboration_roster: list[Any] = field(default_factory=list)
    impact_highlights: list[dict[str, Any]] = field(default_factory=list)
    pipeline_insights: list[dict[str, Any]] = field(default_factory=list)
    status_flags: list[str] = field(default_factory=list)
    volunteer_badges: list[str] = field(default_factory=list)
    launchpad_eligibility: dict[str, Any] | None = None
    availability_status: str | None = None
    available_hours_per_week: float | None = None
    availability_updated_at: datetime | None = None
    updated_at: datetime | None = None
    # Derived fields, written only by the recompute pipeline.
    likes_count: int = 0
    followers_count: int = 0
    engagement_refreshed_at: datetime | None = None
    trust_score: float | None = None
    trust_score_level: str | None = None
    profile_completion: float | None = None


@dataclass(slots=True)
class EngagementCounts:
    likes_count: int
    followers_count: int


@dataclass(slots=True)
class EngagementJob:
    """Represents a profile_engagement_jobs row."""

    id: int
    profile_id: int
    status: str
    scheduled_at: datetime
    priority: int
    attempts: int
    reason: str | None = None
    locked_at: datetime | None = None
    locked_by: str | None = None
    last_error: str | None = None
    completed_at: datetime | None = None
    created_at: datetime | None = None


@dataclass(slots=True)
class TrustScoreComponent:
    key: str
    label: str
    weight: float
    score: float
    contribution: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "label": self.label,
            "weight": self.weight,
            "score": self.score,
            "contribution": self.contribution,
        }


@dataclass(slots=True)
class TrustScoreResult:
    score: float
    level: str
    breakdown: list[TrustScoreComponent]
    recommended_review_at: datetime

    def component(self, key: str) -> TrustScoreComponent | None:
        for item in self.breakdown:
            if item.key == key:
                return item
        return None
