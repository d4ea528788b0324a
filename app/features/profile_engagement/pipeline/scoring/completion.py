"""
Profile completion estimator.

Completion is the share of a fixed checklist that the profile satisfies.
Every item weighs the same and there is no partial credit.
"""

from collections.abc import Callable, Sequence
from typing import Any

from app.features.profile_engagement.domain.models import ProfileRecord, ProfileReference

from .classifiers import LIMITED_STATUS, normalize_token


def _has_text(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _has_items(value: Any) -> bool:
    if not value:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return any(item for item in value)


def is_availability_actionable(status: Any, hours: Any) -> bool:
    if normalize_token(status) == LIMITED_STATUS:
        return False
    try:
        return float(hours or 0) > 0
    except (TypeError, ValueError):
        return False


CompletionCheck = Callable[[ProfileRecord, Sequence[ProfileReference]], bool]

COMPLETION_CHECKLIST: tuple[tuple[str, CompletionCheck], ...] = (
    ("headline", lambda p, _r: _has_text(p.headline)),
    ("bio", lambda p, _r: _has_text(p.bio)),
    ("mission_statement", lambda p, _r: _has_text(p.mission_statement)),
    ("education", lambda p, _r: _has_text(p.education)),
    ("location", lambda p, _r: _has_text(p.location)),
    ("skills", lambda p, _r: _has_items(p.skills)),
    ("areas_of_focus", lambda p, _r: _has_items(p.areas_of_focus)),
    ("experience", lambda p, _r: _has_items(p.experience_entries)),
    ("qualifications", lambda p, _r: _has_items(p.qualifications)),
    ("references", lambda _p, r: len(r) > 0),
    ("portfolio_links", lambda p, _r: _has_items(p.portfolio_links)),
    ("preferred_engagements", lambda p, _r: _has_items(p.preferred_engagements)),
    ("status_flags", lambda p, _r: _has_items(p.status_flags)),
    ("volunteer_badges", lambda p, _r: _has_items(p.volunteer_badges)),
    ("collaborators", lambda p, _r: _has_items(p.collaboration_roster)),
    ("impact_highlights", lambda p, _r: _has_items(p.impact_highlights)),
    ("pipeline_insights", lambda p, _r: _has_items(p.pipeline_insights)),
    (
        "availability",
        lambda p, _r: is_availability_actionable(
            p.availability_status, p.available_hours_per_week
        ),
    ),
)


def completion_checklist(
    profile: ProfileRecord, references: Sequence[ProfileReference] = ()
) -> dict[str, bool]:
    """Evaluate every checklist item, in order."""
    return {key: bool(check(profile, references)) for key, check in COMPLETION_CHECKLIST}


def estimate_completion(
    profile: ProfileRecord, references: Sequence[ProfileReference] = ()
) -> float:
    """Return the completion percentage in [0, 100], rounded to two decimals."""
    checklist = completion_checklist(profile, references)
    satisfied = sum(1 for passed in checklist.values() if passed)
    percentage = satisfied / len(checklist) * 100
    return round(min(max(percentage, 0.0), 100.0), 2)
