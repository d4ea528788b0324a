"""
Keyword classifiers and lookup tables feeding the trust score.

The keyword lists and status tables are business heuristics that the
scoring output depends on; change them only together with the scoring
tests.
"""

import re
from collections.abc import Iterable, Mapping
from typing import Any

VOLUNTEER_KEYWORDS = ("volunteer", "community", "pro bono", "nonprofit", "mentorship")
PIPELINE_WIN_KEYWORDS = ("won", "win", "hired", "awarded", "accepted", "signed", "completed")
INTERVIEW_KEYWORDS = ("interview", "shortlist", "screening", "final round")

_VOLUNTEER_PATTERN = re.compile("|".join(re.escape(k) for k in VOLUNTEER_KEYWORDS), re.IGNORECASE)
_WIN_PATTERN = re.compile(
    r"\b(" + "|".join(re.escape(k) for k in PIPELINE_WIN_KEYWORDS) + r")\b", re.IGNORECASE
)
_INTERVIEW_PATTERN = re.compile("|".join(re.escape(k) for k in INTERVIEW_KEYWORDS), re.IGNORECASE)

LAUNCHPAD_STATUS_SCORES: dict[str, float] = {
    "graduated": 1.0,
    "alumni": 1.0,
    "placed": 1.0,
    "eligible": 0.9,
    "accepted": 0.85,
    "approved": 0.85,
    "active": 0.75,
    "in_progress": 0.7,
    "shortlisted": 0.65,
    "interview": 0.6,
    "in_review": 0.55,
    "reviewing": 0.55,
    "pending": 0.45,
    "applied": 0.4,
    "submitted": 0.4,
    "waitlisted": 0.3,
    "paused": 0.25,
    "not_eligible": 0.1,
    "ineligible": 0.1,
    "rejected": 0.1,
    "withdrawn": 0.1,
}
UNKNOWN_LAUNCHPAD_STATUS_SCORE = 0.3

AVAILABLE_STATUSES = frozenset({"available", "open", "open_to_work", "available_now", "immediate"})
LIMITED_STATUS = "limited"
UNAVAILABLE_STATUSES = frozenset(
    {"unavailable", "not_available", "booked", "fully_booked", "on_leave", "busy", "away"}
)


def normalize_token(value: Any) -> str:
    """Lower-case a status or flag and collapse separators to underscores."""
    if value is None:
        return ""
    text = str(value).strip().lower()
    return re.sub(r"[\s\-]+", "_", text)


def normalize_flags(flags: Iterable[Any] | None) -> set[str]:
    return {token for token in (normalize_token(flag) for flag in (flags or [])) if token}


def _text_of(item: Any, *keys: str) -> str:
    if item is None:
        return ""
    if isinstance(item, str):
        return item
    if isinstance(item, Mapping):
        return " ".join(str(item.get(key) or "") for key in keys)
    return str(item)


def is_volunteer_highlight(highlight: Any) -> bool:
    """A highlight counts as volunteer work when its title or description names it."""
    return bool(_VOLUNTEER_PATTERN.search(_text_of(highlight, "title", "description")))


def is_pipeline_win(item: Any) -> bool:
    return bool(_WIN_PATTERN.search(_text_of(item, "status")))


def is_interview_stage(item: Any) -> bool:
    return bool(_INTERVIEW_PATTERN.search(_text_of(item, "status")))


def count_volunteer_highlights(highlights: Iterable[Any] | None) -> int:
    return sum(1 for highlight in highlights or [] if is_volunteer_highlight(highlight))


def count_pipeline_wins(pipeline: Iterable[Any] | None) -> int:
    return sum(1 for item in pipeline or [] if is_pipeline_win(item))


def count_interview_stages(pipeline: Iterable[Any] | None) -> int:
    return sum(1 for item in pipeline or [] if is_interview_stage(item))


def launchpad_status_score(status: Any) -> float:
    token = normalize_token(status)
    if not token:
        return 0.0
    return LAUNCHPAD_STATUS_SCORES.get(token, UNKNOWN_LAUNCHPAD_STATUS_SCORE)


def availability_family(status: Any) -> str | None:
    token = normalize_token(status)
    if token in AVAILABLE_STATUSES:
        return "available"
    if token == LIMITED_STATUS:
        return "limited"
    if token in UNAVAILABLE_STATUSES:
        return "unavailable"
    return None
