"""
Input normalisation for the public engagement operations.

All helpers raise EngagementValidationError synchronously; nothing here
touches the database.
"""

from datetime import UTC, datetime

from .exceptions import EngagementValidationError
from .models import APPRECIATION_TYPES, FOLLOWER_STATUSES

MAX_REASON_LENGTH = 255


def normalize_id(value, field: str = "profile_id") -> int:
    if isinstance(value, bool):
        raise EngagementValidationError(f"{field} must be a positive integer", field=field)
    if isinstance(value, str):
        value = value.strip()
        if not value.isdigit():
            raise EngagementValidationError(f"{field} must be a positive integer", field=field)
        value = int(value)
    if not isinstance(value, int) or value <= 0:
        raise EngagementValidationError(f"{field} must be a positive integer", field=field)
    return value


def normalize_appreciation_type(value) -> str:
    normalized = str(value or "").strip().lower()
    if normalized not in APPRECIATION_TYPES:
        raise EngagementValidationError(
            f"Unsupported appreciation type '{value}'. "
            f"Expected one of: {', '.join(APPRECIATION_TYPES)}",
            field="appreciation_type",
        )
    return normalized


def normalize_follower_status(value) -> str:
    normalized = str(value or "").strip().lower()
    if normalized not in FOLLOWER_STATUSES:
        raise EngagementValidationError(
            f"Unsupported follower status '{value}'. "
            f"Expected one of: {', '.join(FOLLOWER_STATUSES)}",
            field="status",
        )
    return normalized


def normalize_priority(value) -> int:
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise EngagementValidationError("priority must be an integer", field="priority")
    return value


def normalize_reason(value) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    return text[:MAX_REASON_LENGTH]


def normalize_scheduled_at(value, now: datetime) -> datetime:
    if value is None:
        return now
    if not isinstance(value, datetime):
        raise EngagementValidationError("scheduled_at must be a datetime", field="scheduled_at")
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value
