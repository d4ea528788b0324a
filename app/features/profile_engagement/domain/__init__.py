"""
Domain subpackage for the profile engagement feature.
"""

from .exceptions import EngagementValidationError, ProfileEngagementError, ProfileNotFoundError
from .models import (
    APPRECIATION_TYPES,
    FOLLOWER_STATUSES,
    POSITIVE_APPRECIATION_TYPES,
    EngagementCounts,
    EngagementJob,
    ProfileRecord,
    ProfileReference,
    TrustScoreComponent,
    TrustScoreResult,
)

__all__ = [
    "APPRECIATION_TYPES",
    "FOLLOWER_STATUSES",
    "POSITIVE_APPRECIATION_TYPES",
    "EngagementCounts",
    "EngagementJob",
    "EngagementValidationError",
    "ProfileEngagementError",
    "ProfileNotFoundError",
    "ProfileRecord",
    "ProfileReference",
    "TrustScoreComponent",
    "TrustScoreResult",
]
