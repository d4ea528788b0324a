"""
Trust scoring package.

Pure functions and services that turn profile content and engagement
counts into a completion percentage and a tiered trust score.
"""

from .completion import completion_checklist, estimate_completion
from .service import AvailabilitySignal, TrustScoreEngine, trust_score_engine

__all__ = [
    "AvailabilitySignal",
    "TrustScoreEngine",
    "completion_checklist",
    "estimate_completion",
    "trust_score_engine",
]
