from .reporter import (
    ENGAGEMENT_REFRESHED,
    TARGETING_CHANGED,
    TRUST_SCORE_CHANGED,
    AnalyticsDiffReporter,
    analytics_diff_reporter,
)

__all__ = [
    "ENGAGEMENT_REFRESHED",
    "TARGETING_CHANGED",
    "TRUST_SCORE_CHANGED",
    "AnalyticsDiffReporter",
    "analytics_diff_reporter",
]
