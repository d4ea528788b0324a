"""
Aggregation package for profile engagement.

Counts positive appreciations and active followers for a profile.
"""

from .service import EngagementAggregator, engagement_aggregator

__all__ = ["EngagementAggregator", "engagement_aggregator"]
