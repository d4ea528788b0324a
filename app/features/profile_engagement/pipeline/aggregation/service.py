"""
Engagement aggregation service.

Turns the appreciation and follower tables into the two headline counts
stored on the profile row.
"""

from __future__ import annotations

import psycopg

from app.features.profile_engagement.domain.models import EngagementCounts
from app.infrastructure.observability.logging import get_logger

from .repository import EngagementAggregationRepository

logger = get_logger(__name__)


class EngagementAggregator:
    async def aggregate(
        self, profile_id: int, *, connection: psycopg.AsyncConnection | None = None
    ) -> EngagementCounts:
        likes = await EngagementAggregationRepository.count_positive_appreciations(
            profile_id, connection=connection
        )
        followers = await EngagementAggregationRepository.count_active_followers(
            profile_id, connection=connection
        )

        logger.debug(
            "Engagement aggregated",
            profile_id=profile_id,
            likes_count=likes,
            followers_count=followers,
        )
        return EngagementCounts(likes_count=likes, followers_count=followers)


engagement_aggregator = EngagementAggregator()
