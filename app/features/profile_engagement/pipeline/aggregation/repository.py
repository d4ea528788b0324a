"""
Repository helpers for engagement aggregation.

Count queries over the appreciation and follower tables. Reads take no
locks; a concurrent write is picked up by the recompute it enqueues.
"""

import psycopg

from app.db.helpers import fetch_val
from app.features.profile_engagement.domain.models import (
    ACTIVE_FOLLOWER_STATUS,
    POSITIVE_APPRECIATION_TYPES,
)


class EngagementAggregationRepository:
    @classmethod
    async def count_positive_appreciations(
        cls, profile_id: int, *, connection: psycopg.AsyncConnection | None = None
    ) -> int:
        query = """
            SELECT COUNT(*) AS total
            FROM profile_appreciations
            WHERE profile_id = %s
              AND appreciation_type = ANY(%s)
        """

        total = await fetch_val(
            query, (profile_id, sorted(POSITIVE_APPRECIATION_TYPES)), connection=connection
        )
        return int(total or 0)

    @classmethod
    async def count_active_followers(
        cls, profile_id: int, *, connection: psycopg.AsyncConnection | None = None
    ) -> int:
        query = """
            SELECT COUNT(*) AS total
            FROM profile_followers
            WHERE profile_id = %s
              AND status = %s
        """

        total = await fetch_val(query, (profile_id, ACTIVE_FOLLOWER_STATUS), connection=connection)
        return int(total or 0)
