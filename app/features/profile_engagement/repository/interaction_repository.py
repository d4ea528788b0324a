"""
Writes to the appreciation and follower tables.

Callers hold a transaction; every write here is followed by an enqueue in
that same transaction so counts can never drift without a pending recompute.
"""

import psycopg

from app.db.helpers import execute_query


class InteractionRepository:
    @classmethod
    async def upsert_appreciation(
        cls,
        profile_id: int,
        actor_id: int,
        appreciation_type: str,
        *,
        connection: psycopg.AsyncConnection,
    ) -> bool:
        """Returns True when a new appreciation row was created."""
        query = """
            INSERT INTO profile_appreciations (profile_id, actor_id, appreciation_type, created_at, updated_at)
            VALUES (%s, %s, %s, NOW(), NOW())
            ON CONFLICT (profile_id, actor_id, appreciation_type) DO NOTHING
        """

        affected = await execute_query(
            query, (profile_id, actor_id, appreciation_type), connection=connection
        )
        return affected == 1

    @classmethod
    async def delete_appreciation(
        cls,
        profile_id: int,
        actor_id: int,
        appreciation_type: str,
        *,
        connection: psycopg.AsyncConnection,
    ) -> bool:
        query = """
            DELETE FROM profile_appreciations
            WHERE profile_id = %s
              AND actor_id = %s
              AND appreciation_type = %s
        """

        affected = await execute_query(
            query, (profile_id, actor_id, appreciation_type), connection=connection
        )
        return affected > 0

    @classmethod
    async def upsert_follower(
        cls,
        profile_id: int,
        follower_id: int,
        status: str,
        notifications_enabled: bool,
        *,
        connection: psycopg.AsyncConnection,
    ) -> None:
        query = """
            INSERT INTO profile_followers (
                profile_id, follower_id, status, notifications_enabled, created_at, updated_at
            )
            VALUES (%s, %s, %s, %s, NOW(), NOW())
            ON CONFLICT (profile_id, follower_id)
            DO UPDATE SET status = EXCLUDED.status,
                          notifications_enabled = EXCLUDED.notifications_enabled,
                          updated_at = NOW()
        """

        await execute_query(
            query, (profile_id, follower_id, status, notifications_enabled), connection=connection
        )

    @classmethod
    async def delete_follower(
        cls, profile_id: int, follower_id: int, *, connection: psycopg.AsyncConnection
    ) -> bool:
        query = """
            DELETE FROM profile_followers
            WHERE profile_id = %s
              AND follower_id = %s
        """

        affected = await execute_query(query, (profile_id, follower_id), connection=connection)
        return affected > 0
