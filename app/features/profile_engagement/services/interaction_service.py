"""
Appreciation and follower mutations.

Each mutation validates its input, writes inside one transaction and
enqueues a recompute in that same transaction.
"""

from typing import Any

from app.db.pool import db_pool
from app.features.profile_engagement.domain.validation import (
    normalize_appreciation_type,
    normalize_follower_status,
    normalize_id,
)
from app.features.profile_engagement.repository import ProfileRepository
from app.features.profile_engagement.repository.interaction_repository import InteractionRepository
from app.infrastructure.observability.logging import get_logger

from .recompute_service import ProfileEngagementService, profile_engagement_service

logger = get_logger(__name__)


class ProfileInteractionService:
    def __init__(self, engagement_service: ProfileEngagementService | None = None):
        self.engagement_service = engagement_service or profile_engagement_service

    async def record_appreciation(self, profile_id: Any, actor_id: Any, appreciation_type: Any) -> bool:
        """
        Record an appreciation; recording the same one twice is a no-op.

        Returns:
            True if a new appreciation was stored
        """
        profile_id = normalize_id(profile_id)
        actor_id = normalize_id(actor_id, field="actor_id")
        appreciation_type = normalize_appreciation_type(appreciation_type)

        async with db_pool.transaction() as conn:
            await ProfileRepository.lock_profile(profile_id, connection=conn)
            created = await InteractionRepository.upsert_appreciation(
                profile_id, actor_id, appreciation_type, connection=conn
            )
            await self.engagement_service.enqueue(
                profile_id, reason=f"appreciation_recorded:{appreciation_type}", connection=conn
            )

        logger.info(
            "Appreciation recorded",
            profile_id=profile_id,
            actor_id=actor_id,
            appreciation_type=appreciation_type,
            created=created,
        )
        return created

    async def remove_appreciation(self, profile_id: Any, actor_id: Any, appreciation_type: Any) -> bool:
        profile_id = normalize_id(profile_id)
        actor_id = normalize_id(actor_id, field="actor_id")
        appreciation_type = normalize_appreciation_type(appreciation_type)

        async with db_pool.transaction() as conn:
            await ProfileRepository.lock_profile(profile_id, connection=conn)
            removed = await InteractionRepository.delete_appreciation(
                profile_id, actor_id, appreciation_type, connection=conn
            )
            await self.engagement_service.enqueue(
                profile_id, reason=f"appreciation_removed:{appreciation_type}", connection=conn
            )

        logger.info(
            "Appreciation removed",
            profile_id=profile_id,
            actor_id=actor_id,
            appreciation_type=appreciation_type,
            removed=removed,
        )
        return removed

    async def upsert_follower(
        self,
        profile_id: Any,
        follower_id: Any,
        *,
        status: Any = "active",
        notifications_enabled: bool = True,
    ) -> str:
        profile_id = normalize_id(profile_id)
        follower_id = normalize_id(follower_id, field="follower_id")
        status = normalize_follower_status(status)

        async with db_pool.transaction() as conn:
            await ProfileRepository.lock_profile(profile_id, connection=conn)
            await InteractionRepository.upsert_follower(
                profile_id, follower_id, status, bool(notifications_enabled), connection=conn
            )
            await self.engagement_service.enqueue(
                profile_id, reason=f"follower_{status}", connection=conn
            )

        logger.info(
            "Follower upserted", profile_id=profile_id, follower_id=follower_id, status=status
        )
        return status

    async def remove_follower(self, profile_id: Any, follower_id: Any) -> bool:
        profile_id = normalize_id(profile_id)
        follower_id = normalize_id(follower_id, field="follower_id")

        async with db_pool.transaction() as conn:
            await ProfileRepository.lock_profile(profile_id, connection=conn)
            removed = await InteractionRepository.delete_follower(
                profile_id, follower_id, connection=conn
            )
            await self.engagement_service.enqueue(
                profile_id, reason="follower_removed", connection=conn
            )

        logger.info(
            "Follower removed", profile_id=profile_id, follower_id=follower_id, removed=removed
        )
        return removed


profile_interaction_service = ProfileInteractionService()
