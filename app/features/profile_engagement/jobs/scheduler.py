"""
Profile engagement scheduler.

Runs ``process_queue_once`` on a fixed interval. One scheduler per process
and ticks never overlap; many processes may run schedulers side by side
because claiming is optimistic.

The API process owns one through the FastAPI lifespan; a dedicated worker
process runs one via ``python -m app.jobs.worker profile_engagement``.
"""

import asyncio

from app.config import settings
from app.db.pool import db_pool
from app.features.profile_engagement.services import (
    ProfileEngagementService,
    profile_engagement_service,
)
from app.features.profile_engagement.services.recompute_service import default_worker_id
from app.infrastructure.observability.logging import get_logger


class EngagementScheduler:
    """Background loop that claims and executes engagement jobs."""

    def __init__(
        self,
        *,
        interval_seconds: float | None = None,
        batch_size: int | None = None,
        worker_id: str | None = None,
        service: ProfileEngagementService | None = None,
        logger=None,
    ):
        self.interval_seconds = interval_seconds or settings.ENGAGEMENT_POLL_INTERVAL_SECONDS
        self.batch_size = batch_size or settings.ENGAGEMENT_BATCH_SIZE
        self.worker_id = worker_id or default_worker_id()
        self.service = service or profile_engagement_service
        self.logger = logger or get_logger(__name__)
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> bool:
        """
        Start the loop as a background task.

        Returns:
            False when skipped (test environment or already running)
        """
        if settings.is_test_environment:
            self.logger.info("Engagement scheduler disabled in test environment")
            return False

        if self.is_running:
            self.logger.warning("Engagement scheduler already running", worker_id=self.worker_id)
            return False

        self._stop_event.clear()
        self._task = asyncio.create_task(self.run_forever(), name="profile-engagement-scheduler")
        return True

    async def stop(self) -> None:
        if self._task is None:
            return

        self._stop_event.set()
        try:
            await self._task
        finally:
            self._task = None
            self.logger.info("Engagement scheduler stopped", worker_id=self.worker_id)

    async def run_forever(self) -> None:
        self.logger.info(
            "Starting engagement scheduler",
            worker_id=self.worker_id,
            interval_seconds=self.interval_seconds,
            batch_size=self.batch_size,
        )

        while not self._stop_event.is_set():
            await self.tick()
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval_seconds)
            except TimeoutError:
                continue

    async def tick(self) -> int:
        """Run one batch; errors are logged so the loop keeps going."""
        try:
            return await self.service.process_queue_once(
                limit=self.batch_size, worker_id=self.worker_id
            )
        except Exception as e:
            self.logger.error(
                "Error in engagement scheduler tick",
                worker_id=self.worker_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return 0


async def start_engagement_scheduler() -> None:
    """
    Entry point for the dedicated engagement worker process.

    Runs until cancelled; does nothing in the test environment.
    """
    scheduler = EngagementScheduler()
    if settings.is_test_environment:
        scheduler.logger.info("Engagement worker disabled in test environment")
        return

    await db_pool.initialize()
    try:
        await scheduler.run_forever()
    finally:
        await db_pool.close()


if __name__ == "__main__":
    asyncio.run(start_engagement_scheduler())
