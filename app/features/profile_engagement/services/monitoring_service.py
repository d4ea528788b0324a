"""
Engagement queue monitoring helpers.

Provides lightweight queue metrics for dashboards and the health route.
"""

from datetime import UTC, datetime, timedelta

from app.config import settings
from app.db.pool import db_pool
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class EngagementQueueMonitor:
    """Compile profile engagement queue metrics."""

    async def get_metrics(self) -> dict:
        now = datetime.now(UTC)
        lock_expired_before = now - timedelta(seconds=settings.ENGAGEMENT_LOCK_TIMEOUT_SECONDS)
        failure_window_start = now - timedelta(hours=24)

        async with db_pool.connection() as conn:
            async with conn.cursor() as cursor:
                await cursor.execute(
                    """
                    SELECT status, COUNT(*) AS total
                    FROM profile_engagement_jobs
                    GROUP BY status
                    """
                )
                status_rows = await cursor.fetchall()

                await cursor.execute(
                    """
                    SELECT
                        MIN(scheduled_at) AS oldest_due_at,
                        COUNT(*) FILTER (WHERE scheduled_at <= %s) AS due_now,
                        COUNT(*) FILTER (
                            WHERE locked_at IS NOT NULL AND locked_at < %s
                        ) AS stuck_claims
                    FROM profile_engagement_jobs
                    WHERE status = 'pending'
                    """,
                    (now, lock_expired_before),
                )
                pending_row = await cursor.fetchone()

                await cursor.execute(
                    """
                    SELECT COUNT(*) AS failed_24h
                    FROM profile_engagement_jobs
                    WHERE status = 'failed'
                      AND updated_at >= %s
                    """,
                    (failure_window_start,),
                )
                failed_row = await cursor.fetchone()

        by_status = {"pending": 0, "completed": 0, "failed": 0}
        for row in status_rows:
            by_status[row["status"]] = row["total"]

        oldest_due_at = pending_row.get("oldest_due_at")
        oldest_pending_age = (
            max((now - oldest_due_at).total_seconds(), 0.0) if oldest_due_at else 0.0
        )

        metrics = {
            "timestamp": now.isoformat(),
            "jobs_by_status": by_status,
            "pending": {
                "due_now": pending_row.get("due_now") or 0,
                "oldest_pending_age_seconds": round(oldest_pending_age, 1),
                "stuck_claims": pending_row.get("stuck_claims") or 0,
            },
            "failures": {"failed_last_24h": failed_row.get("failed_24h") or 0},
            "configuration": settings.get_engagement_queue_config(),
        }

        logger.info(
            "Engagement queue metrics compiled",
            pending=by_status["pending"],
            failed=by_status["failed"],
            stuck_claims=metrics["pending"]["stuck_claims"],
        )

        return metrics


engagement_queue_monitor = EngagementQueueMonitor()
