"""
Persistence for the profile engagement job queue.

The queue holds at most one pending job per profile. That invariant is
kept here (find-or-create under the profile row lock), not by a database
constraint, so every enqueue must go through ``enqueue``.

Claiming is optimistic: each candidate is taken with a conditional UPDATE
that only matches if the row still looks the way we read it. A worker that
loses the race sees rowcount 0 and moves on.
"""

from dataclasses import replace
from datetime import datetime, timedelta

import psycopg

from app.db.helpers import execute_query, fetch_all, fetch_one
from app.features.profile_engagement.domain.models import (
    JOB_STATUS_COMPLETED,
    JOB_STATUS_FAILED,
    JOB_STATUS_PENDING,
    EngagementJob,
)
from app.infrastructure.observability.logging import get_logger

from .profile_repository import ProfileRepository

logger = get_logger(__name__)

MAX_ERROR_LENGTH = 500

# Finishing writes only match while the row is still held by the claim that
# produced the job object. A claimer whose lock expired updates nothing.
CLAIM_GUARD = """WHERE id = %s
              AND status = %s
              AND locked_by = %s
              AND attempts = %s"""


def compute_backoff(attempts: int, base_seconds: int = 30, max_seconds: int = 300) -> timedelta:
    """Exponential backoff: min(max, base * 2^(attempts-1)) seconds."""
    exponent = max(attempts - 1, 0)
    return timedelta(seconds=min(max_seconds, base_seconds * (2**exponent)))


def truncate_error(error: BaseException | str, limit: int = MAX_ERROR_LENGTH) -> str:
    message = str(error) or type(error).__name__
    return message[:limit]


def merge_pending(
    job: EngagementJob,
    *,
    reason: str | None,
    priority: int,
    scheduled_at: datetime,
) -> tuple[datetime, int, str | None]:
    """
    Fold a new enqueue request into an existing pending job.

    Earliest schedule and highest priority win; a supplied reason replaces
    the stored one.
    """
    return (
        min(job.scheduled_at, scheduled_at),
        max(job.priority, priority),
        reason if reason else job.reason,
    )


class EngagementJobRepository:
    """Queue operations backing the engagement scheduler."""

    JOB_SELECT_COLUMNS = """
        id, profile_id, status, scheduled_at, priority, attempts, reason,
        locked_at, locked_by, last_error, completed_at, created_at
    """

    @classmethod
    def _row_to_job(cls, row: dict | None) -> EngagementJob | None:
        if not row:
            return None

        return EngagementJob(
            id=row["id"],
            profile_id=row["profile_id"],
            status=row["status"],
            scheduled_at=row["scheduled_at"],
            priority=row.get("priority") or 0,
            attempts=row.get("attempts") or 0,
            reason=row.get("reason"),
            locked_at=row.get("locked_at"),
            locked_by=row.get("locked_by"),
            last_error=row.get("last_error"),
            completed_at=row.get("completed_at"),
            created_at=row.get("created_at"),
        )

    @classmethod
    async def enqueue(
        cls,
        profile_id: int,
        *,
        reason: str | None,
        priority: int,
        scheduled_at: datetime,
        now: datetime,
        connection: psycopg.AsyncConnection,
    ) -> EngagementJob:
        """
        Find-or-create the pending job for a profile inside ``connection``'s transaction.

        Locking the profile row first serialises concurrent enqueues for the
        same profile, so the pending lookup below cannot race.

        Raises:
            ProfileNotFoundError: if the profile does not exist
        """
        await ProfileRepository.lock_profile(profile_id, connection=connection)

        existing_query = f"""
            SELECT {cls.JOB_SELECT_COLUMNS}
            FROM profile_engagement_jobs
            WHERE profile_id = %s
              AND status = %s
            ORDER BY id
            LIMIT 1
            FOR UPDATE
        """
        existing = cls._row_to_job(
            await fetch_one(existing_query, (profile_id, JOB_STATUS_PENDING), connection=connection)
        )

        if existing:
            merged_at, merged_priority, merged_reason = merge_pending(
                existing, reason=reason, priority=priority, scheduled_at=scheduled_at
            )
            update_query = f"""
                UPDATE profile_engagement_jobs
                SET scheduled_at = %s,
                    priority = %s,
                    reason = %s,
                    updated_at = %s
                WHERE id = %s
                RETURNING {cls.JOB_SELECT_COLUMNS}
            """
            row = await fetch_one(
                update_query,
                (merged_at, merged_priority, merged_reason, now, existing.id),
                connection=connection,
            )
            logger.debug(
                "Engagement job merged",
                job_id=existing.id,
                profile_id=profile_id,
                priority=merged_priority,
            )
            return cls._row_to_job(row)

        insert_query = f"""
            INSERT INTO profile_engagement_jobs (
                profile_id, status, scheduled_at, priority, reason,
                attempts, created_at, updated_at
            )
            VALUES (%s, %s, %s, %s, %s, 0, %s, %s)
            RETURNING {cls.JOB_SELECT_COLUMNS}
        """
        row = await fetch_one(
            insert_query,
            (profile_id, JOB_STATUS_PENDING, scheduled_at, priority, reason, now, now),
            connection=connection,
        )
        job = cls._row_to_job(row)
        logger.info(
            "Engagement job created",
            job_id=job.id if job else None,
            profile_id=profile_id,
            priority=priority,
            reason=reason,
        )
        return job

    @classmethod
    async def fetch_claim_candidates(
        cls, limit: int, *, now: datetime, lock_timeout_seconds: int
    ) -> list[EngagementJob]:
        query = f"""
            SELECT {cls.JOB_SELECT_COLUMNS}
            FROM profile_engagement_jobs
            WHERE status = %s
              AND scheduled_at <= %s
              AND (locked_at IS NULL OR locked_at < %s)
            ORDER BY priority DESC, scheduled_at ASC, id ASC
            LIMIT %s
        """
        lock_expired_before = now - timedelta(seconds=lock_timeout_seconds)
        rows = await fetch_all(query, (JOB_STATUS_PENDING, now, lock_expired_before, limit))
        return [cls._row_to_job(row) for row in rows]

    @classmethod
    async def try_claim(cls, job: EngagementJob, *, worker_id: str, now: datetime) -> EngagementJob | None:
        """
        Claim one candidate if nobody else changed it since we read it.

        Returns:
            The claimed job (attempts already incremented) or None if another
            worker got there first
        """
        if job.locked_at is None:
            lock_predicate = "locked_at IS NULL"
            params = (now, worker_id, now, job.id, job.status, job.attempts)
        else:
            lock_predicate = "locked_at = %s"
            params = (now, worker_id, now, job.id, job.status, job.attempts, job.locked_at)

        query = f"""
            UPDATE profile_engagement_jobs
            SET locked_at = %s,
                locked_by = %s,
                attempts = attempts + 1,
                updated_at = %s
            WHERE id = %s
              AND status = %s
              AND attempts = %s
              AND {lock_predicate}
        """

        affected = await execute_query(query, params)
        if affected != 1:
            logger.debug("Engagement job claim lost", job_id=job.id, worker_id=worker_id)
            return None

        return replace(job, locked_at=now, locked_by=worker_id, attempts=job.attempts + 1)

    @staticmethod
    def _claim_params(job: EngagementJob) -> tuple:
        return (job.id, JOB_STATUS_PENDING, job.locked_by, job.attempts)

    @classmethod
    async def claim_batch(
        cls,
        limit: int,
        *,
        worker_id: str,
        now: datetime,
        lock_timeout_seconds: int = 120,
    ) -> list[EngagementJob]:
        candidates = await cls.fetch_claim_candidates(
            limit, now=now, lock_timeout_seconds=lock_timeout_seconds
        )

        claimed: list[EngagementJob] = []
        for candidate in candidates:
            job = await cls.try_claim(candidate, worker_id=worker_id, now=now)
            if job:
                claimed.append(job)

        if candidates:
            logger.info(
                "Engagement jobs claimed",
                worker_id=worker_id,
                candidates=len(candidates),
                claimed=len(claimed),
            )
        return claimed

    @classmethod
    async def mark_completed(cls, job: EngagementJob, *, now: datetime) -> bool:
        """
        Complete a job this worker still holds.

        Returns:
            False if the claim was lost; the row is left untouched
        """
        query = f"""
            UPDATE profile_engagement_jobs
            SET status = %s,
                locked_at = NULL,
                locked_by = NULL,
                last_error = NULL,
                completed_at = %s,
                updated_at = %s
            {CLAIM_GUARD}
        """

        affected = await execute_query(
            query, (JOB_STATUS_COMPLETED, now, now, *cls._claim_params(job))
        )
        if affected != 1:
            logger.warning(
                "Engagement job completion skipped, claim lost",
                job_id=job.id,
                worker_id=job.locked_by,
                attempts=job.attempts,
            )
            return False
        return True

    @classmethod
    async def mark_failed_or_retry(
        cls,
        job: EngagementJob,
        error: BaseException | str,
        *,
        now: datetime,
        max_attempts: int = 5,
        backoff_base_seconds: int = 30,
        backoff_max_seconds: int = 300,
    ) -> str | None:
        """
        Reschedule a failed job with backoff, or fail it for good.

        ``job.attempts`` is the value after the claim increment.

        Returns:
            The job's new status (pending or failed), or None if the claim
            was lost and the row was left untouched
        """
        message = truncate_error(error)

        if job.attempts < max_attempts:
            status = JOB_STATUS_PENDING
            retry_at = now + compute_backoff(
                job.attempts, base_seconds=backoff_base_seconds, max_seconds=backoff_max_seconds
            )
            query = f"""
                UPDATE profile_engagement_jobs
                SET status = %s,
                    scheduled_at = %s,
                    locked_at = NULL,
                    locked_by = NULL,
                    last_error = %s,
                    updated_at = %s
                {CLAIM_GUARD}
            """
            params = (status, retry_at, message, now, *cls._claim_params(job))
        else:
            status = JOB_STATUS_FAILED
            retry_at = None
            query = f"""
                UPDATE profile_engagement_jobs
                SET status = %s,
                    locked_at = NULL,
                    locked_by = NULL,
                    last_error = %s,
                    updated_at = %s
                {CLAIM_GUARD}
            """
            params = (status, message, now, *cls._claim_params(job))

        affected = await execute_query(query, params)
        if affected != 1:
            logger.warning(
                "Engagement job failure not recorded, claim lost",
                job_id=job.id,
                worker_id=job.locked_by,
                attempts=job.attempts,
                error=message,
            )
            return None

        if status == JOB_STATUS_PENDING:
            logger.warning(
                "Engagement job rescheduled",
                job_id=job.id,
                profile_id=job.profile_id,
                attempts=job.attempts,
                retry_at=retry_at.isoformat(),
                error=message,
            )
        else:
            logger.error(
                "Engagement job failed permanently",
                job_id=job.id,
                profile_id=job.profile_id,
                attempts=job.attempts,
                error=message,
            )
        return status
