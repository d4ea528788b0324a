"""
Profile engagement recompute service.

Orchestrates one recompute (aggregate -> completion -> trust score ->
snapshot diff -> analytics) and drives the job queue: enqueue, claim,
execute, complete or retry.

Every recompute runs in a single transaction holding the profile row lock,
and derived fields are written only after the whole computation succeeded.
Analytics are emitted after commit and can never fail a recompute.
"""

from __future__ import annotations

import asyncio
import os
import socket
import time
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import psycopg

from app.config import settings
from app.db.pool import db_pool
from app.features.profile_engagement.domain import (
    EngagementCounts,
    EngagementJob,
    ProfileRecord,
    TrustScoreResult,
)
from app.features.profile_engagement.domain.models import JOB_STATUS_FAILED
from app.features.profile_engagement.domain.validation import (
    normalize_id,
    normalize_priority,
    normalize_reason,
    normalize_scheduled_at,
)
from app.features.profile_engagement.pipeline.aggregation import (
    EngagementAggregator,
    engagement_aggregator,
)
from app.features.profile_engagement.pipeline.analytics import (
    AnalyticsDiffReporter,
    analytics_diff_reporter,
)
from app.features.profile_engagement.pipeline.scoring import (
    TrustScoreEngine,
    estimate_completion,
    trust_score_engine,
)
from app.features.profile_engagement.pipeline.targeting import ProfileSnapshot
from app.features.profile_engagement.repository import EngagementJobRepository, ProfileRepository
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


def default_worker_id() -> str:
    return settings.ENGAGEMENT_WORKER_ID or f"{socket.gethostname()}:{os.getpid()}"


@dataclass(slots=True)
class RecomputeOutcome:
    profile_id: int
    counts: EngagementCounts
    profile_completion: float
    trust: TrustScoreResult
    previous: ProfileSnapshot
    current: ProfileSnapshot
    refreshed_at: datetime


class EngagementRunMetrics:
    """Metrics tracking for one process_queue_once run."""

    def __init__(self, worker_id: str):
        self.worker_id = worker_id
        self.reset()

    def reset(self):
        """Reset all metrics for new run."""
        self.start_time = time.perf_counter()
        self.claimed = 0
        self.completed = 0
        self.retried = 0
        self.failed = 0
        self.total_duration_seconds = 0.0
        self.errors: list[dict] = []

    def record_completed(self, job: EngagementJob):
        self.completed += 1

    def record_failure(self, job: EngagementJob, status: str, error: str):
        if status == JOB_STATUS_FAILED:
            self.failed += 1
        else:
            self.retried += 1
        self.errors.append(
            {"job_id": job.id, "profile_id": job.profile_id, "status": status, "error": error}
        )

    def finalize(self):
        self.total_duration_seconds = time.perf_counter() - self.start_time

    def to_dict(self) -> dict:
        return {
            "job_run": "profile_engagement",
            "worker_id": self.worker_id,
            "claimed": self.claimed,
            "completed": self.completed,
            "retried": self.retried,
            "failed": self.failed,
            "total_duration_seconds": round(self.total_duration_seconds, 3),
            "errors_count": len(self.errors),
        }


class ProfileEngagementService:
    """Recompute pipeline and queue driver for profile engagement metrics."""

    def __init__(
        self,
        aggregator: EngagementAggregator | None = None,
        scorer: TrustScoreEngine | None = None,
        reporter: AnalyticsDiffReporter | None = None,
    ):
        self.aggregator = aggregator or engagement_aggregator
        self.scorer = scorer or trust_score_engine
        self.reporter = reporter or analytics_diff_reporter
        self.last_run_metrics: dict | None = None
        self._background_tasks: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Enqueue
    # ------------------------------------------------------------------

    async def enqueue(
        self,
        profile_id: Any,
        *,
        reason: str | None = None,
        priority: int | None = 0,
        scheduled_at: datetime | None = None,
        connection: psycopg.AsyncConnection | None = None,
    ) -> EngagementJob:
        """
        Schedule a recompute, merging into the profile's pending job if one exists.

        Runs inside ``connection``'s transaction when given, otherwise opens one.

        Raises:
            EngagementValidationError: malformed id, priority or schedule
            ProfileNotFoundError: the profile does not exist
        """
        now = datetime.now(UTC)
        profile_id = normalize_id(profile_id)
        options = {
            "reason": normalize_reason(reason),
            "priority": normalize_priority(priority),
            "scheduled_at": normalize_scheduled_at(scheduled_at, now),
            "now": now,
        }

        if connection is not None:
            return await EngagementJobRepository.enqueue(profile_id, connection=connection, **options)

        async with db_pool.transaction() as conn:
            return await EngagementJobRepository.enqueue(profile_id, connection=conn, **options)

    # ------------------------------------------------------------------
    # Recompute
    # ------------------------------------------------------------------

    async def recompute_now(
        self, profile_id: Any, *, reason: str | None = None, now: datetime | None = None
    ) -> RecomputeOutcome:
        """
        Recompute derived metrics synchronously, bypassing the queue.

        Raises:
            EngagementValidationError: malformed id
            ProfileNotFoundError: the profile does not exist
        """
        profile_id = normalize_id(profile_id)
        outcome = await self._recompute_in_transaction(profile_id, now or datetime.now(UTC))
        await self._report(outcome, normalize_reason(reason))
        return outcome

    async def execute_job(self, job: EngagementJob, *, now: datetime | None = None) -> RecomputeOutcome:
        outcome = await self._recompute_in_transaction(job.profile_id, now or datetime.now(UTC))
        await self._report(outcome, job.reason)
        return outcome

    async def _recompute_in_transaction(self, profile_id: int, now: datetime) -> RecomputeOutcome:
        async with db_pool.transaction() as conn:
            return await self._recompute(profile_id, connection=conn, now=now)

    async def _recompute(
        self, profile_id: int, *, connection: psycopg.AsyncConnection, now: datetime
    ) -> RecomputeOutcome:
        profile = await ProfileRepository.load_for_update(profile_id, connection=connection)
        references = await ProfileRepository.fetch_references(profile_id, connection=connection)
        connections_count = await ProfileRepository.count_connections(
            profile.user_id, connection=connection
        )
        counts = await self.aggregator.aggregate(profile_id, connection=connection)

        previous = ProfileSnapshot.from_record(profile, connections_count=connections_count)

        completion = estimate_completion(profile, references)
        trust = self.scorer.score_profile(
            profile,
            references,
            profile_completion=completion,
            likes_count=counts.likes_count,
            followers_count=counts.followers_count,
            connections_count=connections_count,
            as_of=now,
        )

        await ProfileRepository.update_derived_fields(
            profile_id,
            likes_count=counts.likes_count,
            followers_count=counts.followers_count,
            profile_completion=completion,
            trust=trust,
            refreshed_at=now,
            connection=connection,
        )

        current = ProfileSnapshot.from_record(
            profile,
            connections_count=connections_count,
            overrides={
                "trust_score": trust.score,
                "trust_score_level": trust.level,
                "profile_completion": completion,
                "likes_count": counts.likes_count,
                "followers_count": counts.followers_count,
                "engagement_refreshed_at": now,
            },
        )

        logger.info(
            "Profile engagement recomputed",
            profile_id=profile_id,
            likes_count=counts.likes_count,
            followers_count=counts.followers_count,
            profile_completion=completion,
            trust_score=trust.score,
            trust_score_level=trust.level,
        )

        return RecomputeOutcome(
            profile_id=profile_id,
            counts=counts,
            profile_completion=completion,
            trust=trust,
            previous=previous,
            current=current,
            refreshed_at=now,
        )

    async def _report(self, outcome: RecomputeOutcome, reason: str | None) -> None:
        trust_emitted = await self.reporter.report_trust_score_change(
            outcome.previous, outcome.current, reason=reason
        )
        refresh_emitted = await self.reporter.report_engagement_refresh(
            outcome.previous, outcome.current, reason=reason
        )
        # Both events above already carry the targeting diff
        if not trust_emitted and not refresh_emitted:
            await self.reporter.report_targeting_change(
                outcome.previous, outcome.current, reason=reason
            )

    # ------------------------------------------------------------------
    # Queue processing
    # ------------------------------------------------------------------

    async def process_queue_once(
        self,
        *,
        limit: int | None = None,
        worker_id: str | None = None,
        now: datetime | None = None,
    ) -> int:
        """
        Claim one batch of due jobs and execute them.

        Execution errors never escape: each job ends completed, rescheduled
        or failed.

        Returns:
            Number of jobs processed
        """
        worker_id = worker_id or default_worker_id()
        batch_size = limit or settings.ENGAGEMENT_BATCH_SIZE
        claim_time = now or datetime.now(UTC)
        metrics = EngagementRunMetrics(worker_id)

        jobs = await EngagementJobRepository.claim_batch(
            batch_size,
            worker_id=worker_id,
            now=claim_time,
            lock_timeout_seconds=settings.ENGAGEMENT_LOCK_TIMEOUT_SECONDS,
        )
        metrics.claimed = len(jobs)

        for job in jobs:
            await self._process_job(job, metrics, now=now)

        metrics.finalize()
        self.last_run_metrics = metrics.to_dict()
        if jobs:
            logger.info("Profile engagement queue run completed", **self.last_run_metrics)
        return len(jobs)

    async def _process_job(
        self, job: EngagementJob, metrics: EngagementRunMetrics, *, now: datetime | None
    ) -> None:
        try:
            await self.execute_job(job, now=now)
            completed = await EngagementJobRepository.mark_completed(
                job, now=now or datetime.now(UTC)
            )
        except Exception as error:
            await self._handle_job_error(job, error, metrics, now=now)
            return
        if completed:
            metrics.record_completed(job)

    async def _handle_job_error(
        self,
        job: EngagementJob,
        error: Exception,
        metrics: EngagementRunMetrics,
        *,
        now: datetime | None,
    ) -> None:
        logger.warning(
            "Profile engagement job errored",
            job_id=job.id,
            profile_id=job.profile_id,
            attempts=job.attempts,
            error=str(error),
            error_type=type(error).__name__,
        )
        try:
            status = await EngagementJobRepository.mark_failed_or_retry(
                job,
                error,
                now=now or datetime.now(UTC),
                max_attempts=settings.ENGAGEMENT_MAX_ATTEMPTS,
                backoff_base_seconds=settings.ENGAGEMENT_BACKOFF_BASE_SECONDS,
                backoff_max_seconds=settings.ENGAGEMENT_BACKOFF_MAX_SECONDS,
            )
        except Exception as mark_error:
            # The claim lock expires, so another tick picks the job up again
            logger.error(
                "Failed to record engagement job failure",
                job_id=job.id,
                error=str(mark_error),
                error_type=type(mark_error).__name__,
            )
            return
        if status is not None:
            metrics.record_failure(job, status, str(error))

    # ------------------------------------------------------------------
    # Staleness
    # ------------------------------------------------------------------

    def is_stale(self, profile: ProfileRecord | Mapping[str, Any], now: datetime | None = None) -> bool:
        """True when engagement metrics were never computed or are older than the window."""
        if isinstance(profile, Mapping):
            refreshed_at = profile.get("engagement_refreshed_at")
        else:
            refreshed_at = getattr(profile, "engagement_refreshed_at", None)

        if refreshed_at is None:
            return True
        if refreshed_at.tzinfo is None:
            refreshed_at = refreshed_at.replace(tzinfo=UTC)

        window = timedelta(minutes=settings.ENGAGEMENT_STALE_AFTER_MINUTES)
        return (now or datetime.now(UTC)) - refreshed_at > window

    def refresh_if_stale(
        self, profile: ProfileRecord | Mapping[str, Any], *, reason: str = "stale_read"
    ) -> bool:
        """
        Enqueue a background refresh for a stale profile without blocking the caller.

        Returns:
            True if a refresh was scheduled
        """
        if not self.is_stale(profile):
            return False

        if isinstance(profile, Mapping):
            profile_id = profile.get("id", profile.get("profile_id"))
        else:
            profile_id = profile.id
        profile_id = normalize_id(profile_id)

        task = asyncio.create_task(self._enqueue_in_background(profile_id, reason))
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
        return True

    async def _enqueue_in_background(self, profile_id: int, reason: str) -> None:
        try:
            await self.enqueue(profile_id, reason=reason)
        except Exception as e:
            logger.error(
                "Background engagement refresh enqueue failed",
                profile_id=profile_id,
                error=str(e),
                error_type=type(e).__name__,
            )


# Global singleton instance
profile_engagement_service = ProfileEngagementService()


async def enqueue(profile_id: Any, **options: Any) -> EngagementJob:
    return await profile_engagement_service.enqueue(profile_id, **options)


async def recompute_now(profile_id: Any, **options: Any) -> RecomputeOutcome:
    return await profile_engagement_service.recompute_now(profile_id, **options)


async def process_queue_once(**options: Any) -> int:
    return await profile_engagement_service.process_queue_once(**options)


def is_stale(profile: ProfileRecord | Mapping[str, Any], now: datetime | None = None) -> bool:
    return profile_engagement_service.is_stale(profile, now)
