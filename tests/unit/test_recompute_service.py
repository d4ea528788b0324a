import asyncio
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from app.features.profile_engagement.domain import EngagementCounts, EngagementJob
from app.features.profile_engagement.domain.exceptions import (
    EngagementValidationError,
    ProfileNotFoundError,
)
from app.features.profile_engagement.pipeline.analytics import (
    ENGAGEMENT_REFRESHED,
    TRUST_SCORE_CHANGED,
    AnalyticsDiffReporter,
)
from app.features.profile_engagement.repository import EngagementJobRepository, ProfileRepository
from app.features.profile_engagement.services import ProfileEngagementService


class FakeProfileStore:
    """Holds one profile and applies derived-field writes to it."""

    def __init__(self, profile):
        self.profile = profile
        self.writes = []

    async def load_for_update(self, profile_id, *, connection):
        if profile_id != self.profile.id:
            raise ProfileNotFoundError(profile_id)
        return self.profile

    async def fetch_references(self, profile_id, *, connection=None):
        return []

    async def count_connections(self, user_id, *, connection=None):
        return 3

    async def update_derived_fields(
        self,
        profile_id,
        *,
        likes_count,
        followers_count,
        profile_completion,
        trust,
        refreshed_at,
        connection=None,
    ):
        self.writes.append(connection)
        self.profile.likes_count = likes_count
        self.profile.followers_count = followers_count
        self.profile.profile_completion = profile_completion
        self.profile.trust_score = trust.score
        self.profile.trust_score_level = trust.level
        self.profile.engagement_refreshed_at = refreshed_at


@pytest.fixture
def profile_store(monkeypatch, make_profile):
    store = FakeProfileStore(
        make_profile(headline="Event producer", bio="Ten years of festivals", skills=["lighting"])
    )
    for name in ("load_for_update", "fetch_references", "count_connections", "update_derived_fields"):
        monkeypatch.setattr(ProfileRepository, name, getattr(store, name))
    return store


@pytest.fixture
def service(fake_sink):
    aggregator = AsyncMock()
    aggregator.aggregate.return_value = EngagementCounts(likes_count=2, followers_count=1)
    return ProfileEngagementService(
        aggregator=aggregator, reporter=AnalyticsDiffReporter(sink=fake_sink)
    )


def _job(fixed_now, job_id, **overrides):
    values = {
        "id": job_id,
        "profile_id": 1,
        "status": "pending",
        "scheduled_at": fixed_now,
        "priority": 0,
        "attempts": 1,
    }
    values.update(overrides)
    return EngagementJob(**values)


@pytest.mark.asyncio
async def test_recompute_writes_counts_in_one_transaction(
    service, profile_store, fake_transaction, fixed_now
):
    outcome = await service.recompute_now(1, now=fixed_now)

    assert outcome.counts == EngagementCounts(likes_count=2, followers_count=1)
    assert profile_store.profile.likes_count == 2
    assert profile_store.profile.followers_count == 1
    assert profile_store.profile.engagement_refreshed_at == fixed_now
    assert profile_store.writes == [fake_transaction.connection]
    assert len(fake_transaction.opened) == 1
    service.aggregator.aggregate.assert_awaited_once_with(1, connection=fake_transaction.connection)
    assert outcome.current.metrics.trust_score == outcome.trust.score
    assert outcome.current.metrics.connections_count == 3


@pytest.mark.asyncio
async def test_recompute_is_idempotent(
    service, profile_store, fake_transaction, fake_sink, fixed_now
):
    first = await service.recompute_now(1, now=fixed_now)
    events_after_first = len(fake_sink.events)
    second = await service.recompute_now(1, now=fixed_now)

    assert second.counts == first.counts
    assert second.trust.score == first.trust.score
    assert second.profile_completion == first.profile_completion
    assert {event.event_name for event in fake_sink.events} == {
        TRUST_SCORE_CHANGED,
        ENGAGEMENT_REFRESHED,
    }
    assert len(fake_sink.events) == events_after_first


@pytest.mark.asyncio
async def test_recompute_of_missing_profile_raises(service, profile_store, fake_transaction):
    with pytest.raises(ProfileNotFoundError):
        await service.recompute_now(404)

    assert profile_store.writes == []


@pytest.mark.asyncio
async def test_analytics_failure_does_not_fail_recompute(
    profile_store, fake_transaction, fixed_now
):
    sink = AsyncMock()
    sink.record.side_effect = RuntimeError("ingestion down")
    aggregator = AsyncMock()
    aggregator.aggregate.return_value = EngagementCounts(likes_count=5, followers_count=0)
    service = ProfileEngagementService(aggregator=aggregator, reporter=AnalyticsDiffReporter(sink=sink))

    outcome = await service.recompute_now(1, now=fixed_now)

    assert outcome.counts.likes_count == 5
    assert profile_store.profile.likes_count == 5


@pytest.mark.asyncio
async def test_process_queue_once_completes_and_retries(monkeypatch, service, fixed_now):
    good, bad = _job(fixed_now, 1), _job(fixed_now, 2, profile_id=2)
    monkeypatch.setattr(EngagementJobRepository, "claim_batch", AsyncMock(return_value=[good, bad]))
    completed = AsyncMock(return_value=True)
    retry = AsyncMock(return_value="pending")
    monkeypatch.setattr(EngagementJobRepository, "mark_completed", completed)
    monkeypatch.setattr(EngagementJobRepository, "mark_failed_or_retry", retry)

    async def execute(job, *, now=None):
        if job.id == 2:
            raise ProfileNotFoundError(job.profile_id)

    monkeypatch.setattr(service, "execute_job", execute)

    processed = await service.process_queue_once(limit=5, worker_id="w1", now=fixed_now)

    assert processed == 2
    completed.assert_awaited_once_with(good, now=fixed_now)
    retried_job, error = retry.await_args.args
    assert retried_job is bad
    assert isinstance(error, ProfileNotFoundError)
    assert service.last_run_metrics["claimed"] == 2
    assert service.last_run_metrics["completed"] == 1
    assert service.last_run_metrics["retried"] == 1
    assert service.last_run_metrics["failed"] == 0


@pytest.mark.asyncio
async def test_process_queue_once_counts_terminal_failures(monkeypatch, service, fixed_now):
    monkeypatch.setattr(
        EngagementJobRepository,
        "claim_batch",
        AsyncMock(return_value=[_job(fixed_now, 7, attempts=5)]),
    )
    monkeypatch.setattr(EngagementJobRepository, "mark_failed_or_retry", AsyncMock(return_value="failed"))
    monkeypatch.setattr(service, "execute_job", AsyncMock(side_effect=RuntimeError("boom")))

    await service.process_queue_once(worker_id="w1", now=fixed_now)

    assert service.last_run_metrics["failed"] == 1
    assert service.last_run_metrics["errors_count"] == 1


@pytest.mark.asyncio
async def test_failure_to_mark_job_does_not_escape(monkeypatch, service, fixed_now):
    monkeypatch.setattr(
        EngagementJobRepository, "claim_batch", AsyncMock(return_value=[_job(fixed_now, 3)])
    )
    monkeypatch.setattr(
        EngagementJobRepository, "mark_failed_or_retry", AsyncMock(side_effect=RuntimeError("db gone"))
    )
    monkeypatch.setattr(service, "execute_job", AsyncMock(side_effect=RuntimeError("boom")))

    processed = await service.process_queue_once(worker_id="w1", now=fixed_now)

    assert processed == 1
    assert service.last_run_metrics["retried"] == 0
    assert service.last_run_metrics["completed"] == 0


@pytest.mark.asyncio
async def test_lost_claim_is_not_counted(monkeypatch, service, fixed_now):
    monkeypatch.setattr(
        EngagementJobRepository,
        "claim_batch",
        AsyncMock(return_value=[_job(fixed_now, 4), _job(fixed_now, 5)]),
    )
    monkeypatch.setattr(EngagementJobRepository, "mark_completed", AsyncMock(return_value=False))
    monkeypatch.setattr(EngagementJobRepository, "mark_failed_or_retry", AsyncMock(return_value=None))

    async def execute(job, *, now=None):
        if job.id == 5:
            raise RuntimeError("boom")

    monkeypatch.setattr(service, "execute_job", execute)

    processed = await service.process_queue_once(worker_id="w1", now=fixed_now)

    assert processed == 2
    assert service.last_run_metrics["completed"] == 0
    assert service.last_run_metrics["retried"] == 0
    assert service.last_run_metrics["failed"] == 0
    assert service.last_run_metrics["errors_count"] == 0

@pytest.mark.asyncio
async def test_empty_queue_returns_zero(monkeypatch, service):
    monkeypatch.setattr(EngagementJobRepository, "claim_batch", AsyncMock(return_value=[]))

    assert await service.process_queue_once(worker_id="w1") == 0


@pytest.mark.asyncio
async def test_enqueue_opens_transaction_when_none_given(monkeypatch, service, fake_transaction):
    repo_enqueue = AsyncMock()
    monkeypatch.setattr(EngagementJobRepository, "enqueue", repo_enqueue)

    await service.enqueue("12", reason="  manual  ", priority=3)

    kwargs = repo_enqueue.await_args.kwargs
    assert repo_enqueue.await_args.args == (12,)
    assert kwargs["connection"] is fake_transaction.connection
    assert kwargs["reason"] == "manual"
    assert kwargs["priority"] == 3
    assert kwargs["scheduled_at"] == kwargs["now"]


@pytest.mark.asyncio
async def test_enqueue_joins_callers_transaction(monkeypatch, service, fake_transaction):
    repo_enqueue = AsyncMock()
    monkeypatch.setattr(EngagementJobRepository, "enqueue", repo_enqueue)
    conn = object()

    await service.enqueue(5, connection=conn)

    assert repo_enqueue.await_args.kwargs["connection"] is conn
    assert fake_transaction.opened == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "profile_id,options",
    [(0, {}), ("abc", {}), (True, {}), (5, {"priority": "high"}), (5, {"scheduled_at": "tomorrow"})],
)
async def test_enqueue_rejects_malformed_input(monkeypatch, service, profile_id, options):
    repo_enqueue = AsyncMock()
    monkeypatch.setattr(EngagementJobRepository, "enqueue", repo_enqueue)

    with pytest.raises(EngagementValidationError):
        await service.enqueue(profile_id, **options)

    repo_enqueue.assert_not_awaited()


def test_is_stale_windows(service, make_profile, fixed_now):
    assert service.is_stale(make_profile(), now=fixed_now)
    assert not service.is_stale(
        make_profile(engagement_refreshed_at=fixed_now - timedelta(minutes=10)), now=fixed_now
    )
    assert service.is_stale(
        make_profile(engagement_refreshed_at=fixed_now - timedelta(minutes=31)), now=fixed_now
    )


def test_is_stale_accepts_naive_timestamps_and_mappings(service, fixed_now):
    naive = (fixed_now - timedelta(minutes=5)).replace(tzinfo=None)

    assert not service.is_stale({"engagement_refreshed_at": naive}, now=fixed_now)
    assert service.is_stale({"id": 1}, now=fixed_now)


@pytest.mark.asyncio
async def test_refresh_if_stale_enqueues_in_background(monkeypatch, service, make_profile):
    enqueue_mock = AsyncMock()
    monkeypatch.setattr(service, "enqueue", enqueue_mock)

    scheduled = service.refresh_if_stale(make_profile(id=8))
    await asyncio.gather(*service._background_tasks)

    assert scheduled is True
    enqueue_mock.assert_awaited_once_with(8, reason="stale_read")


@pytest.mark.asyncio
async def test_refresh_if_stale_skips_fresh_profiles(monkeypatch, service, make_profile):
    enqueue_mock = AsyncMock()
    monkeypatch.setattr(service, "enqueue", enqueue_mock)
    fresh = make_profile(engagement_refreshed_at=datetime.now(UTC))

    assert service.refresh_if_stale(fresh) is False
    enqueue_mock.assert_not_awaited()


@pytest.mark.asyncio
async def test_background_enqueue_errors_are_logged(monkeypatch, service, make_profile):
    monkeypatch.setattr(service, "enqueue", AsyncMock(side_effect=ProfileNotFoundError(8)))

    service.refresh_if_stale({"id": 8})
    results = await asyncio.gather(*service._background_tasks)

    assert results == [None]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "trust_emitted,refresh_emitted,expect_targeting",
    [(False, False, True), (True, False, False), (False, True, False)],
)
async def test_targeting_event_only_when_other_events_not_stored(
    profile_store, fake_transaction, fixed_now, trust_emitted, refresh_emitted, expect_targeting
):
    reporter = AsyncMock()
    reporter.report_trust_score_change.return_value = trust_emitted
    reporter.report_engagement_refresh.return_value = refresh_emitted
    aggregator = AsyncMock()
    aggregator.aggregate.return_value = EngagementCounts(likes_count=1, followers_count=0)
    service = ProfileEngagementService(aggregator=aggregator, reporter=reporter)

    await service.recompute_now(1, reason="manual", now=fixed_now)

    assert reporter.report_targeting_change.await_count == (1 if expect_targeting else 0)
