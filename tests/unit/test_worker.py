import pytest

from app.features.profile_engagement.jobs import start_engagement_scheduler
from app.jobs import worker


@pytest.mark.asyncio
async def test_run_worker_runs_job(monkeypatch):
    called = {"ok": False}

    async def dummy_job():
        called["ok"] = True

    monkeypatch.setitem(worker.JOB_REGISTRY, "dummy", dummy_job)

    await worker.run_worker("dummy")

    assert called["ok"] is True


@pytest.mark.asyncio
async def test_run_worker_unknown_job():
    with pytest.raises(ValueError):
        await worker.run_worker("missing")


def test_engagement_job_is_registered():
    assert worker.JOB_REGISTRY["profile_engagement"] is start_engagement_scheduler


def test_job_name_defaults_to_engagement(monkeypatch):
    monkeypatch.setattr(worker.sys, "argv", ["worker"])
    monkeypatch.delenv("WORKER_JOB", raising=False)

    assert worker._resolve_job_name() == "profile_engagement"


@pytest.mark.asyncio
async def test_engagement_worker_is_disabled_in_tests():
    # Returns immediately instead of polling forever
    await worker.run_worker("profile_engagement")
