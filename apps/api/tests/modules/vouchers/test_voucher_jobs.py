"""
Tests for the voucher background jobs and their scheduler registration.
"""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from apscheduler.triggers.interval import IntervalTrigger

from voucher_portal.core import scheduler
from voucher_portal.modules.vouchers import jobs
from voucher_portal.modules.vouchers.schemas import ReconcileReport


@pytest.fixture
def job_db(monkeypatch, mock_db):
    """Route the jobs' own sessions to mock_db."""
    session_maker = MagicMock()
    session_maker.return_value.__aenter__.return_value = mock_db
    monkeypatch.setattr(jobs, "async_session_maker", session_maker)
    return mock_db


@pytest.fixture
def clean_registry(monkeypatch):
    monkeypatch.setattr(scheduler, "_job_registry", {})
    monkeypatch.setattr(scheduler, "_scheduler", None)


@pytest.mark.asyncio
async def test_reconcile_job_returns_counts(job_db, monkeypatch):
    report = ReconcileReport(
        checked_at=datetime(2026, 3, 1, tzinfo=UTC),
        missing_vouchers=2,
        repaired_vouchers=1,
        orphan_codes=3,
    )
    reconcile = AsyncMock(return_value=report)
    monkeypatch.setattr(jobs.service, "reconcile_voucher_codes", reconcile)

    result = await jobs.reconcile_voucher_codes_job()

    reconcile.assert_awaited_once_with(job_db)
    assert result == {
        "executed_at": "2026-03-01T00:00:00+00:00",
        "missing_vouchers": 2,
        "repaired_vouchers": 1,
        "origin_mismatches": 0,
        "orphan_codes": 3,
    }


@pytest.mark.asyncio
async def test_expire_job_returns_total(job_db, monkeypatch):
    expire = AsyncMock(return_value=4)
    monkeypatch.setattr(jobs.service, "expire_vouchers", expire)

    result = await jobs.expire_vouchers_job()

    assert result["total_expired"] == 4
    assert expire.await_args.args == (job_db,)
    assert expire.await_args.kwargs["now"].isoformat() == result["executed_at"]


def test_register_voucher_jobs(clean_registry):
    jobs.register_voucher_jobs()

    registered = {job["job_id"] for job in scheduler.list_registered_jobs()}
    assert registered == {jobs.JOB_ID_RECONCILE_CODES, jobs.JOB_ID_EXPIRE_VOUCHERS}

    func, trigger = scheduler._job_registry[jobs.JOB_ID_EXPIRE_VOUCHERS]
    assert func is jobs.expire_vouchers_job
    assert isinstance(trigger, IntervalTrigger)


@pytest.mark.asyncio
async def test_trigger_job_manually_reports_result(clean_registry, job_db, monkeypatch):
    monkeypatch.setattr(jobs.service, "expire_vouchers", AsyncMock(return_value=1))
    jobs.register_voucher_jobs()

    result = await scheduler.trigger_job_manually(jobs.JOB_ID_EXPIRE_VOUCHERS)

    assert result["status"] == "success"
    assert result["result"]["total_expired"] == 1


@pytest.mark.asyncio
async def test_trigger_job_manually_reports_failure(clean_registry, job_db, monkeypatch):
    monkeypatch.setattr(
        jobs.service, "reconcile_voucher_codes", AsyncMock(side_effect=RuntimeError("db down"))
    )
    jobs.register_voucher_jobs()

    result = await scheduler.trigger_job_manually(jobs.JOB_ID_RECONCILE_CODES)

    assert result["status"] == "error"
    assert result["error"] == "db down"


@pytest.mark.asyncio
async def test_trigger_unknown_job(clean_registry):
    with pytest.raises(ValueError):
        await scheduler.trigger_job_manually("missing_job")


@pytest.mark.asyncio
async def test_scheduler_lifecycle(clean_registry):
    jobs.register_voucher_jobs()

    await scheduler.start_scheduler()
    try:
        listed = {job["job_id"]: job for job in scheduler.list_registered_jobs()}
        assert listed[jobs.JOB_ID_RECONCILE_CODES]["next_run_time"] is not None

        assert scheduler.pause_job(jobs.JOB_ID_RECONCILE_CODES) is True
        listed = {job["job_id"]: job for job in scheduler.list_registered_jobs()}
        assert listed[jobs.JOB_ID_RECONCILE_CODES]["is_paused"] is True

        assert scheduler.resume_job(jobs.JOB_ID_RECONCILE_CODES) is True
        assert scheduler.pause_job("missing_job") is False
    finally:
        await scheduler.stop_scheduler()

    assert scheduler.get_scheduler() is None
