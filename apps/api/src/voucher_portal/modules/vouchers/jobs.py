"""
Vouchers Background Jobs

1. Reconcile the code registry, scholarship applications and vouchers
2. Expire active vouchers past their expiry date

Jobs open their own database sessions, are safe to re-run, and can be
triggered manually through the debug job endpoints.
"""

import logging
from datetime import UTC, datetime
from typing import Any

from apscheduler.triggers.interval import IntervalTrigger

from voucher_portal.core.config import settings
from voucher_portal.core.database import async_session_maker
from voucher_portal.core.scheduler import register_job
from voucher_portal.modules.vouchers import service

logger = logging.getLogger(__name__)

JOB_ID_RECONCILE_CODES = "vouchers_reconcile_codes"
JOB_ID_EXPIRE_VOUCHERS = "vouchers_expire_vouchers"


async def reconcile_voucher_codes_job() -> dict[str, Any]:
    """
    Detect partial writes left by failed approvals and repair missing vouchers.

    Returns:
        Dict with counts from the reconciliation report
    """
    logger.info("Starting voucher code reconciliation job")

    async with async_session_maker() as db:
        report = await service.reconcile_voucher_codes(db)

    results = {
        "executed_at": report.checked_at.isoformat(),
        "missing_vouchers": report.missing_vouchers,
        "repaired_vouchers": report.repaired_vouchers,
        "origin_mismatches": report.origin_mismatches,
        "orphan_codes": report.orphan_codes,
    }
    logger.info(f"Voucher code reconciliation job completed: {results}")
    return results


async def expire_vouchers_job() -> dict[str, Any]:
    """Expire active vouchers whose expires_at has passed."""
    executed_at = datetime.now(UTC)
    logger.info(f"Starting voucher expiry job at {executed_at.isoformat()}")

    async with async_session_maker() as db:
        expired = await service.expire_vouchers(db, now=executed_at)

    logger.info(f"Voucher expiry job completed. Expired: {expired}")
    return {"executed_at": executed_at.isoformat(), "total_expired": expired}


def register_voucher_jobs() -> None:
    """
    Register voucher background jobs with the scheduler.

    Call during application startup, before the scheduler is started.
    """
    logger.info("Registering voucher background jobs...")

    register_job(
        job_id=JOB_ID_RECONCILE_CODES,
        func=reconcile_voucher_codes_job,
        trigger=IntervalTrigger(minutes=settings.reconcile_interval_minutes),
    )
    logger.info(
        f"Registered job: {JOB_ID_RECONCILE_CODES} "
        f"(interval: {settings.reconcile_interval_minutes} minutes)"
    )

    register_job(
        job_id=JOB_ID_EXPIRE_VOUCHERS,
        func=expire_vouchers_job,
        trigger=IntervalTrigger(minutes=settings.expire_vouchers_interval_minutes),
    )
    logger.info(
        f"Registered job: {JOB_ID_EXPIRE_VOUCHERS} "
        f"(interval: {settings.expire_vouchers_interval_minutes} minutes)"
    )
