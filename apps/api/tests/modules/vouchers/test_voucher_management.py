"""
Tests for voucher management: cancellation, redemption, expiry and
reconciliation of the code registry against applications and vouchers.
"""

from datetime import UTC, datetime, timedelta
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from voucher_portal.core.config import settings
from voucher_portal.modules.vouchers import repository
from voucher_portal.modules.vouchers.models import VoucherCodeSource, VoucherStatus
from voucher_portal.modules.vouchers.service import (
    CannotChangeVoucherError,
    VoucherNotFoundError,
    admin_cancel_voucher,
    expire_vouchers,
    reconcile_voucher_codes,
    redeem_voucher,
    voucher_expiry,
)


def _voucher(status=VoucherStatus.ACTIVE, **fields):
    return SimpleNamespace(
        id=uuid4(),
        voucher_code=fields.pop("voucher_code", "GBF-7KQ2-M9XA"),
        status=status,
        amount=Decimal("500.00"),
        used_at=None,
        redeemed_by=None,
        expires_at=fields.pop("expires_at", None),
        **fields,
    )


@pytest.fixture
def savepoint_db(mock_db):
    """mock_db whose begin_nested() works as an async context manager."""
    mock_db.begin_nested = MagicMock()
    return mock_db


class TestStatusTransitions:
    def test_only_active_vouchers_change(self):
        assert repository.VALID_STATUS_TRANSITIONS[VoucherStatus.ACTIVE] == {
            VoucherStatus.USED,
            VoucherStatus.EXPIRED,
            VoucherStatus.CANCELLED,
        }
        for status in (VoucherStatus.USED, VoucherStatus.EXPIRED, VoucherStatus.CANCELLED):
            assert repository.VALID_STATUS_TRANSITIONS[status] == set()

    @pytest.mark.asyncio
    async def test_used_voucher_cannot_be_reactivated(self, mock_db):
        voucher = _voucher(VoucherStatus.USED)

        with pytest.raises(repository.InvalidStatusTransitionError):
            await repository.update_voucher_status(mock_db, voucher, VoucherStatus.ACTIVE)

        assert voucher.status == VoucherStatus.USED


class TestVoucherExpiry:
    def test_no_expiry_by_default(self, monkeypatch):
        monkeypatch.setattr(settings, "voucher_validity_days", None)
        assert voucher_expiry() is None

    def test_expiry_from_validity_days(self, monkeypatch):
        monkeypatch.setattr(settings, "voucher_validity_days", 30)
        now = datetime(2026, 1, 1, tzinfo=UTC)
        assert voucher_expiry(now) == now + timedelta(days=30)


# ============================================
# Cancellation and redemption
# ============================================


@pytest.mark.asyncio
async def test_cancel_active_voucher(mock_db, admin_user, monkeypatch):
    voucher = _voucher()
    monkeypatch.setattr(repository, "get_by_id", AsyncMock(return_value=voucher))

    result = await admin_cancel_voucher(mock_db, voucher.id, admin_user.id, "Issued in error")

    assert result.status == VoucherStatus.CANCELLED
    mock_db.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_cancel_used_voucher_is_refused(mock_db, admin_user, monkeypatch):
    voucher = _voucher(VoucherStatus.USED)
    monkeypatch.setattr(repository, "get_by_id", AsyncMock(return_value=voucher))

    with pytest.raises(CannotChangeVoucherError) as exc_info:
        await admin_cancel_voucher(mock_db, voucher.id, admin_user.id, "Issued in error")

    assert exc_info.value.status_code == 409
    mock_db.commit.assert_not_awaited()


@pytest.mark.asyncio
async def test_cancel_missing_voucher(mock_db, admin_user, monkeypatch):
    monkeypatch.setattr(repository, "get_by_id", AsyncMock(return_value=None))

    with pytest.raises(VoucherNotFoundError) as exc_info:
        await admin_cancel_voucher(mock_db, uuid4(), admin_user.id, "Issued in error")

    assert exc_info.value.status_code == 404


@pytest.mark.asyncio
async def test_redeem_marks_voucher_used_without_commit(mock_db, vendor_user):
    voucher = _voucher()

    await redeem_voucher(mock_db, voucher, redeemed_by=vendor_user.id)

    assert voucher.status == VoucherStatus.USED
    assert voucher.redeemed_by == vendor_user.id
    assert voucher.used_at is not None
    mock_db.flush.assert_awaited_once()
    mock_db.commit.assert_not_awaited()


@pytest.mark.asyncio
async def test_redeem_twice_is_refused(mock_db, vendor_user):
    voucher = _voucher()
    await redeem_voucher(mock_db, voucher, redeemed_by=vendor_user.id)

    with pytest.raises(CannotChangeVoucherError):
        await redeem_voucher(mock_db, voucher, redeemed_by=uuid4())

    assert voucher.redeemed_by == vendor_user.id


# ============================================
# Expiry
# ============================================


@pytest.mark.asyncio
async def test_expire_vouchers_past_expiry(savepoint_db, monkeypatch):
    now = datetime(2026, 6, 1, tzinfo=UTC)
    stale = [
        _voucher(expires_at=now - timedelta(days=1)),
        _voucher(voucher_code="GBF-AAAA-BBBB", expires_at=now - timedelta(hours=1)),
    ]
    lookup = AsyncMock(return_value=stale)
    monkeypatch.setattr(repository, "get_active_vouchers_expired_before", lookup)

    expired = await expire_vouchers(savepoint_db, now=now)

    assert expired == 2
    assert all(v.status == VoucherStatus.EXPIRED for v in stale)
    lookup.assert_awaited_once_with(savepoint_db, now)
    savepoint_db.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_expire_skips_voucher_that_changed_meanwhile(savepoint_db, monkeypatch):
    now = datetime(2026, 6, 1, tzinfo=UTC)
    redeemed = _voucher(VoucherStatus.USED, expires_at=now - timedelta(days=1))
    stale = _voucher(voucher_code="GBF-AAAA-BBBB", expires_at=now - timedelta(days=1))
    monkeypatch.setattr(
        repository,
        "get_active_vouchers_expired_before",
        AsyncMock(return_value=[redeemed, stale]),
    )

    expired = await expire_vouchers(savepoint_db, now=now)

    assert expired == 1
    assert redeemed.status == VoucherStatus.USED
    assert stale.status == VoucherStatus.EXPIRED


@pytest.mark.asyncio
async def test_expire_with_nothing_due(savepoint_db, monkeypatch):
    monkeypatch.setattr(
        repository, "get_active_vouchers_expired_before", AsyncMock(return_value=[])
    )

    assert await expire_vouchers(savepoint_db) == 0


# ============================================
# Reconciliation
# ============================================


@pytest.fixture
def reconcile_queries(monkeypatch):
    queries = SimpleNamespace(
        missing=AsyncMock(return_value=[]),
        mismatched=AsyncMock(return_value=[]),
        orphans=AsyncMock(return_value=[]),
    )
    monkeypatch.setattr(repository, "get_approved_applications_missing_voucher", queries.missing)
    monkeypatch.setattr(repository, "get_vouchers_with_mismatched_origin", queries.mismatched)
    monkeypatch.setattr(repository, "get_orphan_registry_entries", queries.orphans)
    return queries


def _approved_without_voucher(voucher_store, code="GBF-MISS-VCHR"):
    return voucher_store.add_application(
        voucher_code=code,
        voucher_amount=Decimal("400.00"),
        school_user_id=uuid4(),
        program_type="Primary",
        reviewed_by=uuid4(),
        submitted_by=uuid4(),
    )


@pytest.mark.asyncio
async def test_reconcile_clean_store(savepoint_db, voucher_store, reconcile_queries):
    report = await reconcile_voucher_codes(savepoint_db)

    assert report.issues == []
    assert report.missing_vouchers == 0
    savepoint_db.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_reconcile_repairs_missing_voucher(savepoint_db, voucher_store, reconcile_queries):
    application = _approved_without_voucher(voucher_store)
    reconcile_queries.missing.return_value = [application]

    report = await reconcile_voucher_codes(savepoint_db, repair=True)

    assert report.missing_vouchers == 1
    assert report.repaired_vouchers == 1
    assert report.issues[0].kind == "missing_voucher"
    assert report.issues[0].repaired is True

    voucher = voucher_store.vouchers[0]
    assert voucher.voucher_code == application.voucher_code
    assert voucher.amount == Decimal("400.00")
    assert voucher.application_id == application.id
    assert voucher.created_by == application.reviewed_by
    # Codes issued before the registry existed are reserved during repair
    entry = voucher_store.registry[application.voucher_code]
    assert entry.source == VoucherCodeSource.SCHOLARSHIP_APPLICATION


@pytest.mark.asyncio
async def test_reconcile_keeps_existing_registry_entry(
    savepoint_db, voucher_store, reconcile_queries
):
    application = _approved_without_voucher(voucher_store)
    voucher_store.registry[application.voucher_code] = SimpleNamespace(
        code=application.voucher_code, record_id=application.id
    )
    reconcile_queries.missing.return_value = [application]

    report = await reconcile_voucher_codes(savepoint_db, repair=True)

    assert report.repaired_vouchers == 1
    assert voucher_store.reserve_calls == 0


@pytest.mark.asyncio
async def test_reconcile_report_only(savepoint_db, voucher_store, reconcile_queries):
    reconcile_queries.missing.return_value = [_approved_without_voucher(voucher_store)]

    report = await reconcile_voucher_codes(savepoint_db, repair=False)

    assert report.missing_vouchers == 1
    assert report.repaired_vouchers == 0
    assert voucher_store.vouchers == []


@pytest.mark.asyncio
async def test_reconcile_repair_defaults_to_setting(
    savepoint_db, voucher_store, reconcile_queries, monkeypatch
):
    monkeypatch.setattr(settings, "reconcile_repair_missing_vouchers", False)
    reconcile_queries.missing.return_value = [_approved_without_voucher(voucher_store)]

    report = await reconcile_voucher_codes(savepoint_db)

    assert report.repaired_vouchers == 0


@pytest.mark.asyncio
async def test_reconcile_failed_repair_is_reported(
    savepoint_db, voucher_store, reconcile_queries, monkeypatch
):
    reconcile_queries.missing.return_value = [_approved_without_voucher(voucher_store)]
    monkeypatch.setattr(
        repository,
        "create_voucher",
        AsyncMock(side_effect=IntegrityError("INSERT", {}, Exception("duplicate key"))),
    )

    report = await reconcile_voucher_codes(savepoint_db, repair=True)

    assert report.missing_vouchers == 1
    assert report.repaired_vouchers == 0
    assert report.issues[0].repaired is False
    assert "duplicate key" in report.issues[0].detail


@pytest.mark.asyncio
async def test_reconcile_reports_mismatches_and_orphans(
    savepoint_db, voucher_store, reconcile_queries
):
    request_voucher = _voucher(voucher_code="GBF-REQS-MISS", application_id=None)
    reconcile_queries.mismatched.return_value = [request_voucher]
    reconcile_queries.orphans.return_value = [
        SimpleNamespace(
            code="GBF-ORPH-CODE",
            record_id=uuid4(),
            source=VoucherCodeSource.SCHOLARSHIP_APPLICATION,
        )
    ]

    report = await reconcile_voucher_codes(savepoint_db, repair=True)

    assert report.origin_mismatches == 1
    assert report.orphan_codes == 1
    kinds = {issue.kind: issue for issue in report.issues}
    assert kinds["origin_mismatch"].source == VoucherCodeSource.VOUCHER_REQUEST
    assert kinds["orphan_code"].voucher_code == "GBF-ORPH-CODE"
    # Mismatches and orphans are reported, never repaired
    assert voucher_store.vouchers == []
