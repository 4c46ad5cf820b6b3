"""
Tests for the voucher requests service.

Approval issues a code and a voucher in the same transaction as the decision;
rejection records the reason. Both notify the school on a best-effort basis.
"""

from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError

from voucher_portal.core import email
from voucher_portal.modules.shared import StoreUnavailableError
from voucher_portal.modules.signups import repository as signup_repository
from voucher_portal.modules.signups.models import SchoolSignupStatus
from voucher_portal.modules.signups.service import SchoolNotApprovedError
from voucher_portal.modules.voucher_requests import repository
from voucher_portal.modules.voucher_requests.models import VoucherRequestStatus
from voucher_portal.modules.voucher_requests.schemas import VoucherRequestCreate
from voucher_portal.modules.voucher_requests.service import (
    CannotDecideVoucherRequestError,
    VoucherRequestNotFoundError,
    admin_approve_request,
    admin_reject_request,
    submit_request,
)
from voucher_portal.modules.vouchers import codes
from voucher_portal.modules.vouchers.models import VoucherCodeSource
from voucher_portal.modules.vouchers.service import (
    VoucherCodeExhaustedError,
    verify_voucher_code,
)


@pytest.fixture
def pending_request():
    return SimpleNamespace(
        id=uuid4(),
        school_id=uuid4(),
        amount=Decimal("1200.00"),
        purpose="Exercise books",
        description=None,
        status=VoucherRequestStatus.PENDING,
        voucher_id=None,
        reviewed_by=None,
        reviewed_at=None,
        review_notes=None,
    )


@pytest.fixture
def request_lookup(monkeypatch, pending_request):
    lookup = AsyncMock(return_value=pending_request)
    monkeypatch.setattr(repository, "get_by_id_for_update", lookup)
    return lookup


@pytest.fixture
def school_contact(monkeypatch):
    signup = SimpleNamespace(
        email="bursar@accra-academy.test",
        school_name="Accra Academy",
        status=SchoolSignupStatus.APPROVED,
    )
    monkeypatch.setattr(
        signup_repository, "get_school_signup_by_user", AsyncMock(return_value=signup)
    )
    return signup


@pytest.fixture
def issued_email(monkeypatch):
    sender = AsyncMock(return_value=True)
    monkeypatch.setattr(email, "send_voucher_issued", sender)
    return sender


@pytest.fixture
def rejected_email(monkeypatch):
    sender = AsyncMock(return_value=True)
    monkeypatch.setattr(email, "send_voucher_request_rejected", sender)
    return sender


# ============================================
# submit_request
# ============================================


@pytest.mark.asyncio
async def test_submit_request_requires_approved_school(mock_db, school_user, monkeypatch):
    monkeypatch.setattr(
        signup_repository, "get_school_signup_by_user", AsyncMock(return_value=None)
    )

    with pytest.raises(SchoolNotApprovedError):
        await submit_request(
            mock_db, school_user, VoucherRequestCreate(amount=Decimal("100"), purpose="Uniforms")
        )

    mock_db.add.assert_not_called()


@pytest.mark.asyncio
async def test_submit_request_creates_pending_request(
    mock_db, school_user, school_contact, monkeypatch
):
    created = MagicMock(id=uuid4(), amount=Decimal("100"), purpose="Uniforms")
    create = AsyncMock(return_value=created)
    monkeypatch.setattr(repository, "create", create)

    await submit_request(
        mock_db, school_user, VoucherRequestCreate(amount=Decimal("100"), purpose="Uniforms")
    )

    assert create.call_args.kwargs["school_id"] == school_user.id
    mock_db.commit.assert_awaited_once()


def test_request_amount_must_be_positive():
    with pytest.raises(ValueError):
        VoucherRequestCreate(amount=Decimal("0"), purpose="Uniforms")


# ============================================
# admin_approve_request
# ============================================


@pytest.mark.asyncio
async def test_approve_creates_voucher_and_links_request(
    mock_db,
    admin_user,
    voucher_store,
    request_lookup,
    pending_request,
    school_contact,
    issued_email,
):
    result = await admin_approve_request(
        mock_db, pending_request.id, admin_user.id, notes="Term 2 supplies"
    )

    voucher = result["voucher"]
    assert codes.is_well_formed(voucher.voucher_code)
    assert voucher.amount == Decimal("1200.00")
    assert voucher.school_id == pending_request.school_id
    assert voucher.voucher_request_id == pending_request.id

    updated = result["request"]
    assert updated.status == VoucherRequestStatus.APPROVED
    assert updated.voucher_id == voucher.id
    assert updated.review_notes == "Term 2 supplies"
    assert updated.reviewed_at is not None

    entry = voucher_store.registry[voucher.voucher_code]
    assert entry.source == VoucherCodeSource.VOUCHER_REQUEST
    assert entry.record_id == pending_request.id

    mock_db.commit.assert_awaited_once()
    assert result["warnings"] == []
    assert issued_email.call_args.kwargs["to_email"] == "bursar@accra-academy.test"


@pytest.mark.asyncio
async def test_approved_request_voucher_verifies(
    mock_db,
    admin_user,
    voucher_store,
    request_lookup,
    pending_request,
    school_contact,
    issued_email,
):
    result = await admin_approve_request(mock_db, pending_request.id, admin_user.id)

    verification = await verify_voucher_code(mock_db, result["voucher"].voucher_code)

    assert verification.valid is True
    assert verification.voucher_id == result["voucher"].id
    assert verification.voucher_amount == 1200.0


@pytest.mark.asyncio
async def test_approve_missing_request(mock_db, admin_user, voucher_store, request_lookup):
    request_lookup.return_value = None

    with pytest.raises(VoucherRequestNotFoundError):
        await admin_approve_request(mock_db, uuid4(), admin_user.id)


@pytest.mark.asyncio
async def test_approve_rejected_request_is_refused(
    mock_db, admin_user, voucher_store, request_lookup, pending_request
):
    pending_request.status = VoucherRequestStatus.REJECTED

    with pytest.raises(CannotDecideVoucherRequestError) as exc_info:
        await admin_approve_request(mock_db, pending_request.id, admin_user.id)

    assert exc_info.value.status_code == 409
    assert voucher_store.registry == {}
    assert voucher_store.vouchers == []


@pytest.mark.asyncio
async def test_approve_exhaustion_rolls_back(
    mock_db, admin_user, voucher_store, request_lookup, pending_request, monkeypatch
):
    voucher_store.add_voucher(voucher_code="GBF-TAKN-TAKN")
    monkeypatch.setattr(codes, "generate_voucher_code", lambda prefix=None: "GBF-TAKN-TAKN")

    with pytest.raises(VoucherCodeExhaustedError):
        await admin_approve_request(mock_db, pending_request.id, admin_user.id)

    mock_db.rollback.assert_awaited_once()
    mock_db.commit.assert_not_awaited()
    assert pending_request.status == VoucherRequestStatus.PENDING
    assert pending_request.voucher_id is None


@pytest.mark.asyncio
async def test_approve_commit_failure_is_unavailable(
    mock_db, admin_user, voucher_store, request_lookup, pending_request, issued_email
):
    mock_db.commit.side_effect = OperationalError("COMMIT", {}, Exception("connection reset"))

    with pytest.raises(StoreUnavailableError):
        await admin_approve_request(mock_db, pending_request.id, admin_user.id)

    mock_db.rollback.assert_awaited_once()
    issued_email.assert_not_awaited()


@pytest.mark.asyncio
async def test_approve_without_school_contact_warns(
    mock_db, admin_user, voucher_store, request_lookup, pending_request, issued_email, monkeypatch
):
    monkeypatch.setattr(
        signup_repository, "get_school_signup_by_user", AsyncMock(return_value=None)
    )

    result = await admin_approve_request(mock_db, pending_request.id, admin_user.id)

    assert result["request"].status == VoucherRequestStatus.APPROVED
    assert len(result["warnings"]) == 1
    issued_email.assert_not_awaited()


# ============================================
# admin_reject_request
# ============================================


@pytest.mark.asyncio
async def test_reject_records_reason(
    mock_db, admin_user, request_lookup, pending_request, school_contact, rejected_email
):
    result = await admin_reject_request(
        mock_db, pending_request.id, admin_user.id, "Budget exhausted"
    )

    assert result["request"].status == VoucherRequestStatus.REJECTED
    assert result["request"].review_notes == "Budget exhausted"
    assert result["request"].voucher_id is None
    mock_db.commit.assert_awaited_once()
    assert rejected_email.call_args.kwargs["reason"] == "Budget exhausted"


@pytest.mark.asyncio
async def test_reject_email_failure_is_warning(
    mock_db, admin_user, request_lookup, pending_request, school_contact, rejected_email
):
    rejected_email.side_effect = RuntimeError("resend unavailable")

    result = await admin_reject_request(
        mock_db, pending_request.id, admin_user.id, "Budget exhausted"
    )

    assert result["warnings"] == ["Rejection email could not be sent to bursar@accra-academy.test."]


@pytest.mark.asyncio
async def test_reject_approved_request_is_refused(
    mock_db, admin_user, request_lookup, pending_request
):
    pending_request.status = VoucherRequestStatus.APPROVED

    with pytest.raises(CannotDecideVoucherRequestError):
        await admin_reject_request(mock_db, pending_request.id, admin_user.id, "Too late")

    mock_db.commit.assert_not_awaited()


class TestStatusTransitions:
    def test_only_pending_can_be_decided(self):
        assert repository.VALID_STATUS_TRANSITIONS[VoucherRequestStatus.PENDING] == {
            VoucherRequestStatus.APPROVED,
            VoucherRequestStatus.REJECTED,
        }
        assert repository.VALID_STATUS_TRANSITIONS[VoucherRequestStatus.APPROVED] == set()
        assert repository.VALID_STATUS_TRANSITIONS[VoucherRequestStatus.REJECTED] == set()
