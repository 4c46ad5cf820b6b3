"""
Tests for scholarship application service functions.

Covers:
- Submission requires an approved school signup
- Approval issues a code, records it and creates the voucher in one commit
- Approval followed by verification of the issued code
- Failures roll back the whole approval
- Email failures become warnings
- Rejection
"""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock
from uuid import UUID, uuid4

import pytest
from sqlalchemy.exc import OperationalError

from voucher_portal.core import email
from voucher_portal.modules.scholarships import repository as scholarship_repository
from voucher_portal.modules.scholarships.models import ScholarshipStatus
from voucher_portal.modules.scholarships.schemas import (
    ApproveScholarshipRequest,
    ScholarshipApplicationCreate,
)
from voucher_portal.modules.scholarships.service import (
    CannotDecideScholarshipError,
    ScholarshipNotFoundError,
    admin_approve_application,
    admin_reject_application,
    submit_application,
)
from voucher_portal.modules.shared import StoreUnavailableError
from voucher_portal.modules.signups import repository as signup_repository
from voucher_portal.modules.signups.models import SchoolSignupStatus
from voucher_portal.modules.signups.service import SchoolNotApprovedError
from voucher_portal.modules.vouchers import codes
from voucher_portal.modules.vouchers.models import VerificationStatus
from voucher_portal.modules.vouchers.service import (
    VoucherCodeExhaustedError,
    verify_voucher_code,
)

# ============================================
# Fixtures
# ============================================


@pytest.fixture
def admin_id():
    return UUID("00000000-0000-0000-0000-000000000001")


@pytest.fixture
def pending_application(voucher_store):
    """A pending application that the fake store can also see during verification."""
    return voucher_store.add_application(
        status=ScholarshipStatus.PENDING,
        email="ama@example.com",
        school_user_id=uuid4(),
        submitted_by=uuid4(),
        program_type="Secondary",
        reviewed_by=None,
        notes=None,
    )


@pytest.fixture
def scholarship_repo(monkeypatch, pending_application):
    """Patch the scholarship repository lookups to serve pending_application."""
    lookup = AsyncMock(return_value=pending_application)

    async def update_application_decision(db, application, status, *, reviewed_by, **kwargs):
        valid = scholarship_repository.VALID_STATUS_TRANSITIONS.get(application.status, set())
        if status not in valid:
            raise scholarship_repository.InvalidStatusTransitionError(application.status, status)
        application.status = status
        application.reviewed_by = reviewed_by
        for key, value in kwargs.items():
            setattr(application, key, value)
        return application

    monkeypatch.setattr(scholarship_repository, "get_by_id_for_update", lookup)
    monkeypatch.setattr(
        scholarship_repository, "update_application_decision", update_application_decision
    )
    return lookup


@pytest.fixture
def approved_email(monkeypatch):
    sender = AsyncMock(return_value=True)
    monkeypatch.setattr(email, "send_scholarship_approved", sender)
    return sender


@pytest.fixture
def rejected_email(monkeypatch):
    sender = AsyncMock(return_value=True)
    monkeypatch.setattr(email, "send_scholarship_rejected", sender)
    return sender


# ============================================
# Test submit_application
# ============================================


@pytest.mark.asyncio
async def test_submit_application_requires_approved_school(mock_db, school_user, monkeypatch):
    signup = MagicMock(status=SchoolSignupStatus.PENDING)
    monkeypatch.setattr(
        signup_repository, "get_school_signup_by_user", AsyncMock(return_value=signup)
    )

    with pytest.raises(SchoolNotApprovedError):
        await submit_application(
            mock_db,
            school_user,
            ScholarshipApplicationCreate(student_name="Ama Mensah", email="ama@example.com"),
        )

    mock_db.commit.assert_not_awaited()


@pytest.mark.asyncio
async def test_submit_application_uses_school_name(mock_db, school_user, monkeypatch):
    signup = MagicMock(status=SchoolSignupStatus.APPROVED, school_name="Accra Academy")
    monkeypatch.setattr(
        signup_repository, "get_school_signup_by_user", AsyncMock(return_value=signup)
    )
    create = AsyncMock(return_value=MagicMock(id=uuid4(), student_name="Ama Mensah"))
    monkeypatch.setattr(scholarship_repository, "create", create)

    await submit_application(
        mock_db,
        school_user,
        ScholarshipApplicationCreate(student_name="Ama Mensah", email="ama@example.com"),
    )

    kwargs = create.call_args.kwargs
    assert kwargs["school_name"] == "Accra Academy"
    assert kwargs["school_user_id"] == school_user.id
    mock_db.commit.assert_awaited_once()


# ============================================
# Test admin_approve_application
# ============================================


@pytest.mark.asyncio
async def test_approve_issues_code_and_voucher_in_one_commit(
    mock_db, admin_id, voucher_store, scholarship_repo, pending_application, approved_email
):
    result = await admin_approve_application(
        mock_db,
        pending_application.id,
        admin_id,
        ApproveScholarshipRequest(voucher_amount=Decimal("500.00"), notes="Strong need"),
    )

    application = result["application"]
    voucher = result["voucher"]

    assert application.status == ScholarshipStatus.APPROVED
    assert codes.is_well_formed(application.voucher_code)
    assert application.voucher_amount == Decimal("500.00")
    assert application.notes == "Strong need"
    assert application.reviewed_by == admin_id

    assert voucher.voucher_code == application.voucher_code
    assert voucher.amount == Decimal("500.00")
    assert voucher.application_id == application.id
    assert voucher.school_id == application.school_user_id
    assert voucher.purpose == "Scholarship: Secondary"

    assert application.voucher_code in voucher_store.registry
    mock_db.commit.assert_awaited_once()
    mock_db.rollback.assert_not_awaited()
    assert result["warnings"] == []

    approved_email.assert_awaited_once()
    assert approved_email.call_args.kwargs["voucher_code"] == application.voucher_code


@pytest.mark.asyncio
async def test_approve_then_verify_round_trip(
    mock_db, admin_id, voucher_store, scholarship_repo, pending_application, approved_email
):
    result = await admin_approve_application(
        mock_db,
        pending_application.id,
        admin_id,
        ApproveScholarshipRequest(voucher_amount=Decimal("500")),
    )
    code = result["application"].voucher_code

    verification = await verify_voucher_code(mock_db, f" {code.lower()} ")

    assert verification.valid is True
    assert verification.verification_status == VerificationStatus.VALID
    assert verification.voucher_amount == 500.0
    assert verification.application_id == pending_application.id


@pytest.mark.asyncio
async def test_approve_without_amount_creates_no_voucher(
    mock_db, admin_id, voucher_store, scholarship_repo, pending_application, approved_email
):
    result = await admin_approve_application(mock_db, pending_application.id, admin_id)

    assert result["application"].status == ScholarshipStatus.APPROVED
    assert result["application"].voucher_code is None
    assert result["voucher"] is None
    assert voucher_store.vouchers == []
    assert voucher_store.registry == {}
    assert voucher_store.probe_calls == 0
    mock_db.commit.assert_awaited_once()
    assert approved_email.call_args.kwargs["voucher_code"] is None


@pytest.mark.asyncio
async def test_approve_uses_amount_from_application(
    mock_db, admin_id, voucher_store, scholarship_repo, pending_application, approved_email
):
    pending_application.voucher_amount = Decimal("320.00")

    result = await admin_approve_application(mock_db, pending_application.id, admin_id)

    assert result["voucher"].amount == Decimal("320.00")


@pytest.mark.asyncio
async def test_approve_not_found(mock_db, admin_id, voucher_store, scholarship_repo):
    scholarship_repo.return_value = None

    with pytest.raises(ScholarshipNotFoundError) as exc_info:
        await admin_approve_application(mock_db, uuid4(), admin_id)

    assert exc_info.value.status_code == 404
    assert exc_info.value.error_code == "APPLICATION_NOT_FOUND"


@pytest.mark.asyncio
async def test_approve_twice_is_refused(
    mock_db, admin_id, voucher_store, scholarship_repo, pending_application, approved_email
):
    pending_application.voucher_amount = Decimal("500.00")
    await admin_approve_application(mock_db, pending_application.id, admin_id)
    first_code = pending_application.voucher_code

    with pytest.raises(CannotDecideScholarshipError) as exc_info:
        await admin_approve_application(mock_db, pending_application.id, admin_id)

    assert exc_info.value.status_code == 409
    assert pending_application.voucher_code == first_code
    assert len(voucher_store.registry) == 1


@pytest.mark.asyncio
async def test_approve_exhaustion_rolls_back(
    mock_db,
    admin_id,
    voucher_store,
    scholarship_repo,
    pending_application,
    approved_email,
    monkeypatch,
):
    voucher_store.add_voucher(voucher_code="GBF-TAKN-TAKN")
    monkeypatch.setattr(codes, "generate_voucher_code", lambda prefix=None: "GBF-TAKN-TAKN")

    with pytest.raises(VoucherCodeExhaustedError):
        await admin_approve_application(
            mock_db,
            pending_application.id,
            admin_id,
            ApproveScholarshipRequest(voucher_amount=Decimal("500")),
        )

    mock_db.rollback.assert_awaited_once()
    mock_db.commit.assert_not_awaited()
    assert pending_application.status == ScholarshipStatus.PENDING
    assert pending_application.voucher_code is None
    approved_email.assert_not_awaited()


@pytest.mark.asyncio
async def test_approve_store_failure_rolls_back(
    mock_db, admin_id, voucher_store, scholarship_repo, pending_application, approved_email
):
    mock_db.commit.side_effect = OperationalError("COMMIT", {}, Exception("connection lost"))

    with pytest.raises(StoreUnavailableError):
        await admin_approve_application(
            mock_db,
            pending_application.id,
            admin_id,
            ApproveScholarshipRequest(voucher_amount=Decimal("500")),
        )

    mock_db.rollback.assert_awaited_once()
    approved_email.assert_not_awaited()


@pytest.mark.asyncio
async def test_approve_email_failure_is_a_warning(
    mock_db, admin_id, voucher_store, scholarship_repo, pending_application, approved_email
):
    approved_email.return_value = False

    result = await admin_approve_application(mock_db, pending_application.id, admin_id)

    assert result["application"].status == ScholarshipStatus.APPROVED
    assert len(result["warnings"]) == 1
    assert "ama@example.com" in result["warnings"][0]
    mock_db.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_approve_email_exception_is_a_warning(
    mock_db, admin_id, voucher_store, scholarship_repo, pending_application, approved_email
):
    approved_email.side_effect = RuntimeError("smtp down")

    result = await admin_approve_application(mock_db, pending_application.id, admin_id)

    assert result["application"].status == ScholarshipStatus.APPROVED
    assert result["warnings"]


# ============================================
# Test admin_reject_application
# ============================================


@pytest.mark.asyncio
async def test_reject_pending_application(
    mock_db, admin_id, voucher_store, scholarship_repo, pending_application, rejected_email
):
    result = await admin_reject_application(
        mock_db, pending_application.id, admin_id, "Incomplete documents"
    )

    assert result["application"].status == ScholarshipStatus.REJECTED
    assert result["application"].notes == "Incomplete documents"
    assert result["application"].voucher_code is None
    assert voucher_store.registry == {}
    mock_db.commit.assert_awaited_once()
    rejected_email.assert_awaited_once()


@pytest.mark.asyncio
async def test_reject_approved_application_is_refused(
    mock_db, admin_id, voucher_store, scholarship_repo, pending_application, rejected_email
):
    pending_application.status = ScholarshipStatus.APPROVED

    with pytest.raises(CannotDecideScholarshipError):
        await admin_reject_application(mock_db, pending_application.id, admin_id, "Too late")

    mock_db.commit.assert_not_awaited()
    rejected_email.assert_not_awaited()
