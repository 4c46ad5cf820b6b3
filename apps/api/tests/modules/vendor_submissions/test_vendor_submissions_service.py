"""
Tests for vendor voucher submissions.

Covers:
- Submissions store the verification outcome taken at submission time
- Valid codes wait for review, anything else is stored as rejected
- Verification failures store nothing
- A code can hold only one pending or approved submission
- Approval redeems the voucher, rejection leaves it untouched
"""

from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from voucher_portal.core import email
from voucher_portal.modules.scholarships.models import ScholarshipStatus
from voucher_portal.modules.signups import repository as signup_repository
from voucher_portal.modules.signups.models import VendorSignupStatus
from voucher_portal.modules.signups.service import VendorNotActiveError
from voucher_portal.modules.vendor_submissions import repository
from voucher_portal.modules.vendor_submissions.models import SubmissionStatus
from voucher_portal.modules.vendor_submissions.service import (
    CannotDecideSubmissionError,
    DuplicateSubmissionError,
    SubmissionNotFoundError,
    admin_approve_submission,
    admin_reject_submission,
    submit_voucher,
)
from voucher_portal.modules.vouchers import repository as voucher_repository
from voucher_portal.modules.vouchers.models import VerificationStatus, VoucherStatus
from voucher_portal.modules.vouchers.service import (
    CannotChangeVoucherError,
    InvalidVoucherCodeError,
    VerificationUnavailableError,
    VoucherNotFoundError,
)

CODE = "GBF-7KQ2-M9XA"


class FakeSubmissionStore:
    def __init__(self):
        self.submissions: list[SimpleNamespace] = []

    async def create(self, db, **fields):
        submission = SimpleNamespace(
            id=uuid4(), reviewed_by=None, reviewed_at=None, review_notes=None, **fields
        )
        self.submissions.append(submission)
        return submission

    async def get_open_submission_by_code(self, db, code):
        return next(
            (
                s
                for s in self.submissions
                if s.voucher_code.upper() == code.upper() and s.status in repository.OPEN_STATUSES
            ),
            None,
        )

    async def get_by_id_for_update(self, db, id):
        return next((s for s in self.submissions if s.id == id), None)


@pytest.fixture
def submission_store(monkeypatch):
    store = FakeSubmissionStore()
    for name in ("create", "get_open_submission_by_code", "get_by_id_for_update"):
        monkeypatch.setattr(repository, name, getattr(store, name))
    return store


@pytest.fixture
def active_vendor(monkeypatch, vendor_user):
    signup = SimpleNamespace(
        user_id=vendor_user.id, email="sales@osu-books.test", status=VendorSignupStatus.ACTIVE
    )
    monkeypatch.setattr(
        signup_repository, "get_vendor_signup_by_user", AsyncMock(return_value=signup)
    )
    return signup


@pytest.fixture
def voucher_lookup(monkeypatch, voucher_store):
    async def get_by_id(db, id):
        return next((v for v in voucher_store.vouchers if v.id == id), None)

    monkeypatch.setattr(voucher_repository, "get_by_id", get_by_id)


@pytest.fixture
def redemption_email(monkeypatch):
    sender = AsyncMock(return_value=True)
    monkeypatch.setattr(email, "send_redemption_decision", sender)
    return sender


def _active_voucher(voucher_store, code=CODE):
    return voucher_store.add_voucher(
        voucher_code=code, amount=Decimal("500.00"), used_at=None, redeemed_by=None
    )


# ============================================
# submit_voucher
# ============================================


class TestSubmitVoucher:
    @pytest.mark.asyncio
    async def test_valid_code_waits_for_review(
        self, mock_db, vendor_user, active_vendor, voucher_store, submission_store
    ):
        voucher = _active_voucher(voucher_store)

        submission, verification = await submit_voucher(mock_db, vendor_user, f" {CODE.lower()} ")

        assert verification.valid is True
        assert submission.status == SubmissionStatus.PENDING
        assert submission.verification_status == VerificationStatus.VALID
        assert submission.voucher_code == CODE
        assert submission.voucher_id == voucher.id
        # No related application, so none is linked
        assert submission.voucher_application_id is None
        assert submission.vendor_id == vendor_user.id
        mock_db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_application_code_links_application(
        self, mock_db, vendor_user, active_vendor, voucher_store, submission_store
    ):
        application = voucher_store.add_application(voucher_code=CODE)

        submission, _ = await submit_voucher(mock_db, vendor_user, CODE)

        assert submission.status == SubmissionStatus.PENDING
        assert submission.voucher_application_id == application.id
        assert submission.voucher_id is None

    @pytest.mark.asyncio
    async def test_unapproved_application_is_stored_rejected(
        self, mock_db, vendor_user, active_vendor, voucher_store, submission_store
    ):
        voucher_store.add_application(voucher_code=CODE, status=ScholarshipStatus.PENDING)

        submission, verification = await submit_voucher(mock_db, vendor_user, CODE)

        assert verification.valid is False
        assert submission.status == SubmissionStatus.REJECTED
        assert submission.verification_status == VerificationStatus.INVALID

    @pytest.mark.asyncio
    async def test_unknown_code_is_stored_rejected(
        self, mock_db, vendor_user, active_vendor, voucher_store, submission_store
    ):
        submission, verification = await submit_voucher(mock_db, vendor_user, CODE)

        assert verification.verification_status == VerificationStatus.NOT_FOUND
        assert submission.status == SubmissionStatus.REJECTED
        assert submission.verification_status == VerificationStatus.NOT_FOUND
        assert submission.voucher_id is None

    @pytest.mark.asyncio
    async def test_used_voucher_is_stored_rejected(
        self, mock_db, vendor_user, active_vendor, voucher_store, submission_store
    ):
        voucher_store.add_voucher(voucher_code=CODE, status=VoucherStatus.USED)

        submission, _ = await submit_voucher(mock_db, vendor_user, CODE)

        assert submission.status == SubmissionStatus.REJECTED
        assert submission.verification_status == VerificationStatus.INVALID

    @pytest.mark.asyncio
    async def test_empty_code_stores_nothing(
        self, mock_db, vendor_user, active_vendor, voucher_store, submission_store
    ):
        with pytest.raises(InvalidVoucherCodeError):
            await submit_voucher(mock_db, vendor_user, "   ")

        assert submission_store.submissions == []
        mock_db.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_verification_failure_stores_nothing(
        self, mock_db, vendor_user, active_vendor, voucher_store, submission_store
    ):
        voucher_store.fail_with = OperationalError("SELECT 1", {}, Exception("timeout"))

        with pytest.raises(VerificationUnavailableError):
            await submit_voucher(mock_db, vendor_user, CODE)

        assert submission_store.submissions == []
        mock_db.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_inactive_vendor_is_refused(
        self, mock_db, vendor_user, voucher_store, submission_store, monkeypatch
    ):
        signup = SimpleNamespace(status=VendorSignupStatus.SUBMITTED)
        monkeypatch.setattr(
            signup_repository, "get_vendor_signup_by_user", AsyncMock(return_value=signup)
        )

        with pytest.raises(VendorNotActiveError):
            await submit_voucher(mock_db, vendor_user, CODE)

        assert submission_store.submissions == []

    @pytest.mark.asyncio
    async def test_resubmitting_open_code_is_duplicate(
        self, mock_db, vendor_user, active_vendor, voucher_store, submission_store
    ):
        _active_voucher(voucher_store)
        await submit_voucher(mock_db, vendor_user, CODE)

        with pytest.raises(DuplicateSubmissionError) as exc_info:
            await submit_voucher(mock_db, vendor_user, CODE.lower())

        assert exc_info.value.status_code == 409
        assert len(submission_store.submissions) == 1

    @pytest.mark.asyncio
    async def test_rejected_submission_does_not_block_resubmission(
        self, mock_db, vendor_user, active_vendor, voucher_store, submission_store
    ):
        first, _ = await submit_voucher(mock_db, vendor_user, CODE)
        assert first.status == SubmissionStatus.REJECTED

        _active_voucher(voucher_store)
        second, _ = await submit_voucher(mock_db, vendor_user, CODE)

        assert second.status == SubmissionStatus.PENDING
        assert len(submission_store.submissions) == 2

    @pytest.mark.asyncio
    async def test_concurrent_insert_maps_to_duplicate(
        self, mock_db, vendor_user, active_vendor, voucher_store, submission_store
    ):
        _active_voucher(voucher_store)
        mock_db.commit.side_effect = IntegrityError("INSERT", {}, Exception("unique violation"))

        with pytest.raises(DuplicateSubmissionError):
            await submit_voucher(mock_db, vendor_user, CODE)

        mock_db.rollback.assert_awaited_once()


# ============================================
# Admin decisions
# ============================================


class TestAdminDecisions:
    @pytest.mark.asyncio
    async def test_approve_redeems_voucher(
        self,
        mock_db,
        admin_user,
        vendor_user,
        active_vendor,
        voucher_store,
        submission_store,
        voucher_lookup,
        redemption_email,
    ):
        voucher = _active_voucher(voucher_store)
        submission, _ = await submit_voucher(mock_db, vendor_user, CODE)
        mock_db.commit.reset_mock()

        result = await admin_approve_submission(
            mock_db, submission.id, admin_user.id, notes="Delivered"
        )

        assert result["submission"].status == SubmissionStatus.APPROVED
        assert result["submission"].reviewed_by == admin_user.id
        assert result["submission"].review_notes == "Delivered"
        # The stored verification outcome is never recomputed
        assert result["submission"].verification_status == VerificationStatus.VALID
        assert voucher.status == VoucherStatus.USED
        assert voucher.redeemed_by == vendor_user.id
        assert voucher.used_at is not None
        mock_db.commit.assert_awaited_once()
        assert redemption_email.call_args.kwargs["approved"] is True
        assert result["warnings"] == []

    @pytest.mark.asyncio
    async def test_approved_submission_keeps_code_claimed(
        self,
        mock_db,
        admin_user,
        vendor_user,
        active_vendor,
        voucher_store,
        submission_store,
        voucher_lookup,
        redemption_email,
    ):
        _active_voucher(voucher_store)
        submission, _ = await submit_voucher(mock_db, vendor_user, CODE)
        await admin_approve_submission(mock_db, submission.id, admin_user.id)

        with pytest.raises(DuplicateSubmissionError):
            await submit_voucher(mock_db, vendor_user, CODE)

    @pytest.mark.asyncio
    async def test_approve_without_voucher_row_is_refused(
        self,
        mock_db,
        admin_user,
        vendor_user,
        active_vendor,
        voucher_store,
        submission_store,
        voucher_lookup,
        redemption_email,
    ):
        # Approved application whose voucher row is missing until reconciliation repairs it
        voucher_store.add_application(voucher_code=CODE, voucher_amount=Decimal("500.00"))
        submission, _ = await submit_voucher(mock_db, vendor_user, CODE)
        assert submission.status == SubmissionStatus.PENDING

        with pytest.raises(VoucherNotFoundError) as exc_info:
            await admin_approve_submission(mock_db, submission.id, admin_user.id)

        assert exc_info.value.status_code == 404
        mock_db.rollback.assert_awaited_once()
        assert submission.status == SubmissionStatus.PENDING
        redemption_email.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_approve_voucher_cancelled_meanwhile_rolls_back(
        self,
        mock_db,
        admin_user,
        vendor_user,
        active_vendor,
        voucher_store,
        submission_store,
        voucher_lookup,
        redemption_email,
    ):
        voucher = _active_voucher(voucher_store)
        submission, _ = await submit_voucher(mock_db, vendor_user, CODE)
        voucher.status = VoucherStatus.CANCELLED

        with pytest.raises(CannotChangeVoucherError):
            await admin_approve_submission(mock_db, submission.id, admin_user.id)

        mock_db.rollback.assert_awaited_once()
        assert submission.status == SubmissionStatus.PENDING
        redemption_email.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_approve_rejected_submission_is_refused(
        self,
        mock_db,
        admin_user,
        vendor_user,
        active_vendor,
        voucher_store,
        submission_store,
        voucher_lookup,
    ):
        submission, _ = await submit_voucher(mock_db, vendor_user, CODE)

        with pytest.raises(CannotDecideSubmissionError) as exc_info:
            await admin_approve_submission(mock_db, submission.id, admin_user.id)

        assert exc_info.value.status_code == 409

    @pytest.mark.asyncio
    async def test_approve_missing_submission(self, mock_db, admin_user, submission_store):
        with pytest.raises(SubmissionNotFoundError):
            await admin_approve_submission(mock_db, uuid4(), admin_user.id)

    @pytest.mark.asyncio
    async def test_reject_leaves_voucher_active(
        self,
        mock_db,
        admin_user,
        vendor_user,
        active_vendor,
        voucher_store,
        submission_store,
        redemption_email,
    ):
        voucher = _active_voucher(voucher_store)
        submission, _ = await submit_voucher(mock_db, vendor_user, CODE)

        result = await admin_reject_submission(
            mock_db, submission.id, admin_user.id, notes="Wrong vendor"
        )

        assert result["submission"].status == SubmissionStatus.REJECTED
        assert result["submission"].verification_status == VerificationStatus.VALID
        assert voucher.status == VoucherStatus.ACTIVE
        assert redemption_email.call_args.kwargs["approved"] is False

    @pytest.mark.asyncio
    async def test_reject_without_vendor_contact_warns(
        self,
        mock_db,
        admin_user,
        vendor_user,
        active_vendor,
        voucher_store,
        submission_store,
        redemption_email,
        monkeypatch,
    ):
        _active_voucher(voucher_store)
        submission, _ = await submit_voucher(mock_db, vendor_user, CODE)
        monkeypatch.setattr(
            signup_repository, "get_vendor_signup_by_user", AsyncMock(return_value=None)
        )

        result = await admin_reject_submission(mock_db, submission.id, admin_user.id)

        assert result["warnings"] == ["No vendor contact on file; decision email was not sent."]
        redemption_email.assert_not_awaited()


class TestStatusTransitions:
    def test_open_statuses_hold_the_code(self):
        assert SubmissionStatus.PENDING in repository.OPEN_STATUSES
        assert SubmissionStatus.APPROVED in repository.OPEN_STATUSES
        assert SubmissionStatus.REJECTED not in repository.OPEN_STATUSES

    def test_decisions_are_final(self):
        assert repository.VALID_STATUS_TRANSITIONS[SubmissionStatus.APPROVED] == set()
        assert repository.VALID_STATUS_TRANSITIONS[SubmissionStatus.REJECTED] == set()
