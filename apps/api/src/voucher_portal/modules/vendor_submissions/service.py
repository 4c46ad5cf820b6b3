"""
Vendor Submissions Service Layer

A vendor submits a voucher code it was handed. The code is verified once,
at submission; the outcome is stored with the submission and never
recomputed. Valid codes wait for an admin, whose approval redeems the
voucher. Anything else is stored as rejected for the audit trail.
"""

import logging
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from voucher_portal.core import email as email_service
from voucher_portal.core.auth import CurrentUser
from voucher_portal.modules.shared import (
    NotFoundError,
    ServiceError,
    StoreUnavailableError,
    clamp_pagination,
)
from voucher_portal.modules.signups import repository as signup_repository
from voucher_portal.modules.signups import service as signup_service
from voucher_portal.modules.vendor_submissions import repository
from voucher_portal.modules.vendor_submissions.models import (
    SubmissionStatus,
    VendorVoucherSubmission,
)
from voucher_portal.modules.vouchers import codes
from voucher_portal.modules.vouchers import repository as voucher_repository
from voucher_portal.modules.vouchers import service as voucher_service
from voucher_portal.modules.vouchers.models import VerificationStatus, Voucher, VoucherStatus
from voucher_portal.modules.vouchers.schemas import VoucherVerificationResponse

logger = logging.getLogger(__name__)


class DuplicateSubmissionError(ServiceError):
    def __init__(self):
        super().__init__(
            message="This voucher code has already been submitted for redemption.",
            error_code="DUPLICATE_SUBMISSION",
            status_code=409,
        )


class SubmissionNotFoundError(NotFoundError):
    def __init__(self, submission_id: UUID | None = None):
        super().__init__("Submission", submission_id)


class CannotDecideSubmissionError(ServiceError):
    def __init__(self, current_status: str, action: str):
        super().__init__(
            message=f"Cannot {action} submission in status: {current_status}. "
            "Submission must be 'pending'.",
            error_code="CANNOT_DECIDE_SUBMISSION",
            status_code=409,
        )


async def submit_voucher(
    db: AsyncSession, user: CurrentUser, raw_code: str | None
) -> tuple[VendorVoucherSubmission, VoucherVerificationResponse]:
    """
    Verify and record a vendor's redemption claim.

    Raises:
        VendorNotActiveError: If the vendor signup is not approved or active
        InvalidVoucherCodeError: If the code is empty
        VerificationUnavailableError: If verification could not run (nothing is stored)
        DuplicateSubmissionError: If the code already has a pending or approved submission
    """
    await signup_service.require_active_vendor(db, user.id)

    verification = await voucher_service.verify_voucher_code(db, raw_code)
    code = codes.normalize_voucher_code(raw_code or "")

    if await repository.get_open_submission_by_code(db, code):
        logger.warning(f"Vendor {user.id} resubmitted voucher code {code}")
        raise DuplicateSubmissionError()

    valid = verification.verification_status == VerificationStatus.VALID
    # application_id falls back to the voucher id when no application matched
    application_id = (
        verification.application_id
        if verification.application_id != verification.voucher_id
        else None
    )

    try:
        submission = await repository.create(
            db,
            vendor_id=user.id,
            voucher_code=code,
            status=SubmissionStatus.PENDING if valid else SubmissionStatus.REJECTED,
            verification_status=verification.verification_status,
            voucher_application_id=application_id,
            voucher_id=verification.voucher_id,
        )
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        logger.warning(f"Concurrent submission for voucher code {code}: {e}")
        raise DuplicateSubmissionError() from e

    await db.refresh(submission)
    logger.info(
        f"Vendor {user.id} submitted voucher code {code}: "
        f"verification={verification.verification_status.value}, "
        f"status={submission.status.value}"
    )
    return submission, verification


async def get_vendor_submissions(
    db: AsyncSession, vendor_id: UUID
) -> list[VendorVoucherSubmission]:
    return await repository.get_for_vendor(db, vendor_id)


async def admin_get_submissions_list(
    db: AsyncSession,
    *,
    status: SubmissionStatus | None = None,
    search: str | None = None,
    skip: int = 0,
    limit: int = 20,
) -> dict:
    skip, limit = clamp_pagination(skip, limit)
    submissions, total = await repository.get_submissions_for_admin(
        db, status=status, search=search, skip=skip, limit=limit
    )
    return {"submissions": submissions, "total": total, "skip": skip, "limit": limit}


async def _matching_voucher(
    db: AsyncSession, submission: VendorVoucherSubmission
) -> Voucher | None:
    if submission.voucher_id:
        return await voucher_repository.get_by_id(db, submission.voucher_id)
    vouchers = await voucher_repository.get_vouchers_by_code_ci(db, submission.voucher_code)
    return next((v for v in vouchers if v.status == VoucherStatus.ACTIVE), None)


async def _notify_vendor(
    db: AsyncSession, submission: VendorVoucherSubmission, approved: bool, notes: str | None
) -> list[str]:
    signup = await signup_repository.get_vendor_signup_by_user(db, submission.vendor_id)
    if not signup:
        return ["No vendor contact on file; decision email was not sent."]

    try:
        sent = await email_service.send_redemption_decision(
            to_email=signup.email,
            voucher_code=submission.voucher_code,
            approved=approved,
            notes=notes,
        )
    except Exception as e:
        logger.error(f"Failed to send redemption decision email: {e}", exc_info=True)
        sent = False

    if not sent:
        return [f"Decision email could not be sent to {signup.email}."]
    return []


async def admin_approve_submission(
    db: AsyncSession,
    submission_id: UUID,
    admin_id: UUID,
    notes: str | None = None,
) -> dict:
    """
    Approve a pending submission and redeem its voucher in the same transaction.

    Raises:
        SubmissionNotFoundError: If the submission doesn't exist
        CannotDecideSubmissionError: If the submission is not pending
        VoucherNotFoundError: If no voucher row carries the code
        CannotChangeVoucherError: If the voucher is no longer active
    """
    submission = await repository.get_by_id_for_update(db, submission_id)
    if not submission:
        raise SubmissionNotFoundError(submission_id)

    if submission.status != SubmissionStatus.PENDING:
        raise CannotDecideSubmissionError(submission.status.value, "approve")

    try:
        voucher = await _matching_voucher(db, submission)
        if voucher is None:
            logger.warning(
                f"Submission {submission_id} has no voucher row for {submission.voucher_code}"
            )
            raise voucher_service.VoucherNotFoundError()
        await voucher_service.redeem_voucher(db, voucher, redeemed_by=submission.vendor_id)
        await repository.update_submission_decision(
            db,
            submission,
            SubmissionStatus.APPROVED,
            reviewed_by=admin_id,
            review_notes=notes,
            voucher_id=voucher.id,
        )
        await db.commit()
    except ServiceError:
        await db.rollback()
        raise
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Approval of submission {submission_id} failed: {e}", exc_info=True)
        raise StoreUnavailableError() from e

    logger.info(
        f"Admin {admin_id} approved submission {submission_id} for {submission.voucher_code}, "
        f"voucher {voucher.id} redeemed"
    )

    warnings = await _notify_vendor(db, submission, approved=True, notes=notes)
    return {"submission": submission, "voucher": voucher, "warnings": warnings}


async def admin_reject_submission(
    db: AsyncSession,
    submission_id: UUID,
    admin_id: UUID,
    notes: str | None = None,
) -> dict:
    """
    Raises:
        SubmissionNotFoundError: If the submission doesn't exist
        CannotDecideSubmissionError: If the submission is not pending
    """
    submission = await repository.get_by_id_for_update(db, submission_id)
    if not submission:
        raise SubmissionNotFoundError(submission_id)

    try:
        await repository.update_submission_decision(
            db,
            submission,
            SubmissionStatus.REJECTED,
            reviewed_by=admin_id,
            review_notes=notes,
        )
    except repository.InvalidStatusTransitionError as e:
        raise CannotDecideSubmissionError(e.current_status.value, "reject") from e

    await db.commit()
    logger.info(f"Admin {admin_id} rejected submission {submission_id}")

    warnings = await _notify_vendor(db, submission, approved=False, notes=notes)
    return {"submission": submission, "warnings": warnings}
