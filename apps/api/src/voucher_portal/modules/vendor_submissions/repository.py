"""
Vendor Submissions Repository

Functions flush but never commit.
"""

from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from voucher_portal.modules.vouchers.models import VerificationStatus

from .models import SubmissionStatus, VendorVoucherSubmission

# Statuses that hold a claim on a code
OPEN_STATUSES = (SubmissionStatus.PENDING, SubmissionStatus.APPROVED)

VALID_STATUS_TRANSITIONS: dict[SubmissionStatus, set[SubmissionStatus]] = {
    SubmissionStatus.PENDING: {SubmissionStatus.APPROVED, SubmissionStatus.REJECTED},
    SubmissionStatus.APPROVED: set(),
    SubmissionStatus.REJECTED: set(),
}


class InvalidStatusTransitionError(ValueError):
    def __init__(self, current_status: SubmissionStatus, new_status: SubmissionStatus):
        self.current_status = current_status
        self.new_status = new_status
        super().__init__(
            f"Invalid status transition: {current_status.value} -> {new_status.value}"
        )


async def create(
    db: AsyncSession,
    *,
    vendor_id: UUID,
    voucher_code: str,
    status: SubmissionStatus,
    verification_status: VerificationStatus,
    voucher_application_id: UUID | None = None,
    voucher_id: UUID | None = None,
) -> VendorVoucherSubmission:
    submission = VendorVoucherSubmission(
        vendor_id=vendor_id,
        voucher_code=voucher_code,
        status=status,
        verification_status=verification_status,
        voucher_application_id=voucher_application_id,
        voucher_id=voucher_id,
    )
    db.add(submission)
    await db.flush()
    return submission


async def get_by_id_for_update(db: AsyncSession, id: UUID) -> VendorVoucherSubmission | None:
    result = await db.execute(
        select(VendorVoucherSubmission)
        .where(VendorVoucherSubmission.id == id)
        .with_for_update()
    )
    return result.scalar_one_or_none()


async def get_open_submission_by_code(
    db: AsyncSession, voucher_code: str
) -> VendorVoucherSubmission | None:
    """A pending or approved submission for the code, if one exists."""
    result = await db.execute(
        select(VendorVoucherSubmission).where(
            VendorVoucherSubmission.voucher_code == voucher_code,
            VendorVoucherSubmission.status.in_(OPEN_STATUSES),
        )
    )
    return result.scalars().first()


async def get_for_vendor(db: AsyncSession, vendor_id: UUID) -> list[VendorVoucherSubmission]:
    result = await db.execute(
        select(VendorVoucherSubmission)
        .where(VendorVoucherSubmission.vendor_id == vendor_id)
        .order_by(desc(VendorVoucherSubmission.created_at))
    )
    return list(result.scalars().all())


async def get_submissions_for_admin(
    db: AsyncSession,
    *,
    status: SubmissionStatus | None = None,
    search: str | None = None,
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[VendorVoucherSubmission], int]:
    query = select(VendorVoucherSubmission)

    if status:
        query = query.where(VendorVoucherSubmission.status == status)

    if search:
        query = query.where(VendorVoucherSubmission.voucher_code.ilike(f"%{search}%"))

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar() or 0

    result = await db.execute(
        query.order_by(desc(VendorVoucherSubmission.created_at)).offset(skip).limit(limit)
    )
    return list(result.scalars().all()), total


async def update_submission_decision(
    db: AsyncSession,
    submission: VendorVoucherSubmission,
    status: SubmissionStatus,
    *,
    reviewed_by: UUID,
    review_notes: str | None = None,
    **kwargs,
) -> VendorVoucherSubmission:
    """
    Record an admin decision. verification_status is never touched.

    Raises:
        InvalidStatusTransitionError: If the transition is not allowed
    """
    current_status = submission.status
    if status not in VALID_STATUS_TRANSITIONS.get(current_status, set()):
        raise InvalidStatusTransitionError(current_status, status)

    submission.status = status
    submission.reviewed_by = reviewed_by
    submission.reviewed_at = datetime.now(UTC)
    submission.review_notes = review_notes

    for key, value in kwargs.items():
        if key != "verification_status" and hasattr(submission, key):
            setattr(submission, key, value)

    await db.flush()
    return submission
