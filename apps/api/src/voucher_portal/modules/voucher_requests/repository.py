"""
Voucher Requests Repository

Functions flush but never commit.
"""

from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import VoucherRequest, VoucherRequestStatus
from .schemas import VoucherRequestCreate

VALID_STATUS_TRANSITIONS: dict[VoucherRequestStatus, set[VoucherRequestStatus]] = {
    VoucherRequestStatus.PENDING: {
        VoucherRequestStatus.APPROVED,
        VoucherRequestStatus.REJECTED,
    },
    VoucherRequestStatus.APPROVED: set(),
    VoucherRequestStatus.REJECTED: set(),
}


class InvalidStatusTransitionError(ValueError):
    """Raised when an invalid status transition is attempted."""

    def __init__(self, current_status: VoucherRequestStatus, new_status: VoucherRequestStatus):
        self.current_status = current_status
        self.new_status = new_status
        super().__init__(
            f"Invalid status transition: {current_status.value} -> {new_status.value}"
        )


async def create(db: AsyncSession, data: VoucherRequestCreate, school_id: UUID) -> VoucherRequest:
    voucher_request = VoucherRequest(
        school_id=school_id,
        amount=data.amount,
        purpose=data.purpose,
        description=data.description,
        status=VoucherRequestStatus.PENDING,
    )
    db.add(voucher_request)
    await db.flush()
    return voucher_request


async def get_by_id(db: AsyncSession, id: UUID) -> VoucherRequest | None:
    return await db.get(VoucherRequest, id)


async def get_by_id_for_update(db: AsyncSession, id: UUID) -> VoucherRequest | None:
    """Get request by ID and lock its row until the transaction ends."""
    result = await db.execute(
        select(VoucherRequest).where(VoucherRequest.id == id).with_for_update()
    )
    return result.scalar_one_or_none()


async def get_for_school(db: AsyncSession, school_id: UUID) -> list[VoucherRequest]:
    result = await db.execute(
        select(VoucherRequest)
        .where(VoucherRequest.school_id == school_id)
        .order_by(desc(VoucherRequest.created_at))
    )
    return list(result.scalars().all())


async def get_requests_for_admin(
    db: AsyncSession,
    *,
    status: VoucherRequestStatus | None = None,
    search: str | None = None,
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[VoucherRequest], int]:
    """Requests with filters and pagination, newest first. search matches purpose."""
    query = select(VoucherRequest)

    if status:
        query = query.where(VoucherRequest.status == status)

    if search:
        query = query.where(VoucherRequest.purpose.ilike(f"%{search}%"))

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar() or 0

    result = await db.execute(
        query.order_by(desc(VoucherRequest.created_at)).offset(skip).limit(limit)
    )
    return list(result.scalars().all()), total


async def update_request_decision(
    db: AsyncSession,
    voucher_request: VoucherRequest,
    status: VoucherRequestStatus,
    *,
    reviewed_by: UUID,
    **kwargs,
) -> VoucherRequest:
    """
    Raises:
        InvalidStatusTransitionError: If the transition is not allowed
    """
    current_status = voucher_request.status
    if status not in VALID_STATUS_TRANSITIONS.get(current_status, set()):
        raise InvalidStatusTransitionError(current_status, status)

    voucher_request.status = status
    voucher_request.reviewed_by = reviewed_by
    voucher_request.reviewed_at = datetime.now(UTC)

    for key, value in kwargs.items():
        if hasattr(voucher_request, key):
            setattr(voucher_request, key, value)

    await db.flush()
    return voucher_request
