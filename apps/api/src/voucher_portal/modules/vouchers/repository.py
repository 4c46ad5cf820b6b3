"""
Vouchers Repository

Database operations for vouchers, the voucher code registry, and the
code lookups used by issuance, verification and reconciliation.

Repository functions flush but never commit: the calling service owns the
transaction so that a code reservation, the voucher row and the origin
record update are committed together.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import and_, desc, exists, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from voucher_portal.modules.scholarships.models import ScholarshipApplication, ScholarshipStatus
from voucher_portal.modules.voucher_requests.models import VoucherRequest

from .models import Voucher, VoucherCode, VoucherCodeSource, VoucherStatus


class VoucherCodeConflictError(Exception):
    """Raised when a code is already reserved in the registry."""

    def __init__(self, code: str):
        self.code = code
        super().__init__(f"Voucher code {code} is already reserved")


# Valid status transitions; used, expired and cancelled are terminal
VALID_STATUS_TRANSITIONS: dict[VoucherStatus, set[VoucherStatus]] = {
    VoucherStatus.ACTIVE: {
        VoucherStatus.USED,
        VoucherStatus.EXPIRED,
        VoucherStatus.CANCELLED,
    },
    VoucherStatus.USED: set(),
    VoucherStatus.EXPIRED: set(),
    VoucherStatus.CANCELLED: set(),
}


class InvalidStatusTransitionError(ValueError):
    """Raised when an invalid voucher status transition is attempted."""

    def __init__(self, current_status: VoucherStatus, new_status: VoucherStatus):
        self.current_status = current_status
        self.new_status = new_status
        valid_transitions = VALID_STATUS_TRANSITIONS.get(current_status, set())
        super().__init__(
            f"Invalid status transition: {current_status.value} -> {new_status.value}. "
            f"Valid transitions: {[s.value for s in valid_transitions]}"
        )


# ============================================
# Code registry
# ============================================


async def voucher_code_exists(db: AsyncSession, code: str) -> bool:
    """
    Report whether any record already carries the code.

    Checks the registry, scholarship applications and vouchers in one query.
    """
    stmt = select(
        or_(
            exists().where(VoucherCode.code == code),
            exists().where(ScholarshipApplication.voucher_code == code),
            exists().where(Voucher.voucher_code == code),
        )
    )
    result = await db.execute(stmt)
    return bool(result.scalar())


async def reserve_voucher_code(
    db: AsyncSession,
    code: str,
    source: VoucherCodeSource,
    record_id: UUID,
) -> VoucherCode:
    """
    Insert the code into the registry inside a savepoint.

    Raises:
        VoucherCodeConflictError: If the code is already reserved
    """
    entry = VoucherCode(code=code, source=source, record_id=record_id)
    try:
        async with db.begin_nested():
            db.add(entry)
            await db.flush()
    except IntegrityError as e:
        raise VoucherCodeConflictError(code) from e
    return entry


async def get_registry_entry(db: AsyncSession, code: str) -> VoucherCode | None:
    return await db.get(VoucherCode, code)


# ============================================
# Vouchers
# ============================================


async def create_voucher(
    db: AsyncSession,
    *,
    voucher_code: str,
    school_id: UUID,
    amount: Decimal,
    purpose: str,
    created_by: UUID,
    application_id: UUID | None = None,
    voucher_request_id: UUID | None = None,
    expires_at: datetime | None = None,
) -> Voucher:
    """Add a new active voucher to the session and flush it."""
    voucher = Voucher(
        voucher_code=voucher_code,
        school_id=school_id,
        amount=amount,
        purpose=purpose,
        status=VoucherStatus.ACTIVE,
        created_by=created_by,
        application_id=application_id,
        voucher_request_id=voucher_request_id,
        expires_at=expires_at,
    )
    db.add(voucher)
    await db.flush()
    return voucher


async def get_by_id(db: AsyncSession, id: UUID) -> Voucher | None:
    """Get voucher by ID."""
    return await db.get(Voucher, id)


async def get_vouchers_for_school(db: AsyncSession, school_id: UUID) -> list[Voucher]:
    """All vouchers owned by a school, newest first."""
    result = await db.execute(
        select(Voucher).where(Voucher.school_id == school_id).order_by(desc(Voucher.created_at))
    )
    return list(result.scalars().all())


async def get_vouchers_for_admin(
    db: AsyncSession,
    *,
    status: VoucherStatus | None = None,
    search: str | None = None,
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[Voucher], int]:
    """
    Get vouchers with filters and pagination for the admin dashboard.

    Returns:
        Tuple of (vouchers, total count matching filters)
    """
    query = select(Voucher)

    if status:
        query = query.where(Voucher.status == status)

    if search:
        search_pattern = f"%{search}%"
        query = query.where(
            or_(
                Voucher.voucher_code.ilike(search_pattern),
                Voucher.purpose.ilike(search_pattern),
            )
        )

    total_result = await db.execute(select(func.count()).select_from(query.subquery()))
    total = total_result.scalar() or 0

    query = query.order_by(desc(Voucher.created_at)).offset(skip).limit(limit)
    result = await db.execute(query)

    return list(result.scalars().all()), total


async def update_voucher_status(
    db: AsyncSession,
    voucher: Voucher,
    status: VoucherStatus,
    **kwargs,
) -> Voucher:
    """
    Move a voucher to a new status, validated against the state machine.

    Raises:
        InvalidStatusTransitionError: If the transition is not allowed
    """
    current_status = voucher.status
    if status != current_status and status not in VALID_STATUS_TRANSITIONS.get(
        current_status, set()
    ):
        raise InvalidStatusTransitionError(current_status, status)

    voucher.status = status
    for key, value in kwargs.items():
        if hasattr(voucher, key):
            setattr(voucher, key, value)

    await db.flush()
    return voucher


async def get_active_vouchers_expired_before(db: AsyncSession, now: datetime) -> list[Voucher]:
    """Active vouchers whose expires_at has passed."""
    result = await db.execute(
        select(Voucher).where(
            and_(
                Voucher.status == VoucherStatus.ACTIVE,
                Voucher.expires_at.is_not(None),
                Voucher.expires_at < now,
            )
        )
    )
    return list(result.scalars().all())


# ============================================
# Verification lookups
# ============================================


async def get_applications_by_code(db: AsyncSession, code: str) -> list[ScholarshipApplication]:
    result = await db.execute(
        select(ScholarshipApplication).where(ScholarshipApplication.voucher_code == code)
    )
    return list(result.scalars().all())


async def get_applications_by_code_ci(
    db: AsyncSession, code: str
) -> list[ScholarshipApplication]:
    """Case-insensitive variant of get_applications_by_code."""
    result = await db.execute(
        select(ScholarshipApplication).where(
            func.upper(ScholarshipApplication.voucher_code) == code.upper()
        )
    )
    return list(result.scalars().all())


async def get_vouchers_by_code(db: AsyncSession, code: str) -> list[Voucher]:
    result = await db.execute(select(Voucher).where(Voucher.voucher_code == code))
    return list(result.scalars().all())


async def get_vouchers_by_code_ci(db: AsyncSession, code: str) -> list[Voucher]:
    """Case-insensitive variant of get_vouchers_by_code."""
    result = await db.execute(
        select(Voucher).where(func.upper(Voucher.voucher_code) == code.upper())
    )
    return list(result.scalars().all())


async def get_approved_application_by_code(
    db: AsyncSession, code: str
) -> ScholarshipApplication | None:
    """The approved application carrying the code, if any (case-insensitive)."""
    result = await db.execute(
        select(ScholarshipApplication).where(
            func.upper(ScholarshipApplication.voucher_code) == code.upper(),
            ScholarshipApplication.status == ScholarshipStatus.APPROVED,
        )
    )
    return result.scalars().first()


# ============================================
# Reconciliation queries
# ============================================


async def get_approved_applications_missing_voucher(
    db: AsyncSession,
) -> list[ScholarshipApplication]:
    """
    Approved applications with an amount and a code but no voucher row.

    Applications approved without an amount never get a code and are skipped.
    """
    result = await db.execute(
        select(ScholarshipApplication).where(
            ScholarshipApplication.status == ScholarshipStatus.APPROVED,
            ScholarshipApplication.voucher_code.is_not(None),
            ScholarshipApplication.voucher_amount.is_not(None),
            ~exists().where(Voucher.voucher_code == ScholarshipApplication.voucher_code),
        )
    )
    return list(result.scalars().all())


async def get_vouchers_with_mismatched_origin(db: AsyncSession) -> list[Voucher]:
    """
    Vouchers whose origin record does not point back at them.

    - application origin: the application's voucher_code differs
    - voucher request origin: the request's voucher_id differs
    """
    application_mismatch = select(Voucher).join(
        ScholarshipApplication, ScholarshipApplication.id == Voucher.application_id
    ).where(ScholarshipApplication.voucher_code.is_distinct_from(Voucher.voucher_code))

    request_mismatch = select(Voucher).join(
        VoucherRequest, VoucherRequest.id == Voucher.voucher_request_id
    ).where(VoucherRequest.voucher_id.is_distinct_from(Voucher.id))

    vouchers: list[Voucher] = []
    for query in (application_mismatch, request_mismatch):
        result = await db.execute(query)
        vouchers.extend(result.scalars().all())
    return vouchers


async def get_orphan_registry_entries(db: AsyncSession) -> list[VoucherCode]:
    """Registry entries whose code appears on no application and no voucher."""
    result = await db.execute(
        select(VoucherCode).where(
            ~exists().where(ScholarshipApplication.voucher_code == VoucherCode.code),
            ~exists().where(Voucher.voucher_code == VoucherCode.code),
        )
    )
    return list(result.scalars().all())
