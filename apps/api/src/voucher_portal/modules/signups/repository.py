"""
Signups Repository

Database operations for school and vendor signups, including the status
state machines that constrain admin transitions.
Functions flush but never commit.
"""

import enum
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import desc, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import SchoolSignup, SchoolSignupStatus, VendorSignup, VendorSignupStatus
from .schemas import SchoolSignupCreate, VendorSignupCreate

SCHOOL_STATUS_TRANSITIONS: dict[SchoolSignupStatus, set[SchoolSignupStatus]] = {
    SchoolSignupStatus.PENDING: {
        SchoolSignupStatus.APPROVED,
        SchoolSignupStatus.REJECTED,
        SchoolSignupStatus.WAITLISTED,
    },
    SchoolSignupStatus.WAITLISTED: {
        SchoolSignupStatus.APPROVED,
        SchoolSignupStatus.REJECTED,
    },
    SchoolSignupStatus.APPROVED: set(),
    SchoolSignupStatus.REJECTED: set(),
}

VENDOR_STATUS_TRANSITIONS: dict[VendorSignupStatus, set[VendorSignupStatus]] = {
    VendorSignupStatus.SUBMITTED: {
        VendorSignupStatus.UNDER_REVIEW,
        VendorSignupStatus.APPROVED,
        VendorSignupStatus.REJECTED,
    },
    VendorSignupStatus.UNDER_REVIEW: {
        VendorSignupStatus.APPROVED,
        VendorSignupStatus.REJECTED,
    },
    VendorSignupStatus.APPROVED: {
        VendorSignupStatus.ACTIVE,
        VendorSignupStatus.SUSPENDED,
    },
    VendorSignupStatus.ACTIVE: {
        VendorSignupStatus.SUSPENDED,
    },
    VendorSignupStatus.SUSPENDED: {
        VendorSignupStatus.ACTIVE,
        VendorSignupStatus.REJECTED,
    },
    VendorSignupStatus.REJECTED: set(),
}


class InvalidStatusTransitionError(ValueError):
    """Raised when an invalid signup status transition is attempted."""

    def __init__(self, current_status: enum.Enum, new_status: enum.Enum, valid: set):
        self.current_status = current_status
        self.new_status = new_status
        super().__init__(
            f"Invalid status transition: {current_status.value} -> {new_status.value}. "
            f"Valid transitions: {sorted(s.value for s in valid)}"
        )


def _apply_decision(signup, status, transitions: dict, reviewed_by: UUID, notes: str | None):
    valid = transitions.get(signup.status, set())
    if status not in valid:
        raise InvalidStatusTransitionError(signup.status, status, valid)

    signup.status = status
    signup.reviewed_by = reviewed_by
    signup.reviewed_at = datetime.now(UTC)
    if notes is not None:
        signup.review_notes = notes


# ============================================
# School signups
# ============================================


async def create_school_signup(
    db: AsyncSession, *, user_id: UUID, email: str, data: SchoolSignupCreate
) -> SchoolSignup:
    signup = SchoolSignup(
        user_id=user_id,
        email=email,
        status=SchoolSignupStatus.PENDING,
        **data.model_dump(exclude={"email"}),
    )
    db.add(signup)
    await db.flush()
    return signup


async def get_school_signup(db: AsyncSession, id: UUID) -> SchoolSignup | None:
    return await db.get(SchoolSignup, id)


async def get_school_signup_by_user(db: AsyncSession, user_id: UUID) -> SchoolSignup | None:
    result = await db.execute(select(SchoolSignup).where(SchoolSignup.user_id == user_id))
    return result.scalar_one_or_none()


async def list_school_signups(
    db: AsyncSession,
    *,
    status: SchoolSignupStatus | None = None,
    search: str | None = None,
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[SchoolSignup], int]:
    """School signups with filters and pagination, newest first."""
    query = select(SchoolSignup)

    if status:
        query = query.where(SchoolSignup.status == status)

    if search:
        search_pattern = f"%{search}%"
        query = query.where(
            or_(
                SchoolSignup.school_name.ilike(search_pattern),
                SchoolSignup.email.ilike(search_pattern),
                SchoolSignup.contact_name.ilike(search_pattern),
                SchoolSignup.school_district.ilike(search_pattern),
            )
        )

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar() or 0

    result = await db.execute(
        query.order_by(desc(SchoolSignup.created_at)).offset(skip).limit(limit)
    )
    return list(result.scalars().all()), total


async def update_school_signup_status(
    db: AsyncSession,
    signup: SchoolSignup,
    status: SchoolSignupStatus,
    *,
    reviewed_by: UUID,
    notes: str | None = None,
) -> SchoolSignup:
    """
    Raises:
        InvalidStatusTransitionError: If the transition is not allowed
    """
    _apply_decision(signup, status, SCHOOL_STATUS_TRANSITIONS, reviewed_by, notes)
    await db.flush()
    return signup


# ============================================
# Vendor signups
# ============================================


async def create_vendor_signup(
    db: AsyncSession, *, user_id: UUID, email: str, data: VendorSignupCreate
) -> VendorSignup:
    signup = VendorSignup(
        user_id=user_id,
        email=email,
        status=VendorSignupStatus.SUBMITTED,
        risk_flag=False,
        **data.model_dump(exclude={"email"}),
    )
    db.add(signup)
    await db.flush()
    return signup


async def get_vendor_signup(db: AsyncSession, id: UUID) -> VendorSignup | None:
    return await db.get(VendorSignup, id)


async def get_vendor_signup_by_user(db: AsyncSession, user_id: UUID) -> VendorSignup | None:
    result = await db.execute(select(VendorSignup).where(VendorSignup.user_id == user_id))
    return result.scalar_one_or_none()


async def list_vendor_signups(
    db: AsyncSession,
    *,
    status: VendorSignupStatus | None = None,
    search: str | None = None,
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[VendorSignup], int]:
    """Vendor signups with filters and pagination, newest first."""
    query = select(VendorSignup)

    if status:
        query = query.where(VendorSignup.status == status)

    if search:
        search_pattern = f"%{search}%"
        query = query.where(
            or_(
                VendorSignup.vendor_name.ilike(search_pattern),
                VendorSignup.email.ilike(search_pattern),
                VendorSignup.contact_name.ilike(search_pattern),
                VendorSignup.country.ilike(search_pattern),
            )
        )

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar() or 0

    result = await db.execute(
        query.order_by(desc(VendorSignup.created_at)).offset(skip).limit(limit)
    )
    return list(result.scalars().all()), total


async def update_vendor_signup_status(
    db: AsyncSession,
    signup: VendorSignup,
    status: VendorSignupStatus,
    *,
    reviewed_by: UUID,
    notes: str | None = None,
    risk_flag: bool | None = None,
) -> VendorSignup:
    """
    Raises:
        InvalidStatusTransitionError: If the transition is not allowed
    """
    _apply_decision(signup, status, VENDOR_STATUS_TRANSITIONS, reviewed_by, notes)
    if risk_flag is not None:
        signup.risk_flag = risk_flag
    await db.flush()
    return signup
