"""
Scholarship Applications Repository

Database operations for scholarship applications.
Functions flush but never commit; the service owns the transaction.
"""

from datetime import UTC, datetime, timedelta
from uuid import UUID

from sqlalchemy import and_, case, desc, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import ScholarshipApplication, ScholarshipStatus
from .schemas import ScholarshipApplicationCreate


async def create(
    db: AsyncSession,
    data: ScholarshipApplicationCreate,
    *,
    school_user_id: UUID,
    submitted_by: UUID,
    school_name: str,
) -> ScholarshipApplication:
    """Add a new pending application to the session."""
    application = ScholarshipApplication(
        student_name=data.student_name,
        email=data.email,
        phone=data.phone,
        grade_level=data.grade_level,
        school_name=data.school_name or school_name,
        district=data.district,
        country=data.country,
        program_type=data.program_type,
        student_count=data.student_count,
        financial_need_description=data.financial_need_description,
        academic_goals=data.academic_goals,
        voucher_amount=data.voucher_amount,
        school_user_id=school_user_id,
        submitted_by=submitted_by,
        status=ScholarshipStatus.PENDING,
    )
    db.add(application)
    await db.flush()
    return application


async def get_by_id(db: AsyncSession, id: UUID) -> ScholarshipApplication | None:
    """Get application by ID."""
    return await db.get(ScholarshipApplication, id)


async def get_by_id_for_update(db: AsyncSession, id: UUID) -> ScholarshipApplication | None:
    """Get application by ID and lock its row until the transaction ends."""
    result = await db.execute(
        select(ScholarshipApplication).where(ScholarshipApplication.id == id).with_for_update()
    )
    return result.scalar_one_or_none()


async def get_for_school(db: AsyncSession, school_user_id: UUID) -> list[ScholarshipApplication]:
    """All applications of one school, newest first."""
    result = await db.execute(
        select(ScholarshipApplication)
        .where(ScholarshipApplication.school_user_id == school_user_id)
        .order_by(desc(ScholarshipApplication.applied_at))
    )
    return list(result.scalars().all())


# Valid status transitions; approved and rejected are terminal
VALID_STATUS_TRANSITIONS: dict[ScholarshipStatus, set[ScholarshipStatus]] = {
    ScholarshipStatus.PENDING: {
        ScholarshipStatus.APPROVED,
        ScholarshipStatus.REJECTED,
    },
    ScholarshipStatus.APPROVED: set(),
    ScholarshipStatus.REJECTED: set(),
}


class InvalidStatusTransitionError(ValueError):
    """Raised when an invalid status transition is attempted."""

    def __init__(self, current_status: ScholarshipStatus, new_status: ScholarshipStatus):
        self.current_status = current_status
        self.new_status = new_status
        valid_transitions = VALID_STATUS_TRANSITIONS.get(current_status, set())
        super().__init__(
            f"Invalid status transition: {current_status.value} -> {new_status.value}. "
            f"Valid transitions: {[s.value for s in valid_transitions]}"
        )


async def update_application_decision(
    db: AsyncSession,
    application: ScholarshipApplication,
    status: ScholarshipStatus,
    *,
    reviewed_by: UUID,
    **kwargs,
) -> ScholarshipApplication:
    """
    Record an admin decision on an application.

    Validates the transition, stamps reviewed_by/reviewed_at and applies any
    extra fields (voucher_code, voucher_amount, notes).

    Raises:
        InvalidStatusTransitionError: If the transition is not allowed
        ValueError: If a voucher code would be set on a non-approved application
    """
    current_status = application.status
    if status not in VALID_STATUS_TRANSITIONS.get(current_status, set()):
        raise InvalidStatusTransitionError(current_status, status)

    if kwargs.get("voucher_code") and status != ScholarshipStatus.APPROVED:
        raise ValueError("A voucher code can only be set on an approved application")

    application.status = status
    application.reviewed_by = reviewed_by
    application.reviewed_at = datetime.now(UTC)

    for key, value in kwargs.items():
        if hasattr(application, key):
            setattr(application, key, value)

    await db.flush()
    return application


async def get_applications_for_admin(
    db: AsyncSession,
    *,
    status: ScholarshipStatus | None = None,
    search: str | None = None,
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[ScholarshipApplication], int]:
    """
    Get applications with filters and pagination, newest first.

    search matches student name, email, school name and voucher code
    (case-insensitive).

    Returns:
        Tuple of (applications, total count matching filters)
    """
    query = select(ScholarshipApplication)

    if status:
        query = query.where(ScholarshipApplication.status == status)

    if search:
        search_pattern = f"%{search}%"
        query = query.where(
            or_(
                ScholarshipApplication.student_name.ilike(search_pattern),
                ScholarshipApplication.email.ilike(search_pattern),
                ScholarshipApplication.school_name.ilike(search_pattern),
                ScholarshipApplication.voucher_code.ilike(search_pattern),
            )
        )

    total_result = await db.execute(select(func.count()).select_from(query.subquery()))
    total = total_result.scalar() or 0

    query = query.order_by(desc(ScholarshipApplication.applied_at)).offset(skip).limit(limit)
    result = await db.execute(query)

    return list(result.scalars().all()), total


async def get_dashboard_stats(db: AsyncSession) -> dict:
    """
    Aggregate counts for the admin dashboard in a single query.

    Returns:
        Dict with pending, approved, rejected, total, approved_this_week,
        total_awarded
    """
    week_ago = datetime.now(UTC) - timedelta(days=7)
    approved = ScholarshipApplication.status == ScholarshipStatus.APPROVED

    query = select(
        func.count(case((ScholarshipApplication.status == ScholarshipStatus.PENDING, 1))).label(
            "pending"
        ),
        func.count(case((approved, 1))).label("approved"),
        func.count(case((ScholarshipApplication.status == ScholarshipStatus.REJECTED, 1))).label(
            "rejected"
        ),
        func.count(ScholarshipApplication.id).label("total"),
        func.count(
            case((and_(approved, ScholarshipApplication.reviewed_at >= week_ago), 1))
        ).label("approved_this_week"),
        func.coalesce(
            func.sum(case((approved, ScholarshipApplication.voucher_amount))), 0
        ).label("total_awarded"),
    )

    row = (await db.execute(query)).one()

    return {
        "pending": row.pending,
        "approved": row.approved,
        "rejected": row.rejected,
        "total": row.total,
        "approved_this_week": row.approved_this_week,
        "total_awarded": float(row.total_awarded),
    }
