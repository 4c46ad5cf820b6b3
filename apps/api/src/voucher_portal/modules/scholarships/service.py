"""
Scholarship Applications Service Layer

Business logic for scholarship applications.

1. Submission (school role):
   - The school's signup must be approved
   - Applications start as pending

2. Admin approval:
   - Lock the application row and check it is still pending
   - Issue a unique voucher code (registry reservation)
   - Record the decision and the code on the application
   - Create the matching voucher when the application carries an amount
   - Commit all of the above as one transaction
   - Send the approval email; a failure becomes a warning

3. Admin rejection:
   - Record the decision and reason, then notify the applicant
"""

import logging
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from voucher_portal.core import email as email_service
from voucher_portal.core.auth import CurrentUser
from voucher_portal.modules.scholarships import repository
from voucher_portal.modules.scholarships.models import ScholarshipApplication, ScholarshipStatus
from voucher_portal.modules.scholarships.schemas import (
    ApproveScholarshipRequest,
    ScholarshipApplicationCreate,
)
from voucher_portal.modules.shared import (
    NotFoundError,
    ServiceError,
    StoreUnavailableError,
    clamp_pagination,
)
from voucher_portal.modules.signups import service as signup_service
from voucher_portal.modules.vouchers import repository as voucher_repository
from voucher_portal.modules.vouchers import service as voucher_service
from voucher_portal.modules.vouchers.models import VoucherCodeSource

logger = logging.getLogger(__name__)


class ScholarshipNotFoundError(NotFoundError):
    def __init__(self, application_id: UUID | None = None):
        super().__init__("Application", application_id)


class CannotDecideScholarshipError(ServiceError):
    """Raised when an application is no longer pending."""

    def __init__(self, current_status: str, action: str):
        super().__init__(
            message=f"Cannot {action} application in status: {current_status}. "
            "Application must be 'pending'.",
            error_code="CANNOT_DECIDE_APPLICATION",
            status_code=409,
        )


# ============================================
# School-facing operations
# ============================================


async def submit_application(
    db: AsyncSession,
    user: CurrentUser,
    data: ScholarshipApplicationCreate,
) -> ScholarshipApplication:
    """
    Create a pending application for the calling school.

    Raises:
        SchoolNotApprovedError: If the school's signup is not approved
    """
    school = await signup_service.require_approved_school(db, user.id)

    application = await repository.create(
        db,
        data,
        school_user_id=user.id,
        submitted_by=user.id,
        school_name=school.school_name,
    )
    await db.commit()
    await db.refresh(application)

    logger.info(
        f"School {user.id} submitted scholarship application {application.id} "
        f"for {application.student_name}"
    )
    return application


async def get_school_applications(
    db: AsyncSession, school_user_id: UUID
) -> list[ScholarshipApplication]:
    return await repository.get_for_school(db, school_user_id)


# ============================================
# Admin operations
# ============================================


async def admin_get_applications_list(
    db: AsyncSession,
    *,
    status: ScholarshipStatus | None = None,
    search: str | None = None,
    skip: int = 0,
    limit: int = 20,
) -> dict:
    """
    Paginated application list for the admin dashboard.

    Returns:
        Dict with applications list, total count, skip, and limit
    """
    skip, limit = clamp_pagination(skip, limit)
    applications, total = await repository.get_applications_for_admin(
        db, status=status, search=search, skip=skip, limit=limit
    )
    logger.info(f"Found {total} scholarship applications, returning {len(applications)}")
    return {"applications": applications, "total": total, "skip": skip, "limit": limit}


async def admin_get_dashboard_stats(db: AsyncSession) -> dict:
    stats = await repository.get_dashboard_stats(db)
    logger.info(f"Scholarship dashboard stats: {stats}")
    return stats


async def admin_get_application_detail(
    db: AsyncSession, application_id: UUID
) -> ScholarshipApplication:
    application = await repository.get_by_id(db, application_id)
    if not application:
        raise ScholarshipNotFoundError(application_id)
    return application


async def admin_approve_application(
    db: AsyncSession,
    application_id: UUID,
    admin_id: UUID,
    data: ApproveScholarshipRequest | None = None,
) -> dict:
    """
    Approve an application and, when it carries an amount, issue its voucher.

    The registry reservation, the application update and the voucher row are
    committed together; on any failure the whole approval is rolled back.
    Without an amount the application is approved with no code and no voucher.

    Returns:
        Dict with application, voucher (or None), and warnings

    Raises:
        ScholarshipNotFoundError: If the application doesn't exist
        CannotDecideScholarshipError: If the application is not pending
        VoucherCodeExhaustedError: If no unique code could be generated
        StoreUnavailableError: If the database fails mid-approval
    """
    data = data or ApproveScholarshipRequest()
    logger.info(f"Admin {admin_id} approving scholarship application {application_id}")

    application = await repository.get_by_id_for_update(db, application_id)
    if not application:
        logger.warning(f"Application not found: {application_id}")
        raise ScholarshipNotFoundError(application_id)

    if application.status != ScholarshipStatus.PENDING or application.voucher_code:
        logger.warning(
            f"Cannot approve application {application_id}: status={application.status.value}"
        )
        raise CannotDecideScholarshipError(application.status.value, "approve")

    amount = data.voucher_amount if data.voucher_amount is not None else application.voucher_amount

    code = None
    voucher = None
    try:
        decision_fields = {"voucher_amount": amount}
        if amount is not None:
            code = await voucher_service.issue_voucher_code(
                db,
                source=VoucherCodeSource.SCHOLARSHIP_APPLICATION,
                record_id=application.id,
            )
            decision_fields["voucher_code"] = code
        if data.notes is not None:
            decision_fields["notes"] = data.notes

        await repository.update_application_decision(
            db,
            application,
            ScholarshipStatus.APPROVED,
            reviewed_by=admin_id,
            **decision_fields,
        )

        if code is not None:
            voucher = await voucher_repository.create_voucher(
                db,
                voucher_code=code,
                school_id=application.school_user_id,
                amount=amount,
                purpose=voucher_service.scholarship_voucher_purpose(application),
                created_by=admin_id,
                application_id=application.id,
                expires_at=voucher_service.voucher_expiry(),
            )

        await db.commit()
    except ServiceError:
        await db.rollback()
        raise
    except repository.InvalidStatusTransitionError as e:
        await db.rollback()
        logger.error(f"Status transition error during approval: {e}")
        raise CannotDecideScholarshipError(e.current_status.value, "approve") from e
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Approval of application {application_id} failed: {e}", exc_info=True)
        raise StoreUnavailableError() from e

    logger.info(
        f"Application {application_id} approved by {admin_id}"
        + (f" with voucher {voucher.id} ({code})" if voucher else " without an amount, no voucher")
    )

    warnings: list[str] = []
    try:
        sent = await email_service.send_scholarship_approved(
            to_email=application.email,
            student_name=application.student_name,
            school_name=application.school_name,
            voucher_code=code,
            voucher_amount=amount,
        )
    except Exception as e:
        logger.error(f"Failed to send approval email: {e}", exc_info=True)
        sent = False
    if not sent:
        warnings.append(f"Approval email could not be sent to {application.email}.")

    return {"application": application, "voucher": voucher, "warnings": warnings}


async def admin_reject_application(
    db: AsyncSession,
    application_id: UUID,
    admin_id: UUID,
    reason: str,
) -> dict:
    """
    Reject a pending application.

    Returns:
        Dict with application and warnings

    Raises:
        ScholarshipNotFoundError: If the application doesn't exist
        CannotDecideScholarshipError: If the application is not pending
    """
    logger.info(f"Admin {admin_id} rejecting scholarship application {application_id}")

    application = await repository.get_by_id_for_update(db, application_id)
    if not application:
        logger.warning(f"Application not found: {application_id}")
        raise ScholarshipNotFoundError(application_id)

    try:
        await repository.update_application_decision(
            db,
            application,
            ScholarshipStatus.REJECTED,
            reviewed_by=admin_id,
            notes=reason,
        )
    except repository.InvalidStatusTransitionError as e:
        logger.warning(
            f"Cannot reject application {application_id}: status={application.status.value}"
        )
        raise CannotDecideScholarshipError(e.current_status.value, "reject") from e

    await db.commit()
    logger.info(f"Application {application_id} rejected by {admin_id}")

    warnings: list[str] = []
    try:
        sent = await email_service.send_scholarship_rejected(
            to_email=application.email,
            student_name=application.student_name,
            school_name=application.school_name,
            reason=reason,
        )
    except Exception as e:
        logger.error(f"Failed to send rejection email: {e}", exc_info=True)
        sent = False
    if not sent:
        warnings.append(f"Rejection email could not be sent to {application.email}.")

    return {"application": application, "warnings": warnings}
