"""
Voucher Requests Service Layer

Schools request vouchers; admins approve (issuing a voucher with a unique
code) or reject them. Approval writes the registry entry, the voucher and the
request decision in one transaction.
"""

import logging
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
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
from voucher_portal.modules.voucher_requests import repository
from voucher_portal.modules.voucher_requests.models import VoucherRequest, VoucherRequestStatus
from voucher_portal.modules.voucher_requests.schemas import VoucherRequestCreate
from voucher_portal.modules.vouchers import repository as voucher_repository
from voucher_portal.modules.vouchers import service as voucher_service
from voucher_portal.modules.vouchers.models import VoucherCodeSource

logger = logging.getLogger(__name__)


class VoucherRequestNotFoundError(NotFoundError):
    def __init__(self, request_id: UUID | None = None):
        super().__init__("Voucher request", request_id)


class CannotDecideVoucherRequestError(ServiceError):
    def __init__(self, current_status: str, action: str):
        super().__init__(
            message=f"Cannot {action} voucher request in status: {current_status}. "
            "Request must be 'pending'.",
            error_code="CANNOT_DECIDE_VOUCHER_REQUEST",
            status_code=409,
        )


async def submit_request(
    db: AsyncSession, user: CurrentUser, data: VoucherRequestCreate
) -> VoucherRequest:
    """
    Raises:
        SchoolNotApprovedError: If the school's signup is not approved
    """
    await signup_service.require_approved_school(db, user.id)

    voucher_request = await repository.create(db, data, school_id=user.id)
    await db.commit()
    await db.refresh(voucher_request)

    logger.info(
        f"School {user.id} requested a voucher of {voucher_request.amount} "
        f"for '{voucher_request.purpose}' ({voucher_request.id})"
    )
    return voucher_request


async def get_school_requests(db: AsyncSession, school_id: UUID) -> list[VoucherRequest]:
    return await repository.get_for_school(db, school_id)


async def admin_get_requests_list(
    db: AsyncSession,
    *,
    status: VoucherRequestStatus | None = None,
    search: str | None = None,
    skip: int = 0,
    limit: int = 20,
) -> dict:
    skip, limit = clamp_pagination(skip, limit)
    requests, total = await repository.get_requests_for_admin(
        db, status=status, search=search, skip=skip, limit=limit
    )
    return {"requests": requests, "total": total, "skip": skip, "limit": limit}


async def _school_contact(db: AsyncSession, school_id: UUID) -> tuple[str, str] | None:
    signup = await signup_repository.get_school_signup_by_user(db, school_id)
    if not signup:
        return None
    return signup.email, signup.school_name


async def admin_approve_request(
    db: AsyncSession,
    request_id: UUID,
    admin_id: UUID,
    notes: str | None = None,
) -> dict:
    """
    Approve a pending request and issue its voucher.

    Returns:
        Dict with request, voucher and warnings

    Raises:
        VoucherRequestNotFoundError: If the request doesn't exist
        CannotDecideVoucherRequestError: If the request is not pending
        VoucherCodeExhaustedError: If no unique code could be generated
        StoreUnavailableError: If the database fails mid-approval
    """
    logger.info(f"Admin {admin_id} approving voucher request {request_id}")

    voucher_request = await repository.get_by_id_for_update(db, request_id)
    if not voucher_request:
        raise VoucherRequestNotFoundError(request_id)

    if voucher_request.status != VoucherRequestStatus.PENDING:
        raise CannotDecideVoucherRequestError(voucher_request.status.value, "approve")

    try:
        code = await voucher_service.issue_voucher_code(
            db,
            source=VoucherCodeSource.VOUCHER_REQUEST,
            record_id=voucher_request.id,
        )
        voucher = await voucher_repository.create_voucher(
            db,
            voucher_code=code,
            school_id=voucher_request.school_id,
            amount=voucher_request.amount,
            purpose=voucher_request.purpose,
            created_by=admin_id,
            voucher_request_id=voucher_request.id,
            expires_at=voucher_service.voucher_expiry(),
        )
        await repository.update_request_decision(
            db,
            voucher_request,
            VoucherRequestStatus.APPROVED,
            reviewed_by=admin_id,
            voucher_id=voucher.id,
            review_notes=notes,
        )
        await db.commit()
    except ServiceError:
        await db.rollback()
        raise
    except repository.InvalidStatusTransitionError as e:
        await db.rollback()
        raise CannotDecideVoucherRequestError(e.current_status.value, "approve") from e
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Approval of voucher request {request_id} failed: {e}", exc_info=True)
        raise StoreUnavailableError() from e

    logger.info(f"Voucher request {request_id} approved by {admin_id}: voucher {code}")

    warnings: list[str] = []
    contact = await _school_contact(db, voucher_request.school_id)
    if contact is None:
        warnings.append("No school contact on file; voucher email was not sent.")
    else:
        to_email, school_name = contact
        try:
            sent = await email_service.send_voucher_issued(
                to_email=to_email,
                school_name=school_name,
                voucher_code=code,
                amount=voucher.amount,
                purpose=voucher.purpose,
            )
        except Exception as e:
            logger.error(f"Failed to send voucher issued email: {e}", exc_info=True)
            sent = False
        if not sent:
            warnings.append(f"Voucher email could not be sent to {to_email}.")

    return {"request": voucher_request, "voucher": voucher, "warnings": warnings}


async def admin_reject_request(
    db: AsyncSession,
    request_id: UUID,
    admin_id: UUID,
    reason: str,
) -> dict:
    """
    Raises:
        VoucherRequestNotFoundError: If the request doesn't exist
        CannotDecideVoucherRequestError: If the request is not pending
    """
    voucher_request = await repository.get_by_id_for_update(db, request_id)
    if not voucher_request:
        raise VoucherRequestNotFoundError(request_id)

    try:
        await repository.update_request_decision(
            db,
            voucher_request,
            VoucherRequestStatus.REJECTED,
            reviewed_by=admin_id,
            review_notes=reason,
        )
    except repository.InvalidStatusTransitionError as e:
        raise CannotDecideVoucherRequestError(e.current_status.value, "reject") from e

    await db.commit()
    logger.info(f"Voucher request {request_id} rejected by {admin_id}")

    warnings: list[str] = []
    contact = await _school_contact(db, voucher_request.school_id)
    if contact is not None:
        to_email, school_name = contact
        try:
            sent = await email_service.send_voucher_request_rejected(
                to_email=to_email,
                school_name=school_name,
                amount=voucher_request.amount,
                purpose=voucher_request.purpose,
                reason=reason,
            )
        except Exception as e:
            logger.error(f"Failed to send voucher request rejection email: {e}", exc_info=True)
            sent = False
        if not sent:
            warnings.append(f"Rejection email could not be sent to {to_email}.")

    return {"request": voucher_request, "warnings": warnings}
