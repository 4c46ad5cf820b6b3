"""
Signups Service Layer

Business logic for school and vendor self-registration and admin review.

- One signup per identity-provider subject and role
- Admin decisions follow the status state machines in the repository
- Decision emails are best-effort and surface as warnings
- Other modules use require_approved_school / require_active_vendor as
  preconditions for applying, requesting vouchers and submitting codes
"""

import logging
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from voucher_portal.core import email as email_service
from voucher_portal.core.auth import CurrentUser
from voucher_portal.modules.shared import NotFoundError, ServiceError, clamp_pagination
from voucher_portal.modules.signups import repository
from voucher_portal.modules.signups.models import (
    SchoolSignup,
    SchoolSignupStatus,
    VendorSignup,
    VendorSignupStatus,
)
from voucher_portal.modules.signups.schemas import SchoolSignupCreate, VendorSignupCreate

logger = logging.getLogger(__name__)

# Vendors may redeem codes only in these states
REDEEMING_VENDOR_STATUSES = {VendorSignupStatus.APPROVED, VendorSignupStatus.ACTIVE}


class DuplicateSignupError(ServiceError):
    def __init__(self, kind: str):
        super().__init__(
            message=f"A {kind} signup already exists for this account.",
            error_code="DUPLICATE_SIGNUP",
            status_code=409,
        )


class SignupNotFoundError(NotFoundError):
    def __init__(self, signup_id: UUID | None = None):
        super().__init__("Signup", signup_id)


class CannotDecideSignupError(ServiceError):
    """Raised when the requested transition is not allowed from the current status."""

    def __init__(self, current_status: str, action: str):
        super().__init__(
            message=f"Cannot {action} signup in status: {current_status}.",
            error_code="CANNOT_DECIDE_SIGNUP",
            status_code=409,
        )


class SchoolNotApprovedError(ServiceError):
    def __init__(self):
        super().__init__(
            message="Your school signup must be approved before you can do this.",
            error_code="SCHOOL_NOT_APPROVED",
            status_code=403,
        )


class VendorNotActiveError(ServiceError):
    def __init__(self):
        super().__init__(
            message="Your vendor account must be approved before you can submit vouchers.",
            error_code="VENDOR_NOT_ACTIVE",
            status_code=403,
        )


# ============================================
# Self-service registration
# ============================================


async def register_school(
    db: AsyncSession, user: CurrentUser, data: SchoolSignupCreate
) -> SchoolSignup:
    """
    Raises:
        DuplicateSignupError: If the caller already registered a school
    """
    if await repository.get_school_signup_by_user(db, user.id):
        raise DuplicateSignupError("school")

    try:
        signup = await repository.create_school_signup(
            db, user_id=user.id, email=data.email or user.email, data=data
        )
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise DuplicateSignupError("school") from e

    await db.refresh(signup)
    logger.info(f"School signup {signup.id} created for user {user.id}: {signup.school_name}")
    return signup


async def register_vendor(
    db: AsyncSession, user: CurrentUser, data: VendorSignupCreate
) -> VendorSignup:
    """
    Raises:
        DuplicateSignupError: If the caller already registered as a vendor
    """
    if await repository.get_vendor_signup_by_user(db, user.id):
        raise DuplicateSignupError("vendor")

    try:
        signup = await repository.create_vendor_signup(
            db, user_id=user.id, email=data.email or user.email, data=data
        )
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise DuplicateSignupError("vendor") from e

    await db.refresh(signup)
    logger.info(f"Vendor signup {signup.id} created for user {user.id}: {signup.vendor_name}")
    return signup


async def get_my_school_signup(db: AsyncSession, user_id: UUID) -> SchoolSignup:
    signup = await repository.get_school_signup_by_user(db, user_id)
    if not signup:
        raise SignupNotFoundError()
    return signup


async def get_my_vendor_signup(db: AsyncSession, user_id: UUID) -> VendorSignup:
    signup = await repository.get_vendor_signup_by_user(db, user_id)
    if not signup:
        raise SignupNotFoundError()
    return signup


# ============================================
# Preconditions used by other modules
# ============================================


async def require_approved_school(db: AsyncSession, user_id: UUID) -> SchoolSignup:
    """
    Raises:
        SchoolNotApprovedError: If the caller has no approved school signup
    """
    signup = await repository.get_school_signup_by_user(db, user_id)
    if not signup or signup.status != SchoolSignupStatus.APPROVED:
        logger.warning(f"User {user_id} acted as a school without an approved signup")
        raise SchoolNotApprovedError()
    return signup


async def require_active_vendor(db: AsyncSession, user_id: UUID) -> VendorSignup:
    """
    Raises:
        VendorNotActiveError: If the caller's vendor signup is not approved or active
    """
    signup = await repository.get_vendor_signup_by_user(db, user_id)
    if not signup or signup.status not in REDEEMING_VENDOR_STATUSES:
        logger.warning(f"User {user_id} acted as a vendor without an active signup")
        raise VendorNotActiveError()
    return signup


# ============================================
# Admin review
# ============================================


async def admin_list_school_signups(
    db: AsyncSession,
    *,
    status: SchoolSignupStatus | None = None,
    search: str | None = None,
    skip: int = 0,
    limit: int = 20,
) -> dict:
    skip, limit = clamp_pagination(skip, limit)
    signups, total = await repository.list_school_signups(
        db, status=status, search=search, skip=skip, limit=limit
    )
    return {"signups": signups, "total": total, "skip": skip, "limit": limit}


async def admin_list_vendor_signups(
    db: AsyncSession,
    *,
    status: VendorSignupStatus | None = None,
    search: str | None = None,
    skip: int = 0,
    limit: int = 20,
) -> dict:
    skip, limit = clamp_pagination(skip, limit)
    signups, total = await repository.list_vendor_signups(
        db, status=status, search=search, skip=skip, limit=limit
    )
    return {"signups": signups, "total": total, "skip": skip, "limit": limit}


async def _notify_decision(
    to_email: str,
    contact_name: str,
    organization_name: str,
    account_type: str,
    decision: str,
    notes: str | None,
) -> list[str]:
    """Send the decision email; return warnings instead of raising."""
    try:
        sent = await email_service.send_signup_decision(
            to_email=to_email,
            contact_name=contact_name,
            organization_name=organization_name,
            account_type=account_type,
            decision=decision,
            notes=notes,
        )
    except Exception as e:
        logger.error(f"Failed to send signup decision email to {to_email}: {e}", exc_info=True)
        sent = False

    if not sent:
        return [f"Decision email could not be sent to {to_email}."]
    return []


async def admin_decide_school_signup(
    db: AsyncSession,
    signup_id: UUID,
    admin_id: UUID,
    new_status: SchoolSignupStatus,
    notes: str | None = None,
) -> tuple[SchoolSignup, list[str]]:
    """
    Approve, reject or waitlist a school signup.

    Returns:
        (updated signup, warnings)

    Raises:
        SignupNotFoundError: If the signup doesn't exist
        CannotDecideSignupError: If the transition is not allowed
    """
    signup = await repository.get_school_signup(db, signup_id)
    if not signup:
        raise SignupNotFoundError(signup_id)

    previous = signup.status
    try:
        await repository.update_school_signup_status(
            db, signup, new_status, reviewed_by=admin_id, notes=notes
        )
    except repository.InvalidStatusTransitionError as e:
        logger.warning(f"Cannot move school signup {signup_id} to {new_status.value}: {e}")
        raise CannotDecideSignupError(previous.value, new_status.value) from e

    await db.commit()
    await db.refresh(signup)

    logger.info(
        f"Admin {admin_id} moved school signup {signup_id} "
        f"from {previous.value} to {new_status.value}"
    )

    warnings = await _notify_decision(
        signup.email, signup.contact_name, signup.school_name, "school", new_status.value, notes
    )
    return signup, warnings


async def admin_decide_vendor_signup(
    db: AsyncSession,
    signup_id: UUID,
    admin_id: UUID,
    new_status: VendorSignupStatus,
    notes: str | None = None,
    risk_flag: bool | None = None,
) -> tuple[VendorSignup, list[str]]:
    """
    Move a vendor signup through review, approval, activation or suspension.

    Returns:
        (updated signup, warnings)

    Raises:
        SignupNotFoundError: If the signup doesn't exist
        CannotDecideSignupError: If the transition is not allowed
    """
    signup = await repository.get_vendor_signup(db, signup_id)
    if not signup:
        raise SignupNotFoundError(signup_id)

    previous = signup.status
    try:
        await repository.update_vendor_signup_status(
            db, signup, new_status, reviewed_by=admin_id, notes=notes, risk_flag=risk_flag
        )
    except repository.InvalidStatusTransitionError as e:
        logger.warning(f"Cannot move vendor signup {signup_id} to {new_status.value}: {e}")
        raise CannotDecideSignupError(previous.value, new_status.value) from e

    await db.commit()
    await db.refresh(signup)

    logger.info(
        f"Admin {admin_id} moved vendor signup {signup_id} "
        f"from {previous.value} to {new_status.value}"
    )

    # Starting a review is internal and does not notify the vendor
    if new_status == VendorSignupStatus.UNDER_REVIEW:
        return signup, []

    warnings = await _notify_decision(
        signup.email, signup.contact_name, signup.vendor_name, "vendor", new_status.value, notes
    )
    return signup, warnings
