"""
Signups Admin Router

Admin review of school and vendor signups.

Endpoints:
- GET /admin/signups/schools - List school signups
- POST /admin/signups/schools/{id}/approve|reject|waitlist
- GET /admin/signups/vendors - List vendor signups
- POST /admin/signups/vendors/{id}/start-review|approve|activate|suspend|reject

Security:
- admin role required
- Decisions are rate limited per admin and audit logged
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from voucher_portal.core.auth import CurrentUser, get_current_admin_user
from voucher_portal.core.database import get_db
from voucher_portal.core.rate_limit import rate_limit, user_action_key
from voucher_portal.modules.shared import ServiceError, raise_internal_error, raise_service_error
from voucher_portal.modules.signups import service
from voucher_portal.modules.signups.models import SchoolSignupStatus, VendorSignupStatus
from voucher_portal.modules.signups.schemas import (
    SchoolSignupListResponse,
    SchoolSignupResponse,
    SignupDecisionRequest,
    SignupDecisionResponse,
    VendorSignupListResponse,
    VendorSignupResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()

RATE_LIMIT_DECISION = (30, 60)  # 30 decisions per minute per admin

SCHOOL_ACTIONS: dict[str, SchoolSignupStatus] = {
    "approve": SchoolSignupStatus.APPROVED,
    "reject": SchoolSignupStatus.REJECTED,
    "waitlist": SchoolSignupStatus.WAITLISTED,
}

VENDOR_ACTIONS: dict[str, VendorSignupStatus] = {
    "start-review": VendorSignupStatus.UNDER_REVIEW,
    "approve": VendorSignupStatus.APPROVED,
    "activate": VendorSignupStatus.ACTIVE,
    "suspend": VendorSignupStatus.SUSPENDED,
    "reject": VendorSignupStatus.REJECTED,
}


# ============================================
# School signups
# ============================================


@router.get(
    "/schools",
    response_model=SchoolSignupListResponse,
    summary="List School Signups",
)
async def list_school_signups(
    status_filter: SchoolSignupStatus | None = Query(None, alias="status"),
    search: str | None = Query(None, min_length=1, max_length=100),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    admin: CurrentUser = Depends(get_current_admin_user),
) -> SchoolSignupListResponse:
    try:
        result = await service.admin_list_school_signups(
            db, status=status_filter, search=search, skip=skip, limit=limit
        )
        logger.info(f"Admin {admin.id} listed school signups: total={result['total']}")
        return SchoolSignupListResponse(
            signups=[SchoolSignupResponse.model_validate(s) for s in result["signups"]],
            total=result["total"],
            skip=result["skip"],
            limit=result["limit"],
        )
    except ServiceError as e:
        raise_service_error(e)
    except Exception as e:
        raise_internal_error(e, "listing school signups")


@router.post(
    "/schools/{signup_id}/{action}",
    response_model=SignupDecisionResponse,
    summary="Decide School Signup",
    description="""
Apply an admin decision to a school signup.

**Actions:** `approve`, `reject`, `waitlist`

**Transitions:** pending → approved | rejected | waitlisted;
waitlisted → approved | rejected
""",
    responses={
        404: {"description": "Signup or action not found"},
        409: {"description": "Transition not allowed from the current status"},
    },
)
@rate_limit(*RATE_LIMIT_DECISION, key_func=user_action_key)
async def decide_school_signup(
    request: Request,
    signup_id: UUID,
    action: str,
    data: SignupDecisionRequest | None = None,
    db: AsyncSession = Depends(get_db),
    admin: CurrentUser = Depends(get_current_admin_user),
) -> SignupDecisionResponse:
    new_status = SCHOOL_ACTIONS.get(action)
    if new_status is None:
        raise_service_error(
            ServiceError(f"Unknown school signup action: {action}", "UNKNOWN_ACTION", 404)
        )

    try:
        signup, warnings = await service.admin_decide_school_signup(
            db, signup_id, admin.id, new_status, notes=data.notes if data else None
        )
        return SignupDecisionResponse(
            id=signup.id,
            status=signup.status.value,
            message=f"School signup {signup.status.value}.",
            warnings=warnings,
        )
    except ServiceError as e:
        raise_service_error(e)
    except Exception as e:
        raise_internal_error(e, f"applying '{action}' to school signup")


# ============================================
# Vendor signups
# ============================================


@router.get(
    "/vendors",
    response_model=VendorSignupListResponse,
    summary="List Vendor Signups",
)
async def list_vendor_signups(
    status_filter: VendorSignupStatus | None = Query(None, alias="status"),
    search: str | None = Query(None, min_length=1, max_length=100),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    admin: CurrentUser = Depends(get_current_admin_user),
) -> VendorSignupListResponse:
    try:
        result = await service.admin_list_vendor_signups(
            db, status=status_filter, search=search, skip=skip, limit=limit
        )
        logger.info(f"Admin {admin.id} listed vendor signups: total={result['total']}")
        return VendorSignupListResponse(
            signups=[VendorSignupResponse.model_validate(s) for s in result["signups"]],
            total=result["total"],
            skip=result["skip"],
            limit=result["limit"],
        )
    except ServiceError as e:
        raise_service_error(e)
    except Exception as e:
        raise_internal_error(e, "listing vendor signups")


@router.post(
    "/vendors/{signup_id}/{action}",
    response_model=SignupDecisionResponse,
    summary="Decide Vendor Signup",
    description="""
Apply an admin action to a vendor signup.

**Actions:** `start-review`, `approve`, `activate`, `suspend`, `reject`

Set `risk_flag` in the body to mark or clear a vendor for extra scrutiny.
""",
    responses={
        404: {"description": "Signup or action not found"},
        409: {"description": "Transition not allowed from the current status"},
    },
)
@rate_limit(*RATE_LIMIT_DECISION, key_func=user_action_key)
async def decide_vendor_signup(
    request: Request,
    signup_id: UUID,
    action: str,
    data: SignupDecisionRequest | None = None,
    db: AsyncSession = Depends(get_db),
    admin: CurrentUser = Depends(get_current_admin_user),
) -> SignupDecisionResponse:
    new_status = VENDOR_ACTIONS.get(action)
    if new_status is None:
        raise_service_error(
            ServiceError(f"Unknown vendor signup action: {action}", "UNKNOWN_ACTION", 404)
        )

    try:
        signup, warnings = await service.admin_decide_vendor_signup(
            db,
            signup_id,
            admin.id,
            new_status,
            notes=data.notes if data else None,
            risk_flag=data.risk_flag if data else None,
        )
        return SignupDecisionResponse(
            id=signup.id,
            status=signup.status.value,
            message=f"Vendor signup {signup.status.value.replace('_', ' ')}.",
            warnings=warnings,
        )
    except ServiceError as e:
        raise_service_error(e)
    except Exception as e:
        raise_internal_error(e, f"applying '{action}' to vendor signup")
