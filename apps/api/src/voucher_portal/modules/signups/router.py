"""
Signups Router

Self-service registration for schools and vendors.
The caller's identity comes from the bearer token; the role determines which
signup they may create.

Endpoints:
- POST /signups/schools - Register a school
- GET /signups/schools/me - The caller's school signup
- POST /signups/vendors - Register a vendor
- GET /signups/vendors/me - The caller's vendor signup
"""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from voucher_portal.core.auth import CurrentUser, get_current_school_user, get_current_vendor_user
from voucher_portal.core.database import get_db
from voucher_portal.modules.shared import ServiceError, raise_internal_error, raise_service_error
from voucher_portal.modules.signups import service
from voucher_portal.modules.signups.schemas import (
    SchoolSignupCreate,
    SchoolSignupResponse,
    VendorSignupCreate,
    VendorSignupResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/schools",
    response_model=SchoolSignupResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register School",
    description="""
Register the calling account as a school.

The signup starts as `pending`. An admin approves, rejects or waitlists it;
the school can apply for scholarships and vouchers only once approved.

**Access:** school role
""",
    responses={
        409: {"description": "A school signup already exists for this account"},
    },
)
async def register_school(
    data: SchoolSignupCreate,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(get_current_school_user),
) -> SchoolSignupResponse:
    try:
        signup = await service.register_school(db, user, data)
        return SchoolSignupResponse.model_validate(signup)
    except ServiceError as e:
        raise_service_error(e)
    except Exception as e:
        raise_internal_error(e, "registering school")


@router.get(
    "/schools/me",
    response_model=SchoolSignupResponse,
    summary="Get My School Signup",
)
async def get_my_school_signup(
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(get_current_school_user),
) -> SchoolSignupResponse:
    try:
        signup = await service.get_my_school_signup(db, user.id)
        return SchoolSignupResponse.model_validate(signup)
    except ServiceError as e:
        raise_service_error(e)
    except Exception as e:
        raise_internal_error(e, "getting school signup")


@router.post(
    "/vendors",
    response_model=VendorSignupResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register Vendor",
    description="""
Register the calling account as a vendor.

The signup starts as `submitted`. Vendors can submit voucher codes for
redemption once an admin has approved or activated the account.

**Access:** vendor role
""",
    responses={
        409: {"description": "A vendor signup already exists for this account"},
    },
)
async def register_vendor(
    data: VendorSignupCreate,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(get_current_vendor_user),
) -> VendorSignupResponse:
    try:
        signup = await service.register_vendor(db, user, data)
        return VendorSignupResponse.model_validate(signup)
    except ServiceError as e:
        raise_service_error(e)
    except Exception as e:
        raise_internal_error(e, "registering vendor")


@router.get(
    "/vendors/me",
    response_model=VendorSignupResponse,
    summary="Get My Vendor Signup",
)
async def get_my_vendor_signup(
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(get_current_vendor_user),
) -> VendorSignupResponse:
    try:
        signup = await service.get_my_vendor_signup(db, user.id)
        return VendorSignupResponse.model_validate(signup)
    except ServiceError as e:
        raise_service_error(e)
    except Exception as e:
        raise_internal_error(e, "getting vendor signup")
