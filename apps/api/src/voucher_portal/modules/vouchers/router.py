"""
Vouchers Router

Endpoints:
- POST /verify-voucher - Verify a voucher code (vendor or admin)
- GET /vouchers/mine - The calling school's vouchers

verify_router is mounted at the API root; router under /vouchers.
"""

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from voucher_portal.core.auth import (
    CurrentUser,
    get_current_school_user,
    get_verification_caller,
)
from voucher_portal.core.database import get_db
from voucher_portal.core.rate_limit import rate_limit, verification_key
from voucher_portal.modules.shared import ServiceError, raise_internal_error, raise_service_error
from voucher_portal.modules.vouchers import service
from voucher_portal.modules.vouchers.schemas import (
    VerifyVoucherRequest,
    VoucherResponse,
    VoucherVerificationResponse,
)

logger = logging.getLogger(__name__)

verify_router = APIRouter()
router = APIRouter()

RATE_LIMIT_VERIFY = (60, 60)  # 60 verifications per minute per caller


@verify_router.post(
    "/verify-voucher",
    response_model=VoucherVerificationResponse,
    response_model_by_alias=True,
    summary="Verify Voucher Code",
    description="""
Check whether a voucher code is redeemable.

The code is trimmed and uppercased before lookup. Scholarship applications
are consulted first, then vouchers.

**Response:**
- `valid: true, verificationStatus: "valid"`: approved application or active voucher
- `valid: false, verificationStatus: "invalid"`: known code that is not redeemable
- `valid: false, verificationStatus: "not_found"`: unknown code

**Errors:**
- 400 `VALIDATION_ERROR`: empty code
- 503 `VERIFICATION_UNAVAILABLE`: the data store could not be reached

**Access:** vendor or admin role
""",
    responses={
        400: {"description": "Empty voucher code"},
        429: {"description": "Too many verification requests"},
        503: {"description": "Verification temporarily unavailable"},
    },
)
@rate_limit(*RATE_LIMIT_VERIFY, key_func=verification_key)
async def verify_voucher(
    request: Request,
    data: VerifyVoucherRequest,
    db: AsyncSession = Depends(get_db),
    caller: CurrentUser = Depends(get_verification_caller),
) -> VoucherVerificationResponse:
    try:
        result = await service.verify_voucher_code(db, data.voucher_code)
        logger.info(
            f"{caller.role.value} {caller.id} verified a voucher code: "
            f"{result.verification_status.value}"
        )
        return result
    except ServiceError as e:
        raise_service_error(e)
    except Exception as e:
        raise_internal_error(e, "verifying voucher code")


@router.get(
    "/mine",
    response_model=list[VoucherResponse],
    summary="List My Vouchers",
)
async def list_my_vouchers(
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(get_current_school_user),
) -> list[VoucherResponse]:
    try:
        vouchers = await service.get_school_vouchers(db, user.id)
        return [VoucherResponse.model_validate(v) for v in vouchers]
    except Exception as e:
        raise_internal_error(e, "listing school vouchers")
