"""
Vendor Submissions Router

Endpoints:
- POST /vendor/submissions - Submit a voucher code for redemption
- GET /vendor/submissions/mine - The calling vendor's submissions
"""

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from voucher_portal.core.auth import CurrentUser, get_current_vendor_user
from voucher_portal.core.database import get_db
from voucher_portal.core.rate_limit import rate_limit, user_action_key
from voucher_portal.modules.shared import ServiceError, raise_internal_error, raise_service_error
from voucher_portal.modules.vendor_submissions import service
from voucher_portal.modules.vendor_submissions.schemas import (
    SubmitVoucherRequest,
    SubmitVoucherResponse,
    VendorSubmissionResponse,
)

router = APIRouter()

RATE_LIMIT_SUBMIT = (30, 60)  # 30 submissions per minute per vendor


@router.post(
    "/submissions",
    response_model=SubmitVoucherResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit Voucher Code",
    description="""
Submit a voucher code for redemption. The code is verified immediately.

- Valid codes are stored as `pending` and await admin review.
- Invalid or unknown codes are stored as `rejected`.

**Errors:**
- 400 `VALIDATION_ERROR`: empty code
- 403 `VENDOR_NOT_ACTIVE`: vendor signup is not approved or active
- 409 `DUPLICATE_SUBMISSION`: the code is already pending or redeemed
- 503 `VERIFICATION_UNAVAILABLE`: nothing was stored; retry
""",
)
@rate_limit(*RATE_LIMIT_SUBMIT, key_func=user_action_key)
async def submit_voucher(
    request: Request,
    data: SubmitVoucherRequest,
    db: AsyncSession = Depends(get_db),
    vendor: CurrentUser = Depends(get_current_vendor_user),
) -> SubmitVoucherResponse:
    try:
        submission, verification = await service.submit_voucher(db, vendor, data.voucher_code)
        return SubmitVoucherResponse(
            submission=VendorSubmissionResponse.model_validate(submission),
            verification=verification,
        )
    except ServiceError as e:
        raise_service_error(e)
    except Exception as e:
        raise_internal_error(e, "submitting voucher code")


@router.get(
    "/submissions/mine",
    response_model=list[VendorSubmissionResponse],
    summary="List My Submissions",
)
async def list_my_submissions(
    db: AsyncSession = Depends(get_db),
    vendor: CurrentUser = Depends(get_current_vendor_user),
) -> list[VendorSubmissionResponse]:
    try:
        submissions = await service.get_vendor_submissions(db, vendor.id)
        return [VendorSubmissionResponse.model_validate(s) for s in submissions]
    except Exception as e:
        raise_internal_error(e, "listing vendor submissions")
