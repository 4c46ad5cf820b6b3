"""
Voucher Requests Router

Endpoints:
- POST /voucher-requests - Request a voucher for the calling school
- GET /voucher-requests/mine - The calling school's requests
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from voucher_portal.core.auth import CurrentUser, get_current_school_user
from voucher_portal.core.database import get_db
from voucher_portal.modules.shared import ServiceError, raise_internal_error, raise_service_error
from voucher_portal.modules.voucher_requests import service
from voucher_portal.modules.voucher_requests.schemas import (
    VoucherRequestCreate,
    VoucherRequestResponse,
)

router = APIRouter()


@router.post(
    "",
    response_model=VoucherRequestResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Request Voucher",
    description="""
Request a voucher for the calling school. The request starts as `pending`.

**Access:** school role, with an approved school signup
""",
    responses={403: {"description": "School signup is not approved"}},
)
async def create_voucher_request(
    data: VoucherRequestCreate,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(get_current_school_user),
) -> VoucherRequestResponse:
    try:
        voucher_request = await service.submit_request(db, user, data)
        return VoucherRequestResponse.model_validate(voucher_request)
    except ServiceError as e:
        raise_service_error(e)
    except Exception as e:
        raise_internal_error(e, "creating voucher request")


@router.get(
    "/mine",
    response_model=list[VoucherRequestResponse],
    summary="List My Voucher Requests",
)
async def list_my_voucher_requests(
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(get_current_school_user),
) -> list[VoucherRequestResponse]:
    try:
        requests = await service.get_school_requests(db, user.id)
        return [VoucherRequestResponse.model_validate(r) for r in requests]
    except Exception as e:
        raise_internal_error(e, "listing voucher requests")
