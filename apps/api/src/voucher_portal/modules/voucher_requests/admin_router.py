"""
Voucher Requests Admin Router

Endpoints:
- GET /admin/voucher-requests - List requests with filters and pagination
- POST /admin/voucher-requests/{id}/approve - Approve and issue a voucher
- POST /admin/voucher-requests/{id}/reject - Reject

Security:
- admin role required
- Decisions are rate limited per admin
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from voucher_portal.core.auth import CurrentUser, get_current_admin_user
from voucher_portal.core.database import get_db
from voucher_portal.core.rate_limit import rate_limit, user_action_key
from voucher_portal.modules.shared import ServiceError, raise_internal_error, raise_service_error
from voucher_portal.modules.voucher_requests import service
from voucher_portal.modules.voucher_requests.models import VoucherRequestStatus
from voucher_portal.modules.voucher_requests.schemas import (
    ApproveVoucherRequestRequest,
    ApproveVoucherRequestResponse,
    RejectVoucherRequestRequest,
    RejectVoucherRequestResponse,
    VoucherRequestListResponse,
    VoucherRequestResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()

RATE_LIMIT_DECISION = (10, 60)  # 10 decisions per minute


@router.get(
    "",
    response_model=VoucherRequestListResponse,
    summary="List Voucher Requests",
)
async def list_voucher_requests(
    status_filter: VoucherRequestStatus | None = Query(None, alias="status"),
    search: str | None = Query(None, min_length=1, max_length=100),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    admin: CurrentUser = Depends(get_current_admin_user),
) -> VoucherRequestListResponse:
    try:
        result = await service.admin_get_requests_list(
            db, status=status_filter, search=search, skip=skip, limit=limit
        )
        return VoucherRequestListResponse(
            requests=[VoucherRequestResponse.model_validate(r) for r in result["requests"]],
            total=result["total"],
            skip=result["skip"],
            limit=result["limit"],
        )
    except ServiceError as e:
        raise_service_error(e)
    except Exception as e:
        raise_internal_error(e, "listing voucher requests")


@router.post(
    "/{request_id}/approve",
    response_model=ApproveVoucherRequestResponse,
    summary="Approve Voucher Request",
    description="""
Approve a pending request. A voucher with a unique code is created for the
school in the same transaction as the decision.

**Errors:**
- 409 `CANNOT_DECIDE_VOUCHER_REQUEST`: request is not pending
- 503 `VOUCHER_CODE_EXHAUSTED`: no unique code found, nothing was saved; retry
""",
    responses={
        404: {"description": "Request not found"},
        409: {"description": "Request is not pending"},
        503: {"description": "Code generation exhausted or store unavailable"},
    },
)
@rate_limit(*RATE_LIMIT_DECISION, key_func=user_action_key)
async def approve_voucher_request(
    request: Request,
    request_id: UUID,
    data: ApproveVoucherRequestRequest | None = None,
    db: AsyncSession = Depends(get_db),
    admin: CurrentUser = Depends(get_current_admin_user),
) -> ApproveVoucherRequestResponse:
    try:
        result = await service.admin_approve_request(
            db, request_id, admin.id, data.notes if data else None
        )
        voucher_request = result["request"]
        voucher = result["voucher"]
        logger.info(
            f"Admin {admin.id} approved voucher request {request_id}, code={voucher.voucher_code}"
        )
        return ApproveVoucherRequestResponse(
            id=voucher_request.id,
            status=voucher_request.status,
            voucher_id=voucher.id,
            voucher_code=voucher.voucher_code,
            amount=float(voucher.amount),
            message="Voucher request approved and voucher issued.",
            warnings=result["warnings"],
        )
    except ServiceError as e:
        raise_service_error(e)
    except Exception as e:
        raise_internal_error(e, "approving voucher request")


@router.post(
    "/{request_id}/reject",
    response_model=RejectVoucherRequestResponse,
    summary="Reject Voucher Request",
    responses={
        404: {"description": "Request not found"},
        409: {"description": "Request is not pending"},
    },
)
@rate_limit(*RATE_LIMIT_DECISION, key_func=user_action_key)
async def reject_voucher_request(
    request: Request,
    request_id: UUID,
    data: RejectVoucherRequestRequest,
    db: AsyncSession = Depends(get_db),
    admin: CurrentUser = Depends(get_current_admin_user),
) -> RejectVoucherRequestResponse:
    try:
        result = await service.admin_reject_request(db, request_id, admin.id, data.reason)
        return RejectVoucherRequestResponse(
            id=result["request"].id,
            status=result["request"].status,
            message="Voucher request rejected.",
            warnings=result["warnings"],
        )
    except ServiceError as e:
        raise_service_error(e)
    except Exception as e:
        raise_internal_error(e, "rejecting voucher request")
