"""
Vouchers Admin Router

Endpoints:
- GET /admin/vouchers - List vouchers with filters and pagination
- POST /admin/vouchers/{id}/cancel - Cancel an active voucher
- POST /admin/vouchers/reconcile - Run code reconciliation now
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from voucher_portal.core.auth import CurrentUser, get_current_admin_user
from voucher_portal.core.database import get_db
from voucher_portal.core.rate_limit import rate_limit, user_action_key
from voucher_portal.modules.shared import ServiceError, raise_internal_error, raise_service_error
from voucher_portal.modules.vouchers import service
from voucher_portal.modules.vouchers.models import VoucherStatus
from voucher_portal.modules.vouchers.schemas import (
    CancelVoucherRequest,
    ReconcileReport,
    VoucherListResponse,
    VoucherResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "",
    response_model=VoucherListResponse,
    summary="List Vouchers",
    description="""
Paginated list of vouchers, newest first.

**Filters:**
- `status`: active, used, expired or cancelled
- `search`: voucher code or purpose
""",
)
async def list_vouchers(
    status_filter: VoucherStatus | None = Query(None, alias="status"),
    search: str | None = Query(None, min_length=1, max_length=100),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    admin: CurrentUser = Depends(get_current_admin_user),
) -> VoucherListResponse:
    try:
        result = await service.admin_get_vouchers_list(
            db, status=status_filter, search=search, skip=skip, limit=limit
        )
        return VoucherListResponse(
            vouchers=[VoucherResponse.model_validate(v) for v in result["vouchers"]],
            total=result["total"],
            skip=result["skip"],
            limit=result["limit"],
        )
    except ServiceError as e:
        raise_service_error(e)
    except Exception as e:
        raise_internal_error(e, "listing vouchers")


@router.post(
    "/reconcile",
    response_model=ReconcileReport,
    summary="Reconcile Voucher Codes",
    description="""
Compare the code registry, scholarship applications and vouchers, and report
partial writes. Approved applications missing their voucher row are repaired
when `repair` is true (defaults to the server setting).
""",
)
@rate_limit(5, 60, key_func=user_action_key)
async def reconcile_codes(
    request: Request,
    repair: bool | None = Query(None),
    db: AsyncSession = Depends(get_db),
    admin: CurrentUser = Depends(get_current_admin_user),
) -> ReconcileReport:
    try:
        report = await service.reconcile_voucher_codes(db, repair=repair)
        logger.info(f"Admin {admin.id} ran voucher code reconciliation")
        return report
    except Exception as e:
        raise_internal_error(e, "reconciling voucher codes")


@router.post(
    "/{voucher_id}/cancel",
    response_model=VoucherResponse,
    summary="Cancel Voucher",
    responses={
        404: {"description": "Voucher not found"},
        409: {"description": "Voucher is not active"},
    },
)
@rate_limit(10, 60, key_func=user_action_key)
async def cancel_voucher(
    request: Request,
    voucher_id: UUID,
    data: CancelVoucherRequest,
    db: AsyncSession = Depends(get_db),
    admin: CurrentUser = Depends(get_current_admin_user),
) -> VoucherResponse:
    try:
        voucher = await service.admin_cancel_voucher(db, voucher_id, admin.id, data.reason)
        return VoucherResponse.model_validate(voucher)
    except ServiceError as e:
        raise_service_error(e)
    except Exception as e:
        raise_internal_error(e, "cancelling voucher")
