"""
Scholarship Applications Admin Router

Endpoints:
- GET /admin/scholarship-applications - List applications with filters and pagination
- GET /admin/scholarship-applications/stats - Dashboard statistics
- GET /admin/scholarship-applications/{id} - Application details
- POST /admin/scholarship-applications/{id}/approve - Approve and issue a voucher code
- POST /admin/scholarship-applications/{id}/reject - Reject

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
from voucher_portal.modules.scholarships import service
from voucher_portal.modules.scholarships.models import ScholarshipStatus
from voucher_portal.modules.scholarships.schemas import (
    ApproveScholarshipRequest,
    ApproveScholarshipResponse,
    RejectScholarshipRequest,
    RejectScholarshipResponse,
    ScholarshipApplicationListResponse,
    ScholarshipApplicationResponse,
    ScholarshipStats,
)
from voucher_portal.modules.shared import ServiceError, raise_internal_error, raise_service_error

logger = logging.getLogger(__name__)

router = APIRouter()

RATE_LIMIT_APPROVE = (10, 60)  # 10 approvals per minute
RATE_LIMIT_REJECT = (10, 60)  # 10 rejections per minute


@router.get(
    "",
    response_model=ScholarshipApplicationListResponse,
    summary="List Scholarship Applications",
    description="""
Paginated list of scholarship applications, newest first.

**Filters:**
- `status`: pending, approved or rejected
- `search`: student name, email, school name or voucher code

**Access:** admin only
""",
)
async def list_applications(
    status_filter: ScholarshipStatus | None = Query(None, alias="status"),
    search: str | None = Query(None, min_length=1, max_length=100),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    admin: CurrentUser = Depends(get_current_admin_user),
) -> ScholarshipApplicationListResponse:
    try:
        result = await service.admin_get_applications_list(
            db, status=status_filter, search=search, skip=skip, limit=limit
        )
        logger.info(
            f"Admin {admin.id} listed scholarship applications: "
            f"total={result['total']}, returned={len(result['applications'])}"
        )
        return ScholarshipApplicationListResponse(
            applications=[
                ScholarshipApplicationResponse.model_validate(a) for a in result["applications"]
            ],
            total=result["total"],
            skip=result["skip"],
            limit=result["limit"],
        )
    except ServiceError as e:
        raise_service_error(e)
    except Exception as e:
        raise_internal_error(e, "listing scholarship applications")


@router.get(
    "/stats",
    response_model=ScholarshipStats,
    summary="Get Scholarship Statistics",
)
async def get_stats(
    db: AsyncSession = Depends(get_db),
    admin: CurrentUser = Depends(get_current_admin_user),
) -> ScholarshipStats:
    try:
        stats = await service.admin_get_dashboard_stats(db)
        return ScholarshipStats(**stats)
    except Exception as e:
        raise_internal_error(e, "getting scholarship stats")


@router.get(
    "/{application_id}",
    response_model=ScholarshipApplicationResponse,
    summary="Get Scholarship Application",
    responses={404: {"description": "Application not found"}},
)
async def get_application_detail(
    application_id: UUID,
    db: AsyncSession = Depends(get_db),
    admin: CurrentUser = Depends(get_current_admin_user),
) -> ScholarshipApplicationResponse:
    try:
        application = await service.admin_get_application_detail(db, application_id)
        return ScholarshipApplicationResponse.model_validate(application)
    except ServiceError as e:
        raise_service_error(e)
    except Exception as e:
        raise_internal_error(e, "getting scholarship application")


@router.post(
    "/{application_id}/approve",
    response_model=ApproveScholarshipResponse,
    summary="Approve Scholarship Application",
    description="""
Approve a pending application and issue its voucher code.

The code is unique across every application and voucher. When the application
carries an amount (or `voucher_amount` is given here), a matching voucher is
created in the same transaction.

A failed notification email does not undo the approval; it is reported in
`warnings`.

**Errors:**
- 409 `CANNOT_DECIDE_APPLICATION`: application is not pending
- 503 `VOUCHER_CODE_EXHAUSTED`: no unique code found, nothing was saved; retry
""",
    responses={
        404: {"description": "Application not found"},
        409: {"description": "Application is not pending"},
        503: {"description": "Code generation exhausted or store unavailable"},
    },
)
@rate_limit(*RATE_LIMIT_APPROVE, key_func=user_action_key)
async def approve_application(
    request: Request,
    application_id: UUID,
    data: ApproveScholarshipRequest | None = None,
    db: AsyncSession = Depends(get_db),
    admin: CurrentUser = Depends(get_current_admin_user),
) -> ApproveScholarshipResponse:
    try:
        result = await service.admin_approve_application(db, application_id, admin.id, data)
        application = result["application"]
        voucher = result["voucher"]

        logger.info(
            f"Admin {admin.id} approved scholarship application {application_id}, "
            f"code={application.voucher_code}"
        )

        return ApproveScholarshipResponse(
            id=application.id,
            status=application.status,
            voucher_code=application.voucher_code,
            voucher_amount=(
                float(application.voucher_amount)
                if application.voucher_amount is not None
                else None
            ),
            voucher_id=voucher.id if voucher else None,
            message="Application approved and voucher code issued.",
            warnings=result["warnings"],
        )
    except ServiceError as e:
        raise_service_error(e)
    except Exception as e:
        raise_internal_error(e, "approving scholarship application")


@router.post(
    "/{application_id}/reject",
    response_model=RejectScholarshipResponse,
    summary="Reject Scholarship Application",
    responses={
        404: {"description": "Application not found"},
        409: {"description": "Application is not pending"},
    },
)
@rate_limit(*RATE_LIMIT_REJECT, key_func=user_action_key)
async def reject_application(
    request: Request,
    application_id: UUID,
    data: RejectScholarshipRequest,
    db: AsyncSession = Depends(get_db),
    admin: CurrentUser = Depends(get_current_admin_user),
) -> RejectScholarshipResponse:
    try:
        result = await service.admin_reject_application(
            db, application_id, admin.id, data.reason
        )
        logger.info(f"Admin {admin.id} rejected scholarship application {application_id}")
        return RejectScholarshipResponse(
            id=result["application"].id,
            status=result["application"].status,
            message="Application rejected.",
            warnings=result["warnings"],
        )
    except ServiceError as e:
        raise_service_error(e)
    except Exception as e:
        raise_internal_error(e, "rejecting scholarship application")
