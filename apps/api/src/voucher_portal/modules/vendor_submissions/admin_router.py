"""
Vendor Submissions Admin Router

Endpoints:
- GET /admin/vendor-submissions - List submissions with filters and pagination
- POST /admin/vendor-submissions/{id}/approve - Approve and redeem the voucher
- POST /admin/vendor-submissions/{id}/reject - Reject
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from voucher_portal.core.auth import CurrentUser, get_current_admin_user
from voucher_portal.core.database import get_db
from voucher_portal.core.rate_limit import rate_limit, user_action_key
from voucher_portal.modules.shared import ServiceError, raise_internal_error, raise_service_error
from voucher_portal.modules.vendor_submissions import service
from voucher_portal.modules.vendor_submissions.models import SubmissionStatus
from voucher_portal.modules.vendor_submissions.schemas import (
    SubmissionDecisionRequest,
    SubmissionDecisionResponse,
    VendorSubmissionListResponse,
    VendorSubmissionResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()

RATE_LIMIT_DECISION = (20, 60)


@router.get(
    "",
    response_model=VendorSubmissionListResponse,
    summary="List Vendor Submissions",
)
async def list_submissions(
    status_filter: SubmissionStatus | None = Query(None, alias="status"),
    search: str | None = Query(None, min_length=1, max_length=100),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    admin: CurrentUser = Depends(get_current_admin_user),
) -> VendorSubmissionListResponse:
    try:
        result = await service.admin_get_submissions_list(
            db, status=status_filter, search=search, skip=skip, limit=limit
        )
        return VendorSubmissionListResponse(
            submissions=[
                VendorSubmissionResponse.model_validate(s) for s in result["submissions"]
            ],
            total=result["total"],
            skip=result["skip"],
            limit=result["limit"],
        )
    except ServiceError as e:
        raise_service_error(e)
    except Exception as e:
        raise_internal_error(e, "listing vendor submissions")


@router.post(
    "/{submission_id}/approve",
    response_model=SubmissionDecisionResponse,
    summary="Approve Vendor Submission",
    description="Approve a pending submission. The matching voucher is marked `used`.",
    responses={
        404: {"description": "Submission or its voucher not found"},
        409: {"description": "Submission is not pending or voucher is not active"},
    },
)
@rate_limit(*RATE_LIMIT_DECISION, key_func=user_action_key)
async def approve_submission(
    request: Request,
    submission_id: UUID,
    data: SubmissionDecisionRequest | None = None,
    db: AsyncSession = Depends(get_db),
    admin: CurrentUser = Depends(get_current_admin_user),
) -> SubmissionDecisionResponse:
    try:
        result = await service.admin_approve_submission(
            db, submission_id, admin.id, data.notes if data else None
        )
        submission = result["submission"]
        return SubmissionDecisionResponse(
            id=submission.id,
            status=submission.status,
            voucher_id=submission.voucher_id,
            message="Submission approved.",
            warnings=result["warnings"],
        )
    except ServiceError as e:
        raise_service_error(e)
    except Exception as e:
        raise_internal_error(e, "approving vendor submission")


@router.post(
    "/{submission_id}/reject",
    response_model=SubmissionDecisionResponse,
    summary="Reject Vendor Submission",
    responses={
        404: {"description": "Submission not found"},
        409: {"description": "Submission is not pending"},
    },
)
@rate_limit(*RATE_LIMIT_DECISION, key_func=user_action_key)
async def reject_submission(
    request: Request,
    submission_id: UUID,
    data: SubmissionDecisionRequest | None = None,
    db: AsyncSession = Depends(get_db),
    admin: CurrentUser = Depends(get_current_admin_user),
) -> SubmissionDecisionResponse:
    try:
        result = await service.admin_reject_submission(
            db, submission_id, admin.id, data.notes if data else None
        )
        submission = result["submission"]
        logger.info(f"Admin {admin.id} rejected vendor submission {submission_id}")
        return SubmissionDecisionResponse(
            id=submission.id,
            status=submission.status,
            voucher_id=submission.voucher_id,
            message="Submission rejected.",
            warnings=result["warnings"],
        )
    except ServiceError as e:
        raise_service_error(e)
    except Exception as e:
        raise_internal_error(e, "rejecting vendor submission")
