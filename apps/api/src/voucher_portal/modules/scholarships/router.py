"""
Scholarship Applications Router

School-facing endpoints.

Endpoints:
- POST /scholarship-applications - Submit an application
- GET /scholarship-applications/mine - The calling school's applications
"""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from voucher_portal.core.auth import CurrentUser, get_current_school_user
from voucher_portal.core.database import get_db
from voucher_portal.modules.scholarships import service
from voucher_portal.modules.scholarships.schemas import (
    ScholarshipApplicationCreate,
    ScholarshipApplicationResponse,
)
from voucher_portal.modules.shared import ServiceError, raise_internal_error, raise_service_error

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "",
    response_model=ScholarshipApplicationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit Scholarship Application",
    description="""
Submit a scholarship application on behalf of a student.

The application starts as `pending`. When an admin approves it, a voucher
code (e.g. `GBF-7KQ2-M9XA`) is issued and emailed to the student.

**Access:** school role, with an approved school signup
""",
    responses={
        403: {"description": "School signup is not approved"},
    },
)
async def submit_application(
    data: ScholarshipApplicationCreate,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(get_current_school_user),
) -> ScholarshipApplicationResponse:
    try:
        application = await service.submit_application(db, user, data)
        return ScholarshipApplicationResponse.model_validate(application)
    except ServiceError as e:
        raise_service_error(e)
    except Exception as e:
        raise_internal_error(e, "submitting scholarship application")


@router.get(
    "/mine",
    response_model=list[ScholarshipApplicationResponse],
    summary="List My Applications",
)
async def list_my_applications(
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(get_current_school_user),
) -> list[ScholarshipApplicationResponse]:
    try:
        applications = await service.get_school_applications(db, user.id)
        return [ScholarshipApplicationResponse.model_validate(a) for a in applications]
    except Exception as e:
        raise_internal_error(e, "listing school applications")
