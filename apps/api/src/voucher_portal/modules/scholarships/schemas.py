"""
Scholarship Application Schemas

Pydantic schemas for request validation and response serialization.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from voucher_portal.modules.scholarships.models import ScholarshipStatus


class ScholarshipApplicationCreate(BaseModel):
    """Request body for POST /scholarship-applications."""

    student_name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    phone: str | None = Field(None, max_length=30)
    grade_level: str | None = Field(None, max_length=50)

    # Defaults to the school's registered name
    school_name: str | None = Field(None, min_length=1, max_length=200)
    district: str | None = Field(None, max_length=200)
    country: str | None = Field(None, max_length=100)
    program_type: str | None = Field(None, max_length=100)
    student_count: int | None = Field(None, ge=1)

    financial_need_description: str | None = Field(None, max_length=5000)
    academic_goals: str | None = Field(None, max_length=5000)

    voucher_amount: Decimal | None = Field(None, gt=0, max_digits=12, decimal_places=2)


class ScholarshipApplicationResponse(BaseModel):
    """A scholarship application as shown to its school and to admins."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    student_name: str
    email: str
    phone: str | None = None
    grade_level: str | None = None
    school_name: str
    district: str | None = None
    country: str | None = None
    program_type: str | None = None
    student_count: int | None = None
    financial_need_description: str | None = None
    academic_goals: str | None = None
    voucher_amount: float | None = None
    voucher_code: str | None = None
    status: ScholarshipStatus
    submitted_by: UUID
    school_user_id: UUID
    applied_at: datetime
    reviewed_by: UUID | None = None
    reviewed_at: datetime | None = None
    notes: str | None = None


class ScholarshipApplicationListResponse(BaseModel):
    """Paginated list of applications."""

    applications: list[ScholarshipApplicationResponse]
    total: int
    skip: int
    limit: int


class ScholarshipStats(BaseModel):
    """Aggregated statistics for the admin dashboard."""

    pending: int = Field(..., description="Applications awaiting a decision")
    approved: int
    rejected: int
    total: int
    approved_this_week: int
    total_awarded: float = Field(..., description="Sum of voucher amounts on approved applications")


# ============================================
# Admin decisions
# ============================================


class ApproveScholarshipRequest(BaseModel):
    """Request body for POST /admin/scholarship-applications/{id}/approve."""

    # Overrides the requested amount when set
    voucher_amount: Decimal | None = Field(None, gt=0, max_digits=12, decimal_places=2)
    notes: str | None = Field(None, max_length=2000)


class ApproveScholarshipResponse(BaseModel):
    """Response after approving an application."""

    id: UUID
    status: ScholarshipStatus
    voucher_code: str
    voucher_amount: float | None = None
    voucher_id: UUID | None = None
    message: str
    warnings: list[str] = Field(default_factory=list)


class RejectScholarshipRequest(BaseModel):
    """Request body for POST /admin/scholarship-applications/{id}/reject."""

    reason: str = Field(..., min_length=3, max_length=2000)


class RejectScholarshipResponse(BaseModel):
    """Response after rejecting an application."""

    id: UUID
    status: ScholarshipStatus
    message: str
    warnings: list[str] = Field(default_factory=list)
