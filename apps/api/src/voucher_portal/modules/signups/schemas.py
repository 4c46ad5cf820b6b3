"""
Signup Schemas

Pydantic schemas for school and vendor registration and admin review.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from voucher_portal.modules.signups.models import SchoolSignupStatus, VendorSignupStatus

# ============================================
# School signups
# ============================================


class SchoolSignupCreate(BaseModel):
    """Request body for POST /signups/schools."""

    # Defaults to the email in the identity token
    email: EmailStr | None = None
    school_name: str = Field(..., min_length=1, max_length=200)
    contact_name: str = Field(..., min_length=1, max_length=200)
    contact_phone: str | None = Field(None, max_length=30)
    school_address: str | None = Field(None, max_length=500)
    school_district: str | None = Field(None, max_length=200)
    school_type: str | None = Field(None, max_length=50)
    student_count: int | None = Field(None, ge=0)
    website: str | None = Field(None, max_length=500)
    additional_info: str | None = Field(None, max_length=5000)


class SchoolSignupResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    email: str
    school_name: str
    contact_name: str
    contact_phone: str | None = None
    school_address: str | None = None
    school_district: str | None = None
    school_type: str | None = None
    student_count: int | None = None
    website: str | None = None
    additional_info: str | None = None
    status: SchoolSignupStatus
    reviewed_by: UUID | None = None
    reviewed_at: datetime | None = None
    review_notes: str | None = None
    created_at: datetime


class SchoolSignupListResponse(BaseModel):
    signups: list[SchoolSignupResponse]
    total: int
    skip: int
    limit: int


# ============================================
# Vendor signups
# ============================================


class VendorSignupCreate(BaseModel):
    """Request body for POST /signups/vendors."""

    email: EmailStr | None = None
    vendor_name: str = Field(..., min_length=1, max_length=200)
    vendor_type: str | None = Field(None, max_length=100)
    country: str | None = Field(None, max_length=100)
    contact_name: str = Field(..., min_length=1, max_length=200)
    contact_phone: str | None = Field(None, max_length=30)
    notes: str | None = Field(None, max_length=5000)


class VendorSignupResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    email: str
    vendor_name: str
    vendor_type: str | None = None
    country: str | None = None
    contact_name: str
    contact_phone: str | None = None
    notes: str | None = None
    risk_flag: bool
    status: VendorSignupStatus
    reviewed_by: UUID | None = None
    reviewed_at: datetime | None = None
    review_notes: str | None = None
    created_at: datetime


class VendorSignupListResponse(BaseModel):
    signups: list[VendorSignupResponse]
    total: int
    skip: int
    limit: int


# ============================================
# Admin decisions
# ============================================


class SignupDecisionRequest(BaseModel):
    """Optional body for admin signup actions."""

    notes: str | None = Field(None, max_length=2000)
    # Vendors only; ignored for schools
    risk_flag: bool | None = None


class SignupDecisionResponse(BaseModel):
    """Response after an admin signup action."""

    id: UUID
    status: str
    message: str
    warnings: list[str] = Field(default_factory=list)
