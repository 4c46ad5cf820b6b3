"""
Vendor Submission Schemas
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from voucher_portal.modules.vendor_submissions.models import SubmissionStatus
from voucher_portal.modules.vouchers.models import VerificationStatus
from voucher_portal.modules.vouchers.schemas import VoucherVerificationResponse


class SubmitVoucherRequest(BaseModel):
    """Request body for POST /vendor/submissions."""

    model_config = ConfigDict(populate_by_name=True)

    voucher_code: str | None = Field(None, alias="voucherCode", max_length=64)


class VendorSubmissionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    vendor_id: UUID
    voucher_code: str
    voucher_application_id: UUID | None = None
    voucher_id: UUID | None = None
    status: SubmissionStatus
    verification_status: VerificationStatus
    reviewed_by: UUID | None = None
    reviewed_at: datetime | None = None
    review_notes: str | None = None
    created_at: datetime


class SubmitVoucherResponse(BaseModel):
    """The stored submission together with the verification it was based on."""

    submission: VendorSubmissionResponse
    verification: VoucherVerificationResponse


class VendorSubmissionListResponse(BaseModel):
    submissions: list[VendorSubmissionResponse]
    total: int
    skip: int
    limit: int


class SubmissionDecisionRequest(BaseModel):
    notes: str | None = Field(None, max_length=2000)


class SubmissionDecisionResponse(BaseModel):
    id: UUID
    status: SubmissionStatus
    voucher_id: UUID | None = None
    message: str
    warnings: list[str] = Field(default_factory=list)
