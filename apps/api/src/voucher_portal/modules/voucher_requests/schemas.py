"""
Voucher Request Schemas
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from voucher_portal.modules.voucher_requests.models import VoucherRequestStatus


class VoucherRequestCreate(BaseModel):
    """Request body for POST /voucher-requests."""

    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    purpose: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(None, max_length=5000)


class VoucherRequestResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    school_id: UUID
    amount: float
    purpose: str
    description: str | None = None
    status: VoucherRequestStatus
    reviewed_by: UUID | None = None
    reviewed_at: datetime | None = None
    review_notes: str | None = None
    voucher_id: UUID | None = None
    created_at: datetime


class VoucherRequestListResponse(BaseModel):
    requests: list[VoucherRequestResponse]
    total: int
    skip: int
    limit: int


class ApproveVoucherRequestRequest(BaseModel):
    notes: str | None = Field(None, max_length=2000)


class ApproveVoucherRequestResponse(BaseModel):
    id: UUID
    status: VoucherRequestStatus
    voucher_id: UUID
    voucher_code: str
    amount: float
    message: str
    warnings: list[str] = Field(default_factory=list)


class RejectVoucherRequestRequest(BaseModel):
    reason: str = Field(..., min_length=3, max_length=2000)


class RejectVoucherRequestResponse(BaseModel):
    id: UUID
    status: VoucherRequestStatus
    message: str
    warnings: list[str] = Field(default_factory=list)
