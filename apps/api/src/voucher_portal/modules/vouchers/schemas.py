"""
Vouchers Schemas

Pydantic schemas for voucher listings, verification and reconciliation.
The verification endpoint speaks camelCase JSON; everything else is snake_case.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from voucher_portal.modules.vouchers.models import (
    VerificationStatus,
    VoucherCodeSource,
    VoucherStatus,
)

# ============================================
# Verification
# ============================================


class VerifyVoucherRequest(BaseModel):
    """Request body for POST /verify-voucher."""

    model_config = ConfigDict(populate_by_name=True)

    # Optional here so a missing code is reported as VALIDATION_ERROR (400)
    voucher_code: str | None = Field(None, alias="voucherCode", max_length=64)


class VoucherVerificationResponse(BaseModel):
    """Result of verifying a voucher code."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    valid: bool
    verification_status: VerificationStatus
    # Status of the matched record (approved/pending/active/used/...)
    status: str | None = None
    application_id: UUID | None = None
    voucher_id: UUID | None = None
    student_name: str | None = None
    school_name: str | None = None
    voucher_amount: float | None = None
    reason: str | None = None


# ============================================
# Voucher records
# ============================================


class VoucherResponse(BaseModel):
    """A voucher as shown to its school and to admins."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    voucher_code: str
    school_id: UUID
    amount: float
    purpose: str
    status: VoucherStatus
    application_id: UUID | None = None
    voucher_request_id: UUID | None = None
    created_by: UUID
    created_at: datetime
    expires_at: datetime | None = None
    used_at: datetime | None = None
    redeemed_by: UUID | None = None


class VoucherListResponse(BaseModel):
    """Paginated list of vouchers."""

    vouchers: list[VoucherResponse]
    total: int
    skip: int
    limit: int


class CancelVoucherRequest(BaseModel):
    """Request body for POST /admin/vouchers/{id}/cancel."""

    reason: str = Field(..., min_length=3, max_length=1000)


# ============================================
# Reconciliation
# ============================================


class ReconcileIssue(BaseModel):
    """One inconsistency found between the registry, applications and vouchers."""

    kind: str = Field(..., description="missing_voucher | origin_mismatch | orphan_code")
    voucher_code: str
    record_id: UUID | None = None
    source: VoucherCodeSource | None = None
    repaired: bool = False
    detail: str | None = None


class ReconcileReport(BaseModel):
    """Summary of a reconciliation run."""

    checked_at: datetime
    missing_vouchers: int = 0
    repaired_vouchers: int = 0
    origin_mismatches: int = 0
    orphan_codes: int = 0
    issues: list[ReconcileIssue] = Field(default_factory=list)
