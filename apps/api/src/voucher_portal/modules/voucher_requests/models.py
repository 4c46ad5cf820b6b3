"""
Voucher Request Models

A school asks for a voucher of a given amount and purpose.
Approval issues a Voucher and links it back through voucher_id.
"""

import enum
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Index, Numeric, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from voucher_portal.modules.shared import BaseModel, pg_enum


class VoucherRequestStatus(str, enum.Enum):
    """Status of a voucher request."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class VoucherRequest(BaseModel):
    """A school's request for a voucher."""

    __tablename__ = "voucher_requests"

    school_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    purpose: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[VoucherRequestStatus] = mapped_column(
        pg_enum(VoucherRequestStatus, "voucher_request_status"),
        nullable=False,
        default=VoucherRequestStatus.PENDING,
    )
    reviewed_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    review_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Circular with vouchers.voucher_request_id, so created after both tables
    voucher_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("vouchers.id", ondelete="SET NULL", use_alter=True),
        nullable=True,
    )

    __table_args__ = (
        Index("ix_voucher_requests_status", "status"),
        Index("ix_voucher_requests_school_id", "school_id"),
    )
