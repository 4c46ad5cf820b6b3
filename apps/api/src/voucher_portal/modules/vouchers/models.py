"""
Voucher Models

- Voucher: the normalized, redeemable voucher record
- VoucherCode: registry of every issued code; its primary key is the
  storage-level uniqueness guarantee across applications and vouchers
"""

import enum
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Index, Numeric, String, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from voucher_portal.core.database import Base
from voucher_portal.modules.shared import BaseModel, pg_enum


class VoucherStatus(str, enum.Enum):
    """Lifecycle status of a voucher."""

    ACTIVE = "active"
    USED = "used"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class VoucherCodeSource(str, enum.Enum):
    """Which kind of approval a code was issued for."""

    SCHOLARSHIP_APPLICATION = "scholarship_application"
    VOUCHER_REQUEST = "voucher_request"


class VerificationStatus(str, enum.Enum):
    """Outcome of verifying a submitted code."""

    VALID = "valid"
    INVALID = "invalid"
    NOT_FOUND = "not_found"


class Voucher(BaseModel):
    """A redeemable voucher issued to a school."""

    __tablename__ = "vouchers"

    voucher_code: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    school_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    purpose: Mapped[str] = mapped_column(String(200), nullable=False)

    status: Mapped[VoucherStatus] = mapped_column(
        pg_enum(VoucherStatus, "voucher_status"),
        nullable=False,
        default=VoucherStatus.ACTIVE,
    )

    # Origin (exactly one is set)
    application_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("scholarship_applications.id", ondelete="SET NULL"),
        nullable=True,
    )
    voucher_request_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("voucher_requests.id", ondelete="SET NULL"),
        nullable=True,
    )

    created_by: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    redeemed_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)

    __table_args__ = (
        Index("ix_vouchers_school_id", "school_id"),
        Index("ix_vouchers_status", "status"),
    )


class VoucherCode(Base):
    """One row per issued code, whichever table carries it."""

    __tablename__ = "voucher_codes"

    code: Mapped[str] = mapped_column(String(32), primary_key=True)
    source: Mapped[VoucherCodeSource] = mapped_column(
        pg_enum(VoucherCodeSource, "voucher_code_source"), nullable=False
    )
    record_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    issued_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
