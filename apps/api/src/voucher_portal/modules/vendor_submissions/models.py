"""
Vendor Voucher Submission Models

A vendor submits a voucher code for redemption. The verification outcome is
computed once at submission time and never changes afterwards.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from voucher_portal.modules.shared import BaseModel, pg_enum
from voucher_portal.modules.vouchers.models import VerificationStatus


class SubmissionStatus(str, enum.Enum):
    """Review status of a vendor submission."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class VendorVoucherSubmission(BaseModel):
    """A vendor's redemption claim for one voucher code."""

    __tablename__ = "vendor_voucher_submissions"

    vendor_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    voucher_code: Mapped[str] = mapped_column(String(64), nullable=False)

    # Matched records, if verification found any
    voucher_application_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("scholarship_applications.id", ondelete="SET NULL"),
        nullable=True,
    )
    voucher_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("vouchers.id", ondelete="SET NULL"),
        nullable=True,
    )

    status: Mapped[SubmissionStatus] = mapped_column(
        pg_enum(SubmissionStatus, "submission_status"),
        nullable=False,
        default=SubmissionStatus.PENDING,
    )
    verification_status: Mapped[VerificationStatus] = mapped_column(
        pg_enum(VerificationStatus, "verification_status"),
        nullable=False,
    )

    reviewed_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    review_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("ix_vendor_voucher_submissions_vendor_id", "vendor_id"),
        Index("ix_vendor_voucher_submissions_status", "status"),
        # At most one open or accepted claim per code
        Index(
            "uq_vendor_voucher_submissions_open_code",
            "voucher_code",
            unique=True,
            postgresql_where=text("status IN ('pending', 'approved')"),
        ),
    )
