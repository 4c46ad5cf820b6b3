"""
Signup Models

Self-service registrations for schools and vendors.
A signup is keyed by the identity-provider subject and is never deleted;
only admins move it through its status state machine.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from voucher_portal.modules.shared import BaseModel, pg_enum


class SchoolSignupStatus(str, enum.Enum):
    """Status of a school signup."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    WAITLISTED = "waitlisted"


class VendorSignupStatus(str, enum.Enum):
    """Status of a vendor signup."""

    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    ACTIVE = "active"
    SUSPENDED = "suspended"
    REJECTED = "rejected"


class SchoolSignup(BaseModel):
    """School registration awaiting (or past) admin review."""

    __tablename__ = "school_signups"

    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), unique=True, nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)

    school_name: Mapped[str] = mapped_column(String(200), nullable=False)
    contact_name: Mapped[str] = mapped_column(String(200), nullable=False)
    contact_phone: Mapped[str | None] = mapped_column(String(30), nullable=True)
    school_address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    school_district: Mapped[str | None] = mapped_column(String(200), nullable=True)
    school_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    student_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    website: Mapped[str | None] = mapped_column(String(500), nullable=True)
    additional_info: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[SchoolSignupStatus] = mapped_column(
        pg_enum(SchoolSignupStatus, "school_signup_status"),
        nullable=False,
        default=SchoolSignupStatus.PENDING,
    )
    reviewed_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    review_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (Index("ix_school_signups_status", "status"),)


class VendorSignup(BaseModel):
    """Vendor registration awaiting (or past) admin review."""

    __tablename__ = "vendor_signups"

    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), unique=True, nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)

    vendor_name: Mapped[str] = mapped_column(String(200), nullable=False)
    vendor_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    country: Mapped[str | None] = mapped_column(String(100), nullable=True)
    contact_name: Mapped[str] = mapped_column(String(200), nullable=False)
    contact_phone: Mapped[str | None] = mapped_column(String(30), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Set by admins for vendors that need extra scrutiny
    risk_flag: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    status: Mapped[VendorSignupStatus] = mapped_column(
        pg_enum(VendorSignupStatus, "vendor_signup_status"),
        nullable=False,
        default=VendorSignupStatus.SUBMITTED,
    )
    reviewed_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    review_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (Index("ix_vendor_signups_status", "status"),)
