"""
Scholarship Application Models

A school submits scholarship applications on behalf of students.
Approval assigns a voucher code, which is immutable once set.
"""

import enum
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, DateTime, Index, Integer, Numeric, String, Text, func, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from voucher_portal.modules.shared import BaseModel, pg_enum


class ScholarshipStatus(str, enum.Enum):
    """Status of a scholarship application."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ScholarshipApplication(BaseModel):
    """Scholarship application for one student (or a cohort, via student_count)."""

    __tablename__ = "scholarship_applications"

    # Student
    student_name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(30), nullable=True)
    grade_level: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # School and program
    school_name: Mapped[str] = mapped_column(String(200), nullable=False)
    district: Mapped[str | None] = mapped_column(String(200), nullable=True)
    country: Mapped[str | None] = mapped_column(String(100), nullable=True)
    program_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    student_count: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Need statement
    financial_need_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    academic_goals: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Award
    voucher_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    voucher_code: Mapped[str | None] = mapped_column(String(32), nullable=True)

    # Ownership
    submitted_by: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    school_user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)

    # Review
    status: Mapped[ScholarshipStatus] = mapped_column(
        pg_enum(ScholarshipStatus, "scholarship_status"),
        nullable=False,
        default=ScholarshipStatus.PENDING,
    )
    applied_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    reviewed_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("ix_scholarship_applications_status", "status"),
        Index("ix_scholarship_applications_school_user_id", "school_user_id"),
        Index(
            "uq_scholarship_applications_voucher_code",
            "voucher_code",
            unique=True,
            postgresql_where=text("voucher_code IS NOT NULL"),
        ),
        CheckConstraint(
            "voucher_code IS NULL OR status = 'approved'",
            name="voucher_code_requires_approval",
        ),
    )
