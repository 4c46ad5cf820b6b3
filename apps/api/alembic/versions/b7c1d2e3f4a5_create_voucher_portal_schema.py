"""create voucher portal schema

Revision ID: b7c1d2e3f4a5
Revises:
Create Date: 2026-10-17 12:00:00.000000

Creates signups, scholarship applications, voucher requests, vouchers, the
voucher code registry and vendor submissions.

voucher_requests.voucher_id and vouchers.voucher_request_id reference each
other, so the voucher_requests -> vouchers foreign key is added after both
tables exist.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "b7c1d2e3f4a5"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


ENUMS = {
    "school_signup_status": ("pending", "approved", "rejected", "waitlisted"),
    "vendor_signup_status": (
        "submitted",
        "under_review",
        "approved",
        "active",
        "suspended",
        "rejected",
    ),
    "scholarship_status": ("pending", "approved", "rejected"),
    "voucher_request_status": ("pending", "approved", "rejected"),
    "voucher_status": ("active", "used", "expired", "cancelled"),
    "voucher_code_source": ("scholarship_application", "voucher_request"),
    "submission_status": ("pending", "approved", "rejected"),
    "verification_status": ("valid", "invalid", "not_found"),
}


def _enum(name: str) -> postgresql.ENUM:
    return postgresql.ENUM(*ENUMS[name], name=name, create_type=False)


def _base_columns() -> list[sa.Column]:
    """id, created_at and updated_at (from BaseModel)."""
    return [
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def _review_columns(notes_column: str = "review_notes") -> list[sa.Column]:
    return [
        sa.Column("reviewed_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(notes_column, sa.Text(), nullable=True),
    ]


def upgrade() -> None:
    """Create all tables, enum types and indexes."""
    bind = op.get_bind()
    for name in ENUMS:
        _enum(name).create(bind, checkfirst=True)

    op.create_table(
        "school_signups",
        *_base_columns(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("school_name", sa.String(length=200), nullable=False),
        sa.Column("contact_name", sa.String(length=200), nullable=False),
        sa.Column("contact_phone", sa.String(length=30), nullable=True),
        sa.Column("school_address", sa.String(length=500), nullable=True),
        sa.Column("school_district", sa.String(length=200), nullable=True),
        sa.Column("school_type", sa.String(length=50), nullable=True),
        sa.Column("student_count", sa.Integer(), nullable=True),
        sa.Column("website", sa.String(length=500), nullable=True),
        sa.Column("additional_info", sa.Text(), nullable=True),
        sa.Column(
            "status",
            _enum("school_signup_status"),
            nullable=False,
            server_default="pending",
        ),
        *_review_columns(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", name="uq_school_signups_user_id"),
    )
    op.create_index("ix_school_signups_status", "school_signups", ["status"])

    op.create_table(
        "vendor_signups",
        *_base_columns(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("vendor_name", sa.String(length=200), nullable=False),
        sa.Column("vendor_type", sa.String(length=100), nullable=True),
        sa.Column("country", sa.String(length=100), nullable=True),
        sa.Column("contact_name", sa.String(length=200), nullable=False),
        sa.Column("contact_phone", sa.String(length=30), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("risk_flag", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column(
            "status",
            _enum("vendor_signup_status"),
            nullable=False,
            server_default="submitted",
        ),
        *_review_columns(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", name="uq_vendor_signups_user_id"),
    )
    op.create_index("ix_vendor_signups_status", "vendor_signups", ["status"])

    op.create_table(
        "scholarship_applications",
        *_base_columns(),
        sa.Column("student_name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("phone", sa.String(length=30), nullable=True),
        sa.Column("grade_level", sa.String(length=50), nullable=True),
        sa.Column("school_name", sa.String(length=200), nullable=False),
        sa.Column("district", sa.String(length=200), nullable=True),
        sa.Column("country", sa.String(length=100), nullable=True),
        sa.Column("program_type", sa.String(length=100), nullable=True),
        sa.Column("student_count", sa.Integer(), nullable=True),
        sa.Column("financial_need_description", sa.Text(), nullable=True),
        sa.Column("academic_goals", sa.Text(), nullable=True),
        sa.Column("voucher_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("voucher_code", sa.String(length=32), nullable=True),
        sa.Column("submitted_by", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("school_user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "status",
            _enum("scholarship_status"),
            nullable=False,
            server_default="pending",
        ),
        sa.Column(
            "applied_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        *_review_columns(notes_column="notes"),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "voucher_code IS NULL OR status = 'approved'",
            name="voucher_code_requires_approval",
        ),
    )
    op.create_index(
        "ix_scholarship_applications_status", "scholarship_applications", ["status"]
    )
    op.create_index(
        "ix_scholarship_applications_school_user_id",
        "scholarship_applications",
        ["school_user_id"],
    )
    op.create_index(
        "uq_scholarship_applications_voucher_code",
        "scholarship_applications",
        ["voucher_code"],
        unique=True,
        postgresql_where=sa.text("voucher_code IS NOT NULL"),
    )

    op.create_table(
        "voucher_requests",
        *_base_columns(),
        sa.Column("school_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("purpose", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "status",
            _enum("voucher_request_status"),
            nullable=False,
            server_default="pending",
        ),
        *_review_columns(),
        sa.Column("voucher_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_voucher_requests_status", "voucher_requests", ["status"])
    op.create_index("ix_voucher_requests_school_id", "voucher_requests", ["school_id"])

    op.create_table(
        "vouchers",
        *_base_columns(),
        sa.Column("voucher_code", sa.String(length=32), nullable=False),
        sa.Column("school_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("purpose", sa.String(length=200), nullable=False),
        sa.Column(
            "status",
            _enum("voucher_status"),
            nullable=False,
            server_default="active",
        ),
        sa.Column("application_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("voucher_request_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("created_by", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("redeemed_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("voucher_code", name="uq_vouchers_voucher_code"),
        sa.ForeignKeyConstraint(
            ["application_id"],
            ["scholarship_applications.id"],
            name="fk_vouchers_application_id",
            ondelete="SET NULL",
        ),
        sa.ForeignKeyConstraint(
            ["voucher_request_id"],
            ["voucher_requests.id"],
            name="fk_vouchers_voucher_request_id",
            ondelete="SET NULL",
        ),
    )
    op.create_index("ix_vouchers_school_id", "vouchers", ["school_id"])
    op.create_index("ix_vouchers_status", "vouchers", ["status"])

    op.create_foreign_key(
        "fk_voucher_requests_voucher_id",
        "voucher_requests",
        "vouchers",
        ["voucher_id"],
        ["id"],
        ondelete="SET NULL",
    )

    # One row per issued code; the primary key keeps codes unique across
    # scholarship applications and vouchers
    op.create_table(
        "voucher_codes",
        sa.Column("code", sa.String(length=32), nullable=False),
        sa.Column("source", _enum("voucher_code_source"), nullable=False),
        sa.Column("record_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "issued_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("code"),
    )

    op.create_table(
        "vendor_voucher_submissions",
        *_base_columns(),
        sa.Column("vendor_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("voucher_code", sa.String(length=64), nullable=False),
        sa.Column("voucher_application_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("voucher_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column(
            "status",
            _enum("submission_status"),
            nullable=False,
            server_default="pending",
        ),
        sa.Column("verification_status", _enum("verification_status"), nullable=False),
        *_review_columns(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["voucher_application_id"],
            ["scholarship_applications.id"],
            name="fk_vendor_voucher_submissions_application_id",
            ondelete="SET NULL",
        ),
        sa.ForeignKeyConstraint(
            ["voucher_id"],
            ["vouchers.id"],
            name="fk_vendor_voucher_submissions_voucher_id",
            ondelete="SET NULL",
        ),
    )
    op.create_index(
        "ix_vendor_voucher_submissions_vendor_id", "vendor_voucher_submissions", ["vendor_id"]
    )
    op.create_index(
        "ix_vendor_voucher_submissions_status", "vendor_voucher_submissions", ["status"]
    )
    # At most one open or accepted claim per code
    op.create_index(
        "uq_vendor_voucher_submissions_open_code",
        "vendor_voucher_submissions",
        ["voucher_code"],
        unique=True,
        postgresql_where=sa.text("status IN ('pending', 'approved')"),
    )


def downgrade() -> None:
    """Drop everything created in upgrade."""
    op.drop_table("vendor_voucher_submissions")
    op.drop_table("voucher_codes")
    op.drop_constraint("fk_voucher_requests_voucher_id", "voucher_requests", type_="foreignkey")
    op.drop_table("vouchers")
    op.drop_table("voucher_requests")
    op.drop_table("scholarship_applications")
    op.drop_table("vendor_signups")
    op.drop_table("school_signups")

    bind = op.get_bind()
    for name in reversed(list(ENUMS)):
        _enum(name).drop(bind, checkfirst=True)
