"""
Vouchers Service Layer

Business logic for the voucher code lifecycle:

1. Issuance:
   - Generate a candidate code
   - Probe every place a code can live (fast path)
   - Reserve it in the registry under its primary-key constraint
   - Retry on collision, up to settings.voucher_code_max_attempts

2. Verification:
   - Normalize (trim, uppercase)
   - Scholarship applications first, then vouchers; first decisive hit wins
   - Case-insensitive fallback in the same order
   - Store failures are reported as unavailable, never as not found

3. Voucher management:
   - School listing, admin listing, cancellation, redemption, expiry

4. Reconciliation:
   - Detect (and optionally repair) partial writes across the registry,
     applications and vouchers

Codes are not secrets once issued and may be logged. Tokens never are.
"""

import logging
from datetime import UTC, datetime, timedelta
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from voucher_portal.core.config import settings
from voucher_portal.modules.scholarships.models import ScholarshipApplication, ScholarshipStatus
from voucher_portal.modules.shared import (
    NotFoundError,
    ServiceError,
    StoreUnavailableError,
    clamp_pagination,
)
from voucher_portal.modules.vouchers import codes, repository
from voucher_portal.modules.vouchers.models import (
    VerificationStatus,
    Voucher,
    VoucherCodeSource,
    VoucherStatus,
)
from voucher_portal.modules.vouchers.schemas import (
    ReconcileIssue,
    ReconcileReport,
    VoucherVerificationResponse,
)

logger = logging.getLogger(__name__)

REASON_NOT_APPROVED = "Voucher code is not approved yet"
REASON_NOT_ACTIVE = "Voucher code is not active"
REASON_NOT_FOUND = "Voucher code not found"


# ============================================
# Errors
# ============================================


class VoucherCodeExhaustedError(ServiceError):
    """Raised when no free code was found within the attempt bound."""

    def __init__(self, attempts: int):
        super().__init__(
            message=f"Failed to generate a unique voucher code after {attempts} attempts. "
            "Please try again.",
            error_code="VOUCHER_CODE_EXHAUSTED",
            status_code=503,
        )


class VerificationUnavailableError(ServiceError):
    """Raised when verification cannot reach the data store."""

    def __init__(self):
        super().__init__(
            message="Voucher verification is temporarily unavailable. Please try again.",
            error_code="VERIFICATION_UNAVAILABLE",
            status_code=503,
        )


class InvalidVoucherCodeError(ServiceError):
    """Raised when the submitted code is empty after normalization."""

    def __init__(self):
        super().__init__(
            message="Voucher code is required.",
            error_code="VALIDATION_ERROR",
            status_code=400,
        )


class VoucherNotFoundError(NotFoundError):
    def __init__(self, voucher_id: UUID | None = None):
        super().__init__("Voucher", voucher_id)


class CannotChangeVoucherError(ServiceError):
    """Raised when a voucher is not in a state that allows the action."""

    def __init__(self, current_status: str, action: str):
        super().__init__(
            message=f"Cannot {action} voucher in status: {current_status}. "
            "Voucher must be 'active'.",
            error_code="CANNOT_CHANGE_VOUCHER",
            status_code=409,
        )


# ============================================
# Issuance
# ============================================


async def issue_voucher_code(
    db: AsyncSession,
    *,
    source: VoucherCodeSource,
    record_id: UUID,
    max_attempts: int | None = None,
) -> str:
    """
    Generate and reserve a code no other record carries.

    The reservation is flushed, not committed; the caller commits it together
    with the records that carry the code.

    Raises:
        VoucherCodeExhaustedError: If every attempt collided (nothing is written)
        StoreUnavailableError: If the database cannot be reached
    """
    attempts = settings.voucher_code_max_attempts if max_attempts is None else max_attempts

    for attempt in range(1, attempts + 1):
        candidate = codes.generate_voucher_code()
        try:
            if await repository.voucher_code_exists(db, candidate):
                logger.warning(
                    f"Voucher code collision on probe (attempt {attempt}/{attempts}): {candidate}"
                )
                continue
            await repository.reserve_voucher_code(db, candidate, source, record_id)
        except repository.VoucherCodeConflictError:
            logger.warning(
                f"Voucher code reserved concurrently (attempt {attempt}/{attempts}): {candidate}"
            )
            continue
        except SQLAlchemyError as e:
            logger.error(f"Voucher code store unavailable: {e}", exc_info=True)
            raise StoreUnavailableError() from e

        logger.info(
            f"Reserved voucher code {candidate} for {source.value} {record_id} "
            f"after {attempt} attempt(s)"
        )
        return candidate

    logger.error(f"Voucher code generation exhausted after {attempts} attempts for {record_id}")
    raise VoucherCodeExhaustedError(attempts)


def voucher_expiry(now: datetime | None = None) -> datetime | None:
    """Expiry for a newly issued voucher, or None when vouchers do not expire."""
    if settings.voucher_validity_days is None:
        return None
    return (now or datetime.now(UTC)) + timedelta(days=settings.voucher_validity_days)


def scholarship_voucher_purpose(application: ScholarshipApplication) -> str:
    if application.program_type:
        return f"Scholarship: {application.program_type}"
    return "Scholarship"


# ============================================
# Verification
# ============================================


def _valid_from_application(application: ScholarshipApplication) -> VoucherVerificationResponse:
    return VoucherVerificationResponse(
        valid=True,
        verification_status=VerificationStatus.VALID,
        status=application.status.value,
        application_id=application.id,
        student_name=application.student_name,
        school_name=application.school_name,
        voucher_amount=(
            float(application.voucher_amount) if application.voucher_amount is not None else None
        ),
    )


async def _classify(
    db: AsyncSession, code: str, case_insensitive: bool
) -> VoucherVerificationResponse | None:
    """Classify against applications then vouchers. None means no record matched."""
    if case_insensitive:
        applications = await repository.get_applications_by_code_ci(db, code)
    else:
        applications = await repository.get_applications_by_code(db, code)

    if applications:
        approved = next(
            (a for a in applications if a.status == ScholarshipStatus.APPROVED), None
        )
        if approved:
            return _valid_from_application(approved)

        application = applications[0]
        return VoucherVerificationResponse(
            valid=False,
            verification_status=VerificationStatus.INVALID,
            status=application.status.value,
            application_id=application.id,
            reason=REASON_NOT_APPROVED,
        )

    if case_insensitive:
        vouchers = await repository.get_vouchers_by_code_ci(db, code)
    else:
        vouchers = await repository.get_vouchers_by_code(db, code)

    if not vouchers:
        return None

    voucher = next((v for v in vouchers if v.status == VoucherStatus.ACTIVE), vouchers[0])
    if voucher.status != VoucherStatus.ACTIVE:
        return VoucherVerificationResponse(
            valid=False,
            verification_status=VerificationStatus.INVALID,
            status=voucher.status.value,
            voucher_id=voucher.id,
            reason=REASON_NOT_ACTIVE,
        )

    related = await repository.get_approved_application_by_code(db, voucher.voucher_code)
    return VoucherVerificationResponse(
        valid=True,
        verification_status=VerificationStatus.VALID,
        status=voucher.status.value,
        application_id=related.id if related else voucher.id,
        voucher_id=voucher.id,
        student_name=related.student_name if related else None,
        school_name=related.school_name if related else None,
        voucher_amount=float(voucher.amount),
    )


async def verify_voucher_code(
    db: AsyncSession, raw_code: str | None
) -> VoucherVerificationResponse:
    """
    Classify a submitted code as valid, invalid or not_found. Read-only.

    Raises:
        InvalidVoucherCodeError: If the code is empty after normalization
        VerificationUnavailableError: If the data store cannot be reached
    """
    code = codes.normalize_voucher_code(raw_code or "")
    if not code:
        raise InvalidVoucherCodeError()

    if not codes.is_well_formed(code):
        logger.warning(f"Verifying malformed voucher code: {code!r}")

    try:
        result = await _classify(db, code, case_insensitive=False)
        if result is None:
            result = await _classify(db, code, case_insensitive=True)
    except SQLAlchemyError as e:
        logger.error(f"Voucher verification failed for {code}: {e}", exc_info=True)
        raise VerificationUnavailableError() from e

    if result is None:
        logger.info(f"Voucher code not found: {code}")
        return VoucherVerificationResponse(
            valid=False,
            verification_status=VerificationStatus.NOT_FOUND,
            reason=REASON_NOT_FOUND,
        )

    logger.info(f"Voucher code {code} verified as {result.verification_status.value}")
    return result


# ============================================
# Voucher management
# ============================================


async def get_school_vouchers(db: AsyncSession, school_id: UUID) -> list[Voucher]:
    return await repository.get_vouchers_for_school(db, school_id)


async def admin_get_vouchers_list(
    db: AsyncSession,
    *,
    status: VoucherStatus | None = None,
    search: str | None = None,
    skip: int = 0,
    limit: int = 20,
) -> dict:
    """Paginated voucher list for the admin dashboard."""
    skip, limit = clamp_pagination(skip, limit)
    vouchers, total = await repository.get_vouchers_for_admin(
        db, status=status, search=search, skip=skip, limit=limit
    )
    return {"vouchers": vouchers, "total": total, "skip": skip, "limit": limit}


async def admin_cancel_voucher(
    db: AsyncSession,
    voucher_id: UUID,
    admin_id: UUID,
    reason: str,
) -> Voucher:
    """
    Cancel an active voucher.

    Raises:
        VoucherNotFoundError: If the voucher doesn't exist
        CannotChangeVoucherError: If the voucher is not active
    """
    voucher = await repository.get_by_id(db, voucher_id)
    if not voucher:
        raise VoucherNotFoundError(voucher_id)

    try:
        await repository.update_voucher_status(db, voucher, VoucherStatus.CANCELLED)
    except repository.InvalidStatusTransitionError as e:
        logger.warning(f"Cannot cancel voucher {voucher_id}: status={voucher.status.value}")
        raise CannotChangeVoucherError(voucher.status.value, "cancel") from e

    await db.commit()
    await db.refresh(voucher)

    logger.info(f"Admin {admin_id} cancelled voucher {voucher.voucher_code}: {reason}")
    return voucher


async def redeem_voucher(db: AsyncSession, voucher: Voucher, redeemed_by: UUID) -> Voucher:
    """
    Mark an active voucher as used. Flushes only; the caller commits.

    Raises:
        CannotChangeVoucherError: If the voucher is not active
    """
    try:
        return await repository.update_voucher_status(
            db,
            voucher,
            VoucherStatus.USED,
            used_at=datetime.now(UTC),
            redeemed_by=redeemed_by,
        )
    except repository.InvalidStatusTransitionError as e:
        raise CannotChangeVoucherError(voucher.status.value, "redeem") from e


async def expire_vouchers(db: AsyncSession, now: datetime | None = None) -> int:
    """
    Move active vouchers past their expiry to expired.

    Each voucher is expired in its own savepoint; failures are logged and skipped.

    Returns:
        Number of vouchers expired
    """
    now = now or datetime.now(UTC)
    vouchers = await repository.get_active_vouchers_expired_before(db, now)

    expired = 0
    for voucher in vouchers:
        try:
            async with db.begin_nested():
                await repository.update_voucher_status(db, voucher, VoucherStatus.EXPIRED)
            expired += 1
            logger.info(f"Expired voucher {voucher.voucher_code} (expires_at={voucher.expires_at})")
        except (SQLAlchemyError, repository.InvalidStatusTransitionError) as e:
            logger.error(f"Failed to expire voucher {voucher.id}: {e}", exc_info=True)

    await db.commit()
    return expired


# ============================================
# Reconciliation
# ============================================


async def reconcile_voucher_codes(db: AsyncSession, repair: bool | None = None) -> ReconcileReport:
    """
    Check the registry, applications and vouchers against each other.

    Reports approved applications without a voucher row, vouchers whose origin
    record does not carry the same code, and registry entries no record uses.
    When repair is enabled the missing voucher rows are created.
    """
    repair = settings.reconcile_repair_missing_vouchers if repair is None else repair
    report = ReconcileReport(checked_at=datetime.now(UTC))

    for application in await repository.get_approved_applications_missing_voucher(db):
        report.missing_vouchers += 1
        issue = ReconcileIssue(
            kind="missing_voucher",
            voucher_code=application.voucher_code,
            record_id=application.id,
            source=VoucherCodeSource.SCHOLARSHIP_APPLICATION,
        )
        logger.warning(
            f"Approved application {application.id} has code {application.voucher_code} "
            "but no voucher row"
        )

        if repair:
            try:
                async with db.begin_nested():
                    if await repository.get_registry_entry(db, application.voucher_code) is None:
                        await repository.reserve_voucher_code(
                            db,
                            application.voucher_code,
                            VoucherCodeSource.SCHOLARSHIP_APPLICATION,
                            application.id,
                        )
                    await repository.create_voucher(
                        db,
                        voucher_code=application.voucher_code,
                        school_id=application.school_user_id,
                        amount=application.voucher_amount,
                        purpose=scholarship_voucher_purpose(application),
                        created_by=application.reviewed_by or application.submitted_by,
                        application_id=application.id,
                        expires_at=voucher_expiry(),
                    )
                issue.repaired = True
                report.repaired_vouchers += 1
                logger.info(f"Created missing voucher for application {application.id}")
            except (SQLAlchemyError, repository.VoucherCodeConflictError) as e:
                issue.detail = str(e)
                logger.error(
                    f"Failed to repair voucher for application {application.id}: {e}",
                    exc_info=True,
                )

        report.issues.append(issue)

    for voucher in await repository.get_vouchers_with_mismatched_origin(db):
        report.origin_mismatches += 1
        source = (
            VoucherCodeSource.SCHOLARSHIP_APPLICATION
            if voucher.application_id
            else VoucherCodeSource.VOUCHER_REQUEST
        )
        report.issues.append(
            ReconcileIssue(
                kind="origin_mismatch",
                voucher_code=voucher.voucher_code,
                record_id=voucher.id,
                source=source,
                detail=f"Origin {source.value} does not reference voucher {voucher.id}",
            )
        )
        logger.warning(f"Voucher {voucher.voucher_code} does not match its origin record")

    for entry in await repository.get_orphan_registry_entries(db):
        report.orphan_codes += 1
        report.issues.append(
            ReconcileIssue(
                kind="orphan_code",
                voucher_code=entry.code,
                record_id=entry.record_id,
                source=entry.source,
            )
        )
        logger.warning(f"Registry code {entry.code} is not carried by any record")

    await db.commit()

    logger.info(
        f"Reconciliation finished: missing={report.missing_vouchers}, "
        f"repaired={report.repaired_vouchers}, mismatched={report.origin_mismatches}, "
        f"orphans={report.orphan_codes}"
    )
    return report
