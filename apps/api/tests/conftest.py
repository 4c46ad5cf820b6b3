"""
Shared fixtures.

FakeVoucherStore stands in for the voucher repository: it keeps the code
registry, scholarship applications and vouchers in memory and yields to the
event loop on every call so concurrent issuances interleave.
"""

import asyncio
from datetime import UTC, datetime
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock
from uuid import UUID, uuid4

import pytest

from voucher_portal.core.auth import CurrentUser, UserRole
from voucher_portal.core.rate_limit import reset_memory_store
from voucher_portal.modules.scholarships.models import ScholarshipStatus
from voucher_portal.modules.vouchers import repository as voucher_repository
from voucher_portal.modules.vouchers.models import VoucherStatus


class FakeVoucherStore:
    """In-memory registry, applications and vouchers keyed by voucher code."""

    def __init__(self):
        self.registry: dict[str, SimpleNamespace] = {}
        self.applications: list[SimpleNamespace] = []
        self.vouchers: list[SimpleNamespace] = []
        self.probe_calls = 0
        self.reserve_calls = 0
        self.fail_with: Exception | None = None

    def _check_failure(self):
        if self.fail_with is not None:
            raise self.fail_with

    def add_application(self, **fields) -> SimpleNamespace:
        application = SimpleNamespace(
            id=fields.pop("id", uuid4()),
            status=fields.pop("status", ScholarshipStatus.APPROVED),
            voucher_code=fields.pop("voucher_code", None),
            student_name=fields.pop("student_name", "Ama Mensah"),
            school_name=fields.pop("school_name", "Accra Academy"),
            voucher_amount=fields.pop("voucher_amount", None),
            **fields,
        )
        self.applications.append(application)
        return application

    def add_voucher(self, **fields) -> SimpleNamespace:
        voucher = SimpleNamespace(
            id=fields.pop("id", uuid4()),
            voucher_code=fields.pop("voucher_code"),
            status=fields.pop("status", VoucherStatus.ACTIVE),
            amount=fields.pop("amount", Decimal("250.00")),
            **fields,
        )
        self.vouchers.append(voucher)
        return voucher

    async def voucher_code_exists(self, db, code):
        self.probe_calls += 1
        await asyncio.sleep(0)
        self._check_failure()
        return (
            code in self.registry
            or any(a.voucher_code == code for a in self.applications)
            or any(v.voucher_code == code for v in self.vouchers)
        )

    async def reserve_voucher_code(self, db, code, source, record_id):
        self.reserve_calls += 1
        await asyncio.sleep(0)
        self._check_failure()
        if code in self.registry:
            raise voucher_repository.VoucherCodeConflictError(code)
        entry = SimpleNamespace(
            code=code, source=source, record_id=record_id, issued_at=datetime.now(UTC)
        )
        self.registry[code] = entry
        return entry

    async def get_registry_entry(self, db, code):
        return self.registry.get(code)

    async def create_voucher(self, db, **fields):
        return self.add_voucher(**fields)

    async def get_applications_by_code(self, db, code):
        self._check_failure()
        return [a for a in self.applications if a.voucher_code == code]

    async def get_applications_by_code_ci(self, db, code):
        self._check_failure()
        return [
            a
            for a in self.applications
            if a.voucher_code and a.voucher_code.upper() == code.upper()
        ]

    async def get_vouchers_by_code(self, db, code):
        self._check_failure()
        return [v for v in self.vouchers if v.voucher_code == code]

    async def get_vouchers_by_code_ci(self, db, code):
        self._check_failure()
        return [v for v in self.vouchers if v.voucher_code.upper() == code.upper()]

    async def get_approved_application_by_code(self, db, code):
        return next(
            (
                a
                for a in self.applications
                if a.voucher_code
                and a.voucher_code.upper() == code.upper()
                and a.status == ScholarshipStatus.APPROVED
            ),
            None,
        )


PATCHED_REPOSITORY_FUNCTIONS = (
    "voucher_code_exists",
    "reserve_voucher_code",
    "get_registry_entry",
    "create_voucher",
    "get_applications_by_code",
    "get_applications_by_code_ci",
    "get_vouchers_by_code",
    "get_vouchers_by_code_ci",
    "get_approved_application_by_code",
)


@pytest.fixture
def voucher_store(monkeypatch):
    """FakeVoucherStore wired in place of the voucher repository functions."""
    store = FakeVoucherStore()
    for name in PATCHED_REPOSITORY_FUNCTIONS:
        monkeypatch.setattr(voucher_repository, name, getattr(store, name))
    return store


@pytest.fixture
def mock_db():
    """Create a mock database session."""
    db = AsyncMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    db.refresh = AsyncMock()
    db.flush = AsyncMock()
    db.get = AsyncMock()
    db.execute = AsyncMock()
    db.add = MagicMock()
    return db


@pytest.fixture
def admin_user():
    return CurrentUser(
        id=UUID("00000000-0000-0000-0000-000000000001"),
        email="admin@gbf.test",
        role=UserRole.ADMIN,
    )


@pytest.fixture
def school_user():
    return CurrentUser(
        id=UUID("00000000-0000-0000-0000-000000000002"),
        email="school@gbf.test",
        role=UserRole.SCHOOL,
    )


@pytest.fixture
def vendor_user():
    return CurrentUser(
        id=UUID("00000000-0000-0000-0000-000000000003"),
        email="vendor@gbf.test",
        role=UserRole.VENDOR,
    )


@pytest.fixture(autouse=True)
def _clear_rate_limits():
    reset_memory_store()
    yield
    reset_memory_store()
