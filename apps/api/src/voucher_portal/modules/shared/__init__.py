"""
Shared building blocks for feature modules.

- BaseModel: declarative base with UUID primary key and audit timestamps
- ServiceError: base exception translated by routers into HTTP errors
- Pagination helpers used by every admin list endpoint
"""

import enum
import logging
import uuid
from datetime import datetime
from typing import NoReturn

from fastapi import HTTPException, status
from sqlalchemy import DateTime, Enum, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from voucher_portal.core.database import Base

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


def pg_enum(enum_cls: type[enum.Enum], name: str) -> Enum:
    """PostgreSQL enum column type that stores member values, not names."""
    return Enum(enum_cls, name=name, values_callable=lambda members: [m.value for m in members])


class BaseModel(Base):
    """Abstract model adding id, created_at and updated_at."""

    __abstract__ = True

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class ServiceError(Exception):
    """Base exception for service-layer errors."""

    def __init__(self, message: str, error_code: str, status_code: int = 400):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        super().__init__(message)


class NotFoundError(ServiceError):
    """Raised when a record does not exist."""

    def __init__(self, resource: str, record_id: uuid.UUID | None = None):
        message = f"{resource} {record_id} not found" if record_id else f"{resource} not found"
        super().__init__(
            message=message,
            error_code=f"{resource.upper().replace(' ', '_')}_NOT_FOUND",
            status_code=404,
        )


class StoreUnavailableError(ServiceError):
    """Raised when the database cannot be reached. Retryable."""

    def __init__(self, message: str = "The data store is temporarily unavailable."):
        super().__init__(
            message=message,
            error_code="STORE_UNAVAILABLE",
            status_code=503,
        )


def raise_service_error(e: ServiceError) -> NoReturn:
    """Convert a service error to an HTTPException."""
    raise HTTPException(
        status_code=e.status_code,
        detail={
            "error": e.error_code,
            "message": e.message,
        },
    ) from e


def raise_internal_error(e: Exception, action: str) -> NoReturn:
    """Log an unexpected error with traceback and raise a generic 500."""
    logger.exception(f"Error {action}: {e}")
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={
            "error": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        },
    ) from e


def clamp_pagination(skip: int, limit: int) -> tuple[int, int]:
    """Return (skip, limit) with skip >= 0 and 1 <= limit <= MAX_PAGE_SIZE."""
    return max(0, skip), min(max(1, limit), MAX_PAGE_SIZE)


__all__ = [
    "BaseModel",
    "ServiceError",
    "NotFoundError",
    "StoreUnavailableError",
    "raise_service_error",
    "raise_internal_error",
    "clamp_pagination",
    "pg_enum",
    "MAX_PAGE_SIZE",
]
