"""
Authentication and Authorization Module

Provides authentication dependencies for FastAPI endpoints.
Identity is owned by the hosted auth provider; this module only validates the
provider's JWT and extracts who the caller is and what role they hold.

Roles:
- admin: cross-cutting review of signups, applications, requests and redemptions
- school: applies for scholarships and vouchers, sees its own vouchers
- vendor: submits voucher codes for redemption

SECURITY NOTE:
- Development mode test tokens are ONLY accepted when PYTHON_ENV=development
- Production environments MUST set PYTHON_ENV=production to disable test tokens
"""

import enum
import logging
import os
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from voucher_portal.core.config import settings
from voucher_portal.core.security import decode_token, get_claim

logger = logging.getLogger(__name__)

# Security scheme for OpenAPI documentation
security = HTTPBearer(
    auto_error=True,
    description="JWT Bearer token issued by the identity provider",
)


class UserRole(str, enum.Enum):
    """Portal roles carried in the identity token."""

    ADMIN = "admin"
    SCHOOL = "school"
    VENDOR = "vendor"


@dataclass
class CurrentUser:
    """
    Represents an authenticated caller.

    Populated from JWT claims after token validation.

    Attributes:
        id: Identity-provider subject (UUID)
        email: Caller's email address
        role: Caller's portal role
        name: Display name (optional)
    """

    id: UUID
    email: str
    role: UserRole
    name: str | None = None

    def __str__(self) -> str:
        return f"CurrentUser(id={self.id}, email={self.email}, role={self.role.value})"


def _is_dev_mode_safe() -> bool:
    """
    Check if development mode is safe to enable.

    Requires settings.is_development, not settings.is_production, and a
    PYTHON_ENV environment variable that is neither production nor staging.
    """
    env_var = os.getenv("PYTHON_ENV", "").lower()

    is_safe = (
        settings.is_development
        and not settings.is_production
        and env_var != "production"
        and env_var != "staging"
    )

    if is_safe:
        logger.warning(
            "SECURITY: Development auth mode is ENABLED. This MUST NOT be used in production!"
        )

    return is_safe


_DEVELOPMENT_MODE = _is_dev_mode_safe()

# Fixed development identities, one per role
_DEV_USERS: dict[str, CurrentUser] = {
    "dev-admin": CurrentUser(
        id=UUID("00000000-0000-0000-0000-000000000001"),
        email="admin@gbf.dev",
        role=UserRole.ADMIN,
        name="Development Admin",
    ),
    "dev-school": CurrentUser(
        id=UUID("00000000-0000-0000-0000-000000000002"),
        email="school@gbf.dev",
        role=UserRole.SCHOOL,
        name="Development School",
    ),
    "dev-vendor": CurrentUser(
        id=UUID("00000000-0000-0000-0000-000000000003"),
        email="vendor@gbf.dev",
        role=UserRole.VENDOR,
        name="Development Vendor",
    ),
}


def _invalid_token(error: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"error": error, "message": message},
        headers={"WWW-Authenticate": "Bearer"},
    )


def _extract_role(payload: dict) -> UserRole | None:
    """Read the portal role from the configured claim, falling back to 'user_role'."""
    raw_role = get_claim(payload, settings.jwt_role_claim) or payload.get("user_role")
    if not raw_role:
        return None
    try:
        return UserRole(str(raw_role).lower())
    except ValueError:
        return None


async def _validate_jwt_token(token: str) -> CurrentUser:
    """
    Validate JWT token and extract user claims.

    Args:
        token: JWT token string from Authorization header

    Returns:
        CurrentUser built from the token claims

    Raises:
        HTTPException 401: If token is invalid, expired or missing claims
    """
    if _DEVELOPMENT_MODE and token in _DEV_USERS:
        logger.debug("Development mode: Using test token")
        return _DEV_USERS[token]

    payload = decode_token(token)

    if payload is None:
        logger.warning("Invalid or expired JWT token")
        raise _invalid_token("INVALID_TOKEN", "Invalid or expired authentication token.")

    token_type = payload.get("type", "access")
    if token_type != "access":
        logger.warning(f"Invalid token type: {token_type}")
        raise _invalid_token("INVALID_TOKEN_TYPE", "This endpoint requires an access token.")

    try:
        user_id_str = payload.get("sub")
        if not user_id_str:
            raise ValueError("Missing 'sub' claim in token")
        user_id = UUID(user_id_str)
    except ValueError as e:
        logger.warning(f"Invalid token claims: {e}")
        raise _invalid_token(
            "INVALID_TOKEN_CLAIMS", "Token contains invalid or missing claims."
        ) from e

    role = _extract_role(payload)
    if role is None:
        logger.warning(f"Token for user {user_id} carries no portal role")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "error": "ROLE_REQUIRED",
                "message": "Your account has no portal role assigned.",
            },
        )

    return CurrentUser(
        id=user_id,
        email=payload.get("email", ""),
        role=role,
        name=payload.get("name"),
    )


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> CurrentUser:
    """
    FastAPI dependency that validates the bearer token and returns the caller.

    Also stores the caller ID on request.state for rate limiting keys.
    """
    user = await _validate_jwt_token(credentials.credentials)
    request.state.user_id = str(user.id)
    return user


def require_roles(*roles: UserRole) -> Callable[..., Awaitable[CurrentUser]]:
    """
    Build a dependency that only admits callers holding one of the given roles.

    Usage:
        @router.get("/admin/endpoint")
        async def admin_endpoint(admin: CurrentUser = Depends(require_roles(UserRole.ADMIN))):
            ...
    """
    allowed = set(roles)

    async def dependency(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if user.role not in allowed:
            logger.warning(
                f"Access denied: User {user.id} ({user.email}) has role '{user.role.value}', "
                f"requires one of {sorted(r.value for r in allowed)}"
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "error": "INSUFFICIENT_ROLE",
                    "message": "You do not have access to this endpoint.",
                },
            )
        logger.debug(f"Authenticated {user.role.value}: {user.id} ({user.email})")
        return user

    return dependency


get_current_admin_user = require_roles(UserRole.ADMIN)
get_current_school_user = require_roles(UserRole.SCHOOL)
get_current_vendor_user = require_roles(UserRole.VENDOR)
get_verification_caller = require_roles(UserRole.VENDOR, UserRole.ADMIN)


__all__ = [
    "CurrentUser",
    "UserRole",
    "get_current_user",
    "require_roles",
    "get_current_admin_user",
    "get_current_school_user",
    "get_current_vendor_user",
    "get_verification_caller",
]
