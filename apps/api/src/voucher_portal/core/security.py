"""
Token Security

JWT helpers for tokens issued by the hosted identity provider.
The API never issues long-lived credentials itself; create_access_token exists
for local tooling and tests that need a correctly signed token.
"""

import logging
from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt

from voucher_portal.core.config import settings

logger = logging.getLogger(__name__)

DEFAULT_ACCESS_TOKEN_MINUTES = 60


def create_access_token(
    subject: str,
    additional_claims: dict[str, Any] | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    """
    Create a signed access token.

    Args:
        subject: The user ID to put in the 'sub' claim
        additional_claims: Extra claims (email, role, ...)
        expires_delta: Token lifetime (default 60 minutes)

    Returns:
        Encoded JWT string
    """
    now = datetime.now(UTC)
    expire = now + (expires_delta or timedelta(minutes=DEFAULT_ACCESS_TOKEN_MINUTES))

    payload: dict[str, Any] = {
        "sub": subject,
        "iat": int(now.timestamp()),
        "exp": int(expire.timestamp()),
        "type": "access",
    }
    if settings.jwt_audience:
        payload["aud"] = settings.jwt_audience
    if additional_claims:
        payload.update(additional_claims)

    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict[str, Any] | None:
    """
    Decode and verify a JWT.

    Verifies signature, algorithm, expiry and (when configured) audience.

    Returns:
        The token payload, or None if the token is invalid or expired
    """
    try:
        return jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            options={"verify_aud": settings.jwt_audience is not None},
        )
    except JWTError as e:
        logger.debug(f"Token rejected: {e}")
        return None


def get_claim(payload: dict[str, Any], path: str) -> Any:
    """
    Read a possibly nested claim using a dotted path, e.g. 'app_metadata.role'.

    Returns None if any segment is missing.
    """
    value: Any = payload
    for part in path.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value
