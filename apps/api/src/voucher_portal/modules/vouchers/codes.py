"""
Voucher code format.

Codes look like GBF-7KQ2-M9XA: a three-letter prefix followed by two groups
of four symbols drawn from an alphabet without 0, O, I or 1.
"""

import re
import secrets

from voucher_portal.core.config import settings

ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
GROUP_LENGTH = 4
GROUP_COUNT = 2

CODE_PATTERN = re.compile(r"^[A-Z]{3}(-[A-Z2-9]{4}){2}$")


def generate_voucher_code(prefix: str | None = None) -> str:
    """Return a fresh candidate code using a cryptographically secure source."""
    groups = (
        "".join(secrets.choice(ALPHABET) for _ in range(GROUP_LENGTH)) for _ in range(GROUP_COUNT)
    )
    return "-".join([prefix or settings.voucher_code_prefix, *groups])


def normalize_voucher_code(raw: str) -> str:
    return raw.strip().upper()


def is_well_formed(code: str) -> bool:
    return CODE_PATTERN.fullmatch(code) is not None
