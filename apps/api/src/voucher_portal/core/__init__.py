"""
Core module - Configuration, database, security, and utilities.
"""

from voucher_portal.core.config import get_settings, settings
from voucher_portal.core.database import Base, close_db, get_db, init_db
from voucher_portal.core.redis import close_redis, init_redis
from voucher_portal.core.security import create_access_token, decode_token, get_claim

__all__ = [
    # Config
    "settings",
    "get_settings",
    # Database
    "Base",
    "get_db",
    "init_db",
    "close_db",
    # Redis
    "init_redis",
    "close_redis",
    # Security
    "create_access_token",
    "decode_token",
    "get_claim",
]
