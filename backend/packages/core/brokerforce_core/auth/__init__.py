"""
Authentication utilities.

Provides password hashing, JWT token management and credential validation.
"""

from .credentials import (
    normalize_email,
    split_display_name,
    validate_email,
    validate_name,
    validate_password,
    validate_username,
)
from .jwt import (
    JWTConfig,
    TokenData,
    create_access_token,
    create_link_token,
    create_refresh_token,
    verify_token,
)
from .password import hash_password, verify_password

__all__ = [
    "JWTConfig",
    "TokenData",
    "create_access_token",
    "create_refresh_token",
    "create_link_token",
    "verify_token",
    "hash_password",
    "verify_password",
    "normalize_email",
    "split_display_name",
    "validate_email",
    "validate_name",
    "validate_password",
    "validate_username",
]
