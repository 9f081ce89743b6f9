"""Authentication helpers: password hashing and JWT session tokens."""

from .security import (
    AuthConfigurationError,
    AuthSettings,
    InvalidTokenError,
    create_access_token,
    decode_access_token,
    get_auth_settings,
    hash_password,
    verify_password,
)

__all__ = [
    "AuthConfigurationError",
    "AuthSettings",
    "InvalidTokenError",
    "create_access_token",
    "decode_access_token",
    "get_auth_settings",
    "hash_password",
    "verify_password",
]
