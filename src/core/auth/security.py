"""
Password hashing and session tokens.

Passwords are stored as bcrypt hashes. Sessions are HS256 JWTs carried in the
``auth-token`` cookie with ``userId``, ``email``, ``role`` and ``exp`` claims.
There is no fallback signing secret: without ``JWT_SECRET`` every issue or
verify call raises AuthConfigurationError.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import bcrypt
import jwt

from src.constants import DEFAULT_TOKEN_MAX_AGE_SECONDS, MAX_PASSWORD_BYTES
from src.utils.env_utils import parse_bool_env, parse_int_env, parse_str_env

logger = logging.getLogger(__name__)


class AuthConfigurationError(RuntimeError):
    """JWT_SECRET is not configured."""


class InvalidTokenError(Exception):
    """The session token is missing, malformed, expired or badly signed."""


@dataclass
class AuthSettings:
    secret: Optional[str]
    algorithm: str
    max_age: int
    cookie_secure: bool

    @classmethod
    def from_env(cls) -> "AuthSettings":
        return cls(
            secret=parse_str_env("JWT_SECRET"),
            algorithm=parse_str_env("JWT_ALGORITHM", "HS256"),
            max_age=parse_int_env("AUTH_TOKEN_MAX_AGE", DEFAULT_TOKEN_MAX_AGE_SECONDS),
            cookie_secure=parse_bool_env("COOKIE_SECURE", False),
        )

    def require_secret(self) -> str:
        if not self.secret:
            raise AuthConfigurationError("JWT_SECRET is not configured")
        return self.secret


def get_auth_settings() -> AuthSettings:
    """Read on every call so tests and deployments can change the env."""
    return AuthSettings.from_env()


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    if not password_hash:
        return False
    secret = password.encode("utf-8")
    # Nothing longer than bcrypt's limit can have been hashed at signup
    if len(secret) > MAX_PASSWORD_BYTES:
        return False
    try:
        return bcrypt.checkpw(secret, password_hash.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is malformed")
        return False


def create_access_token(
    user: Dict[str, Any],
    settings: Optional[AuthSettings] = None,
    now: Optional[datetime] = None,
) -> str:
    """Sign a session token for a user dict (``id``, ``email``, ``role``)."""
    settings = settings or get_auth_settings()
    secret = settings.require_secret()
    now = now or datetime.now(timezone.utc)

    payload = {
        "userId": user["id"],
        "email": user["email"],
        "role": user.get("role") or "user",
        "exp": now + timedelta(seconds=settings.max_age),
    }
    return jwt.encode(payload, secret, algorithm=settings.algorithm)


def decode_access_token(token: str, settings: Optional[AuthSettings] = None) -> Dict[str, Any]:
    """
    Verify and decode a session token.

    Raises:
        AuthConfigurationError: JWT_SECRET missing
        InvalidTokenError: Token rejected
    """
    settings = settings or get_auth_settings()
    secret = settings.require_secret()

    if not token:
        raise InvalidTokenError("No authentication token found")

    try:
        payload = jwt.decode(token, secret, algorithms=[settings.algorithm])
    except jwt.ExpiredSignatureError as e:
        raise InvalidTokenError("Token expired") from e
    except jwt.InvalidTokenError as e:
        raise InvalidTokenError("Invalid token") from e

    if not payload.get("userId"):
        raise InvalidTokenError("Invalid token")
    return payload
