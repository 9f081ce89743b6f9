"""Shared dependencies for API routes.

Identity: the signed-in user comes from the ``auth-token`` cookie. Billed
endpoints also accept an explicit ``userId``; when both are present they
must agree.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import Cookie, Header, HTTPException

from src.constants import AUTH_COOKIE_NAME, IDEMPOTENCY_HEADER
from src.core.auth import InvalidTokenError, decode_access_token

logger = logging.getLogger(__name__)

MAX_IDEMPOTENCY_KEY_LENGTH = 255


# =============================================================================
# Session User
# =============================================================================

async def get_optional_user(
    auth_token: Optional[str] = Cookie(None, alias=AUTH_COOKIE_NAME),
) -> Optional[Dict[str, Any]]:
    """
    Decode the session cookie if there is one.

    Returns the token claims (``userId``, ``email``, ``role``) or None when
    the cookie is absent or no longer valid.
    """
    if not auth_token:
        return None
    try:
        return decode_access_token(auth_token)
    except InvalidTokenError as e:
        logger.debug(f"Ignoring session cookie: {e}")
        return None


async def get_current_user(
    auth_token: Optional[str] = Cookie(None, alias=AUTH_COOKIE_NAME),
) -> Dict[str, Any]:
    """
    Require a valid session cookie.

    Raises:
        HTTPException 401: Cookie missing or invalid
    """
    if not auth_token:
        raise HTTPException(status_code=401, detail="Authentication required")
    try:
        return decode_access_token(auth_token)
    except InvalidTokenError as e:
        raise HTTPException(status_code=401, detail=str(e))


def resolve_user_id(
    requested_user_id: Optional[str],
    session_user: Optional[Dict[str, Any]],
    missing_status: int = 401,
) -> str:
    """
    Pick the user a request acts for.

    Raises:
        HTTPException 403: ``userId`` names someone other than the session user
        HTTPException (missing_status): Neither is present
    """
    session_user_id = session_user.get("userId") if session_user else None

    if requested_user_id and session_user_id and requested_user_id != session_user_id:
        logger.warning(f"User {session_user_id} attempted to act as {requested_user_id}")
        raise HTTPException(status_code=403, detail="userId does not match the signed-in user")

    user_id = requested_user_id or session_user_id
    if not user_id:
        raise HTTPException(status_code=missing_status, detail="User ID required")
    return user_id


# =============================================================================
# Idempotency
# =============================================================================

async def get_idempotency_key(
    idempotency_key: Optional[str] = Header(None, alias=IDEMPOTENCY_HEADER),
) -> Optional[str]:
    if idempotency_key is None:
        return None
    idempotency_key = idempotency_key.strip()
    if not idempotency_key:
        return None
    if len(idempotency_key) > MAX_IDEMPOTENCY_KEY_LENGTH:
        raise HTTPException(
            status_code=400,
            detail=f"{IDEMPOTENCY_HEADER} must be at most {MAX_IDEMPOTENCY_KEY_LENGTH} characters",
        )
    return idempotency_key
