"""Authentication API endpoints: signup, login, logout and current user."""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Response

from src.constants import AUTH_COOKIE_NAME
from src.core.auth import create_access_token, get_auth_settings, hash_password, verify_password
from src.core.usage import get_subscription_manager
from src.db.repositories import DuplicateEmailError, user_repository

from ..dependencies import get_current_user
from ..schemas.auth import LoginRequest, SignupRequest, UserResponse
from ..schemas.common import MessageResponse
from ..schemas.errors import AUTH_ERROR_RESPONSES

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post(
    "/signup",
    response_model=UserResponse,
    responses=AUTH_ERROR_RESPONSES,
    operation_id="signup",
    summary="Create an account",
)
async def signup(request: SignupRequest):
    """
    Register a new user and open a free subscription for them.

    The name defaults to the local part of the email address.
    """
    name = request.name or request.email.split("@")[0]
    try:
        user = await get_subscription_manager().register_user(
            email=request.email,
            password_hash=hash_password(request.password),
            name=name,
        )
    except DuplicateEmailError:
        raise HTTPException(status_code=400, detail="An account with this email already exists")

    logger.info(f"Signed up user {user['id']}")

    return UserResponse(message="User created successfully", user=user)


@router.post(
    "/login",
    response_model=UserResponse,
    responses=AUTH_ERROR_RESPONSES,
    operation_id="login",
    summary="Sign in and receive the session cookie",
)
async def login(request: LoginRequest, response: Response):
    settings = get_auth_settings()
    settings.require_secret()

    credentials = await user_repository.get_user_credentials(request.email)
    if not credentials or not verify_password(request.password, credentials.pop("passwordHash", None)):
        raise HTTPException(status_code=401, detail="Invalid email or password")

    token = create_access_token(credentials, settings=settings)
    response.set_cookie(
        key=AUTH_COOKIE_NAME,
        value=token,
        max_age=settings.max_age,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="strict",
    )

    logger.info(f"User {credentials['id']} logged in")
    return UserResponse(message="Login successful", user=credentials)


@router.post(
    "/logout",
    response_model=MessageResponse,
    operation_id="logout",
    summary="Clear the session cookie",
)
async def logout(response: Response):
    settings = get_auth_settings()
    response.set_cookie(
        key=AUTH_COOKIE_NAME,
        value="",
        max_age=0,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="strict",
    )
    return MessageResponse(message="Logout successful")


@router.get(
    "/me",
    response_model=UserResponse,
    responses=AUTH_ERROR_RESPONSES,
    operation_id="getCurrentUser",
    summary="Get the signed-in user",
)
async def me(session_user: Dict[str, Any] = Depends(get_current_user)):
    user = await user_repository.get_user_by_id(session_user["userId"])
    if not user:
        raise HTTPException(status_code=401, detail="Invalid token")
    return UserResponse(user=user)
