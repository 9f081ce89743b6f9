"""User repository - account lookup and creation."""

import logging
from typing import Optional, Dict, Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from ..models import SubscriptionModel, UserModel
from ..connection import db
from ..utils import with_db_retry

logger = logging.getLogger(__name__)


class DuplicateEmailError(Exception):
    """Raised when signing up with an email that is already registered."""


@with_db_retry
async def create_user(
    email: str,
    password_hash: str,
    name: Optional[str] = None,
    role: str = "user",
    subscription: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Create a user, optionally with their first subscription.

    ``subscription`` holds SubscriptionModel column values; both rows are
    written in one transaction, so a failed subscription insert leaves no
    user behind.

    Raises:
        DuplicateEmailError: If the email is already registered
    """
    async with db.session() as session:
        user = UserModel(
            email=email,
            name=name,
            role=role,
            password_hash=password_hash,
        )
        session.add(user)
        try:
            await session.flush()
        except IntegrityError as e:
            raise DuplicateEmailError(email) from e

        if subscription is not None:
            session.add(SubscriptionModel(user_id=user.id, **subscription))
            await session.flush()

        logger.info(f"Created user {user.id}")
        return user.to_dict()


@with_db_retry
async def get_user_by_id(user_id: str) -> Optional[Dict[str, Any]]:
    async with db.session() as session:
        user = await session.get(UserModel, user_id)
        return user.to_dict() if user else None


@with_db_retry
async def get_user_by_email(email: str) -> Optional[Dict[str, Any]]:
    async with db.session() as session:
        result = await session.execute(select(UserModel).where(UserModel.email == email))
        user = result.scalar_one_or_none()
        return user.to_dict() if user else None


@with_db_retry
async def get_user_credentials(email: str) -> Optional[Dict[str, Any]]:
    """Public user fields plus ``passwordHash``, for login only."""
    async with db.session() as session:
        result = await session.execute(select(UserModel).where(UserModel.email == email))
        user = result.scalar_one_or_none()
        if user is None:
            return None
        data = user.to_dict()
        data["passwordHash"] = user.password_hash
        return data
