"""Idempotency key repository - atomic claims for billed requests."""

import logging
from datetime import timedelta

from sqlalchemy import delete, update
from sqlalchemy.exc import IntegrityError

from src.constants import IDEMPOTENCY_CLAIM_TTL_SECONDS

from ..models import IdempotencyKeyModel, utc_now
from ..connection import db
from ..utils import with_db_retry

logger = logging.getLogger(__name__)


@with_db_retry
async def claim_key(
    user_id: str,
    request_id: str,
    stale_after_seconds: int = IDEMPOTENCY_CLAIM_TTL_SECONDS,
) -> bool:
    """
    Claim ``request_id`` for one in-flight request of ``user_id``.

    Returns:
        True if this caller now holds the key. False if the key is completed
        or held by a request claimed less than ``stale_after_seconds`` ago.
        An older pending claim (a worker that died mid-call) is taken over.
    """
    try:
        async with db.session() as session:
            session.add(IdempotencyKeyModel(user_id=user_id, request_id=request_id))
            await session.flush()
            return True
    except IntegrityError:
        logger.debug(f"Idempotency key {request_id} already claimed for user {user_id}")

    now = utc_now()
    async with db.session() as session:
        result = await session.execute(
            update(IdempotencyKeyModel)
            .where(
                IdempotencyKeyModel.user_id == user_id,
                IdempotencyKeyModel.request_id == request_id,
                IdempotencyKeyModel.status == "pending",
                IdempotencyKeyModel.claimed_at < now - timedelta(seconds=stale_after_seconds),
            )
            .values(claimed_at=now)
            .execution_options(synchronize_session=False)
        )
        taken_over = result.rowcount == 1

    if taken_over:
        logger.warning(f"Took over stale idempotency key {request_id} for user {user_id}")
    return taken_over


@with_db_retry
async def complete_key(user_id: str, request_id: str) -> None:
    """Mark a claimed key as billed; it can no longer be claimed."""
    async with db.session() as session:
        await session.execute(
            update(IdempotencyKeyModel)
            .where(
                IdempotencyKeyModel.user_id == user_id,
                IdempotencyKeyModel.request_id == request_id,
            )
            .values(status="completed")
            .execution_options(synchronize_session=False)
        )


@with_db_retry
async def release_key(user_id: str, request_id: str) -> None:
    """Drop a pending claim so the key can be retried."""
    async with db.session() as session:
        await session.execute(
            delete(IdempotencyKeyModel)
            .where(
                IdempotencyKeyModel.user_id == user_id,
                IdempotencyKeyModel.request_id == request_id,
                IdempotencyKeyModel.status == "pending",
            )
            .execution_options(synchronize_session=False)
        )
