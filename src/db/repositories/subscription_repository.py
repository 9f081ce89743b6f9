"""Subscription repository - plan records and atomic token counters.

Every statement that changes tokens_used also rewrites tokens_remaining as
max(0, tokens_allowed - tokens_used), so the two columns never drift.
"""

import logging
from datetime import datetime
from typing import Optional, Dict, Any

from sqlalchemy import case, select, update

from ..models import SubscriptionModel, utc_now
from ..connection import db
from ..utils import with_db_retry

logger = logging.getLogger(__name__)


def _remaining_for(used_expr):
    """SQL expression for max(0, tokens_allowed - used_expr)."""
    remaining = SubscriptionModel.tokens_allowed - used_expr
    return case((remaining > 0, remaining), else_=0)


# =============================================================================
# READS
# =============================================================================


@with_db_retry
async def get_subscription(user_id: str) -> Optional[Dict[str, Any]]:
    async with db.session() as session:
        result = await session.execute(
            select(SubscriptionModel).where(SubscriptionModel.user_id == user_id)
        )
        subscription = result.scalar_one_or_none()
        return subscription.to_dict() if subscription else None


# =============================================================================
# WRITES
# =============================================================================


@with_db_retry
async def upsert_subscription(
    user_id: str,
    plan: str,
    tokens_allowed: int,
    price: float,
    billing_cycle: str,
    period_start: datetime,
    period_end: datetime,
    paystack_email: Optional[str] = None,
    google_pay_token: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Create or replace the user's subscription.

    Replacing a plan resets the counters and opens a new billing period.
    """
    async with db.session() as session:
        result = await session.execute(
            select(SubscriptionModel).where(SubscriptionModel.user_id == user_id)
        )
        subscription = result.scalar_one_or_none()

        if subscription is None:
            subscription = SubscriptionModel(user_id=user_id)
            session.add(subscription)

        subscription.plan = plan
        subscription.status = "active"
        subscription.tokens_allowed = tokens_allowed
        subscription.tokens_used = 0
        subscription.tokens_remaining = tokens_allowed
        subscription.price = price
        subscription.currency = "USD"
        subscription.billing_cycle = billing_cycle
        subscription.current_period_start = period_start
        subscription.current_period_end = period_end
        subscription.cancelled_at = None
        if paystack_email is not None:
            subscription.paystack_email = paystack_email
        if google_pay_token is not None:
            subscription.google_pay_token = google_pay_token

        await session.flush()
        logger.info(f"Subscription for user {user_id} set to plan={plan} cycle={billing_cycle}")
        return subscription.to_dict()


@with_db_retry
async def update_subscription(user_id: str, **values: Any) -> Optional[Dict[str, Any]]:
    """Set plain columns (status, cancelled_at, ...) and return the new row."""
    async with db.session() as session:
        values["updated_at"] = utc_now()
        await session.execute(
            update(SubscriptionModel)
            .where(SubscriptionModel.user_id == user_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(
            select(SubscriptionModel).where(SubscriptionModel.user_id == user_id)
        )
        subscription = result.scalar_one_or_none()
        return subscription.to_dict() if subscription else None


async def reset_usage(user_id: str) -> Optional[Dict[str, Any]]:
    return await update_subscription(
        user_id,
        tokens_used=0,
        tokens_remaining=SubscriptionModel.tokens_allowed,
    )


@with_db_retry
async def roll_over_period(
    user_id: str,
    expected_period_end: datetime,
    new_start: datetime,
    new_end: datetime,
) -> bool:
    """
    Open a new billing period and reset usage.

    Only applies while current_period_end still equals expected_period_end,
    so concurrent readers roll the period over exactly once.
    """
    async with db.session() as session:
        result = await session.execute(
            update(SubscriptionModel)
            .where(
                SubscriptionModel.user_id == user_id,
                SubscriptionModel.current_period_end == expected_period_end,
            )
            .values(
                tokens_used=0,
                tokens_remaining=SubscriptionModel.tokens_allowed,
                current_period_start=new_start,
                current_period_end=new_end,
                updated_at=utc_now(),
            )
            .execution_options(synchronize_session=False)
        )
        rolled = result.rowcount == 1
        if rolled:
            logger.info(f"Rolled over billing period for user {user_id} (new end {new_end.isoformat()})")
        return rolled


# =============================================================================
# TOKEN COUNTERS
# =============================================================================


@with_db_retry
async def reserve_tokens(user_id: str, amount: int) -> Optional[Dict[str, Any]]:
    """
    Atomically add ``amount`` to tokens_used if it fits the allowance.

    Returns:
        The updated subscription, or None when the subscription is missing,
        not active, or the amount would exceed tokens_allowed. Nothing is
        written in that case.
    """
    new_used = SubscriptionModel.tokens_used + amount
    async with db.session() as session:
        result = await session.execute(
            update(SubscriptionModel)
            .where(
                SubscriptionModel.user_id == user_id,
                SubscriptionModel.status == "active",
                new_used <= SubscriptionModel.tokens_allowed,
            )
            .values(
                tokens_used=new_used,
                tokens_remaining=_remaining_for(new_used),
                updated_at=utc_now(),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return None

        row = await session.execute(
            select(SubscriptionModel).where(SubscriptionModel.user_id == user_id)
        )
        return row.scalar_one().to_dict()


@with_db_retry
async def adjust_tokens(user_id: str, delta: int) -> Optional[Dict[str, Any]]:
    """
    Add ``delta`` (may be negative) to tokens_used, never going below zero.

    Used to settle a reservation against actual usage and to release it.
    """
    raw_used = SubscriptionModel.tokens_used + delta
    new_used = case((raw_used < 0, 0), else_=raw_used)
    async with db.session() as session:
        await session.execute(
            update(SubscriptionModel)
            .where(SubscriptionModel.user_id == user_id)
            .values(
                tokens_used=new_used,
                tokens_remaining=_remaining_for(new_used),
                updated_at=utc_now(),
            )
            .execution_options(synchronize_session=False)
        )
        row = await session.execute(
            select(SubscriptionModel).where(SubscriptionModel.user_id == user_id)
        )
        subscription = row.scalar_one_or_none()
        return subscription.to_dict() if subscription else None
