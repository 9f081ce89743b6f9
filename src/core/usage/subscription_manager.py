"""
SubscriptionManager - Handles subscription lifecycle.

Single responsibility: Creating, reading and transitioning user subscriptions.
"""

import logging
from datetime import datetime
from typing import Optional, Dict, Any, Union

from src.db.models import utc_now
from src.db.repositories import subscription_repository, user_repository

from .exceptions import InvalidPlanError, UsageTrackingError
from .plans import BILLING_CYCLES, get_plan, period_end_for
from .quota_checker import get_quota_checker

logger = logging.getLogger(__name__)


class SubscriptionStateError(UsageTrackingError):
    """Raised for an invalid state transition (e.g. resuming an active plan)."""


class UserNotFoundError(UsageTrackingError):
    status_code = 404

    def __init__(self, user_id: str):
        super().__init__(message="User not found", details={"user_id": user_id})


class SubscriptionManager:
    """
    Manages user subscriptions.

    Responsibilities:
    - Fetch subscriptions, rolling over expired billing periods
    - Create or replace subscriptions on purchase
    - Cancel, resume and reset usage
    - Apply payment provider webhook events
    """

    async def get_subscription(self, user_id: str) -> Optional[Dict[str, Any]]:
        """
        Get subscription with automatic billing period roll-over.

        If the current period has ended, usage is reset and a new period of
        the same length starts at the old period end.
        """
        subscription = await subscription_repository.get_subscription(user_id)
        if not subscription:
            return None

        period_end = _parse_dt(subscription.get("currentPeriodEnd"))
        now = utc_now()
        if period_end and period_end <= now:
            new_start = period_end
            new_end = period_end_for(new_start, subscription["billingCycle"])
            # Catch up if several periods were skipped
            while new_end <= now:
                new_start = new_end
                new_end = period_end_for(new_start, subscription["billingCycle"])

            await subscription_repository.roll_over_period(
                user_id, period_end, new_start, new_end
            )
            get_quota_checker().invalidate_cache(user_id)
            subscription = await subscription_repository.get_subscription(user_id)

        return subscription

    async def register_user(
        self,
        email: str,
        password_hash: str,
        name: Optional[str] = None,
        plan: str = "free",
    ) -> Dict[str, Any]:
        """
        Create a user together with a monthly subscription, atomically.

        Raises:
            InvalidPlanError: Unknown plan
            DuplicateEmailError: Email already registered
        """
        plan_config = get_plan(plan)
        if plan_config is None:
            raise InvalidPlanError(plan)

        start = utc_now()
        user = await user_repository.create_user(
            email=email,
            password_hash=password_hash,
            name=name,
            subscription={
                "plan": plan_config.name,
                "tokens_allowed": plan_config.tokens_allowed,
                "tokens_remaining": plan_config.tokens_allowed,
                "price": plan_config.price_for("monthly"),
                "billing_cycle": "monthly",
                "current_period_start": start,
                "current_period_end": period_end_for(start, "monthly"),
            },
        )
        logger.info(f"Registered user {user['id']} on plan={plan_config.name}")
        return user

    async def create_subscription(
        self,
        user_id: str,
        plan: str,
        billing_cycle: str = "monthly",
        payment_method: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Create or replace a user's subscription.

        Raises:
            InvalidPlanError: Unknown plan or billing cycle
            UserNotFoundError: Unknown user
        """
        plan_config = get_plan(plan)
        if plan_config is None:
            raise InvalidPlanError(plan)
        if billing_cycle not in BILLING_CYCLES:
            raise InvalidPlanError(f"{plan} ({billing_cycle})")

        if not await user_repository.get_user_by_id(user_id):
            raise UserNotFoundError(user_id)

        payment_method = payment_method or {}
        paystack_email = None
        google_pay_token = None
        if payment_method.get("type") == "paystack":
            paystack_email = payment_method.get("email")
        elif payment_method.get("type") == "google_pay":
            google_pay_token = payment_method.get("token")

        start = utc_now()
        subscription = await subscription_repository.upsert_subscription(
            user_id=user_id,
            plan=plan_config.name,
            tokens_allowed=plan_config.tokens_allowed,
            price=plan_config.price_for(billing_cycle),
            billing_cycle=billing_cycle,
            period_start=start,
            period_end=period_end_for(start, billing_cycle),
            paystack_email=paystack_email,
            google_pay_token=google_pay_token,
        )
        get_quota_checker().invalidate_cache(user_id)
        return subscription

    async def cancel(self, user_id: str) -> Optional[Dict[str, Any]]:
        subscription = await subscription_repository.update_subscription(
            user_id, status="cancelled", cancelled_at=utc_now()
        )
        get_quota_checker().invalidate_cache(user_id)
        logger.info(f"Cancelled subscription for user {user_id}")
        return subscription

    async def resume(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Reactivate a cancelled subscription."""
        current = await subscription_repository.get_subscription(user_id)
        if current is None:
            return None
        if current["status"] != "cancelled":
            raise SubscriptionStateError("Subscription is not cancelled")

        subscription = await subscription_repository.update_subscription(
            user_id, status="active", cancelled_at=None
        )
        get_quota_checker().invalidate_cache(user_id)
        logger.info(f"Resumed subscription for user {user_id}")
        return subscription

    async def reset_usage(self, user_id: str) -> Optional[Dict[str, Any]]:
        subscription = await subscription_repository.reset_usage(user_id)
        get_quota_checker().invalidate_cache(user_id)
        logger.info(f"Reset token usage for user {user_id}")
        return subscription

    async def apply_webhook(
        self, provider: str, event: str, data: Dict[str, Any]
    ) -> Dict[str, Any]:
        """
        Apply a payment provider event.

        Only status transitions are applied; amounts in the payload are
        never trusted.
        """
        user_id = (data or {}).get("userId") or (data or {}).get("user_id")
        logger.info(f"Payment webhook: provider={provider} event={event} user={user_id}")

        if not user_id:
            return {"received": True, "applied": False}

        activation_events = {"charge.success", "subscription.create", "payment.succeeded"}
        cancellation_events = {"subscription.disable", "subscription.not_renew", "payment.cancelled"}

        current = await subscription_repository.get_subscription(user_id)
        if current is None:
            return {"received": True, "applied": False}

        if event in activation_events:
            await subscription_repository.update_subscription(
                user_id, status="active", cancelled_at=None
            )
        elif event in cancellation_events:
            await subscription_repository.update_subscription(
                user_id, status="cancelled", cancelled_at=utc_now()
            )
        else:
            return {"received": True, "applied": False}

        get_quota_checker().invalidate_cache(user_id)
        return {"received": True, "applied": True}


def _parse_dt(value: Union[str, datetime, None]) -> Optional[datetime]:
    if isinstance(value, str):
        return datetime.fromisoformat(value)
    return value


_subscription_manager: Optional[SubscriptionManager] = None


def get_subscription_manager() -> SubscriptionManager:
    global _subscription_manager
    if _subscription_manager is None:
        _subscription_manager = SubscriptionManager()
    return _subscription_manager
