"""Tests for SubscriptionManager lifecycle transitions."""

from datetime import timedelta

import pytest


class TestRegisterUser:
    """Tests for register_user."""

    @pytest.mark.asyncio
    async def test_user_starts_on_free_plan(self, database):
        """A registered user has an active monthly free subscription."""
        from src.core.usage import get_subscription_manager

        manager = get_subscription_manager()
        user = await manager.register_user("new@example.com", "hash", name="New")
        sub = await manager.get_subscription(user["id"])

        assert user["name"] == "New"
        assert sub["plan"] == "free"
        assert sub["status"] == "active"
        assert sub["tokensAllowed"] == 150
        assert sub["tokensRemaining"] == 150
        assert sub["billingCycle"] == "monthly"

    @pytest.mark.asyncio
    async def test_unknown_plan_creates_nothing(self, database):
        """An unknown plan is refused before any row is written."""
        from src.core.usage import InvalidPlanError, get_subscription_manager
        from src.db.repositories import user_repository

        with pytest.raises(InvalidPlanError):
            await get_subscription_manager().register_user("new@example.com", "hash", plan="platinum")

        assert await user_repository.get_user_by_email("new@example.com") is None


class TestCreateSubscription:
    """Tests for create_subscription."""

    @pytest.mark.asyncio
    async def test_creates_plan_with_full_allowance(self, create_user):
        """A new subscription starts active with nothing used."""
        user, sub = await create_user(plan="pro", billing_cycle="yearly")

        assert sub["plan"] == "pro"
        assert sub["status"] == "active"
        assert sub["tokensAllowed"] == 150_000
        assert sub["tokensUsed"] == 0
        assert sub["tokensRemaining"] == 150_000
        assert sub["price"] == 250.0
        assert sub["billingCycle"] == "yearly"

    @pytest.mark.asyncio
    async def test_replacing_plan_resets_usage(self, create_user):
        """Buying a new plan resets counters to the new allowance."""
        from src.core.usage import get_subscription_manager

        user, _ = await create_user(plan="free", tokens_used=100)
        sub = await get_subscription_manager().create_subscription(user["id"], "basic")

        assert sub["plan"] == "basic"
        assert sub["tokensUsed"] == 0
        assert sub["tokensRemaining"] == 25_000

    @pytest.mark.asyncio
    async def test_payment_method_is_stored(self, create_user):
        """Paystack emails are kept on the subscription."""
        from src.core.usage import get_subscription_manager

        user, _ = await create_user(plan=None)
        sub = await get_subscription_manager().create_subscription(
            user["id"], "starter", payment_method={"type": "paystack", "email": "pay@example.com"}
        )

        assert sub["paystackEmail"] == "pay@example.com"
        assert sub["googlePayToken"] is None

    @pytest.mark.asyncio
    async def test_invalid_plan(self, create_user):
        """Unknown plan names raise InvalidPlanError."""
        from src.core.usage import InvalidPlanError, get_subscription_manager

        user, _ = await create_user(plan=None)

        with pytest.raises(InvalidPlanError):
            await get_subscription_manager().create_subscription(user["id"], "platinum")

    @pytest.mark.asyncio
    async def test_invalid_billing_cycle(self, create_user):
        """Only monthly and yearly cycles exist."""
        from src.core.usage import InvalidPlanError, get_subscription_manager

        user, _ = await create_user(plan=None)

        with pytest.raises(InvalidPlanError):
            await get_subscription_manager().create_subscription(user["id"], "basic", billing_cycle="weekly")

    @pytest.mark.asyncio
    async def test_unknown_user(self, database):
        """Subscriptions require an existing user."""
        from src.core.usage import UserNotFoundError, get_subscription_manager

        with pytest.raises(UserNotFoundError):
            await get_subscription_manager().create_subscription("no-such-user", "basic")


class TestPeriodRollover:
    """Tests for automatic billing period roll-over on read."""

    @pytest.mark.asyncio
    async def test_expired_period_resets_usage(self, create_user):
        """Reading after the period end starts a fresh period with zero usage."""
        from src.core.usage import get_subscription_manager
        from src.db.models import utc_now
        from src.db.repositories import subscription_repository

        user, _ = await create_user(plan="free", tokens_used=120)
        now = utc_now()
        await subscription_repository.update_subscription(
            user["id"],
            current_period_start=now - timedelta(days=40),
            current_period_end=now - timedelta(days=10),
        )

        sub = await get_subscription_manager().get_subscription(user["id"])

        assert sub["tokensUsed"] == 0
        assert sub["tokensRemaining"] == 150
        assert sub["currentPeriodEnd"] > now.isoformat()

    @pytest.mark.asyncio
    async def test_current_period_untouched(self, create_user):
        """A period that has not ended keeps its usage."""
        from src.core.usage import get_subscription_manager

        user, _ = await create_user(plan="free", tokens_used=120)
        sub = await get_subscription_manager().get_subscription(user["id"])

        assert sub["tokensUsed"] == 120


class TestTransitions:
    """Tests for cancel, resume and reset_usage."""

    @pytest.mark.asyncio
    async def test_cancel_then_resume(self, create_user):
        """Cancelled subscriptions can be resumed."""
        from src.core.usage import get_subscription_manager

        user, _ = await create_user(plan="basic")
        manager = get_subscription_manager()

        cancelled = await manager.cancel(user["id"])
        assert cancelled["status"] == "cancelled"
        assert cancelled["cancelledAt"] is not None

        resumed = await manager.resume(user["id"])
        assert resumed["status"] == "active"
        assert resumed["cancelledAt"] is None

    @pytest.mark.asyncio
    async def test_resume_active_subscription_fails(self, create_user):
        """Resuming an active subscription is an invalid transition."""
        from src.core.usage import SubscriptionStateError, get_subscription_manager

        user, _ = await create_user(plan="basic")

        with pytest.raises(SubscriptionStateError):
            await get_subscription_manager().resume(user["id"])

    @pytest.mark.asyncio
    async def test_resume_without_subscription(self, create_user):
        """Resuming nothing returns None."""
        from src.core.usage import get_subscription_manager

        user, _ = await create_user(plan=None)

        assert await get_subscription_manager().resume(user["id"]) is None

    @pytest.mark.asyncio
    async def test_reset_usage(self, create_user):
        """reset_usage zeroes tokensUsed and restores the allowance."""
        from src.core.usage import get_subscription_manager

        user, _ = await create_user(plan="free", tokens_used=99)
        sub = await get_subscription_manager().reset_usage(user["id"])

        assert sub["tokensUsed"] == 0
        assert sub["tokensRemaining"] == 150


class TestWebhooks:
    """Tests for apply_webhook."""

    @pytest.mark.asyncio
    async def test_cancellation_event(self, create_user):
        """subscription.disable cancels the plan."""
        from src.core.usage import get_subscription_manager

        user, _ = await create_user(plan="basic")
        manager = get_subscription_manager()

        result = await manager.apply_webhook("paystack", "subscription.disable", {"userId": user["id"]})

        assert result == {"received": True, "applied": True}
        sub = await manager.get_subscription(user["id"])
        assert sub["status"] == "cancelled"

    @pytest.mark.asyncio
    async def test_activation_event_ignores_amount(self, create_user):
        """charge.success reactivates without touching the allowance."""
        from src.core.usage import get_subscription_manager

        user, _ = await create_user(plan="basic")
        manager = get_subscription_manager()
        await manager.cancel(user["id"])

        await manager.apply_webhook(
            "paystack", "charge.success", {"user_id": user["id"], "amount": 999999, "tokensAllowed": 10**9}
        )

        sub = await manager.get_subscription(user["id"])
        assert sub["status"] == "active"
        assert sub["tokensAllowed"] == 25_000

    @pytest.mark.asyncio
    async def test_unknown_event_is_acknowledged(self, create_user):
        """Unrecognized events are received but not applied."""
        from src.core.usage import get_subscription_manager

        user, _ = await create_user(plan="basic")

        result = await get_subscription_manager().apply_webhook(
            "google_pay", "invoice.created", {"userId": user["id"]}
        )

        assert result == {"received": True, "applied": False}

    @pytest.mark.asyncio
    async def test_event_without_user(self, database):
        """Payloads without a user id are acknowledged only."""
        from src.core.usage import get_subscription_manager

        result = await get_subscription_manager().apply_webhook("paystack", "charge.success", {})

        assert result == {"received": True, "applied": False}
