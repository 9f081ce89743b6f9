"""Subscription API endpoints: purchase, overview, management and payment webhooks."""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, HTTPException, Query

from src.core.usage import get_plan, get_subscription_manager, get_usage_aggregator

from ..schemas.errors import SUBSCRIPTION_ERROR_RESPONSES
from ..schemas.subscription import (
    SubscriptionActionRequest,
    SubscriptionCreateRequest,
    WebhookRequest,
)

logger = logging.getLogger(__name__)
router = APIRouter()

SUBSCRIPTION_ACTIONS = ("cancel", "resume", "reset_usage")


@router.post(
    "",
    response_model=Dict[str, Any],
    responses=SUBSCRIPTION_ERROR_RESPONSES,
    operation_id="createSubscription",
    summary="Purchase or replace a subscription",
)
async def create_subscription(request: SubscriptionCreateRequest):
    """
    Start a plan for a user.

    Purchasing replaces any existing plan, resets the counters and opens a
    new billing period.
    """
    manager = get_subscription_manager()
    subscription = await manager.create_subscription(
        request.user_id,
        request.plan,
        billing_cycle=request.billing_cycle,
        payment_method=request.payment_method.model_dump() if request.payment_method else None,
    )

    plan = get_plan(request.plan)
    return {
        "subscription": subscription,
        "plan": plan.to_dict(request.billing_cycle),
    }


@router.get(
    "",
    response_model=Dict[str, Any],
    responses=SUBSCRIPTION_ERROR_RESPONSES,
    operation_id="getSubscription",
    summary="Subscription with usage overview",
)
async def get_subscription(user_id: Optional[str] = Query(None, alias="userId")):
    if not user_id:
        raise HTTPException(status_code=400, detail="User ID required")

    overview = await get_usage_aggregator().get_subscription_overview(user_id)
    if overview is None:
        raise HTTPException(status_code=404, detail="No subscription found")
    return overview


@router.put(
    "",
    response_model=Dict[str, Any],
    responses=SUBSCRIPTION_ERROR_RESPONSES,
    operation_id="updateSubscription",
    summary="Cancel, resume or reset usage",
)
async def update_subscription(request: SubscriptionActionRequest):
    if request.action not in SUBSCRIPTION_ACTIONS:
        raise HTTPException(status_code=400, detail="Invalid action")

    manager = get_subscription_manager()
    if request.action == "cancel":
        subscription = await manager.cancel(request.user_id)
    elif request.action == "resume":
        subscription = await manager.resume(request.user_id)
    else:
        subscription = await manager.reset_usage(request.user_id)

    if subscription is None:
        raise HTTPException(status_code=404, detail="No subscription found")

    logger.info(f"Subscription {request.action} for user {request.user_id}")
    return {"subscription": subscription}


@router.patch(
    "",
    response_model=Dict[str, Any],
    responses=SUBSCRIPTION_ERROR_RESPONSES,
    operation_id="subscriptionWebhook",
    summary="Payment provider webhook",
)
async def payment_webhook(request: WebhookRequest):
    """
    Acknowledge a payment provider event.

    Recognized activation and cancellation events change the subscription
    status; amounts in the payload are never used.
    """
    return await get_subscription_manager().apply_webhook(
        request.provider, request.event, request.data
    )
