"""Schemas for subscription purchase, management and payment webhooks."""

from typing import Any, Dict, Literal, Optional

from pydantic import Field

from .common import CamelModel


class PaymentMethod(CamelModel):
    type: Literal["paystack", "google_pay"]
    email: Optional[str] = None
    token: Optional[str] = None


class SubscriptionCreateRequest(CamelModel):
    user_id: str = Field(..., min_length=1)
    plan: str = Field(..., min_length=1, examples=["pro"])
    billing_cycle: Literal["monthly", "yearly"] = "monthly"
    payment_method: Optional[PaymentMethod] = None


class SubscriptionActionRequest(CamelModel):
    user_id: str = Field(..., min_length=1)
    action: str = Field(..., examples=["cancel", "resume", "reset_usage"])


class WebhookRequest(CamelModel):
    provider: Literal["paystack", "google_pay"]
    event: str = Field(..., min_length=1)
    data: Dict[str, Any] = Field(default_factory=dict)
