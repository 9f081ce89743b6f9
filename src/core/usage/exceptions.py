"""
Custom exceptions for token metering and subscription management.
"""

from typing import Optional, Dict, Any


class UsageTrackingError(Exception):
    """Base exception for usage tracking errors."""

    status_code = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class QuotaExceededException(UsageTrackingError):
    """
    Raised when a request's token estimate does not fit the remaining allowance.

    Contains details needed for the HTTP 429 response with an upgrade hint.
    """

    status_code = 429

    def __init__(
        self,
        tokens_remaining: int,
        tokens_needed: int,
        plan: Optional[str] = None,
        upgrade_plan: Optional[str] = None,
    ):
        self.tokens_remaining = tokens_remaining
        self.tokens_needed = tokens_needed
        self.plan = plan
        self.upgrade_plan = upgrade_plan

        super().__init__(
            message="Token limit exceeded",
            details={
                "tokens_remaining": tokens_remaining,
                "tokens_needed": tokens_needed,
                "plan": plan,
            },
        )

    def to_response_dict(self) -> Dict[str, Any]:
        """Convert to HTTP 429 response body."""
        response = {
            "success": False,
            "error": self.message,
            "tokensRemaining": self.tokens_remaining,
            "tokensNeeded": self.tokens_needed,
        }

        if self.upgrade_plan:
            response["upgrade"] = {
                "plan": self.upgrade_plan,
                "message": f"Upgrade to {self.upgrade_plan.title()} for a larger token allowance",
            }

        return response


class SubscriptionNotFoundError(UsageTrackingError):
    """Raised when a billed operation is attempted without a subscription."""

    status_code = 403

    def __init__(self, user_id: str):
        super().__init__(
            message="No subscription found",
            details={"user_id": user_id},
        )


class SubscriptionInactiveError(UsageTrackingError):
    """Raised when a billed operation is attempted on a cancelled subscription."""

    status_code = 403

    def __init__(self, user_id: str, status: str):
        super().__init__(
            message=f"Subscription is {status}",
            details={"user_id": user_id, "status": status},
        )


class InvalidPlanError(UsageTrackingError):
    """Raised for an unknown plan name or billing cycle."""

    status_code = 400

    def __init__(self, plan: str):
        super().__init__(
            message=f"Invalid plan: {plan}",
            details={"plan": plan},
        )


class DuplicateRequestError(UsageTrackingError):
    """Raised when an idempotency key was already billed or is still in flight."""

    status_code = 409

    def __init__(self, request_id: str):
        super().__init__(
            message="Request already processed",
            details={"request_id": request_id},
        )


__all__ = [
    "UsageTrackingError",
    "QuotaExceededException",
    "SubscriptionNotFoundError",
    "SubscriptionInactiveError",
    "InvalidPlanError",
    "DuplicateRequestError",
]
