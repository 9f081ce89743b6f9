"""
Quota checking with in-memory caching for status reads.

Enforcement itself happens in the atomic reservation (see metering); the
checker answers "how close is this user to the limit" cheaply and produces
the upgrade hint used in 429 responses.
"""

import logging
import threading
import time
from typing import Optional, Dict, Tuple, Any

from src.constants import NEAR_LIMIT_RATIO

from .schemas import QuotaStatus
from .exceptions import (
    QuotaExceededException,
    SubscriptionInactiveError,
    SubscriptionNotFoundError,
)
from .plans import next_plan

logger = logging.getLogger(__name__)

# Default cache TTL in seconds
DEFAULT_CACHE_TTL = 30


class QuotaChecker:
    """
    Checks token allowances with a TTL cache keyed by user.

    The cache is invalidated whenever usage or the subscription changes.
    """

    def __init__(self, cache_ttl_seconds: int = DEFAULT_CACHE_TTL):
        self._cache: Dict[str, Tuple[Dict[str, Any], float]] = {}  # key -> (data, timestamp)
        self._cache_ttl = cache_ttl_seconds
        self._lock = threading.Lock()

    def _cache_key(self, user_id: str) -> str:
        return f"subscription:{user_id}"

    def _is_cache_valid(self, key: str) -> bool:
        if key not in self._cache:
            return False
        _, timestamp = self._cache[key]
        return (time.monotonic() - timestamp) < self._cache_ttl

    async def get_subscription(
        self, user_id: str, use_cache: bool = True
    ) -> Optional[Dict[str, Any]]:
        """Subscription for the user, from cache when fresh."""
        cache_key = self._cache_key(user_id)

        if use_cache:
            with self._lock:
                if self._is_cache_valid(cache_key):
                    data, _ = self._cache[cache_key]
                    return data

        from .subscription_manager import get_subscription_manager
        subscription = await get_subscription_manager().get_subscription(user_id)

        if subscription:
            with self._lock:
                self._cache[cache_key] = (subscription, time.monotonic())

        return subscription

    def evaluate(self, subscription: Dict[str, Any], estimated_tokens: int = 0) -> QuotaStatus:
        """Build a QuotaStatus from a subscription dict."""
        used = subscription.get("tokensUsed", 0)
        allowed = subscription.get("tokensAllowed", 0)
        remaining = max(0, allowed - used)
        ratio = (used / allowed) if allowed > 0 else 1.0
        plan = subscription.get("plan", "free")

        return QuotaStatus(
            allowed=estimated_tokens <= remaining,
            plan=plan,
            tokens_used=used,
            tokens_allowed=allowed,
            tokens_remaining=remaining,
            percentage_used=round(ratio * 100, 2),
            is_near_limit=ratio > NEAR_LIMIT_RATIO,
            upgrade_plan=next_plan(plan),
        )

    async def check_quota(
        self,
        user_id: str,
        estimated_tokens: int = 0,
        use_cache: bool = True,
    ) -> QuotaStatus:
        """
        Check whether the user can spend ``estimated_tokens``.

        Raises:
            SubscriptionNotFoundError: No subscription for the user
            SubscriptionInactiveError: Subscription is cancelled
        """
        subscription = await self.get_subscription(user_id, use_cache=use_cache)
        if not subscription:
            raise SubscriptionNotFoundError(user_id)
        if subscription.get("status") != "active":
            raise SubscriptionInactiveError(user_id, subscription.get("status", "unknown"))

        return self.evaluate(subscription, estimated_tokens)

    async def check_quota_or_raise(
        self,
        user_id: str,
        estimated_tokens: int = 0,
        use_cache: bool = True,
    ) -> QuotaStatus:
        """
        Check quota and raise QuotaExceededException if the estimate does not fit.
        """
        status = await self.check_quota(user_id, estimated_tokens, use_cache=use_cache)

        if not status.allowed:
            raise self.exceeded(status, estimated_tokens)

        self.warn_if_near_limit(user_id, status)
        return status

    def exceeded(self, status: QuotaStatus, estimated_tokens: int) -> QuotaExceededException:
        return QuotaExceededException(
            tokens_remaining=status.tokens_remaining,
            tokens_needed=estimated_tokens,
            plan=status.plan,
            upgrade_plan=status.upgrade_plan,
        )

    def warn_if_near_limit(self, user_id: str, status: QuotaStatus) -> None:
        if status.is_near_limit:
            logger.warning(
                f"User {user_id} approaching token limit: "
                f"{status.percentage_used:.1f}% used ({status.tokens_used:,}/{status.tokens_allowed:,})"
            )

    def invalidate_cache(self, user_id: str) -> None:
        """Invalidate cache for a user after usage or subscription changes."""
        self._cache.pop(self._cache_key(user_id), None)

    def clear_cache(self) -> None:
        self._cache.clear()


_quota_checker: Optional[QuotaChecker] = None


def get_quota_checker() -> QuotaChecker:
    """Get singleton QuotaChecker instance."""
    global _quota_checker
    if _quota_checker is None:
        _quota_checker = QuotaChecker()
    return _quota_checker


__all__ = [
    "QuotaChecker",
    "get_quota_checker",
    "DEFAULT_CACHE_TTL",
]
