"""
UsageAggregator - Handles usage reporting and history.

Single responsibility: Aggregating and reporting usage data.
"""

import logging
import math
from datetime import datetime
from typing import Optional, Dict, List, Any, Iterable

from src.constants import NEAR_LIMIT_RATIO, SUBSCRIPTION_RECENT_USAGE_LIMIT, SUBSCRIPTION_STATS_WINDOW
from src.db.models import utc_now
from src.db.repositories import usage_log_repository

from .plans import get_plan

logger = logging.getLogger(__name__)


class UsageAggregator:
    """
    Aggregates and reports usage data.

    Responsibilities:
    - Subscription summaries with per-operation stats
    - Recent usage history per operation
    """

    def __init__(self, subscription_manager=None):
        self._subscription_manager = subscription_manager

    @property
    def subscription_manager(self):
        """Lazy-load subscription manager."""
        if self._subscription_manager is None:
            from .subscription_manager import get_subscription_manager
            self._subscription_manager = get_subscription_manager()
        return self._subscription_manager

    async def get_usage_summary(self, user_id: str) -> Optional[Dict[str, Any]]:
        """
        Subscription counters plus stats grouped by operation.

        Returns None when the user has no subscription.
        """
        subscription = await self.subscription_manager.get_subscription(user_id)
        if not subscription:
            return None

        usage = await usage_log_repository.get_stats_by_operation(user_id)

        return {
            "subscription": {
                "plan": subscription["plan"],
                "tokensAllowed": subscription["tokensAllowed"],
                "tokensUsed": subscription["tokensUsed"],
                "tokensRemaining": subscription["tokensRemaining"],
                "currentPeriodEnd": subscription["currentPeriodEnd"],
            },
            "usage": usage,
        }

    async def get_subscription_overview(self, user_id: str) -> Optional[Dict[str, Any]]:
        """
        Full subscription view: plan config, stats keyed by
        ``operation_requestType``, recent usage, near-limit flag and days
        left in the period.
        """
        subscription = await self.subscription_manager.get_subscription(user_id)
        if not subscription:
            return None

        logs = await usage_log_repository.list_usage_logs(
            user_id, limit=SUBSCRIPTION_STATS_WINDOW
        )

        plan = get_plan(subscription["plan"])
        allowed = subscription["tokensAllowed"]

        return {
            "subscription": {
                **subscription,
                "planConfig": plan.to_dict(subscription["billingCycle"]) if plan else None,
            },
            "usageStats": self.group_stats(
                logs, key=lambda log: f"{log['operation']}_{log['requestType']}"
            ),
            "recentUsage": logs[:SUBSCRIPTION_RECENT_USAGE_LIMIT],
            "isNearLimit": allowed > 0 and subscription["tokensUsed"] / allowed > NEAR_LIMIT_RATIO,
            "daysRemaining": self.days_remaining(subscription["currentPeriodEnd"]),
        }

    async def get_history(
        self, user_id: str, operation: str, limit: int
    ) -> List[Dict[str, Any]]:
        """Most recent logs for one operation."""
        return await usage_log_repository.list_usage_logs(
            user_id, operation=operation, limit=limit
        )

    @staticmethod
    def group_stats(logs: Iterable[Dict[str, Any]], key) -> Dict[str, Dict[str, Any]]:
        """Group logs by ``key(log)`` into count / tokensUsed / avgResponseTime."""
        grouped: Dict[str, Dict[str, Any]] = {}
        for log in logs:
            stats = grouped.setdefault(
                key(log), {"count": 0, "tokensUsed": 0, "totalResponseTime": 0}
            )
            stats["count"] += 1
            stats["tokensUsed"] += log["tokensUsed"]
            stats["totalResponseTime"] += log["responseTime"]

        for stats in grouped.values():
            total = stats.pop("totalResponseTime")
            stats["avgResponseTime"] = round(total / stats["count"])

        return grouped

    @staticmethod
    def days_remaining(period_end, now: Optional[datetime] = None) -> int:
        if isinstance(period_end, str):
            period_end = datetime.fromisoformat(period_end)
        now = now or utc_now()
        return math.ceil((period_end - now).total_seconds() / 86400)


_usage_aggregator: Optional[UsageAggregator] = None


def get_usage_aggregator() -> UsageAggregator:
    """Get or create UsageAggregator instance."""
    global _usage_aggregator
    if _usage_aggregator is None:
        _usage_aggregator = UsageAggregator()
    return _usage_aggregator
