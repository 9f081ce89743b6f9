"""
Usage tracking and quota management module.

Provides plan configuration, atomic token metering, quota checks and usage
reporting for IMPECKS-AI.
"""

from .schemas import TokenUsage, QuotaStatus
from .exceptions import (
    UsageTrackingError,
    QuotaExceededException,
    SubscriptionNotFoundError,
    SubscriptionInactiveError,
    InvalidPlanError,
    DuplicateRequestError,
)
from .plans import PLANS, PlanConfig, get_plan, next_plan, period_end_for
from .metering import (
    MeteredCall,
    TokenMeter,
    classify_complexity,
    estimate_tokens,
    get_token_meter,
)
from .quota_checker import QuotaChecker, get_quota_checker
from .subscription_manager import (
    SubscriptionManager,
    SubscriptionStateError,
    UserNotFoundError,
    get_subscription_manager,
)
from .token_extractors import extract_token_usage
from .token_logger import TokenLogger, get_token_logger
from .usage_aggregator import UsageAggregator, get_usage_aggregator

__all__ = [
    # Schemas
    "TokenUsage",
    "QuotaStatus",
    # Exceptions
    "UsageTrackingError",
    "QuotaExceededException",
    "SubscriptionNotFoundError",
    "SubscriptionInactiveError",
    "InvalidPlanError",
    "DuplicateRequestError",
    "SubscriptionStateError",
    "UserNotFoundError",
    # Plans
    "PLANS",
    "PlanConfig",
    "get_plan",
    "next_plan",
    "period_end_for",
    # Metering
    "MeteredCall",
    "TokenMeter",
    "classify_complexity",
    "estimate_tokens",
    "get_token_meter",
    # Services
    "QuotaChecker",
    "get_quota_checker",
    "SubscriptionManager",
    "get_subscription_manager",
    "TokenLogger",
    "get_token_logger",
    "UsageAggregator",
    "get_usage_aggregator",
    "extract_token_usage",
]
