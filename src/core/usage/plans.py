"""
Subscription plan catalogue and billing period arithmetic.

The table below is the single source of truth for allowances and prices.
"""

import calendar
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

BILLING_CYCLES = ("monthly", "yearly")

# Yearly billing charges ten months
YEARLY_PRICE_MULTIPLIER = 10


@dataclass(frozen=True)
class PlanConfig:
    name: str
    tokens_allowed: int
    monthly_price: float
    description: str = ""
    extra_features: List[str] = field(default_factory=list)

    def price_for(self, billing_cycle: str) -> float:
        if billing_cycle == "yearly":
            return float(self.monthly_price * YEARLY_PRICE_MULTIPLIER)
        return float(self.monthly_price)

    @property
    def features(self) -> List[str]:
        """Human-readable feature list derived from the allowance."""
        features = [
            f"{self.tokens_allowed:,} tokens per billing period",
            "Monthly or yearly billing",
        ]
        return features + list(self.extra_features)

    def to_dict(self, billing_cycle: str = "monthly") -> Dict[str, object]:
        return {
            "name": self.name,
            "price": self.price_for(billing_cycle),
            "tokensAllowed": self.tokens_allowed,
            "features": self.features,
        }


PLANS: Dict[str, PlanConfig] = {
    "free": PlanConfig("free", 150, 0, "Try the assistant"),
    "basic": PlanConfig("basic", 25_000, 6, "For occasional use"),
    "starter": PlanConfig("starter", 60_000, 15, "For individual developers"),
    "pro": PlanConfig("pro", 150_000, 25, "For daily use", ["Multi-file refactoring"]),
    "developer": PlanConfig("developer", 400_000, 50, "For heavy use", ["Multi-file refactoring"]),
    "team": PlanConfig("team", 1_000_000, 99, "For small teams", ["Multi-file refactoring"]),
    "enterprise": PlanConfig(
        "enterprise", 5_000_000, 299, "For organizations",
        ["Multi-file refactoring", "Priority support"],
    ),
}

PLAN_ORDER = list(PLANS.keys())


def get_plan(name: str) -> Optional[PlanConfig]:
    return PLANS.get((name or "").lower())


def next_plan(name: str) -> Optional[str]:
    """The next plan up, or None at the top of the table."""
    try:
        idx = PLAN_ORDER.index((name or "").lower())
    except ValueError:
        return PLAN_ORDER[1]
    if idx + 1 < len(PLAN_ORDER):
        return PLAN_ORDER[idx + 1]
    return None


def add_months(start: datetime, months: int) -> datetime:
    """Calendar-month addition, clamping the day to the target month's end."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return start.replace(year=year, month=month, day=day)


def period_end_for(start: datetime, billing_cycle: str) -> datetime:
    return add_months(start, 12 if billing_cycle == "yearly" else 1)
