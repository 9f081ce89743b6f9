"""Tests for the plan catalogue and billing period arithmetic."""

from datetime import datetime

import pytest


class TestPlanTable:
    """Tests for PLANS and get_plan."""

    @pytest.mark.parametrize("name,tokens,price", [
        ("free", 150, 0),
        ("basic", 25_000, 6),
        ("starter", 60_000, 15),
        ("pro", 150_000, 25),
        ("developer", 400_000, 50),
        ("team", 1_000_000, 99),
        ("enterprise", 5_000_000, 299),
    ])
    def test_allowances_and_prices(self, name, tokens, price):
        """Each plan carries its published allowance and monthly price."""
        from src.core.usage.plans import get_plan

        plan = get_plan(name)
        assert plan.tokens_allowed == tokens
        assert plan.price_for("monthly") == price

    def test_get_plan_is_case_insensitive(self):
        """Plan names are matched regardless of case."""
        from src.core.usage.plans import get_plan

        assert get_plan("PRO").name == "pro"

    def test_unknown_plan(self):
        """Unknown names return None."""
        from src.core.usage.plans import get_plan

        assert get_plan("platinum") is None
        assert get_plan(None) is None

    def test_yearly_price_is_ten_months(self):
        """Yearly billing costs ten times the monthly price."""
        from src.core.usage.plans import get_plan

        assert get_plan("starter").price_for("yearly") == 150.0

    def test_to_dict_derives_features_from_allowance(self):
        """The feature list always states the plan's token allowance."""
        from src.core.usage.plans import get_plan

        data = get_plan("basic").to_dict("monthly")
        assert data["name"] == "basic"
        assert data["tokensAllowed"] == 25_000
        assert data["features"][0] == "25,000 tokens per billing period"


class TestNextPlan:
    """Tests for the upgrade hint."""

    def test_next_plan_steps_up(self):
        """The upgrade target is the next plan in the table."""
        from src.core.usage.plans import next_plan

        assert next_plan("free") == "basic"
        assert next_plan("team") == "enterprise"

    def test_top_plan_has_no_upgrade(self):
        """Enterprise has nothing above it."""
        from src.core.usage.plans import next_plan

        assert next_plan("enterprise") is None


class TestPeriodArithmetic:
    """Tests for add_months and period_end_for."""

    def test_monthly_period(self):
        """A monthly period ends one calendar month later."""
        from src.core.usage.plans import period_end_for

        assert period_end_for(datetime(2024, 3, 15, 10, 0), "monthly") == datetime(2024, 4, 15, 10, 0)

    def test_yearly_period(self):
        """A yearly period ends twelve months later."""
        from src.core.usage.plans import period_end_for

        assert period_end_for(datetime(2024, 3, 15), "yearly") == datetime(2025, 3, 15)

    def test_month_end_is_clamped(self):
        """Jan 31 plus one month lands on the last day of February."""
        from src.core.usage.plans import add_months

        assert add_months(datetime(2024, 1, 31), 1) == datetime(2024, 2, 29)
        assert add_months(datetime(2023, 1, 31), 1) == datetime(2023, 2, 28)

    def test_december_rolls_year(self):
        """Adding a month to December moves to January of the next year."""
        from src.core.usage.plans import add_months

        assert add_months(datetime(2024, 12, 10), 1) == datetime(2025, 1, 10)
