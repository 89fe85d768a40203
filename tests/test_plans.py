"""
Unit tests for the plan catalogue.
"""

import pytest

from usage_monitor.core.plans import (
    DEFAULT_COST_LIMIT,
    DEFAULT_MESSAGE_LIMIT,
    DEFAULT_TOKEN_LIMIT,
    PLAN_LIMITS,
    PlanType,
    get_cost_limit,
    get_message_limit,
    get_token_limit,
    is_valid_plan,
)


class TestPlanType:
    """Test plan name parsing."""

    def test_case_insensitive(self):
        """Verify plan names are matched case-insensitively."""
        assert PlanType.from_string("MAX5") == PlanType.MAX5
        assert PlanType.from_string("Custom") == PlanType.CUSTOM

    def test_unknown_plan_rejected(self):
        """Verify unknown plan names raise ValueError."""
        with pytest.raises(ValueError, match="Unknown plan: enterprise"):
            PlanType.from_string("enterprise")


class TestPlanLimits:
    """Test per-plan limits."""

    @pytest.mark.parametrize("plan, tokens, cost, messages", [
        ("pro", 19_000, 18.0, 250),
        ("max5", 88_000, 35.0, 1_000),
        ("max20", 220_000, 140.0, 2_000),
        ("custom", 44_000, 50.0, 250),
    ])
    def test_catalogue(self, plan, tokens, cost, messages):
        """Verify the fixed limits of every plan."""
        assert get_token_limit(plan) == tokens
        assert get_cost_limit(plan) == cost
        assert get_message_limit(plan) == messages

    def test_unknown_plan_defaults(self):
        """Verify unknown plans fall back to the defaults."""
        assert get_token_limit("enterprise") == DEFAULT_TOKEN_LIMIT
        assert get_cost_limit("enterprise") == DEFAULT_COST_LIMIT
        assert get_message_limit("enterprise") == DEFAULT_MESSAGE_LIMIT

    def test_custom_plan_with_history_uses_p90(self):
        """Verify the custom plan calibrates from historical windows."""
        windows = [{"totalTokens": 84_000, "isGap": False, "isActive": False}] * 10
        assert get_token_limit("custom", windows) == 84_000

    def test_custom_plan_with_empty_history(self):
        """Verify an empty history gives the estimator floor."""
        assert get_token_limit("custom", []) == DEFAULT_TOKEN_LIMIT

    def test_fixed_plans_ignore_history(self):
        """Verify fixed plans keep their catalogue limit."""
        windows = [{"totalTokens": 500_000, "isGap": False, "isActive": False}]
        assert get_token_limit("pro", windows) == 19_000

    def test_is_valid_plan(self):
        """Verify plan name validation."""
        assert is_valid_plan("max20")
        assert not is_valid_plan("free")

    def test_formatted_token_limit(self):
        """Verify compact token limit display."""
        assert PLAN_LIMITS[PlanType.PRO].formatted_token_limit == "19k"
        assert PLAN_LIMITS[PlanType.MAX20].formatted_token_limit == "220k"
