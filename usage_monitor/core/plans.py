"""
Subscription plan catalogue.

Token, cost and message limits per plan, with P90 auto-calibration of the
token limit for custom plans.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Optional

DEFAULT_TOKEN_LIMIT = 19_000
DEFAULT_COST_LIMIT = 50.0
DEFAULT_MESSAGE_LIMIT = 250

# Well-known token limits in ascending order, used to spot capped sessions.
COMMON_TOKEN_LIMITS = (19_000, 88_000, 220_000, 880_000)
LIMIT_DETECTION_THRESHOLD = 0.95


class PlanType(Enum):
    """Supported subscription plans."""
    PRO = "pro"
    MAX5 = "max5"
    MAX20 = "max20"
    CUSTOM = "custom"

    @classmethod
    def from_string(cls, value: str) -> "PlanType":
        """Case-insensitive lookup.

        Raises:
            ValueError: If value names no known plan
        """
        try:
            return cls(value.lower())
        except ValueError:
            raise ValueError(f"Unknown plan: {value}") from None


@dataclass(frozen=True)
class PlanLimits:
    """Limits of a single plan per session window."""
    name: str
    token_limit: int
    cost_limit: float
    message_limit: int
    display_name: str

    @property
    def formatted_token_limit(self) -> str:
        """Compact token limit such as ``19k``."""
        if self.token_limit >= 1_000:
            return f"{self.token_limit // 1_000}k"
        return str(self.token_limit)


PLAN_LIMITS: Dict[PlanType, PlanLimits] = {
    PlanType.PRO: PlanLimits("pro", 19_000, 18.0, 250, "Pro"),
    PlanType.MAX5: PlanLimits("max5", 88_000, 35.0, 1_000, "Max5"),
    PlanType.MAX20: PlanLimits("max20", 220_000, 140.0, 2_000, "Max20"),
    PlanType.CUSTOM: PlanLimits("custom", 44_000, 50.0, 250, "Custom"),
}


def get_plan(plan: str) -> Optional[PlanLimits]:
    """Limits for a plan name, or None when the name is unknown."""
    try:
        return PLAN_LIMITS[PlanType.from_string(plan)]
    except ValueError:
        return None


def is_valid_plan(plan: str) -> bool:
    return get_plan(plan) is not None


def get_token_limit(plan: str, windows: Optional[Iterable] = None) -> int:
    """Token limit for a plan.

    For the custom plan, supplying historical windows switches to the P90
    estimate instead of the fixed catalogue value.

    Args:
        plan: Plan name
        windows: Optional SessionWindow objects or window mappings

    Returns:
        Token limit; the default limit for unknown plans
    """
    limits = get_plan(plan)
    if limits is None:
        return DEFAULT_TOKEN_LIMIT

    if limits.name == PlanType.CUSTOM.value and windows is not None:
        from .p90 import calculate_p90_limit

        return calculate_p90_limit(windows)

    return limits.token_limit


def get_cost_limit(plan: str) -> float:
    limits = get_plan(plan)
    return limits.cost_limit if limits is not None else DEFAULT_COST_LIMIT


def get_message_limit(plan: str) -> int:
    limits = get_plan(plan)
    return limits.message_limit if limits is not None else DEFAULT_MESSAGE_LIMIT
