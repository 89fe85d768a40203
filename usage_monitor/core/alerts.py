"""
Usage alerts for session windows.

Evaluates the warning conditions for a window against a token limit.
Cooldown and persistence are left to the caller.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import List, Optional

from usage_monitor.storage.models import SessionWindow

from .plans import PLAN_LIMITS, PlanType

TOKENS_WILL_RUN_OUT = "tokens_will_run_out"
EXCEED_MAX_LIMIT = "exceed_max_limit"
SWITCH_TO_CUSTOM = "switch_to_custom"
LIMIT_REACHED = "limit_reached"


class AlertSeverity(Enum):
    """Severity levels for usage alerts."""
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass(frozen=True)
class AlertEvent:
    """Triggered alert with details and explanation."""
    key: str
    severity: AlertSeverity
    window_id: str
    observed_value: float
    threshold: float
    message: str
    reset_time: Optional[datetime] = None


def evaluate_alerts(window: SessionWindow, token_limit: int, plan: str = "custom") -> List[AlertEvent]:
    """Evaluate alert conditions for a window.

    Rules:
    - tokens_will_run_out (WARNING): projected total tokens >= limit
    - exceed_max_limit (CRITICAL): current total tokens > limit
    - switch_to_custom (WARNING): fixed plan whose own limit is exceeded
    - limit_reached (CRITICAL): one per limit signal attached to the window

    Args:
        window: Session window to check
        token_limit: Token limit in force for the window
        plan: Plan name the limit came from

    Returns:
        List of triggered alerts (empty if none)

    Raises:
        ValueError: If token_limit is not positive
    """
    if token_limit <= 0:
        raise ValueError("token_limit must be positive")

    if window.is_gap:
        return []

    alerts = []
    total_tokens = window.total_tokens

    if window.projection is not None:
        projected = window.projection.projected_total_tokens
        if projected >= token_limit:
            alerts.append(AlertEvent(
                key=TOKENS_WILL_RUN_OUT,
                severity=AlertSeverity.WARNING,
                window_id=window.id,
                observed_value=projected,
                threshold=token_limit,
                message=f"Tokens will run out: projected {projected:,} of {token_limit:,} before session end"
            ))

    if total_tokens > token_limit:
        alerts.append(AlertEvent(
            key=EXCEED_MAX_LIMIT,
            severity=AlertSeverity.CRITICAL,
            window_id=window.id,
            observed_value=total_tokens,
            threshold=token_limit,
            message=f"Token limit exceeded: {total_tokens:,} > {token_limit:,}"
        ))

    try:
        plan_type = PlanType.from_string(plan)
    except ValueError:
        plan_type = None
    if plan_type is not None and plan_type != PlanType.CUSTOM:
        plan_limit = PLAN_LIMITS[plan_type].token_limit
        if total_tokens > plan_limit:
            alerts.append(AlertEvent(
                key=SWITCH_TO_CUSTOM,
                severity=AlertSeverity.WARNING,
                window_id=window.id,
                observed_value=total_tokens,
                threshold=plan_limit,
                message=f"Usage {total_tokens:,} exceeds the {plan_type.value} limit of {plan_limit:,}; consider the custom plan"
            ))

    for signal in window.limit_signals:
        alerts.append(AlertEvent(
            key=LIMIT_REACHED,
            severity=AlertSeverity.CRITICAL,
            window_id=window.id,
            observed_value=total_tokens,
            threshold=token_limit,
            message=f"{signal.limit_type}: {signal.content}",
            reset_time=signal.reset_time,
        ))

    return alerts
