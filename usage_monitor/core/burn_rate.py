"""
Burn rate and projection calculations.

Derives consumption velocity from session windows and extrapolates an
active window's totals to its nominal end.
"""

from datetime import datetime, timedelta
from typing import Iterable, Optional

from usage_monitor.storage.models import BurnRate, SessionWindow, UsageProjection

from .timestamps import utc_now


def calculate_burn_rate(window: SessionWindow) -> Optional[BurnRate]:
    """Instantaneous burn rate of an active window.

    Args:
        window: Window to measure (any object exposing ``is_active``,
            ``duration_minutes``, ``total_tokens`` and ``cost_usd``)

    Returns:
        BurnRate, or None when the window is inactive, shorter than one
        minute or has consumed no tokens
    """
    if not window.is_active:
        return None
    duration_minutes = window.duration_minutes
    if duration_minutes < 1.0:
        return None
    total_tokens = window.total_tokens
    if total_tokens == 0:
        return None

    return BurnRate(
        tokens_per_minute=total_tokens / duration_minutes,
        cost_per_hour=(window.cost_usd / duration_minutes) * 60.0,
    )


def project_window_usage(
    burn_rate: BurnRate,
    end_time: datetime,
    current_tokens: int,
    current_cost: float,
    now: Optional[datetime] = None,
) -> Optional[UsageProjection]:
    """Extrapolate current totals to ``end_time`` at a constant burn rate.

    Returns:
        UsageProjection, or None when ``end_time`` is not in the future
    """
    now = now if now is not None else utc_now()
    remaining_seconds = int((end_time - now).total_seconds())
    if remaining_seconds <= 0:
        return None

    remaining_minutes = remaining_seconds / 60.0
    remaining_hours = remaining_minutes / 60.0
    return UsageProjection(
        projected_total_tokens=current_tokens + round(burn_rate.tokens_per_minute * remaining_minutes),
        projected_total_cost=current_cost + burn_rate.cost_per_hour * remaining_hours,
        remaining_minutes=remaining_minutes,
    )


def calculate_hourly_burn_rate(windows: Iterable[SessionWindow], current_time: datetime) -> float:
    """Rolling tokens-per-minute rate over the hour ending at ``current_time``.

    Each window contributes its tokens in proportion to how much of its
    span overlaps the trailing hour. A window's span is approximated as
    its duration counted back from its actual (or nominal) end.
    """
    hour_start = current_time - timedelta(hours=1)
    total_tokens = 0.0

    for window in windows:
        window_end = window.actual_end_time or window.end_time
        window_start = window_end - timedelta(seconds=int(window.duration_minutes * 60))

        if window_end <= hour_start or window_start >= current_time:
            continue

        overlap_start = max(window_start, hour_start)
        overlap_end = min(window_end, current_time)
        overlap_seconds = int((overlap_end - overlap_start).total_seconds())
        window_seconds = int((window_end - window_start).total_seconds())
        if window_seconds <= 0:
            continue

        total_tokens += window.total_tokens * (overlap_seconds / window_seconds)

    return total_tokens / 60.0
