"""
Usage analysis pipeline.

Single entry point that loads usage logs, segments them into session
windows and derives burn rates, projections and limit signals.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from usage_monitor.storage.models import LimitSignal, SessionWindow
from usage_monitor.storage.repository import load_usage_records

from .burn_rate import calculate_burn_rate, project_window_usage
from .limits import LimitSignalDetector, attach_signals_to_windows
from .pricing import CostMode, ModelPricing
from .sessions import DEFAULT_SESSION_HOURS, SessionSegmenter
from .timestamps import to_rfc3339, utc_now

logger = logging.getLogger(__name__)

QUICK_START_HOURS = 24


@dataclass
class AnalysisResult:
    """Complete output of one analysis run."""
    windows: List[SessionWindow]
    metadata: Dict[str, Any]
    entries_count: int
    total_tokens: int
    total_cost: float
    limit_signals: List[LimitSignal] = field(default_factory=list)

    @property
    def active_window(self) -> Optional[SessionWindow]:
        """The most recent active window, if any."""
        for window in reversed(self.windows):
            if window.is_active:
                return window
        return None

    def to_tracker_list(self) -> List[Dict[str, Any]]:
        """Reduced window projections for session trackers."""
        return [window.to_tracker_dict() for window in self.windows if not window.is_gap]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "blocks": [window.to_dict() for window in self.windows],
            "metadata": dict(self.metadata),
            "entriesCount": self.entries_count,
            "totalTokens": self.total_tokens,
            "totalCost": self.total_cost,
        }


def apply_burn_rates(windows: List[SessionWindow], now: Optional[datetime] = None) -> None:
    """Store a burn rate snapshot and projection on every active window."""
    now = now if now is not None else utc_now()
    for window in windows:
        if not window.is_active:
            continue
        burn_rate = calculate_burn_rate(window)
        if burn_rate is None:
            continue
        window.burn_rate_snapshot = burn_rate
        window.projection = project_window_usage(
            burn_rate,
            window.end_time,
            window.total_tokens,
            window.cost_usd,
            now=now,
        )


def analyze_usage(
    hours_back: Optional[int] = None,
    data_path: Optional[Union[str, Path]] = None,
    quick_start: bool = False,
    session_hours: int = DEFAULT_SESSION_HOURS,
    cost_mode: CostMode = CostMode.AUTO,
    custom_pricing: Optional[Mapping[str, ModelPricing]] = None,
) -> AnalysisResult:
    """Run the full analysis pipeline.

    Args:
        hours_back: Only analyze records from this many recent hours;
            None analyzes all history
        data_path: Root of the log tree; defaults to ~/.claude/projects
        quick_start: Limit the load to the last 24 hours when hours_back
            is not given
        session_hours: Session window width
        cost_mode: How record costs are determined
        custom_pricing: Optional per-model pricing overrides

    Returns:
        AnalysisResult with windows and run metadata
    """
    effective_hours = hours_back
    if quick_start and hours_back is None:
        effective_hours = QUICK_START_HOURS

    load_start = time.perf_counter()
    records, raw_entries = load_usage_records(
        data_path=data_path,
        hours_back=effective_hours,
        mode=cost_mode,
        include_raw=True,
        custom_pricing=custom_pricing,
    )
    load_time = time.perf_counter() - load_start

    transform_start = time.perf_counter()
    windows = SessionSegmenter(session_hours).transform_to_windows(records)
    transform_time = time.perf_counter() - transform_start

    apply_burn_rates(windows)

    signals = LimitSignalDetector().detect_limits(raw_entries or [])
    attach_signals_to_windows(signals, windows)

    metadata = {
        "generated_at": to_rfc3339(utc_now()),
        "hours_analyzed": effective_hours,
        "entries_processed": len(records),
        "windows_created": len(windows),
        "limits_detected": len(signals),
        "load_time_seconds": load_time,
        "transform_time_seconds": transform_time,
    }
    logger.debug(
        "Analyzed %d records into %d windows in %.3fs",
        len(records), len(windows), load_time + transform_time,
    )

    return AnalysisResult(
        windows=windows,
        metadata=metadata,
        entries_count=len(records),
        total_tokens=sum(window.total_tokens for window in windows),
        total_cost=sum(window.cost_usd for window in windows),
        limit_signals=signals,
    )
