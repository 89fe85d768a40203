"""
P90 token limit estimation.

Infers the likely token capacity of a session from historical windows,
preferring the sessions that evidently ran into a known cap.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Mapping, Optional, Tuple, Union

from usage_monitor.storage.models import SessionWindow

from .plans import COMMON_TOKEN_LIMITS, DEFAULT_TOKEN_LIMIT, LIMIT_DETECTION_THRESHOLD

logger = logging.getLogger(__name__)

WindowLike = Union[SessionWindow, Mapping[str, Any]]


def compute_percentile(values: Iterable[float], percentile: float) -> float:
    """Percentile of window token totals by linear interpolation between ranks.

    The fractional rank is ``percentile / 100 * (n - 1)`` over the ascending
    values; a rank of 8.1 over ten totals lies a tenth of the way from the
    ninth total to the tenth.

    Raises:
        ValueError: If values is empty or percentile is outside 0-100
    """
    ranked = sorted(values)
    if not ranked:
        raise ValueError("Values list cannot be empty")
    if not 0 <= percentile <= 100:
        raise ValueError("Percentile must be between 0 and 100")

    if len(ranked) == 1:
        return float(ranked[0])

    rank = percentile / 100.0 * (len(ranked) - 1)
    below = int(rank)
    if below == len(ranked) - 1:
        return float(ranked[below])
    weight = rank - below
    return ranked[below] * (1 - weight) + ranked[below + 1] * weight


@dataclass(frozen=True)
class P90Config:
    """Tuning for the P90 estimator."""
    common_limits: Tuple[int, ...] = field(default=COMMON_TOKEN_LIMITS)
    limit_threshold: float = LIMIT_DETECTION_THRESHOLD
    default_min_limit: int = DEFAULT_TOKEN_LIMIT

    def __post_init__(self):
        """Validate configuration values."""
        if not 0 < self.limit_threshold <= 1:
            raise ValueError("limit_threshold must be in (0, 1]")
        if self.default_min_limit < 0:
            raise ValueError("default_min_limit cannot be negative")


def _window_summary(window: WindowLike) -> Optional[Tuple[bool, bool, int]]:
    """Reduce a window to ``(is_gap, is_active, total_tokens)``."""
    if isinstance(window, SessionWindow):
        return window.is_gap, window.is_active, window.total_tokens
    tokens = window.get("totalTokens")
    if isinstance(tokens, bool) or not isinstance(tokens, int) or tokens < 0:
        return None
    return bool(window.get("isGap", False)), bool(window.get("isActive", False)), tokens


class P90Calculator:
    """Estimates a session token limit from completed windows."""

    def __init__(self, config: Optional[P90Config] = None):
        self.config = config if config is not None else P90Config()

    def _hits_known_limit(self, tokens: int) -> bool:
        return any(
            tokens >= int(limit * self.config.limit_threshold)
            for limit in self.config.common_limits
        )

    def calculate_p90_limit(self, windows: Iterable[WindowLike]) -> int:
        """Estimate the token limit from historical windows.

        Gap and active windows are ignored. If any completed window reached
        the detection threshold of a well-known limit, only those windows
        form the sample; otherwise every completed window does.

        Args:
            windows: SessionWindow objects or mappings with ``isGap``,
                ``isActive`` and ``totalTokens`` keys

        Returns:
            The rounded 90th percentile, never below the configured floor
        """
        completed: List[int] = []
        for window in windows:
            summary = _window_summary(window)
            if summary is None:
                continue
            is_gap, is_active, tokens = summary
            if not is_gap and not is_active:
                completed.append(tokens)

        if not completed:
            return self.config.default_min_limit

        limit_hitting = [tokens for tokens in completed if self._hits_known_limit(tokens)]
        sample = limit_hitting or completed

        p90 = int(round(compute_percentile(sample, 90)))
        logger.debug(
            "P90 over %d of %d completed windows: %d",
            len(sample), len(completed), p90,
        )
        return max(p90, self.config.default_min_limit)


def calculate_p90_limit(
    windows: Iterable[WindowLike],
    config: Optional[P90Config] = None,
) -> int:
    """Estimate the token limit with the default (or given) configuration."""
    return P90Calculator(config).calculate_p90_limit(windows)
