"""
Cached access to usage analysis.

Wraps the analysis pipeline with a time-to-live cache and bounded retries,
falling back to the last good result when a refresh fails.
"""

import logging
import time
from functools import partial
from pathlib import Path
from typing import Callable, Optional, Union

from ..config.loader import MonitorConfig
from ..core.analysis import AnalysisResult, analyze_usage

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TTL_SECONDS = 30
DEFAULT_HOURS_BACK = 192
MAX_RETRY_ATTEMPTS = 3
RETRY_BACKOFF_SECONDS = 0.1


class UsageDataManager:
    """TTL-cached wrapper around ``analyze_usage``.

    Owned by the caller; nothing is shared between instances. Each refresh
    makes up to three attempts with linear back-off (0, 100 and 200 ms).
    """

    def __init__(
        self,
        cache_ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS,
        hours_back: Optional[int] = DEFAULT_HOURS_BACK,
        data_path: Optional[Union[str, Path]] = None,
        analyzer: Callable[..., AnalysisResult] = analyze_usage,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the data manager.

        Args:
            cache_ttl_seconds: Seconds before cached data is considered stale
            hours_back: Look-back window forwarded to the analyzer
            data_path: Optional root of the log tree
            analyzer: Analysis function to call on refresh
            sleep: Back-off sleep function
            clock: Monotonic clock used for cache ages

        Raises:
            ValueError: If cache_ttl_seconds is negative
        """
        if cache_ttl_seconds < 0:
            raise ValueError("cache_ttl_seconds cannot be negative")

        self.cache_ttl_seconds = cache_ttl_seconds
        self.hours_back = hours_back
        self.data_path = data_path
        self._analyzer = analyzer
        self._sleep = sleep
        self._clock = clock

        self._cache: Optional[AnalysisResult] = None
        self._cache_timestamp: Optional[float] = None
        self._last_error: Optional[str] = None
        self._last_successful_fetch: Optional[float] = None

    @classmethod
    def from_config(
        cls,
        config: MonitorConfig,
        analyzer: Callable[..., AnalysisResult] = analyze_usage,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> "UsageDataManager":
        """Build a manager from loaded settings.

        The cache TTL, look-back and data path come from the config; window
        width, cost mode and pricing overrides are bound into the analyzer.
        """
        bound = partial(
            analyzer,
            session_hours=config.session_hours,
            cost_mode=config.cost_mode,
            custom_pricing=config.pricing or None,
        )
        return cls(
            cache_ttl_seconds=config.cache_ttl_seconds,
            hours_back=config.hours_back,
            data_path=config.data_path,
            analyzer=bound,
            sleep=sleep,
            clock=clock,
        )

    @property
    def cache_age(self) -> Optional[float]:
        """Seconds since the cache was filled, or None when empty."""
        if self._cache_timestamp is None:
            return None
        return self._clock() - self._cache_timestamp

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    @property
    def last_successful_fetch(self) -> Optional[float]:
        """Clock reading of the last successful refresh."""
        return self._last_successful_fetch

    def _is_cache_valid(self) -> bool:
        age = self.cache_age
        return self._cache is not None and age is not None and age < self.cache_ttl_seconds

    def get_data(self, force_refresh: bool = False) -> Optional[AnalysisResult]:
        """Return analysis data, refreshing when the cache is stale.

        Args:
            force_refresh: Bypass the cache even if it is still valid

        Returns:
            Fresh result, or the previous result when every attempt failed
            (None if there never was one)
        """
        if not force_refresh and self._is_cache_valid():
            logger.debug("Returning cached analysis result")
            return self._cache

        last_exception = None
        for attempt in range(MAX_RETRY_ATTEMPTS):
            if attempt > 0:
                self._sleep(RETRY_BACKOFF_SECONDS * attempt)
            try:
                result = self._analyzer(hours_back=self.hours_back, data_path=self.data_path)
            except Exception as e:
                last_exception = e
                logger.warning(
                    "Analysis attempt %d/%d failed: %s",
                    attempt + 1, MAX_RETRY_ATTEMPTS, e,
                )
                continue

            now = self._clock()
            self._cache = result
            self._cache_timestamp = now
            self._last_successful_fetch = now
            self._last_error = None
            logger.debug(
                "Analysis cache updated: %d entries, %d tokens",
                result.entries_count, result.total_tokens,
            )
            return result

        self._last_error = str(last_exception)
        logger.warning("All analysis attempts failed; falling back to cached data")
        return self._cache

    def invalidate_cache(self) -> None:
        """Discard cached data so the next call refreshes."""
        self._cache = None
        self._cache_timestamp = None
        logger.debug("Cache invalidated")
