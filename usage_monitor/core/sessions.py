"""
Session window segmentation.

Partitions a timestamp-sorted record stream into fixed-width session
windows, with synthetic gap windows marking long idle periods.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from usage_monitor.storage.models import ModelStats, SessionWindow, UsageRecord

from .models import UNKNOWN_MODEL, normalize_model_name
from .timestamps import format_window_id, truncate_to_hour, utc_now

logger = logging.getLogger(__name__)

DEFAULT_SESSION_HOURS = 5


def model_key(model: str) -> str:
    """Aggregation key for a record's model; empty names group as unknown."""
    if not model or model == UNKNOWN_MODEL:
        return UNKNOWN_MODEL
    return normalize_model_name(model)


class SessionSegmenter:
    """Groups usage records into session windows of a fixed width.

    At most one window is open at a time. A record joins the open window
    when it falls before the window's nominal end and the silence since the
    window's previous record is shorter than the window width; otherwise
    the window is closed and a new one is opened for the record.
    """

    def __init__(self, session_hours: int = DEFAULT_SESSION_HOURS):
        self.session_hours = session_hours
        self.session_duration = timedelta(hours=session_hours)

    def transform_to_windows(
        self,
        records: Sequence[UsageRecord],
        now: Optional[datetime] = None,
    ) -> List[SessionWindow]:
        """Build the window list for a sorted record stream.

        Args:
            records: Usage records sorted ascending by timestamp
            now: Reference instant for activity marking; defaults to the
                current time

        Returns:
            Real and gap windows in chronological order
        """
        windows: List[SessionWindow] = []
        current: Optional[SessionWindow] = None

        for record in records:
            if not self._window_fits(record):
                logger.debug("Skipping record at %s: window end out of range", record.timestamp)
                continue

            if current is not None and self._should_start_new_window(current, record):
                self._finalize_window(current)
                windows.append(current)
                gap = self._gap_before(current, record)
                if gap is not None:
                    windows.append(gap)
                current = None

            if current is None:
                current = self._open_window(record)
            self._add_record(current, record)

        if current is not None:
            self._finalize_window(current)
            windows.append(current)

        self._mark_active_windows(windows, now if now is not None else utc_now())

        logger.debug("Created %d windows from %d records", len(windows), len(records))
        return windows

    def _should_start_new_window(self, window: SessionWindow, record: UsageRecord) -> bool:
        if record.timestamp >= window.end_time:
            return True
        if window.records and record.timestamp - window.records[-1].timestamp >= self.session_duration:
            return True
        return False

    def _window_fits(self, record: UsageRecord) -> bool:
        try:
            truncate_to_hour(record.timestamp) + self.session_duration
        except OverflowError:
            return False
        return True

    def _open_window(self, record: UsageRecord) -> SessionWindow:
        start = truncate_to_hour(record.timestamp)
        return SessionWindow(
            id=format_window_id(start),
            start_time=start,
            end_time=start + self.session_duration,
        )

    @staticmethod
    def _add_record(window: SessionWindow, record: UsageRecord) -> None:
        window.records.append(record)

        key = model_key(record.model)
        stats = window.per_model_stats.setdefault(key, ModelStats())
        stats.add_record(record)
        if key not in window.models:
            window.models.append(key)

        window.token_counts = window.token_counts + record.tokens
        window.cost_usd += record.cost_usd
        window.sent_messages_count += 1

    @staticmethod
    def _finalize_window(window: SessionWindow) -> None:
        if window.records:
            window.actual_end_time = window.records[-1].timestamp
        window.sent_messages_count = len(window.records)

    def _gap_before(self, previous: SessionWindow, record: UsageRecord) -> Optional[SessionWindow]:
        """Gap window spanning an idle period of at least one window width."""
        if previous.actual_end_time is None:
            return None
        if record.timestamp - previous.actual_end_time < self.session_duration:
            return None
        return SessionWindow(
            id=f"gap-{format_window_id(previous.actual_end_time)}",
            start_time=previous.actual_end_time,
            end_time=record.timestamp,
            is_gap=True,
        )

    @staticmethod
    def _mark_active_windows(windows: List[SessionWindow], now: datetime) -> None:
        for window in windows:
            if not window.is_gap and window.end_time > now:
                window.is_active = True
