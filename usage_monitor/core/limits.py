"""
Rate-limit signal detection.

Mines the raw log stream for limit notifications and attaches them to the
session windows they occurred in.
"""

import logging
import re
from datetime import datetime, timedelta
from typing import Any, Iterable, List, Mapping, Optional, Sequence

from usage_monitor.storage.models import LimitSignal, SessionWindow

from .probing import as_str, get_path
from .timestamps import parse_timestamp

logger = logging.getLogger(__name__)

OPUS_LIMIT = "opus_limit"
SYSTEM_LIMIT = "system_limit"
GENERAL_LIMIT = "general_limit"

OPUS_LIMIT_PHRASES = (
    "rate limit",
    "limit exceeded",
    "limit reached",
    "limit hit",
    "limit",
)

WAIT_PATTERN = re.compile(r"wait\s+(\d+)\s+minutes?")
RESET_PATTERN = re.compile(r"limit reached\|(\d+)")


def is_opus_limit(content_lower: str) -> bool:
    """Whether lowercased notification text describes an Opus-specific limit."""
    if "opus" not in content_lower:
        return False
    return any(phrase in content_lower for phrase in OPUS_LIMIT_PHRASES)


def extract_wait_time(content: str, timestamp: datetime) -> Optional[datetime]:
    """Reset time from a ``wait N minutes`` phrase, relative to the event."""
    match = WAIT_PATTERN.search(content.lower())
    if match is None:
        return None
    try:
        return timestamp + timedelta(minutes=int(match.group(1)))
    except (ValueError, OverflowError):
        logger.debug("Wait time out of range: %s", match.group(1)[:40])
        return None


def parse_reset_timestamp(text: str) -> Optional[datetime]:
    """Reset time from an embedded ``limit reached|<unix seconds>`` marker."""
    match = RESET_PATTERN.search(text.lower())
    if match is None:
        return None
    try:
        seconds = int(match.group(1))
    except ValueError:
        logger.debug("Reset timestamp out of range: %s", match.group(1)[:40])
        return None
    return parse_timestamp(seconds)


class LimitSignalDetector:
    """Recognizes limit notifications in raw log lines.

    System records whose content mentions a limit or rate are reported as
    ``opus_limit`` or ``system_limit``. User records carrying a tool result
    whose text says ``limit reached`` are reported as ``general_limit``.
    """

    def detect_limits(self, raw_entries: Iterable[Any]) -> List[LimitSignal]:
        signals = []
        for entry in raw_entries:
            signal = self.detect_single_limit(entry)
            if signal is not None:
                signals.append(signal)
        logger.debug("Detected %d limit signals", len(signals))
        return signals

    def detect_single_limit(self, entry: Any) -> Optional[LimitSignal]:
        entry_type = as_str(get_path(entry, "type"))
        if entry_type == "system":
            return self._process_system_message(entry)
        if entry_type == "user":
            return self._process_user_message(entry)
        return None

    def _process_system_message(self, entry: Mapping[str, Any]) -> Optional[LimitSignal]:
        content = as_str(entry.get("content"))
        if content is None:
            return None
        content_lower = content.lower()
        if "limit" not in content_lower and "rate" not in content_lower:
            return None

        timestamp = parse_timestamp(entry.get("timestamp"))
        if timestamp is None:
            return None

        if is_opus_limit(content_lower):
            return LimitSignal(
                limit_type=OPUS_LIMIT,
                timestamp=timestamp,
                content=content,
                reset_time=extract_wait_time(content, timestamp),
            )
        return LimitSignal(limit_type=SYSTEM_LIMIT, timestamp=timestamp, content=content)

    def _process_user_message(self, entry: Mapping[str, Any]) -> Optional[LimitSignal]:
        content_list = get_path(entry, "message", "content")
        if not isinstance(content_list, list):
            return None

        for item in content_list:
            if as_str(get_path(item, "type")) != "tool_result":
                continue
            tool_content = get_path(item, "content")
            if not isinstance(tool_content, list):
                continue
            for tool_item in tool_content:
                text = as_str(get_path(tool_item, "text"))
                if text is None or "limit reached" not in text.lower():
                    continue
                timestamp = parse_timestamp(entry.get("timestamp"))
                if timestamp is None:
                    return None
                return LimitSignal(
                    limit_type=GENERAL_LIMIT,
                    timestamp=timestamp,
                    content=text,
                    reset_time=parse_reset_timestamp(text),
                )
        return None


def attach_signals_to_windows(
    signals: Sequence[LimitSignal],
    windows: Sequence[SessionWindow],
) -> int:
    """Attach each signal to every real window whose span contains it.

    Both window bounds are inclusive.

    Returns:
        Number of attachments made
    """
    attached = 0
    for signal in signals:
        for window in windows:
            if window.is_gap:
                continue
            if window.start_time <= signal.timestamp <= window.end_time:
                window.limit_signals.append(signal)
                attached += 1
    return attached
