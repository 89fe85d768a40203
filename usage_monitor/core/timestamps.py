"""
Timestamp normalization.

Converts the heterogeneous timestamp encodings found in usage logs into
timezone-aware UTC datetimes.
"""

import logging
import math
from datetime import datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Optional

logger = logging.getLogger(__name__)

# Tried in order after RFC 3339 and RFC 2822. Naive results are taken as UTC.
# Day-first slash dates are tried before month-first ones, so "03/04/2024"
# reads as 3 April.
FALLBACK_FORMATS = (
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M:%S.%f",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d",
    "%d/%m/%Y %H:%M:%S",
    "%m/%d/%Y %H:%M:%S",
)

WINDOW_ID_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a JSON timestamp value into an aware UTC datetime.

    Args:
        value: null, a Unix epoch number (int or float seconds) or a string

    Returns:
        The UTC instant, or None when the value cannot be interpreted
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return _from_epoch(value, 0)
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        whole = math.trunc(value)
        micros = round((value - whole) * 1_000_000)
        return _from_epoch(whole, micros)
    if isinstance(value, str):
        return _parse_string(value)
    return None


def _from_epoch(seconds: int, micros: int) -> Optional[datetime]:
    try:
        base = datetime.fromtimestamp(seconds, tz=timezone.utc)
        return base + timedelta(microseconds=micros)
    except (OverflowError, OSError, ValueError):
        logger.warning("Epoch timestamp out of range: %s", seconds)
        return None


def _parse_string(text: str) -> Optional[datetime]:
    if not text:
        logger.warning("Empty timestamp string")
        return None

    normalized = text[:-1] + "+00:00" if text.endswith("Z") else text

    # RFC 3339 requires an explicit offset; naive ISO strings fall through.
    try:
        parsed = datetime.fromisoformat(normalized)
        if parsed.tzinfo is not None:
            return parsed.astimezone(timezone.utc)
    except ValueError:
        pass

    try:
        parsed = parsedate_to_datetime(text)
        if parsed is not None:
            if parsed.tzinfo is None:
                return parsed.replace(tzinfo=timezone.utc)
            return parsed.astimezone(timezone.utc)
    except (TypeError, ValueError, IndexError):
        pass

    for fmt in FALLBACK_FORMATS:
        try:
            return datetime.strptime(text, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue

    logger.warning("Could not parse timestamp string %r", text)
    return None


def truncate_to_hour(moment: datetime) -> datetime:
    """Round a datetime down to the start of its hour."""
    return moment.replace(minute=0, second=0, microsecond=0)


def format_window_id(moment: datetime) -> str:
    """Render a UTC instant as a compact window identifier."""
    return moment.astimezone(timezone.utc).strftime(WINDOW_ID_FORMAT)


def to_rfc3339(moment: Optional[datetime]) -> Optional[str]:
    """ISO 8601 / RFC 3339 rendering that tolerates None."""
    return moment.isoformat() if moment is not None else None
