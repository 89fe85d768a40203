"""
Ordered fallback probing over loosely-shaped JSON documents.

Every field in a usage log line can live under several names or nesting
levels. These helpers resolve such fields by trying candidates in order.
"""

from typing import Any, Callable, Iterable, Mapping, Optional, Sequence, TypeVar

T = TypeVar("T")


def first_of(probes: Iterable[Callable[[], Optional[T]]]) -> Optional[T]:
    """Return the result of the first probe that yields a value.

    Probes are evaluated lazily and in order. A probe "fails" by returning
    None; anything else (including 0 or "") is treated as a success.

    Args:
        probes: Zero-argument callables, highest priority first

    Returns:
        The first non-None probe result, or None when every probe fails
    """
    for probe in probes:
        result = probe()
        if result is not None:
            return result
    return None


def get_path(data: Any, *keys: str) -> Any:
    """Walk nested mappings, returning None as soon as a level is missing."""
    current = data
    for key in keys:
        if not isinstance(current, Mapping):
            return None
        current = current.get(key)
        if current is None:
            return None
    return current


def as_int(value: Any) -> Optional[int]:
    """Interpret a JSON value as a non-negative integer count.

    Booleans, negatives, floats with a fractional part and strings are
    rejected so that a malformed field falls through to the next alias.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value >= 0 else None
    if isinstance(value, float) and value.is_integer() and value >= 0:
        return int(value)
    return None


def as_float(value: Any) -> Optional[float]:
    """Interpret a JSON value as a float (ints are widened)."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    return None


def as_str(value: Any) -> Optional[str]:
    """Return value when it is a string, else None."""
    return value if isinstance(value, str) else None


def first_int(source: Any, keys: Sequence[str]) -> Optional[int]:
    """Resolve the first key in ``keys`` holding an integer count."""
    return first_of(lambda key=key: as_int(get_path(source, key)) for key in keys)


def first_str(data: Any, paths: Sequence[Sequence[str]]) -> Optional[str]:
    """Resolve the first key path in ``paths`` holding a string."""
    return first_of(lambda path=path: as_str(get_path(data, *path)) for path in paths)
