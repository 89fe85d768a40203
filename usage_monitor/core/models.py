"""
Model name normalization.

Collapses the many spellings of a model identifier into the small set of
canonical names used for pricing and per-model aggregation.
"""

from typing import Any, Dict

from .probing import as_str, first_of, get_path

DEFAULT_MODEL = "claude-3-5-sonnet"
SYNTHETIC_MODEL = "<synthetic>"
UNKNOWN_MODEL = "unknown"

# Next-generation identifiers are kept verbatim (lowercased).
_NEXT_GEN_MARKERS = (
    "claude-opus-4-",
    "claude-sonnet-4-",
    "claude-haiku-4-",
    "opus-4-",
    "sonnet-4-",
    "haiku-4-",
)


def normalize_model_name(model: str) -> str:
    """Canonicalize a raw model identifier.

    Pricing lookups, per-model aggregation and display grouping all key on
    the returned value, so the order of the checks below matters.

    Args:
        model: Raw model identifier as it appears in a log line

    Returns:
        Canonical model name; unknown models are returned unchanged
    """
    if not model:
        return ""

    lowered = model.lower()

    if any(marker in lowered for marker in _NEXT_GEN_MARKERS):
        return lowered

    if "opus" in lowered:
        return "claude-3-opus"

    if "sonnet" in lowered:
        if "3.5" in lowered or "3-5" in lowered:
            return "claude-3-5-sonnet"
        return "claude-3-sonnet"

    if "haiku" in lowered:
        if "3.5" in lowered or "3-5" in lowered:
            return "claude-3-5-haiku"
        return "claude-3-haiku"

    return model


def extract_model_name(record: Dict[str, Any]) -> str:
    """Raw model identifier of a record, from ``model`` then ``message.model``."""
    model = first_of(
        lambda path=path: as_str(get_path(record, *path)) or None
        for path in (("model",), ("message", "model"))
    )
    return model if model is not None else DEFAULT_MODEL
