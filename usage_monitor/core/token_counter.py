"""
Token counting and extraction.

Resolves the four token categories from usage records whose field names
and nesting differ between log producers.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from .probing import first_int, first_of, get_path

INPUT_KEYS = ("input_tokens", "inputTokens", "prompt_tokens")
OUTPUT_KEYS = ("output_tokens", "outputTokens", "completion_tokens")
CACHE_CREATION_KEYS = (
    "cache_creation_tokens",
    "cache_creation_input_tokens",
    "cacheCreationInputTokens",
)
CACHE_READ_KEYS = (
    "cache_read_input_tokens",
    "cache_read_tokens",
    "cacheReadInputTokens",
)


@dataclass(frozen=True)
class TokenCounts:
    """Token counts for the four billed categories."""
    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_tokens: int = 0
    cache_read_tokens: int = 0

    def __post_init__(self):
        """Validate counts are non-negative."""
        for name in ("input_tokens", "output_tokens", "cache_creation_tokens", "cache_read_tokens"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} cannot be negative")

    @property
    def total_tokens(self) -> int:
        """Sum of all four categories."""
        return (
            self.input_tokens
            + self.output_tokens
            + self.cache_creation_tokens
            + self.cache_read_tokens
        )

    def __add__(self, other: "TokenCounts") -> "TokenCounts":
        return TokenCounts(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
            cache_creation_tokens=self.cache_creation_tokens + other.cache_creation_tokens,
            cache_read_tokens=self.cache_read_tokens + other.cache_read_tokens,
        )


def _counts_from_source(source: Any) -> Optional[TokenCounts]:
    """Read counts from one candidate object.

    A source is only accepted when it carries a nonzero input or output
    count. Cache counts alone do not qualify it.
    """
    if source is None:
        return None
    input_tokens = first_int(source, INPUT_KEYS) or 0
    output_tokens = first_int(source, OUTPUT_KEYS) or 0
    if input_tokens == 0 and output_tokens == 0:
        return None
    return TokenCounts(
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        cache_creation_tokens=first_int(source, CACHE_CREATION_KEYS) or 0,
        cache_read_tokens=first_int(source, CACHE_READ_KEYS) or 0,
    )


def extract_tokens(record: Dict[str, Any]) -> TokenCounts:
    """Extract token counts from a raw usage record.

    Assistant records keep their usage under ``message.usage``, so that
    location is probed first for them; every other record type probes the
    top-level ``usage`` object first. The record itself is the last resort.

    Args:
        record: Parsed JSON object from a log line

    Returns:
        TokenCounts from the first qualifying source, or all zeros
    """
    message_usage = get_path(record, "message", "usage")
    usage = get_path(record, "usage")

    if get_path(record, "type") == "assistant":
        sources = (message_usage, usage, record)
    else:
        sources = (usage, message_usage, record)

    counts = first_of(lambda source=source: _counts_from_source(source) for source in sources)
    return counts if counts is not None else TokenCounts()
