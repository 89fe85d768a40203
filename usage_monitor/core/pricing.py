"""
Pricing calculations and rate management.

Handles cost computations for Claude model families, including prompt
cache writes and reads.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

from .models import DEFAULT_MODEL, SYNTHETIC_MODEL, normalize_model_name
from .probing import as_float, as_str, first_int, first_of, get_path
from .token_counter import (
    CACHE_CREATION_KEYS,
    CACHE_READ_KEYS,
    INPUT_KEYS,
    OUTPUT_KEYS,
    TokenCounts,
)

TOKENS_PER_MILLION = Decimal("1000000")
COST_QUANTUM = Decimal("0.000001")
CACHED_COST_KEYS = ("costUSD", "cost_usd")


class CostMode(Enum):
    """How the USD cost of a usage record is determined."""
    AUTO = "auto"          # Recalculate from token counts
    CACHED = "cached"      # Prefer a cost already recorded in the log line
    CALCULATED = "calculate"  # Always recalculate from token counts


@dataclass(frozen=True)
class ModelPricing:
    """Per-million-token pricing for a model family."""
    input: Decimal
    output: Decimal
    cache_creation: Decimal
    cache_read: Decimal

    def __post_init__(self):
        """Validate rates are non-negative."""
        for name in ("input", "output", "cache_creation", "cache_read"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} rate cannot be negative")

    @classmethod
    def from_rates(
        cls,
        input: float,
        output: float,
        cache_creation: float,
        cache_read: float,
    ) -> "ModelPricing":
        """Build pricing from plain numbers (e.g. values read from YAML)."""
        return cls(
            input=Decimal(str(input)),
            output=Decimal(str(output)),
            cache_creation=Decimal(str(cache_creation)),
            cache_read=Decimal(str(cache_read)),
        )


OPUS_PRICING = ModelPricing(
    input=Decimal("15.00"),
    output=Decimal("75.00"),
    cache_creation=Decimal("18.75"),
    cache_read=Decimal("1.50"),
)
SONNET_PRICING = ModelPricing(
    input=Decimal("3.00"),
    output=Decimal("15.00"),
    cache_creation=Decimal("3.75"),
    cache_read=Decimal("0.30"),
)
HAIKU_PRICING = ModelPricing(
    input=Decimal("0.25"),
    output=Decimal("1.25"),
    cache_creation=Decimal("0.30"),
    cache_read=Decimal("0.03"),
)

DEFAULT_PRICES: Dict[str, ModelPricing] = {
    "claude-3-opus": OPUS_PRICING,
    "claude-3-sonnet": SONNET_PRICING,
    "claude-3-haiku": HAIKU_PRICING,
    "claude-3-5-sonnet": SONNET_PRICING,
    "claude-3-5-haiku": HAIKU_PRICING,
    "claude-sonnet-4-20250514": SONNET_PRICING,
    "claude-opus-4-20250514": OPUS_PRICING,
}


@dataclass(frozen=True)
class PricingTable:
    """Pricing table keyed by canonical model name."""
    prices: Dict[str, ModelPricing]

    def get_pricing(self, model: str) -> ModelPricing:
        """Resolve pricing for a model.

        Resolution order: normalized name, raw name, family keyword
        (opus, haiku, sonnet), then sonnet pricing as the default.

        Args:
            model: Raw or canonical model identifier

        Returns:
            ModelPricing for the model
        """
        lowered = model.lower()
        pricing = first_of((
            lambda: self.prices.get(normalize_model_name(model)),
            lambda: self.prices.get(model),
            lambda: OPUS_PRICING if "opus" in lowered else None,
            lambda: HAIKU_PRICING if "haiku" in lowered else None,
            lambda: SONNET_PRICING if "sonnet" in lowered else None,
        ))
        return pricing if pricing is not None else SONNET_PRICING


def build_pricing_table(custom_pricing: Optional[Mapping[str, ModelPricing]] = None) -> PricingTable:
    """Merge caller-supplied overrides on top of the built-in prices."""
    prices = dict(DEFAULT_PRICES)
    if custom_pricing:
        prices.update(custom_pricing)
    return PricingTable(prices)


class PricingCalculator:
    """Computes USD costs and memoizes results for repeated token tuples.

    One calculator is meant to live for a single analysis run; the memo is
    never shared between runs.
    """

    def __init__(self, custom_pricing: Optional[Mapping[str, ModelPricing]] = None):
        self.table = build_pricing_table(custom_pricing)
        self._cost_cache: Dict[Tuple[str, int, int, int, int], float] = {}

    @property
    def cache_size(self) -> int:
        """Number of memoized cost results."""
        return len(self._cost_cache)

    def calculate_cost(
        self,
        model: str,
        input_tokens: int,
        output_tokens: int,
        cache_creation_tokens: int = 0,
        cache_read_tokens: int = 0,
    ) -> float:
        """Calculate the USD cost of a single request.

        Args:
            model: Model identifier
            input_tokens: Prompt tokens
            output_tokens: Completion tokens
            cache_creation_tokens: Tokens written to the prompt cache
            cache_read_tokens: Tokens read from the prompt cache

        Returns:
            Cost rounded to 6 decimal places; 0.0 for synthetic records
        """
        if model == SYNTHETIC_MODEL:
            return 0.0

        key = (model, input_tokens, output_tokens, cache_creation_tokens, cache_read_tokens)
        cached = self._cost_cache.get(key)
        if cached is not None:
            return cached

        pricing = self.table.get_pricing(model)
        total = (
            Decimal(input_tokens) * pricing.input
            + Decimal(output_tokens) * pricing.output
            + Decimal(cache_creation_tokens) * pricing.cache_creation
            + Decimal(cache_read_tokens) * pricing.cache_read
        ) / TOKENS_PER_MILLION
        cost = float(total.quantize(COST_QUANTUM, rounding=ROUND_HALF_UP))

        self._cost_cache[key] = cost
        return cost

    def calculate_cost_for_tokens(self, model: str, tokens: TokenCounts) -> float:
        """Convenience wrapper taking a TokenCounts value."""
        return self.calculate_cost(
            model,
            tokens.input_tokens,
            tokens.output_tokens,
            tokens.cache_creation_tokens,
            tokens.cache_read_tokens,
        )

    def calculate_cost_for_entry(self, entry: Mapping[str, Any], mode: CostMode) -> float:
        """Cost of a flat usage entry, honouring the cost mode.

        In CACHED mode a numeric ``costUSD`` (or ``cost_usd``) field wins;
        otherwise, and in every other mode, cost is recalculated from the
        entry's token fields.
        """
        if mode == CostMode.CACHED:
            cached = first_of(lambda key=key: as_float(get_path(entry, key)) for key in CACHED_COST_KEYS)
            if cached is not None:
                return cached

        model = as_str(entry.get("model")) or DEFAULT_MODEL
        return self.calculate_cost(
            model,
            first_int(entry, INPUT_KEYS) or 0,
            first_int(entry, OUTPUT_KEYS) or 0,
            first_int(entry, CACHE_CREATION_KEYS) or 0,
            first_int(entry, CACHE_READ_KEYS) or 0,
        )


def calculate_cost(model: str, usage: TokenCounts) -> float:
    """Calculate the cost of a single request with the built-in prices."""
    return PricingCalculator().calculate_cost_for_tokens(model, usage)
