"""
Usage aggregation over calendar periods.

Rolls usage records up into daily or monthly totals with a per-model
breakdown.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Set

from usage_monitor.storage.models import SessionWindow, UsageRecord

from .sessions import model_key

DAILY_KEY_FORMAT = "%Y-%m-%d"
MONTHLY_KEY_FORMAT = "%Y-%m"


@dataclass
class AggregatedStats:
    """Token and cost totals across many records."""
    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_tokens: int = 0
    cache_read_tokens: int = 0
    cost: float = 0.0
    count: int = 0

    @property
    def total_tokens(self) -> int:
        return (
            self.input_tokens
            + self.output_tokens
            + self.cache_creation_tokens
            + self.cache_read_tokens
        )

    def add_record(self, record: UsageRecord) -> None:
        self.input_tokens += record.input_tokens
        self.output_tokens += record.output_tokens
        self.cache_creation_tokens += record.cache_creation_tokens
        self.cache_read_tokens += record.cache_read_tokens
        self.cost += record.cost_usd
        self.count += 1

    def add_stats(self, other: "AggregatedStats") -> None:
        self.input_tokens += other.input_tokens
        self.output_tokens += other.output_tokens
        self.cache_creation_tokens += other.cache_creation_tokens
        self.cache_read_tokens += other.cache_read_tokens
        self.cost += other.cost
        self.count += other.count

    def to_dict(self) -> Dict[str, Any]:
        return {
            "inputTokens": self.input_tokens,
            "outputTokens": self.output_tokens,
            "cacheCreationTokens": self.cache_creation_tokens,
            "cacheReadTokens": self.cache_read_tokens,
            "totalTokens": self.total_tokens,
            "cost": self.cost,
            "count": self.count,
        }


@dataclass
class AggregatedPeriod:
    """All usage within one day or one month."""
    period_key: str
    stats: AggregatedStats = field(default_factory=AggregatedStats)
    models_used: Set[str] = field(default_factory=set)
    model_breakdowns: Dict[str, AggregatedStats] = field(default_factory=dict)

    def add_record(self, record: UsageRecord) -> None:
        self.stats.add_record(record)
        key = model_key(record.model)
        self.models_used.add(key)
        self.model_breakdowns.setdefault(key, AggregatedStats()).add_record(record)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "period": self.period_key,
            "stats": self.stats.to_dict(),
            "modelsUsed": sorted(self.models_used),
            "modelBreakdowns": {
                name: stats.to_dict() for name, stats in sorted(self.model_breakdowns.items())
            },
        }


def _aggregate_by_period(
    records: Iterable[UsageRecord],
    key_fn: Callable[[datetime], str],
) -> List[AggregatedPeriod]:
    periods: Dict[str, AggregatedPeriod] = {}
    for record in records:
        key = key_fn(record.timestamp)
        if key not in periods:
            periods[key] = AggregatedPeriod(key)
        periods[key].add_record(record)
    return [periods[key] for key in sorted(periods)]


def aggregate_daily(records: Iterable[UsageRecord]) -> List[AggregatedPeriod]:
    """Group records by UTC calendar day, oldest first."""
    return _aggregate_by_period(records, lambda ts: ts.strftime(DAILY_KEY_FORMAT))


def aggregate_monthly(records: Iterable[UsageRecord]) -> List[AggregatedPeriod]:
    """Group records by UTC calendar month, oldest first."""
    return _aggregate_by_period(records, lambda ts: ts.strftime(MONTHLY_KEY_FORMAT))


def aggregate_from_windows(windows: Iterable[SessionWindow], view: str = "daily") -> List[AggregatedPeriod]:
    """Aggregate the records of every real window.

    Args:
        windows: Session windows; gap windows are skipped
        view: ``daily`` or ``monthly``; anything else is treated as daily

    Returns:
        Aggregated periods sorted by key
    """
    records = [record for window in windows if not window.is_gap for record in window.records]
    if view == "monthly":
        return aggregate_monthly(records)
    return aggregate_daily(records)


def calculate_totals(periods: Iterable[AggregatedPeriod]) -> AggregatedStats:
    """Sum the stats of all periods."""
    totals = AggregatedStats()
    for period in periods:
        totals.add_stats(period.stats)
    return totals
