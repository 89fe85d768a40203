"""
Data models for the usage analysis pipeline.

Defines usage records, session windows and the values derived from them.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from usage_monitor.core.timestamps import to_rfc3339
from usage_monitor.core.token_counter import TokenCounts


@dataclass(frozen=True)
class UsageRecord:
    """Immutable record of a single API request read from a usage log.

    Created once by the log loader and never modified afterwards.
    """
    timestamp: datetime
    input_tokens: int
    output_tokens: int
    cache_creation_tokens: int = 0
    cache_read_tokens: int = 0
    cost_usd: float = 0.0
    model: str = ""
    message_id: str = ""
    request_id: str = "unknown"

    @property
    def tokens(self) -> TokenCounts:
        return TokenCounts(
            input_tokens=self.input_tokens,
            output_tokens=self.output_tokens,
            cache_creation_tokens=self.cache_creation_tokens,
            cache_read_tokens=self.cache_read_tokens,
        )

    @property
    def total_tokens(self) -> int:
        return (
            self.input_tokens
            + self.output_tokens
            + self.cache_creation_tokens
            + self.cache_read_tokens
        )


@dataclass
class ModelStats:
    """Per-model totals within a session window."""
    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_tokens: int = 0
    cache_read_tokens: int = 0
    cost_usd: float = 0.0
    entries_count: int = 0

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
        self.cost_usd += record.cost_usd
        self.entries_count += 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "inputTokens": self.input_tokens,
            "outputTokens": self.output_tokens,
            "cacheCreationTokens": self.cache_creation_tokens,
            "cacheReadTokens": self.cache_read_tokens,
            "costUSD": self.cost_usd,
            "entriesCount": self.entries_count,
        }


@dataclass(frozen=True)
class BurnRate:
    """Consumption velocity of a window."""
    tokens_per_minute: float
    cost_per_hour: float

    def to_dict(self) -> Dict[str, float]:
        return {"tokensPerMinute": self.tokens_per_minute, "costPerHour": self.cost_per_hour}


@dataclass(frozen=True)
class UsageProjection:
    """Forward projection of a window's totals to its nominal end."""
    projected_total_tokens: int
    projected_total_cost: float
    remaining_minutes: float

    def to_dict(self) -> Dict[str, float]:
        return {
            "totalTokens": self.projected_total_tokens,
            "totalCost": self.projected_total_cost,
            "remainingMinutes": self.remaining_minutes,
        }


@dataclass(frozen=True)
class LimitSignal:
    """A rate-limit notification found in the raw log stream."""
    limit_type: str  # "opus_limit", "system_limit" or "general_limit"
    timestamp: datetime
    content: str
    reset_time: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            "type": self.limit_type,
            "timestamp": to_rfc3339(self.timestamp),
            "content": self.content,
            "resetTime": to_rfc3339(self.reset_time),
        }


@dataclass
class SessionWindow:
    """A fixed-width usage window, or a synthetic gap between two windows.

    For real windows ``end_time`` is always ``start_time`` plus the window
    width and ``actual_end_time`` is the timestamp of the last record.
    Gap windows hold no records and are never active.
    """
    id: str
    start_time: datetime
    end_time: datetime
    actual_end_time: Optional[datetime] = None
    records: List[UsageRecord] = field(default_factory=list)
    token_counts: TokenCounts = field(default_factory=TokenCounts)
    per_model_stats: Dict[str, ModelStats] = field(default_factory=dict)
    models: List[str] = field(default_factory=list)
    cost_usd: float = 0.0
    sent_messages_count: int = 0
    is_active: bool = False
    is_gap: bool = False
    limit_signals: List[LimitSignal] = field(default_factory=list)
    burn_rate_snapshot: Optional[BurnRate] = None
    projection: Optional[UsageProjection] = None

    @property
    def total_tokens(self) -> int:
        return self.token_counts.total_tokens

    @property
    def total_cost(self) -> float:
        return self.cost_usd

    @property
    def duration_minutes(self) -> float:
        """Elapsed minutes from start to last record (or nominal end), at least 1."""
        end = self.actual_end_time or self.end_time
        return max((end - self.start_time).total_seconds() / 60.0, 1.0)

    def to_tracker_dict(self) -> Dict[str, Any]:
        """Reduced projection consumed by session trackers."""
        return {
            "id": self.id,
            "isActive": self.is_active,
            "totalTokens": self.total_tokens,
            "costUSD": self.cost_usd,
            "startTime": to_rfc3339(self.start_time),
        }

    def to_dict(self) -> Dict[str, Any]:
        """Full JSON-safe representation of the window."""
        data = self.to_tracker_dict()
        data.update({
            "isGap": self.is_gap,
            "endTime": to_rfc3339(self.end_time),
            "actualEndTime": to_rfc3339(self.actual_end_time),
            "tokenCounts": {
                "inputTokens": self.token_counts.input_tokens,
                "outputTokens": self.token_counts.output_tokens,
                "cacheCreationInputTokens": self.token_counts.cache_creation_tokens,
                "cacheReadInputTokens": self.token_counts.cache_read_tokens,
            },
            "models": list(self.models),
            "perModelStats": {name: stats.to_dict() for name, stats in self.per_model_stats.items()},
            "sentMessagesCount": self.sent_messages_count,
            "durationMinutes": self.duration_minutes,
            "limitMessages": [signal.to_dict() for signal in self.limit_signals],
            "burnRate": self.burn_rate_snapshot.to_dict() if self.burn_rate_snapshot else None,
            "projection": self.projection.to_dict() if self.projection else None,
        })
        return data
