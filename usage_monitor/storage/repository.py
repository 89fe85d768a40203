"""
Repository pattern for usage log access.

Loads usage records from the append-only log tree, normalizing and
deduplicating them. Source logs are only ever read.
"""

import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple, Union

from usage_monitor.core.models import extract_model_name, normalize_model_name
from usage_monitor.core.pricing import CostMode, ModelPricing, PricingCalculator
from usage_monitor.core.probing import first_str
from usage_monitor.core.timestamps import parse_timestamp, utc_now
from usage_monitor.core.token_counter import extract_tokens

from .files import default_data_path, find_log_files, iter_json_lines
from .models import UsageRecord

logger = logging.getLogger(__name__)

MESSAGE_ID_PATHS = (("message_id",), ("message", "id"))
REQUEST_ID_PATHS = (("requestId",), ("request_id",))


def create_unique_hash(data: Mapping[str, Any]) -> Optional[str]:
    """Build the ``message_id:request_id`` deduplication key.

    Returns None when either identifier is missing, in which case the
    record is never treated as a duplicate.
    """
    message_id = first_str(data, MESSAGE_ID_PATHS)
    request_id = first_str(data, REQUEST_ID_PATHS)
    if message_id is None or request_id is None:
        return None
    return f"{message_id}:{request_id}"


def _should_process(
    data: Mapping[str, Any],
    cutoff: Optional[datetime],
    processed_hashes: Set[str],
) -> bool:
    if cutoff is not None:
        timestamp = parse_timestamp(data.get("timestamp"))
        if timestamp is not None and timestamp < cutoff:
            return False

    unique_hash = create_unique_hash(data)
    if unique_hash is not None and unique_hash in processed_hashes:
        return False
    return True


def map_to_usage_record(
    data: Mapping[str, Any],
    mode: CostMode,
    pricing: PricingCalculator,
) -> Optional[UsageRecord]:
    """Convert a raw log line into a UsageRecord.

    Lines without a parsable timestamp, or without any input or output
    tokens, yield None.
    """
    timestamp = parse_timestamp(data.get("timestamp"))
    if timestamp is None:
        return None

    tokens = extract_tokens(data)
    if tokens.input_tokens == 0 and tokens.output_tokens == 0:
        return None

    model = normalize_model_name(extract_model_name(data))
    entry_for_pricing = {
        "model": model,
        "input_tokens": tokens.input_tokens,
        "output_tokens": tokens.output_tokens,
        "cache_creation_input_tokens": tokens.cache_creation_tokens,
        "cache_read_input_tokens": tokens.cache_read_tokens,
        "costUSD": data.get("costUSD"),
        "cost_usd": data.get("cost_usd"),
    }

    return UsageRecord(
        timestamp=timestamp,
        input_tokens=tokens.input_tokens,
        output_tokens=tokens.output_tokens,
        cache_creation_tokens=tokens.cache_creation_tokens,
        cache_read_tokens=tokens.cache_read_tokens,
        cost_usd=pricing.calculate_cost_for_entry(entry_for_pricing, mode),
        model=model,
        message_id=first_str(data, MESSAGE_ID_PATHS) or "",
        request_id=first_str(data, REQUEST_ID_PATHS) or "unknown",
    )


class UsageLogRepository:
    """Read-only access to a tree of usage log files.

    Each ``load_records`` call builds its own deduplication set and pricing
    memo, so repeated calls over unchanged logs return identical results.
    """

    def __init__(
        self,
        data_path: Optional[Union[str, Path]] = None,
        custom_pricing: Optional[Mapping[str, ModelPricing]] = None,
    ):
        """Initialize the repository.

        Args:
            data_path: Root of the log tree; defaults to ~/.claude/projects
            custom_pricing: Optional per-model pricing overrides
        """
        self.data_path = Path(data_path) if data_path is not None else default_data_path()
        self.custom_pricing = dict(custom_pricing) if custom_pricing else None

    def find_files(self) -> List[Path]:
        """All log files under the data path, sorted by path."""
        return find_log_files(self.data_path)

    def load_records(
        self,
        hours_back: Optional[int] = None,
        mode: CostMode = CostMode.AUTO,
        include_raw: bool = False,
    ) -> Tuple[List[UsageRecord], Optional[List[Dict[str, Any]]]]:
        """Load usage records, optionally alongside the raw line stream.

        Args:
            hours_back: Drop records older than this many hours
            mode: How each record's cost is determined
            include_raw: Also return every accepted raw line, including
                those without token counts

        Returns:
            Tuple of (records sorted by timestamp, raw lines or None)
        """
        files = self.find_files()
        if not files:
            logger.warning("No usage log files found in %s", self.data_path)
            return [], ([] if include_raw else None)

        cutoff = utc_now() - timedelta(hours=hours_back) if hours_back is not None else None
        pricing = PricingCalculator(self.custom_pricing)
        processed_hashes: Set[str] = set()
        records: List[UsageRecord] = []
        raw_entries: Optional[List[Dict[str, Any]]] = [] if include_raw else None

        for file_path in files:
            read = filtered = mapped = 0
            for data in iter_json_lines(file_path):
                if not isinstance(data, dict):
                    logger.debug("Skipping non-object line in %s", file_path)
                    continue
                read += 1

                if not _should_process(data, cutoff, processed_hashes):
                    filtered += 1
                    continue

                record = map_to_usage_record(data, mode, pricing)
                if record is not None:
                    mapped += 1
                    records.append(record)
                    unique_hash = create_unique_hash(data)
                    if unique_hash is not None:
                        processed_hashes.add(unique_hash)

                if raw_entries is not None:
                    raw_entries.append(data)

            logger.debug(
                "File %s: %d read, %d filtered, %d mapped",
                file_path, read, filtered, mapped,
            )

        records.sort(key=lambda r: r.timestamp)
        logger.debug("Processed %d records from %d files", len(records), len(files))
        return records, raw_entries

    def load_raw_entries(self) -> List[Any]:
        """Every parsed line under the data path, unfiltered."""
        raw: List[Any] = []
        for file_path in self.find_files():
            raw.extend(iter_json_lines(file_path))
        return raw


def load_usage_records(
    data_path: Optional[Union[str, Path]] = None,
    hours_back: Optional[int] = None,
    mode: CostMode = CostMode.AUTO,
    include_raw: bool = False,
    custom_pricing: Optional[Mapping[str, ModelPricing]] = None,
) -> Tuple[List[UsageRecord], Optional[List[Dict[str, Any]]]]:
    """Load usage records from ``data_path``.

    See ``UsageLogRepository.load_records`` for details.
    """
    repository = UsageLogRepository(data_path, custom_pricing)
    return repository.load_records(hours_back=hours_back, mode=mode, include_raw=include_raw)


def load_all_raw_entries(data_path: Optional[Union[str, Path]] = None) -> List[Any]:
    """Load every parsed log line without filtering or conversion."""
    return UsageLogRepository(data_path).load_raw_entries()
