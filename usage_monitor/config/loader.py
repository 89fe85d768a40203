"""
Configuration management and loading.

Handles monitor settings read from a YAML file.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from ..core.plans import PlanType
from ..core.pricing import CostMode, ModelPricing
from ..core.sessions import DEFAULT_SESSION_HOURS

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
PRICING_KEYS = ("input", "output", "cache_creation", "cache_read")
ALLOWED_TOP_KEYS = {
    "data_path",
    "hours_back",
    "session_hours",
    "cost_mode",
    "plan",
    "custom_limit_tokens",
    "cache_ttl_seconds",
    "log_level",
    "pricing",
}


@dataclass(frozen=True)
class MonitorConfig:
    """Complete monitor configuration."""
    data_path: Optional[str] = None
    hours_back: Optional[int] = 192
    session_hours: int = DEFAULT_SESSION_HOURS
    cost_mode: CostMode = CostMode.AUTO
    plan: PlanType = PlanType.CUSTOM
    custom_limit_tokens: Optional[int] = None
    cache_ttl_seconds: int = 30
    log_level: str = "WARNING"
    pricing: Dict[str, ModelPricing] = field(default_factory=dict)

    def __post_init__(self):
        """Validate numeric settings."""
        if self.hours_back is not None and self.hours_back <= 0:
            raise ValueError("hours_back must be > 0")
        if self.session_hours <= 0:
            raise ValueError("session_hours must be > 0")
        if self.custom_limit_tokens is not None and self.custom_limit_tokens <= 0:
            raise ValueError("custom_limit_tokens must be > 0")
        if self.cache_ttl_seconds < 0:
            raise ValueError("cache_ttl_seconds cannot be negative")
        if self.log_level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of: {list(LOG_LEVELS)}")


def default_monitor_config() -> MonitorConfig:
    return MonitorConfig()


def load_monitor_config(path: Union[str, Path]) -> MonitorConfig:
    """Load and validate monitor configuration from YAML file.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated MonitorConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Monitor config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if not raw_config:
        raise ValueError("Configuration file is empty")

    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a mapping")

    unknown_keys = set(raw_config.keys()) - ALLOWED_TOP_KEYS
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    defaults = default_monitor_config()

    data_path = raw_config.get('data_path')
    if data_path is not None and not isinstance(data_path, str):
        raise ValueError("'data_path' must be a string")

    return MonitorConfig(
        data_path=data_path,
        hours_back=_optional_int(raw_config, 'hours_back', defaults.hours_back),
        session_hours=_int(raw_config, 'session_hours', defaults.session_hours),
        cost_mode=_parse_cost_mode(raw_config.get('cost_mode', defaults.cost_mode.value)),
        plan=_parse_plan(raw_config.get('plan', defaults.plan.value)),
        custom_limit_tokens=_optional_int(raw_config, 'custom_limit_tokens', None),
        cache_ttl_seconds=_int(raw_config, 'cache_ttl_seconds', defaults.cache_ttl_seconds),
        log_level=_parse_log_level(raw_config.get('log_level', defaults.log_level)),
        pricing=_parse_pricing(raw_config.get('pricing', {})),
    )


def _int(data: Dict[str, Any], key: str, default: int) -> int:
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"'{key}' must be an integer")
    return value


def _optional_int(data: Dict[str, Any], key: str, default: Optional[int]) -> Optional[int]:
    if key in data and data[key] is None:
        return None
    value = data.get(key, default)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"'{key}' must be an integer or null")
    return value


def _parse_cost_mode(value: Any) -> CostMode:
    if not isinstance(value, str):
        raise ValueError("'cost_mode' must be a string")
    try:
        return CostMode(value.lower())
    except ValueError:
        valid_modes = [mode.value for mode in CostMode]
        raise ValueError(f"'cost_mode' must be one of: {valid_modes}")


def _parse_plan(value: Any) -> PlanType:
    if not isinstance(value, str):
        raise ValueError("'plan' must be a string")
    return PlanType.from_string(value)


def _parse_log_level(value: Any) -> str:
    if not isinstance(value, str) or value.upper() not in LOG_LEVELS:
        raise ValueError(f"'log_level' must be one of: {list(LOG_LEVELS)}")
    return value.upper()


def _parse_pricing(data: Any) -> Dict[str, ModelPricing]:
    """Parse and validate per-model pricing overrides.

    Args:
        data: Mapping of model name to its four per-million-token rates

    Returns:
        Validated pricing keyed by model name

    Raises:
        ValueError: If pricing configuration is invalid
    """
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError("'pricing' must be a dictionary")

    pricing = {}
    for model_name, rates in data.items():
        path = f"pricing.{model_name}"
        if not isinstance(rates, dict):
            raise ValueError(f"'{path}' must be a dictionary")

        unknown_keys = set(rates.keys()) - set(PRICING_KEYS)
        if unknown_keys:
            raise ValueError(f"Unknown keys in {path}: {unknown_keys}")

        for key in PRICING_KEYS:
            if key not in rates:
                raise ValueError(f"Missing required '{key}' in {path}")
            value = rates[key]
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
                raise ValueError(f"'{key}' in {path} must be >= 0")

        pricing[str(model_name)] = ModelPricing.from_rates(
            input=rates['input'],
            output=rates['output'],
            cache_creation=rates['cache_creation'],
            cache_read=rates['cache_read'],
        )

    return pricing
