"""
Unit tests for configuration loading and validation.

Tests strict validation and error handling for monitor configs.
"""

import os
import tempfile
from decimal import Decimal

import pytest
import yaml

from usage_monitor.config.loader import (
    MonitorConfig,
    default_monitor_config,
    load_monitor_config,
)
from usage_monitor.core.plans import PlanType
from usage_monitor.core.pricing import CostMode


class TestConfigLoading:
    """Test configuration loading and validation."""

    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()

    def teardown_method(self):
        """Clean up test environment."""
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _write_config(self, config_data, filename: str = "config.yaml") -> str:
        """Write configuration data to temporary file."""
        config_path = os.path.join(self.temp_dir, filename)
        with open(config_path, 'w', encoding='utf-8') as f:
            yaml.dump(config_data, f)
        return config_path

    def test_valid_config_loads_correctly(self):
        """Test that a full configuration loads correctly."""
        config_path = self._write_config({
            "data_path": "/var/logs/claude",
            "hours_back": 48,
            "session_hours": 5,
            "cost_mode": "Cached",
            "plan": "MAX5",
            "custom_limit_tokens": 50000,
            "cache_ttl_seconds": 10,
            "log_level": "debug",
            "pricing": {
                "claude-3-opus": {
                    "input": 15,
                    "output": 75.0,
                    "cache_creation": 18.75,
                    "cache_read": 1.5,
                }
            },
        })

        config = load_monitor_config(config_path)

        assert config.data_path == "/var/logs/claude"
        assert config.hours_back == 48
        assert config.cost_mode == CostMode.CACHED
        assert config.plan == PlanType.MAX5
        assert config.custom_limit_tokens == 50000
        assert config.cache_ttl_seconds == 10
        assert config.log_level == "DEBUG"
        assert config.pricing["claude-3-opus"].output == Decimal("75.0")
        assert config.pricing["claude-3-opus"].cache_read == Decimal("1.5")

    def test_partial_config_uses_defaults(self):
        """Test that omitted keys take their default values."""
        config = load_monitor_config(self._write_config({"plan": "pro"}))

        assert config.plan == PlanType.PRO
        assert config.hours_back == 192
        assert config.session_hours == 5
        assert config.cost_mode == CostMode.AUTO
        assert config.log_level == "WARNING"
        assert config.pricing == {}

    def test_null_hours_back_means_all_history(self):
        """Test that an explicit null look-back is kept."""
        config = load_monitor_config(self._write_config({"hours_back": None}))
        assert config.hours_back is None

    def test_default_config(self):
        """Test the built-in defaults."""
        assert default_monitor_config() == MonitorConfig()
        assert default_monitor_config().plan == PlanType.CUSTOM

    def test_missing_file_raises_error(self):
        """Test that missing config file raises error."""
        with pytest.raises(FileNotFoundError, match="Monitor config file not found"):
            load_monitor_config("nonexistent.yaml")

    def test_empty_config_raises_error(self):
        """Test that empty config file raises error."""
        config_path = self._write_config({})

        with pytest.raises(ValueError, match="Configuration file is empty"):
            load_monitor_config(config_path)

    def test_non_mapping_config_raises_error(self):
        """Test that a top-level list is rejected."""
        config_path = self._write_config(["plan", "pro"])

        with pytest.raises(ValueError, match="Configuration must be a mapping"):
            load_monitor_config(config_path)

    def test_invalid_yaml_raises_error(self):
        """Test that invalid YAML raises error."""
        config_path = os.path.join(self.temp_dir, "invalid.yaml")
        with open(config_path, 'w') as f:
            f.write("invalid: yaml: content: [")

        with pytest.raises(yaml.YAMLError):
            load_monitor_config(config_path)

    def test_unknown_top_level_keys_raise_error(self):
        """Test that unknown top-level keys raise error."""
        config_path = self._write_config({"plan": "pro", "budget": {"daily": 10}})

        with pytest.raises(ValueError, match="Unknown configuration keys"):
            load_monitor_config(config_path)

    def test_invalid_plan_raises_error(self):
        """Test that an unknown plan raises error."""
        config_path = self._write_config({"plan": "enterprise"})

        with pytest.raises(ValueError, match="Unknown plan"):
            load_monitor_config(config_path)

    def test_invalid_cost_mode_raises_error(self):
        """Test that an unknown cost mode raises error."""
        config_path = self._write_config({"cost_mode": "guess"})

        with pytest.raises(ValueError, match="'cost_mode' must be one of"):
            load_monitor_config(config_path)

    def test_invalid_log_level_raises_error(self):
        """Test that an unknown log level raises error."""
        config_path = self._write_config({"log_level": "loud"})

        with pytest.raises(ValueError, match="'log_level' must be one of"):
            load_monitor_config(config_path)

    def test_non_integer_hours_raise_error(self):
        """Test that non-integer look-backs raise error."""
        config_path = self._write_config({"hours_back": "two days"})

        with pytest.raises(ValueError, match="'hours_back' must be an integer"):
            load_monitor_config(config_path)

    def test_boolean_session_hours_raise_error(self):
        """Test that booleans are not accepted as integers."""
        config_path = self._write_config({"session_hours": True})

        with pytest.raises(ValueError, match="'session_hours' must be an integer"):
            load_monitor_config(config_path)

    def test_zero_session_hours_raise_error(self):
        """Test that a zero window width raises error."""
        config_path = self._write_config({"session_hours": 0})

        with pytest.raises(ValueError, match="session_hours must be > 0"):
            load_monitor_config(config_path)

    def test_negative_cache_ttl_raises_error(self):
        """Test that a negative cache TTL raises error."""
        config_path = self._write_config({"cache_ttl_seconds": -5})

        with pytest.raises(ValueError, match="cache_ttl_seconds cannot be negative"):
            load_monitor_config(config_path)

    def test_non_string_data_path_raises_error(self):
        """Test that a non-string data path raises error."""
        config_path = self._write_config({"data_path": 42})

        with pytest.raises(ValueError, match="'data_path' must be a string"):
            load_monitor_config(config_path)


class TestPricingConfig:
    """Test per-model pricing overrides."""

    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()

    def teardown_method(self):
        """Clean up test environment."""
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _load_pricing(self, pricing):
        config_path = os.path.join(self.temp_dir, "config.yaml")
        with open(config_path, 'w', encoding='utf-8') as f:
            yaml.dump({"pricing": pricing}, f)
        return load_monitor_config(config_path)

    def test_partial_pricing_raises_error(self):
        """Test that every rate must be given."""
        with pytest.raises(ValueError, match="Missing required 'cache_read' in pricing.my-model"):
            self._load_pricing({"my-model": {"input": 1, "output": 2, "cache_creation": 3}})

    def test_unknown_pricing_keys_raise_error(self):
        """Test that unknown rate keys raise error."""
        rates = {"input": 1, "output": 2, "cache_creation": 3, "cache_read": 4, "batch": 5}

        with pytest.raises(ValueError, match="Unknown keys in pricing.my-model"):
            self._load_pricing({"my-model": rates})

    def test_negative_rate_raises_error(self):
        """Test that negative rates raise error."""
        rates = {"input": -1, "output": 2, "cache_creation": 3, "cache_read": 4}

        with pytest.raises(ValueError, match="'input' in pricing.my-model must be >= 0"):
            self._load_pricing({"my-model": rates})

    def test_non_mapping_rates_raise_error(self):
        """Test that rates must be a mapping."""
        with pytest.raises(ValueError, match="'pricing.my-model' must be a dictionary"):
            self._load_pricing({"my-model": 3.0})

    def test_non_mapping_pricing_raises_error(self):
        """Test that the pricing section must be a mapping."""
        with pytest.raises(ValueError, match="'pricing' must be a dictionary"):
            self._load_pricing(["my-model"])
