"""
Tests for configuration and predefined level loading.
"""

import json

import pytest
import yaml
from pydantic import ValidationError

from btc_levels.config import (
    DataConfig,
    DetectionMode,
    LevelPolicy,
    LevelsConfig,
    load_config_from_file
)
from btc_levels.market_data import load_predefined_levels
from btc_levels.utils.exceptions import ConfigurationException


class TestLevelPolicy:
    """Tests for LevelPolicy"""

    def test_defaults(self, policy):
        assert policy.window_size == 20
        assert policy.min_distance == 30
        assert policy.prominence_floor == 0.02
        assert policy.detection_mode == DetectionMode.HIGH_LOW
        assert policy.range_min_multiplier == 0.3
        assert policy.range_max_multiplier == 2.5
        assert policy.blend_tolerance == 0.05
        assert policy.cluster_tolerance == 0.01
        assert policy.max_levels == 20

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("BTC_LEVELS_POLICY_WINDOW_SIZE", "10")
        monkeypatch.setenv("BTC_LEVELS_POLICY_DETECTION_MODE", "close")

        policy = LevelPolicy()

        assert policy.window_size == 10
        assert policy.detection_mode == DetectionMode.CLOSE

    def test_invalid_range(self):
        with pytest.raises(ValidationError):
            LevelPolicy(range_min_multiplier=3.0, range_max_multiplier=2.0)

    def test_invalid_window(self):
        with pytest.raises(ValidationError):
            LevelPolicy(window_size=0)


class TestDataConfig:
    """Tests for DataConfig"""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("CRYPTOCOMPARE_API_KEY", raising=False)
        monkeypatch.delenv("BTC_LEVELS_DATA_API_KEY", raising=False)

        config = DataConfig()

        assert config.symbol == "BTC"
        assert config.currency == "USD"
        assert config.cache_max_age_ms == 86_400_000
        assert config.lookback_days == 730
        assert config.api_key is None

    def test_api_key_alias(self, monkeypatch):
        monkeypatch.setenv("CRYPTOCOMPARE_API_KEY", "secret")
        assert DataConfig().api_key == "secret"

    def test_symbol_upper_cased(self):
        assert DataConfig(symbol="btc", currency="usd").symbol == "BTC"

    def test_invalid_symbol(self):
        with pytest.raises(ValidationError):
            DataConfig(symbol="BTC/USD")

    def test_lookback_bounds(self):
        with pytest.raises(ValidationError):
            DataConfig(lookback_days=5000)


class TestLevelsConfig:
    """Tests for the root configuration"""

    def test_nested_defaults(self):
        config = LevelsConfig()

        assert config.service_name == "btc-levels"
        assert config.api.port == 3000
        assert not config.is_production()

    def test_load_from_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({
            "environment": "production",
            "policy": {"window_size": 15, "use_volume_weighting": True},
            "data": {"lookback_days": 365},
        }))

        config = load_config_from_file(path)

        assert config.is_production()
        assert config.policy.window_size == 15
        assert config.policy.use_volume_weighting
        assert config.data.lookback_days == 365

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config_from_file(tmp_path / "missing.yaml")


class TestPredefinedLevels:
    """Tests for load_predefined_levels"""

    def test_load(self, tmp_path):
        path = tmp_path / "levels.json"
        path.write_text(json.dumps({"levels": [65000, 60000, 60000, 62500.5]}))

        assert load_predefined_levels(path) == [60000.0, 62500.5, 65000.0]

    def test_missing_file(self, tmp_path):
        assert load_predefined_levels(tmp_path / "none.json") == []

    @pytest.mark.parametrize("content", [
        "not json",
        json.dumps({"other": [1]}),
        json.dumps({"levels": [60000, -1]}),
        json.dumps({"levels": ["abc"]}),
        json.dumps({"levels": 5}),
    ])
    def test_malformed_file(self, tmp_path, content):
        path = tmp_path / "levels.json"
        path.write_text(content)

        with pytest.raises(ConfigurationException):
            load_predefined_levels(path)
