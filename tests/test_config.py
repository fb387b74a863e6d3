"""
Tests for engine settings
"""

import json

import pytest
from pydantic import ValidationError

from demand_engine.config import EngineSettings, ForecastSettings, SettingsError, VolatilitySettings, load_settings


class TestEngineSettings:

    def test_defaults(self):
        settings = EngineSettings(default_year=2025)
        assert settings.volatility.high_threshold == 0.6
        assert settings.volatility.moderate_threshold == 0.4
        assert settings.inventory.low_coverage_weeks == 2.0
        assert settings.forecast.horizon_weeks == 8
        assert settings.forecast.critical_anomaly_score == 2.0

    def test_default_year_is_filled_in(self):
        assert EngineSettings().default_year >= 2024

    def test_threshold_order_is_validated(self):
        with pytest.raises(ValidationError):
            VolatilitySettings(moderate_threshold=0.8, high_threshold=0.6)

    def test_ranges_are_validated(self):
        with pytest.raises(ValidationError):
            ForecastSettings(horizon_weeks=0)
        with pytest.raises(ValidationError):
            ForecastSettings(low_ratio=1.5)


class TestLoadSettings:

    def test_partial_file_keeps_defaults(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({"default_year": 2024, "forecast": {"horizon_weeks": 12}}))

        settings = load_settings(path)
        assert settings.default_year == 2024
        assert settings.forecast.horizon_weeks == 12
        assert settings.forecast.min_history_weeks == 4

    def test_missing_file(self, tmp_path):
        with pytest.raises(SettingsError, match="not found"):
            load_settings(tmp_path / "missing.json")

    def test_invalid_values(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({"inventory": {"low_coverage_weeks": -1}}))
        with pytest.raises(SettingsError):
            load_settings(path)

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text("{not json")
        with pytest.raises(SettingsError):
            load_settings(path)
