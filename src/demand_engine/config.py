"""
Engine configuration.

All business thresholds live here rather than inside the scorers, so a
planning team can tune them per client without touching the algorithms.
"""

from datetime import date
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError, model_validator


class SettingsError(ValueError):
    pass


class VolatilitySettings(BaseModel):
    """Presentation tiers for volatility scores."""

    moderate_threshold: float = Field(0.4, ge=0)
    high_threshold: float = Field(0.6, ge=0)
    by_customer: bool = True

    @model_validator(mode="after")
    def _ordered(self):
        if self.moderate_threshold > self.high_threshold:
            raise ValueError("moderate_threshold must not exceed high_threshold")
        return self


class InventorySettings(BaseModel):
    low_coverage_weeks: float = Field(2.0, gt=0)
    target_cover_weeks: float = Field(4.0, gt=0)
    volatility_buffer: float = Field(1.0, ge=0)  # extra cover per unit of volatility score


class ForecastSettings(BaseModel):
    horizon_weeks: int = Field(8, ge=1, le=52)
    min_history_weeks: int = Field(4, ge=2)
    trend_window: int = Field(12, ge=2)
    average_window: int = Field(8, ge=1)
    trend_r2_threshold: float = Field(0.3, ge=0, le=1)
    band_z: float = Field(2.0, gt=0)
    horizon_growth: float = Field(0.05, ge=0)
    min_band_pct: float = Field(0.1, ge=0)
    confidence_floor: float = Field(0.5, ge=0, le=1)
    critical_anomaly_score: float = Field(2.0, gt=1)
    peak_ratio: float = Field(1.2, gt=1)
    low_ratio: float = Field(0.8, gt=0, lt=1)


class EngineSettings(BaseModel):
    """
    Root configuration for an analysis run.

    default_year is captured once when the settings are built; the
    normalizer never reads the clock itself.
    """

    default_year: int = Field(default_factory=lambda: date.today().year, ge=1900, le=9999)
    volatility: VolatilitySettings = Field(default_factory=VolatilitySettings)
    inventory: InventorySettings = Field(default_factory=InventorySettings)
    forecast: ForecastSettings = Field(default_factory=ForecastSettings)


def load_settings(path: Path | str) -> EngineSettings:
    """Load settings from a JSON file; missing keys fall back to defaults."""
    path = Path(path)
    if not path.exists():
        raise SettingsError(f"settings file not found: {path}")
    try:
        return EngineSettings.model_validate_json(path.read_text(encoding="utf-8"))
    except ValidationError as e:
        raise SettingsError(f"invalid settings in {path}: {e}") from e
