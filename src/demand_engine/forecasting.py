"""
Demand forecasting with confidence bands and anomaly flags.

Uses simple, interpretable methods so planners can follow the numbers:
- linear trend (least squares) when the recent history has a clear slope
- recent moving average otherwise

Every forecast carries a [lower, upper] band. Observed quantities outside
the band (history weeks, or actuals supplied for forecast weeks) become
anomaly signals. No randomness: the same history always gives the same
signals.
"""

import logging
from dataclasses import asdict, dataclass, field
from typing import Iterable

import numpy as np

from demand_engine.config import ForecastSettings
from demand_engine.isoweek import add_weeks, parse_week_key, weeks_between
from demand_engine.normalization import NormalizedRow
from demand_engine.volatility import volatility_score, weekly_series

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ForecastSignal:
    part_id: str
    week_key: str
    predicted_qty: float
    lower: float
    upper: float
    confidence: float
    seasonality_tag: str | None = None
    method: str = "average"

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class AnomalySignal:
    part_id: str
    week_key: str
    observed_qty: float
    predicted_qty: float
    lower: float
    upper: float
    anomaly_score: float
    severity: str = "warning"
    seasonality_tag: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ForecastResult:
    forecasts: list[ForecastSignal] = field(default_factory=list)
    anomalies: list[AnomalySignal] = field(default_factory=list)
    skipped_parts: list[str] = field(default_factory=list)  # not enough history

    def for_part(self, part_id: str) -> "ForecastResult":
        return ForecastResult(
            forecasts=[f for f in self.forecasts if f.part_id == part_id],
            anomalies=[a for a in self.anomalies if a.part_id == part_id],
            skipped_parts=[p for p in self.skipped_parts if p == part_id],
        )

    def summary(self) -> dict:
        return {
            "parts_forecast": len({f.part_id for f in self.forecasts}),
            "parts_skipped": len(self.skipped_parts),
            "forecast_weeks": len(self.forecasts),
            "anomalies": len(self.anomalies),
            "critical_anomalies": len([a for a in self.anomalies if a.severity == "critical"]),
        }


def anomaly_score(observed: float, predicted: float, lower: float, upper: float) -> float:
    """
    Distance outside the band, scaled by the band half-width.

    Returns 0 inside the band; outside it the score starts above 1 and
    grows without bound as the observation moves away.
    """
    if lower <= observed <= upper:
        return 0.0
    distance = lower - observed if observed < lower else observed - upper
    half_width = max(upper - predicted, predicted - lower, 1.0)
    return 1.0 + distance / half_width


@dataclass
class _PartModel:
    """Fitted model for one part's weekly history."""

    weeks: list[str]
    quantities: np.ndarray
    x: np.ndarray  # week offsets from the first history week
    method: str
    slope: float
    intercept: float
    level: float
    residual_std: float
    fit_start: int  # index of the first week the model was fitted on
    cv: float

    def predict(self, x_value: float) -> float:
        if self.method == "trend":
            return max(0.0, self.slope * x_value + self.intercept)
        return max(0.0, self.level)


class ForecastGenerator:
    """
    Produces ForecastSignals for the next weeks and AnomalySignals for
    observations that fall outside the expected band.

    Usage:
        result = ForecastGenerator(settings.forecast).generate(history_rows, observed_rows)
    """

    def __init__(self, settings: ForecastSettings | None = None):
        self.settings = settings or ForecastSettings()

    def generate(
        self,
        history_rows: Iterable[NormalizedRow],
        observed_rows: Iterable[NormalizedRow] | None = None,
        horizon_weeks: int | None = None,
    ) -> ForecastResult:
        horizon = self.settings.horizon_weeks if horizon_weeks is None else horizon_weeks
        if horizon < 1:
            raise ValueError(f"horizon_weeks must be at least 1, got {horizon}")
        history = weekly_series(history_rows, by_customer=False)
        observed = self._observed_by_part(observed_rows)

        result = ForecastResult()
        for part_id, group in history.groupby("part_id", sort=True):
            weeks = group["period_key"].tolist()
            quantities = group["quantity"].to_numpy(dtype=float)

            if len(weeks) < self.settings.min_history_weeks:
                logger.debug("Part %s skipped: %d weeks of history", part_id, len(weeks))
                result.skipped_parts.append(part_id)
                continue

            model = self._fit(weeks, quantities)
            result.anomalies.extend(self._history_anomalies(part_id, model))

            part_observed = observed.get(part_id, {})
            for h in range(1, horizon + 1):
                signal = self._forecast_week(part_id, model, h)
                result.forecasts.append(signal)
                if signal.week_key in part_observed:
                    anomaly = self._check(signal, part_observed[signal.week_key])
                    if anomaly:
                        result.anomalies.append(anomaly)

        logger.info(
            "Forecast %d parts over %d weeks: %d anomalies, %d parts skipped",
            len({f.part_id for f in result.forecasts}),
            horizon,
            len(result.anomalies),
            len(result.skipped_parts),
        )
        return result

    def _fit(self, weeks: list[str], quantities: np.ndarray) -> _PartModel:
        s = self.settings
        x = np.array([weeks_between(weeks[0], w) for w in weeks], dtype=float)

        fit_start = max(0, len(weeks) - s.trend_window)
        fx, fy = x[fit_start:], quantities[fit_start:]
        slope, intercept = np.polyfit(fx, fy, 1)
        fitted = slope * fx + intercept
        ss_tot = float(((fy - fy.mean()) ** 2).sum())
        ss_res = float(((fy - fitted) ** 2).sum())
        r2 = 1 - ss_res / ss_tot if ss_tot > 0 else 0.0

        if r2 >= s.trend_r2_threshold:
            method = "trend"
            residuals = fy - fitted
            level = float(fy.mean())
        else:
            method = "average"
            fit_start = max(0, len(weeks) - s.average_window)
            window = quantities[fit_start:]
            level = float(window.mean())
            residuals = window - level

        return _PartModel(
            weeks=weeks,
            quantities=quantities,
            x=x,
            method=method,
            slope=float(slope),
            intercept=float(intercept),
            level=level,
            residual_std=float(np.std(residuals)),
            fit_start=fit_start,
            cv=volatility_score(quantities),
        )

    def _band(self, predicted: float, residual_std: float, h: int) -> tuple[float, float, float]:
        s = self.settings
        margin = max(
            s.band_z * residual_std * (1 + s.horizon_growth * h),
            s.min_band_pct * predicted,
        )
        predicted = round(predicted, 2)
        return round(max(0.0, predicted - margin), 2), predicted, round(predicted + margin, 2)

    def _forecast_week(self, part_id: str, model: _PartModel, h: int) -> ForecastSignal:
        s = self.settings
        week_key = add_weeks(model.weeks[-1], h)
        lower, predicted, upper = self._band(model.predict(model.x[-1] + h), model.residual_std, h)
        confidence = min(1.0, max(s.confidence_floor, 0.95 - 0.05 * h - 0.2 * model.cv))

        return ForecastSignal(
            part_id=part_id,
            week_key=week_key,
            predicted_qty=predicted,
            lower=lower,
            upper=upper,
            confidence=round(confidence, 3),
            seasonality_tag=self._seasonality_tag(model, week_key),
            method=model.method,
        )

    def _history_anomalies(self, part_id: str, model: _PartModel) -> list[AnomalySignal]:
        # Only weeks the model was fitted on have a meaningful expected value
        anomalies = []
        for i in range(model.fit_start, len(model.weeks)):
            lower, predicted, upper = self._band(model.predict(model.x[i]), model.residual_std, 0)
            signal = ForecastSignal(
                part_id=part_id,
                week_key=model.weeks[i],
                predicted_qty=predicted,
                lower=lower,
                upper=upper,
                confidence=1.0,
                seasonality_tag=self._seasonality_tag(model, model.weeks[i]),
                method=model.method,
            )
            anomaly = self._check(signal, float(model.quantities[i]))
            if anomaly:
                anomalies.append(anomaly)
        return anomalies

    def _check(self, signal: ForecastSignal, observed: float) -> AnomalySignal | None:
        score = anomaly_score(observed, signal.predicted_qty, signal.lower, signal.upper)
        if score == 0:
            return None
        return AnomalySignal(
            part_id=signal.part_id,
            week_key=signal.week_key,
            observed_qty=observed,
            predicted_qty=signal.predicted_qty,
            lower=signal.lower,
            upper=signal.upper,
            anomaly_score=round(score, 3),
            severity="critical" if score >= self.settings.critical_anomaly_score else "warning",
            seasonality_tag=signal.seasonality_tag,
        )

    def _seasonality_tag(self, model: _PartModel, week_key: str) -> str | None:
        """"peak"/"low" when the same ISO week in earlier years ran well above/below average."""
        year, week = parse_week_key(week_key)
        same_week = [
            qty
            for w, qty in zip(model.weeks, model.quantities)
            if parse_week_key(w)[1] == week and parse_week_key(w)[0] < year
        ]
        overall = float(model.quantities.mean())
        if not same_week or overall <= 0:
            return None

        ratio = float(np.mean(same_week)) / overall
        if ratio >= self.settings.peak_ratio:
            return "peak"
        if ratio <= self.settings.low_ratio:
            return "low"
        return None

    @staticmethod
    def _observed_by_part(rows: Iterable[NormalizedRow] | None) -> dict[str, dict[str, float]]:
        observed: dict[str, dict[str, float]] = {}
        for row in rows or []:
            weeks = observed.setdefault(row.part_id, {})
            weeks[row.period_key] = weeks.get(row.period_key, 0.0) + row.quantity
        return observed
