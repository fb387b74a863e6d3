"""
End-to-end analysis runs.

Wires the components together for the two ways the engine is used:
- comparison: client batch vs internal batch -> reconciliation
- deep analysis: one batch -> volatility, inventory risk, forecasts, anomalies
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Sequence

import pandas as pd

from demand_engine.config import EngineSettings
from demand_engine.detection import DetectedFormat, detect_format
from demand_engine.forecasting import AnomalySignal, ForecastGenerator, ForecastSignal
from demand_engine.inventory import InventoryPosition, InventoryRiskRecord, identify_inventory_risks
from demand_engine.normalization import NormalizedRow, RowNormalizer
from demand_engine.quality import BatchQualityChecker, DataQualityReport
from demand_engine.reconciliation import Reconciler, ReconciliationResult
from demand_engine.volatility import (
    CustomerInstabilityRecord,
    VolatilityRanker,
    VolatilityRecord,
    WeeklySummary,
    rank_customer_instability,
    summarize_weeks,
    volatility_tier,
)

logger = logging.getLogger(__name__)


@dataclass
class NormalizedBatch:
    """One decoded sheet after normalization, with provenance."""

    batch_id: str
    detected: DetectedFormat
    rows: list[NormalizedRow]
    quality: DataQualityReport

    @property
    def is_empty(self) -> bool:
        return not self.rows


@dataclass
class DemandAnalysisResult:
    batch_id: str
    volatility: list[VolatilityRecord] = field(default_factory=list)
    customer_instability: list[CustomerInstabilityRecord] = field(default_factory=list)
    weekly: list[WeeklySummary] = field(default_factory=list)
    inventory_risks: list[InventoryRiskRecord] = field(default_factory=list)
    forecasts: list[ForecastSignal] = field(default_factory=list)
    anomalies: list[AnomalySignal] = field(default_factory=list)
    tiers: dict[str, int] = field(default_factory=dict)

    def summary(self) -> dict:
        return {
            "batch_id": self.batch_id,
            "parts": len({v.part_id for v in self.volatility}),
            "customers": len({v.customer_id for v in self.volatility if v.customer_id}),
            "weeks": len(self.weekly),
            "high_volatility": self.tiers.get("high", 0),
            "critical_inventory": len([r for r in self.inventory_risks if r.risk_level == "critical"]),
            "high_inventory": len([r for r in self.inventory_risks if r.risk_level == "high"]),
            "forecast_weeks": len(self.forecasts),
            "anomalies": len(self.anomalies),
        }


class DemandAnalysisPipeline:
    """
    Runs the engine with one set of settings.

    Each call builds fresh records; nothing is shared between runs, so one
    pipeline can serve concurrent analyses.
    """

    def __init__(self, settings: EngineSettings | None = None):
        self.settings = settings or EngineSettings()
        self.normalizer = RowNormalizer(default_year=self.settings.default_year)

    def normalize_batch(
        self,
        batch_id: str,
        rows: Sequence[dict[str, Any]],
        declared_year: int | None = None,
    ) -> NormalizedBatch:
        """Detect, normalize and quality-check one decoded sheet."""
        detected = detect_format(rows)
        outcome = self.normalizer.normalize(rows, detected, declared_year=declared_year)
        quality = BatchQualityChecker(batch_id).run(outcome)

        logger.info(
            "Batch %s: %s format, %d rows -> %d normalized (%d critical issues)",
            batch_id,
            detected.kind.value,
            outcome.rows_read,
            len(outcome.rows),
            len(quality.critical_issues),
        )
        return NormalizedBatch(batch_id=batch_id, detected=detected, rows=outcome.rows, quality=quality)

    def compare(self, client: NormalizedBatch, internal: NormalizedBatch) -> ReconciliationResult:
        result = Reconciler(source_name=client.batch_id, target_name=internal.batch_id).reconcile(
            client.rows, internal.rows
        )
        logger.info("Reconciled %s vs %s: %s", client.batch_id, internal.batch_id, result.summary())
        return result

    def analyze(
        self,
        batch: NormalizedBatch,
        inventory_positions: Sequence[InventoryPosition] = (),
        observed_rows: Iterable[NormalizedRow] | None = None,
        horizon_weeks: int | None = None,
    ) -> DemandAnalysisResult:
        """Single-source deep analysis."""
        s = self.settings
        volatility = VolatilityRanker(by_customer=s.volatility.by_customer).rank(batch.rows)

        tiers: dict[str, int] = {}
        for record in volatility:
            tier = volatility_tier(record.volatility_score, s.volatility)
            tiers[tier] = tiers.get(tier, 0) + 1

        forecast = ForecastGenerator(s.forecast).generate(batch.rows, observed_rows, horizon_weeks)

        return DemandAnalysisResult(
            batch_id=batch.batch_id,
            volatility=volatility,
            customer_instability=rank_customer_instability(volatility),
            weekly=summarize_weeks(batch.rows),
            inventory_risks=identify_inventory_risks(inventory_positions, batch.rows, s.inventory),
            forecasts=forecast.forecasts,
            anomalies=forecast.anomalies,
            tiers=tiers,
        )


def records_to_frame(records: Iterable[Any]) -> pd.DataFrame:
    """Tabular view of any engine record sequence (for display or export)."""
    return pd.DataFrame([r.to_dict() for r in records])
