# Demand normalization, reconciliation and risk/anomaly engine
# Pure in-memory transformations; loaders and the dashboard live outside this package

from .config import EngineSettings, ForecastSettings, InventorySettings, SettingsError, VolatilitySettings, load_settings
from .detection import DetectedFormat, FormatKind, detect_format
from .normalization import NormalizationOutcome, NormalizedRow, RowNormalizer, UnrecognizedBatchError
from .reconciliation import ComparisonRow, Reconciler, ReconciliationResult, delta_percentage
from .volatility import (
    VolatilityRanker,
    VolatilityRecord,
    rank_customer_instability,
    summarize_weeks,
    volatility_score,
    volatility_tier,
)
from .inventory import InventoryPosition, InventoryRiskRecord, classify_inventory_risk, identify_inventory_risks
from .forecasting import AnomalySignal, ForecastGenerator, ForecastResult, ForecastSignal
from .quality import BatchQualityChecker, DataQualityReport
from .pipeline import DemandAnalysisPipeline, DemandAnalysisResult, NormalizedBatch, records_to_frame
from .insights import DemandInsightGenerator, DemandInsightReport

__all__ = [
    "EngineSettings",
    "ForecastSettings",
    "InventorySettings",
    "SettingsError",
    "VolatilitySettings",
    "load_settings",
    "DetectedFormat",
    "FormatKind",
    "detect_format",
    "NormalizationOutcome",
    "NormalizedRow",
    "RowNormalizer",
    "UnrecognizedBatchError",
    "ComparisonRow",
    "Reconciler",
    "ReconciliationResult",
    "delta_percentage",
    "VolatilityRanker",
    "VolatilityRecord",
    "rank_customer_instability",
    "summarize_weeks",
    "volatility_score",
    "volatility_tier",
    "InventoryPosition",
    "InventoryRiskRecord",
    "classify_inventory_risk",
    "identify_inventory_risks",
    "AnomalySignal",
    "ForecastGenerator",
    "ForecastResult",
    "ForecastSignal",
    "BatchQualityChecker",
    "DataQualityReport",
    "DemandAnalysisPipeline",
    "DemandAnalysisResult",
    "NormalizedBatch",
    "records_to_frame",
    "DemandInsightGenerator",
    "DemandInsightReport",
]
