"""
Inventory risk classification.

Combines current stock, safety stock and weekly consumption into:
- weeks of stock (coverage)
- a risk level (critical/high/none)
- a recommended stock level and ordered alert flags
"""

import math
from dataclasses import asdict, dataclass
from typing import Iterable, Sequence

from demand_engine.config import InventorySettings
from demand_engine.normalization import NormalizedRow
from demand_engine.volatility import VolatilityRanker

ALERT_OUT_OF_STOCK = "out of stock"
ALERT_BELOW_SAFETY = "below safety stock"
ALERT_LOW_COVERAGE = "low coverage"
ALERT_BELOW_RECOMMENDED = "below recommended stock"
ALERT_NO_CONSUMPTION = "no consumption history"

RISK_ORDER = {"critical": 0, "high": 1, "none": 2}


@dataclass(frozen=True)
class InventoryPosition:
    """Stock on hand for a part, optionally dedicated to one customer."""

    part_id: str
    current_stock: float
    safety_stock: float = 0.0
    customer_id: str | None = None


@dataclass(frozen=True)
class InventoryRiskRecord:
    part_id: str
    customer_id: str | None
    current_stock: float
    safety_stock: float
    avg_weekly_consumption: float
    weeks_of_stock: float
    risk_level: str
    recommended_stock: float
    alerts: tuple[str, ...]

    def to_dict(self) -> dict:
        return asdict(self)


def weeks_of_stock(current_stock: float, avg_weekly_consumption: float) -> float:
    """
    Weeks the current stock lasts at the given consumption rate.

    No consumption means unbounded coverage, except with no stock at all,
    which is reported as 0 weeks.
    """
    if avg_weekly_consumption > 0:
        return current_stock / avg_weekly_consumption
    if current_stock <= 0:
        return 0.0
    return math.inf


def classify_inventory_risk(
    position: InventoryPosition,
    avg_weekly_consumption: float,
    settings: InventorySettings | None = None,
    volatility_score: float | None = None,
) -> InventoryRiskRecord:
    """
    Classify one inventory position.

    critical: stock below safety stock, whatever the consumption
    high:     coverage below settings.low_coverage_weeks
    none:     otherwise
    """
    settings = settings or InventorySettings()
    consumption = max(avg_weekly_consumption, 0.0)
    coverage = weeks_of_stock(position.current_stock, consumption)

    below_safety = position.current_stock < position.safety_stock
    low_coverage = consumption > 0 and coverage < settings.low_coverage_weeks

    if below_safety:
        risk_level = "critical"
    elif low_coverage:
        risk_level = "high"
    else:
        risk_level = "none"

    buffer = 1 + settings.volatility_buffer * (volatility_score or 0.0)
    recommended = math.ceil(max(position.safety_stock, consumption * settings.target_cover_weeks * buffer))

    alerts = []
    if position.current_stock <= 0:
        alerts.append(ALERT_OUT_OF_STOCK)
    if below_safety:
        alerts.append(ALERT_BELOW_SAFETY)
    if low_coverage:
        alerts.append(ALERT_LOW_COVERAGE)
    if position.current_stock < recommended:
        alerts.append(ALERT_BELOW_RECOMMENDED)
    if consumption == 0:
        alerts.append(ALERT_NO_CONSUMPTION)

    return InventoryRiskRecord(
        part_id=position.part_id,
        customer_id=position.customer_id,
        current_stock=position.current_stock,
        safety_stock=position.safety_stock,
        avg_weekly_consumption=consumption,
        weeks_of_stock=coverage,
        risk_level=risk_level,
        recommended_stock=float(recommended),
        alerts=tuple(alerts),
    )


def identify_inventory_risks(
    positions: Sequence[InventoryPosition],
    rows: Iterable[NormalizedRow],
    settings: InventorySettings | None = None,
) -> list[InventoryRiskRecord]:
    """
    Classify every position against consumption derived from normalized rows.

    Positions naming a customer use that part/customer pairing's weekly
    average; others use the part's total weekly average. Returns records
    sorted by risk (critical first), then by weeks of stock.
    """
    rows = list(rows)
    by_part = {r.part_id: r for r in VolatilityRanker(by_customer=False).rank(rows)}
    by_pair = {(r.part_id, r.customer_id): r for r in VolatilityRanker(by_customer=True).rank(rows)}

    results = []
    for position in positions:
        if position.customer_id is not None:
            stats = by_pair.get((position.part_id, position.customer_id))
        else:
            stats = by_part.get(position.part_id)

        results.append(
            classify_inventory_risk(
                position,
                stats.avg_weekly_qty if stats else 0.0,
                settings,
                volatility_score=stats.volatility_score if stats else None,
            )
        )

    results.sort(key=lambda r: (RISK_ORDER[r.risk_level], r.weeks_of_stock, r.part_id, r.customer_id or ""))
    return results
