"""
Demand volatility analysis.

Computes, per part (or part/customer pairing):
- weekly average, peak and number of weeks with data (zero weeks excluded)
- a dispersion score used to rank pairings by unpredictability
- a trend label (up/down/stable)

Also ranks customers by how unstable their demand is across parts, and
summarizes total demand per week.
"""

from dataclasses import asdict, dataclass
from typing import Iterable, Sequence

import numpy as np
import pandas as pd

from demand_engine.config import VolatilitySettings
from demand_engine.normalization import NormalizedRow

TREND_THRESHOLD = 0.1  # normalized slope per week


@dataclass(frozen=True)
class VolatilityRecord:
    part_id: str
    customer_id: str | None
    avg_weekly_qty: float
    max_weekly_qty: float
    week_count: int
    volatility_score: float
    rank: int
    std_dev: float = 0.0
    total_qty: float = 0.0
    trend: str = "stable"

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class CustomerInstabilityRecord:
    customer_id: str
    part_count: int
    total_qty: float
    avg_volatility: float
    instability_score: float
    rank: int

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class WeeklySummary:
    period_key: str
    total_qty: float
    unique_parts: int
    unique_customers: int
    avg_qty_per_part: float

    def to_dict(self) -> dict:
        return asdict(self)


def volatility_score(quantities: Sequence[float]) -> float:
    """
    Coefficient of variation (population std / mean).

    0 for a flat series and for a series averaging 0; unchanged when every
    quantity is multiplied by the same positive constant.
    """
    values = np.asarray(quantities, dtype=float)
    if values.size == 0:
        return 0.0
    mean = values.mean()
    if mean <= 0:
        return 0.0
    return float(values.std() / mean)


def normalized_slope(quantities: Sequence[float]) -> float:
    """Least-squares slope per week divided by the mean (0 when undefined)."""
    values = np.asarray(quantities, dtype=float)
    if values.size < 2 or values.mean() <= 0:
        return 0.0
    slope = np.polyfit(np.arange(values.size), values, 1)[0]
    return float(slope / values.mean())


def trend_label(quantities: Sequence[float]) -> str:
    slope = normalized_slope(quantities)
    if slope > TREND_THRESHOLD:
        return "up"
    if slope < -TREND_THRESHOLD:
        return "down"
    return "stable"


def volatility_tier(score: float, settings: VolatilitySettings | None = None) -> str:
    """Presentation tier: "high", "moderate" or "normal"."""
    settings = settings or VolatilitySettings()
    if score > settings.high_threshold:
        return "high"
    if score > settings.moderate_threshold:
        return "moderate"
    return "normal"


def rows_to_frame(rows: Iterable[NormalizedRow]) -> pd.DataFrame:
    frame = pd.DataFrame(
        [r.to_dict() for r in rows],
        columns=["customer_id", "part_id", "period_key", "quantity"],
    )
    frame["quantity"] = frame["quantity"].astype(float)
    return frame


def weekly_series(rows: Iterable[NormalizedRow], by_customer: bool = True) -> pd.DataFrame:
    """
    One row per grouping key and week with data, quantities summed.

    Weeks summing to 0 (blank template cells) are dropped, so a group's
    length is its number of weeks with demand. Sorted by key then week, so
    each group's quantities are chronological.
    """
    frame = rows_to_frame(rows)
    keys = ["part_id", "customer_id"] if by_customer else ["part_id"]
    summed = frame.groupby(keys + ["period_key"], as_index=False)["quantity"].sum()
    return (
        summed[summed["quantity"] > 0]
        .sort_values(keys + ["period_key"])
        .reset_index(drop=True)
    )


class VolatilityRanker:
    """
    Ranks part (or part/customer) pairings by demand volatility.

    Ranking is descending by score; ties fall back to the grouping key so
    the order is stable across runs.
    """

    def __init__(self, by_customer: bool = True):
        self.by_customer = by_customer

    def rank(self, rows: Iterable[NormalizedRow]) -> list[VolatilityRecord]:
        series = weekly_series(rows, by_customer=self.by_customer)
        if series.empty:
            return []

        keys = ["part_id", "customer_id"] if self.by_customer else ["part_id"]
        unranked = []
        for group_key, group in series.groupby(keys, sort=True):
            if not isinstance(group_key, tuple):
                group_key = (group_key,)
            part_id = group_key[0]
            customer_id = group_key[1] if self.by_customer else None
            quantities = group["quantity"].to_numpy()

            unranked.append(
                dict(
                    part_id=part_id,
                    customer_id=customer_id,
                    avg_weekly_qty=float(quantities.mean()),
                    max_weekly_qty=float(quantities.max()),
                    week_count=int(group["period_key"].nunique()),
                    volatility_score=volatility_score(quantities),
                    std_dev=float(quantities.std()),
                    total_qty=float(quantities.sum()),
                    trend=trend_label(quantities),
                )
            )

        unranked.sort(key=lambda r: (-r["volatility_score"], r["part_id"], r["customer_id"] or ""))
        return [VolatilityRecord(rank=i, **record) for i, record in enumerate(unranked, start=1)]


def rank_customer_instability(records: Sequence[VolatilityRecord]) -> list[CustomerInstabilityRecord]:
    """
    Rank customers by how erratic their demand is across all their parts.

    instability = (mean part volatility + std of part volatilities) / 2
    Needs per-customer volatility records; part-level records are ignored.
    """
    by_customer: dict[str, list[VolatilityRecord]] = {}
    for record in records:
        if record.customer_id is None:
            continue
        by_customer.setdefault(record.customer_id, []).append(record)

    items = []
    for customer_id, customer_records in by_customer.items():
        scores = np.array([r.volatility_score for r in customer_records])
        avg = float(scores.mean())
        items.append(
            dict(
                customer_id=customer_id,
                part_count=len({r.part_id for r in customer_records}),
                total_qty=float(sum(r.total_qty for r in customer_records)),
                avg_volatility=avg,
                instability_score=float((avg + scores.std()) / 2),
            )
        )

    items.sort(key=lambda r: (-r["instability_score"], r["customer_id"]))
    return [CustomerInstabilityRecord(rank=i, **item) for i, item in enumerate(items, start=1)]


def summarize_weeks(rows: Iterable[NormalizedRow]) -> list[WeeklySummary]:
    """Total demand per ISO week with distinct part/customer counts."""
    frame = rows_to_frame(rows)
    if frame.empty:
        return []

    grouped = (
        frame.groupby("period_key")
        .agg(
            total_qty=("quantity", "sum"),
            unique_parts=("part_id", "nunique"),
            unique_customers=("customer_id", "nunique"),
        )
        .reset_index()
        .sort_values("period_key")
    )
    grouped["avg_qty_per_part"] = grouped["total_qty"] / grouped["unique_parts"]

    return [
        WeeklySummary(
            period_key=row.period_key,
            total_qty=float(row.total_qty),
            unique_parts=int(row.unique_parts),
            unique_customers=int(row.unique_customers),
            avg_qty_per_part=float(row.avg_qty_per_part),
        )
        for row in grouped.itertuples(index=False)
    ]
