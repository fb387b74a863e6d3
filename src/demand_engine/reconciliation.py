"""
Reconciliation of client vs internal demand.

Both sources are normalized independently, then folded into one keyed
accumulator on (customer_id, part_id, period_key). Spreadsheets often
repeat a line, so each side accumulates rather than overwrites.
"""

from dataclasses import asdict, dataclass
from typing import Iterable

from demand_engine.normalization import NormalizedRow

ENTIRELY_NEW_DEMAND_PCT = 100.0


def delta_percentage(client_qty: float, internal_qty: float) -> float:
    """
    Client-vs-internal gap as a percentage of the internal figure.

    With no internal demand the ratio is undefined; it is reported as 0
    when both sides are empty and 100 ("entirely new demand") otherwise.
    """
    if internal_qty == 0:
        return 0.0 if client_qty == 0 else ENTIRELY_NEW_DEMAND_PCT
    return (client_qty - internal_qty) / internal_qty * 100


@dataclass(frozen=True)
class ComparisonRow:
    """Client and internal demand for one customer/part/week."""

    customer_id: str
    part_id: str
    period_key: str
    client_qty: float
    internal_qty: float
    delta: float
    delta_pct: float

    @property
    def key(self) -> str:
        return f"{self.customer_id}|{self.part_id}|{self.period_key}"

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class ReconciliationTotals:
    """Aggregate totals over all keys (percentages are not additive)."""

    client_total: float
    internal_total: float
    delta: float
    delta_pct: float

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ReconciliationResult:
    """Summary of reconciliation between the client and internal sources."""

    rows: list[ComparisonRow]
    totals: ReconciliationTotals
    client_row_count: int = 0
    internal_row_count: int = 0
    source_name: str = "client"
    target_name: str = "internal"

    @property
    def client_only(self) -> list[ComparisonRow]:
        return [r for r in self.rows if r.internal_qty == 0 and r.client_qty != 0]

    @property
    def internal_only(self) -> list[ComparisonRow]:
        return [r for r in self.rows if r.client_qty == 0 and r.internal_qty != 0]

    def largest_deltas(self, limit: int = 10) -> list[ComparisonRow]:
        """Rows with the biggest absolute gap, key order breaking ties."""
        ordered = sorted(self.rows, key=lambda r: (-abs(r.delta), r.key))
        return ordered[:limit]

    def summary(self) -> dict:
        return {
            "source": self.source_name,
            "target": self.target_name,
            "keys": len(self.rows),
            "client_rows": self.client_row_count,
            "internal_rows": self.internal_row_count,
            "client_only": len(self.client_only),
            "internal_only": len(self.internal_only),
            "matched": len(self.rows) - len(self.client_only) - len(self.internal_only),
            "client_total": self.totals.client_total,
            "internal_total": self.totals.internal_total,
            "delta_pct": f"{self.totals.delta_pct:.1f}%",
        }


@dataclass
class _Accumulator:
    client_qty: float = 0.0
    internal_qty: float = 0.0


class Reconciler:
    """
    Merges two normalized sequences into ComparisonRows.

    Usage:
        result = Reconciler().reconcile(client_rows, internal_rows)
        result.totals.delta_pct
    """

    def __init__(self, source_name: str = "client", target_name: str = "internal"):
        self.source_name = source_name
        self.target_name = target_name

    def reconcile(
        self,
        client_rows: Iterable[NormalizedRow],
        internal_rows: Iterable[NormalizedRow],
    ) -> ReconciliationResult:
        accumulators: dict[tuple[str, str, str], _Accumulator] = {}

        client_count = 0
        for row in client_rows:
            accumulators.setdefault(row.key, _Accumulator()).client_qty += row.quantity
            client_count += 1

        internal_count = 0
        for row in internal_rows:
            accumulators.setdefault(row.key, _Accumulator()).internal_qty += row.quantity
            internal_count += 1

        rows = [
            ComparisonRow(
                customer_id=customer_id,
                part_id=part_id,
                period_key=period_key,
                client_qty=acc.client_qty,
                internal_qty=acc.internal_qty,
                delta=acc.client_qty - acc.internal_qty,
                delta_pct=delta_percentage(acc.client_qty, acc.internal_qty),
            )
            for (customer_id, part_id, period_key), acc in accumulators.items()
        ]
        rows.sort(key=lambda r: r.key)

        client_total = sum(acc.client_qty for acc in accumulators.values())
        internal_total = sum(acc.internal_qty for acc in accumulators.values())
        totals = ReconciliationTotals(
            client_total=client_total,
            internal_total=internal_total,
            delta=client_total - internal_total,
            delta_pct=delta_percentage(client_total, internal_total),
        )

        return ReconciliationResult(
            rows=rows,
            totals=totals,
            client_row_count=client_count,
            internal_row_count=internal_count,
            source_name=self.source_name,
            target_name=self.target_name,
        )
