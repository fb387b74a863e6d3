"""
Row normalization: any supported sheet shape -> ISO-week keyed rows.

Client and internal sheets arrive in different shapes. After this step
every consumer (reconciliation, volatility, inventory, forecasting) sees
the same canonical tuple: (customer_id, part_id, period_key, quantity).

Row-level defects never abort a batch:
- missing customer/part identifiers -> row skipped
- unparseable quantities -> 0
- negative quantities -> clamped to 0
Only a batch with no identifier column at all raises UnrecognizedBatchError.
"""

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Sequence

from demand_engine.detection import DetectedFormat, FormatKind, month_of, week_number
from demand_engine.isoweek import is_week_key, week_of_year_key, weeks_in_month
from demand_engine.parsers import FieldAliases, IdentifierResolver, QuantityParser

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NormalizedRow:
    """Canonical demand tuple."""

    customer_id: str
    part_id: str
    period_key: str  # ISO week, "YYYY-Www"
    quantity: float

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.customer_id, self.part_id, self.period_key)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class NormalizationOutcome:
    """Normalized rows plus counters describing what was dropped or coerced."""

    detected: DetectedFormat
    rows: list[NormalizedRow] = field(default_factory=list)
    rows_read: int = 0
    rows_skipped: int = 0
    cells_zeroed: int = 0
    quantities_clamped: int = 0

    @property
    def total_quantity(self) -> float:
        return sum(r.quantity for r in self.rows)


class UnrecognizedBatchError(ValueError):
    """A recognized sheet format without any usable identifier column."""

    def __init__(self, detected: DetectedFormat, alias_sets: dict[str, list[str]]):
        self.detected_format = detected
        self.alias_sets = alias_sets
        searched = "; ".join(f"{role}: {', '.join(names)}" for role, names in alias_sets.items())
        super().__init__(
            f"{detected.kind.value} sheet has no identifier column (searched {searched})"
        )


class RowNormalizer:
    """
    Converts decoded rows into NormalizedRow sequences.

    Args:
        default_year: Year used for weekly sheets when neither the caller
            nor the sheet declares one. Passed in explicitly so results do
            not depend on the day the batch is processed.
        aliases: Identifier/quantity alias table (defaults to FieldAliases()).

    Monthly sheets are spread evenly across the ISO weeks overlapping each
    month; the last week takes the rounding remainder so the weekly sum
    equals the monthly cell.
    """

    def __init__(self, default_year: int, aliases: FieldAliases | None = None):
        self.default_year = default_year
        self.aliases = aliases or FieldAliases()

    def normalize(
        self,
        rows: Sequence[dict[str, Any]],
        detected: DetectedFormat,
        declared_year: int | None = None,
    ) -> NormalizationOutcome:
        outcome = NormalizationOutcome(detected=detected, rows_read=len(rows))

        if not detected.is_known or not rows:
            if rows:
                logger.warning("Unrecognized sheet format; %d rows produce no demand", len(rows))
            return outcome

        field_names = _all_field_names(rows)
        customer_cols = self.aliases.resolve_columns("customer", field_names)
        part_cols = self.aliases.resolve_columns("part", field_names)
        self._require_identifiers(detected, customer_cols, part_cols)

        customers = IdentifierResolver(customer_cols)
        parts = IdentifierResolver(part_cols)
        quantities = QuantityParser()

        if detected.kind is FormatKind.WEEKLY_KEYED:
            emit = self._keyed_emitter(field_names, quantities)
        elif detected.kind is FormatKind.WEEKLY:
            year = declared_year or detected.declared_year or self.default_year
            emit = self._weekly_emitter(detected, year, quantities)
        else:
            emit = self._monthly_emitter(detected, quantities)

        for index, row in enumerate(rows):
            customer_id = customers.resolve(row)
            part_id = parts.resolve(row)
            if not customer_id or not part_id:
                outcome.rows_skipped += 1
                logger.debug("Row %d skipped: missing customer or part identifier", index)
                continue

            emitted = emit(row)
            if emitted is None:
                outcome.rows_skipped += 1
                logger.debug("Row %d skipped: no valid period key", index)
                continue

            for period_key, qty in emitted:
                if qty < 0:
                    outcome.quantities_clamped += 1
                    qty = 0.0
                outcome.rows.append(NormalizedRow(customer_id, part_id, period_key, qty))

        outcome.cells_zeroed = quantities.zeroed
        logger.info(
            "Normalized %d %s rows into %d weekly rows (%d skipped)",
            outcome.rows_read,
            detected.kind.value,
            len(outcome.rows),
            outcome.rows_skipped,
        )
        return outcome

    def _require_identifiers(self, detected, customer_cols, part_cols):
        # One identifier column is enough; rows lacking the other are skipped
        if customer_cols or part_cols:
            return
        raise UnrecognizedBatchError(
            detected,
            {"customer": self.aliases.names("customer"), "part": self.aliases.names("part")},
        )

    def _keyed_emitter(self, field_names, quantities: QuantityParser):
        period_cols = self.aliases.resolve_columns("period_key", field_names)
        qty_cols = self.aliases.resolve_columns("quantity", field_names)
        period_resolver = IdentifierResolver(period_cols)

        def emit(row):
            period_key = (period_resolver.resolve(row) or "").upper()
            if not is_week_key(period_key):
                return None
            value = next((row.get(c) for c in qty_cols if row.get(c) is not None), None)
            return [(period_key, quantities.parse(value))]

        return emit

    def _weekly_emitter(self, detected: DetectedFormat, year: int, quantities: QuantityParser):
        week_keys = {}
        for column in detected.week_columns:
            number = week_number(column)
            if number and number > 0:
                week_keys[column] = week_of_year_key(year, number)

        def emit(row):
            return [(key, quantities.parse(row.get(column))) for column, key in week_keys.items()]

        return emit

    def _monthly_emitter(self, detected: DetectedFormat, quantities: QuantityParser):
        month_weeks = {}
        for column in detected.month_columns:
            year, month = month_of(column)
            month_weeks[column] = weeks_in_month(year, month)

        def emit(row):
            out = []
            for column, weeks in month_weeks.items():
                qty = quantities.parse(row.get(column))
                if qty == 0:
                    continue
                out.extend(spread_evenly(qty, weeks))
            return out

        return emit


def spread_evenly(quantity: float, weeks: list[str]) -> list[tuple[str, float]]:
    """
    Split a quantity across weeks; the last week takes the remainder.

    sum(result quantities) == quantity up to float addition.
    """
    if not weeks:
        return []
    share = quantity / len(weeks)
    allocated = share * (len(weeks) - 1)
    out = [(week, share) for week in weeks[:-1]]
    out.append((weeks[-1], quantity - allocated))
    return out


def _all_field_names(rows: Sequence[dict[str, Any]]) -> list[Any]:
    seen: dict[Any, None] = {}
    for row in rows:
        for name in row.keys():
            seen.setdefault(name, None)
    return list(seen)
