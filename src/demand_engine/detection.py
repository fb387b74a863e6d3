"""
Format detection for decoded demand sheets.

A batch is classified once, from the field names of its first row:
- weekly:       one column per week (WK_01, wk 7, WK-12)
- monthly:      one column per month (04-2025)
- weekly-keyed: rows already carry an ISO week in a periodKey column
- unknown:      none of the above
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Sequence

from demand_engine.parsers import FieldAliases, canonical_field_name, parse_year

WEEK_COLUMN_PATTERN = re.compile(r"^WK[_\s-]*(\d{1,2})$", re.IGNORECASE)
MONTH_COLUMN_PATTERN = re.compile(r"^(\d{2})-(\d{4})$")
PERIOD_KEY_FIELD = "periodkey"


class FormatKind(Enum):
    """Shape of a source sheet."""

    WEEKLY = "weekly"
    MONTHLY = "monthly"
    WEEKLY_KEYED = "weekly-keyed"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class DetectedFormat:
    """Result of format detection for one batch."""

    kind: FormatKind
    declared_year: int | None = None
    week_columns: tuple[str, ...] = field(default_factory=tuple)
    month_columns: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_known(self) -> bool:
        return self.kind is not FormatKind.UNKNOWN


def week_number(column: str) -> int | None:
    """Week index of a weekly column name ("WK_07" -> 7)."""
    match = WEEK_COLUMN_PATTERN.match(str(column).strip())
    return int(match.group(1)) if match else None


def month_of(column: str) -> tuple[int, int] | None:
    """(year, month) of a monthly column name ("04-2025" -> (2025, 4))."""
    match = MONTH_COLUMN_PATTERN.match(str(column).strip())
    if not match:
        return None
    month = int(match.group(1))
    if not 1 <= month <= 12:
        return None
    return int(match.group(2)), month


def detect_format(rows: Sequence[dict[str, Any]]) -> DetectedFormat:
    """
    Classify a batch of decoded rows.

    Precedence: weekly columns, then monthly columns, then a periodKey
    field. An empty batch is `unknown`, never an error.
    """
    if not rows:
        return DetectedFormat(kind=FormatKind.UNKNOWN)

    first = rows[0]
    field_names = [str(name) for name in first.keys()]

    week_columns = tuple(name for name in field_names if week_number(name) is not None)
    if week_columns:
        return DetectedFormat(
            kind=FormatKind.WEEKLY,
            declared_year=_year_column_value(first),
            week_columns=week_columns,
        )

    month_columns = tuple(name for name in field_names if month_of(name) is not None)
    if month_columns:
        declared_year, _ = month_of(month_columns[0])
        return DetectedFormat(
            kind=FormatKind.MONTHLY,
            declared_year=declared_year,
            month_columns=month_columns,
        )

    if any(canonical_field_name(name) == PERIOD_KEY_FIELD for name in field_names):
        return DetectedFormat(kind=FormatKind.WEEKLY_KEYED)

    return DetectedFormat(kind=FormatKind.UNKNOWN)


def _year_column_value(row: dict[str, Any]) -> int | None:
    # Weekly templates sometimes carry the plan year in its own column
    for column in FieldAliases().resolve_columns("year", row.keys()):
        year = parse_year(row.get(column))
        if year is not None:
            return year
    return None
