"""
Lenient field parsers for planner-supplied spreadsheets.

These parsers handle the messy reality of demand sheets:
- Identifier columns named differently by every client ("Part #", "partNum", "PART_NUM")
- Quantities typed as text, with thousands separators, or left blank
- Partially filled template rows
"""

import math
import re
from typing import Any, Iterable

_NON_ALNUM = re.compile(r"[^0-9a-z]")


def canonical_field_name(name: Any) -> str:
    """Case- and punctuation-insensitive form of a column name ("Part #" -> "part")."""
    return _NON_ALNUM.sub("", str(name).lower())


class FieldAliases:
    """
    Fixed alias table for identifier and quantity columns.

    Reusable: Yes - the defaults cover client and internal templates.
    To extend: Pass extra aliases per role; they are tried after the defaults.
    """

    CUSTOMER = ["clientId", "custId", "customerId", "cliente_id", "customer", "client", "cliente", "customerCode"]
    PART = ["partId", "part", "partNum", "Part #", "partNumber", "part_number"]
    QUANTITY = ["qty", "quantity", "cantidad"]
    PERIOD_KEY = ["periodKey", "week", "period"]
    CURRENT_STOCK = ["currentStock", "onHand", "onHandQty", "stock"]
    SAFETY_STOCK = ["safetyStock", "minStock"]
    YEAR = ["year", "anio", "año"]

    def __init__(self, extra: dict[str, list[str]] | None = None):
        self._table: dict[str, list[str]] = {
            "customer": list(self.CUSTOMER),
            "part": list(self.PART),
            "quantity": list(self.QUANTITY),
            "period_key": list(self.PERIOD_KEY),
            "current_stock": list(self.CURRENT_STOCK),
            "safety_stock": list(self.SAFETY_STOCK),
            "year": list(self.YEAR),
        }
        for role, names in (extra or {}).items():
            self._table.setdefault(role, []).extend(names)

    def names(self, role: str) -> list[str]:
        return list(self._table[role])

    def resolve_columns(self, role: str, field_names: Iterable[Any]) -> list[Any]:
        """
        Columns of a batch that carry `role`, ordered by alias priority.

        Several columns may match (a sheet with both "custId" and "customer");
        the row-level resolver picks the first populated one.
        """
        by_canonical: dict[str, list[Any]] = {}
        for name in field_names:
            by_canonical.setdefault(canonical_field_name(name), []).append(name)

        resolved = []
        for alias in self._table[role]:
            for column in by_canonical.get(canonical_field_name(alias), []):
                if column not in resolved:
                    resolved.append(column)
        return resolved


class IdentifierResolver:
    """Picks the first populated alias column of a row and trims it."""

    def __init__(self, columns: list[Any]):
        self.columns = columns

    def resolve(self, row: dict[str, Any]) -> str | None:
        for column in self.columns:
            value = row.get(column)
            if is_blank(value):
                continue
            text = _format_identifier(value)
            if text:
                return text
        return None


def _format_identifier(value: Any) -> str:
    # Excel hands numeric part numbers back as floats (1001.0)
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def is_blank(value: Any) -> bool:
    """None, NaN, and whitespace-only strings count as blank cells."""
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False


class QuantityParser:
    """
    Coerces spreadsheet cells to quantities.

    Handles:
    - ints/floats as-is
    - "1,234" and " 12.5 " strings
    - blanks, NaN, booleans and garbage -> default (0)

    Tracks how many non-blank cells had to be zeroed so the quality
    report can surface them.
    """

    def __init__(self, default: float = 0.0):
        self.default = default
        self.zeroed = 0

    def parse(self, value: Any) -> float:
        if is_blank(value):
            return self.default

        if isinstance(value, bool):
            self.zeroed += 1
            return self.default

        if isinstance(value, (int, float)):
            result = float(value)
        else:
            text = str(value).strip().replace(",", "").replace(" ", "")
            try:
                result = float(text)
            except ValueError:
                self.zeroed += 1
                return self.default

        if math.isnan(result) or math.isinf(result):
            self.zeroed += 1
            return self.default
        return result


def parse_year(value: Any) -> int | None:
    """Four-digit year from a cell ("2025", 2025, 2025.0), otherwise None."""
    if is_blank(value) or isinstance(value, bool):
        return None
    text = _format_identifier(value)
    if re.fullmatch(r"\d{4}", text):
        return int(text)
    return None
