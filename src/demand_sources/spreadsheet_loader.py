"""
Spreadsheet loader for demand and inventory exports.

Turns planner files into the plain row dicts the engine consumes:
- .csv via pandas.read_csv
- .xlsx / .xls via pandas.read_excel (first sheet)

Every cell is read as text-or-number without type inference on the
column, so part numbers like "00123" keep their leading zeros. Blank
cells become None.

To support a new export: if its columns match the alias table nothing
changes; otherwise pass extra aliases to DemandSourceLoader.
"""

import logging
from pathlib import Path
from typing import Any, BinaryIO

import pandas as pd

from demand_engine.inventory import InventoryPosition
from demand_engine.parsers import FieldAliases, IdentifierResolver, QuantityParser

logger = logging.getLogger(__name__)

EXCEL_SUFFIXES = {".xlsx", ".xls"}


def read_frame(source: Path | str | BinaryIO, name: str | None = None) -> pd.DataFrame:
    """
    Read a csv or Excel file (path or uploaded buffer) into a DataFrame.

    `name` supplies the file name when `source` is a buffer without one.
    """
    suffix = Path(name or getattr(source, "name", str(source))).suffix.lower()
    if suffix in EXCEL_SUFFIXES:
        return pd.read_excel(source, dtype=object)
    if suffix == ".csv":
        return pd.read_csv(source, dtype=str, skipinitialspace=True)
    raise ValueError(f"unsupported file type {suffix!r} (expected .csv, .xlsx or .xls)")


def frame_to_rows(df: pd.DataFrame) -> list[dict[str, Any]]:
    """DataFrame -> list of row dicts with NaN cells mapped to None."""
    df = df.astype(object).where(df.notna(), None)
    return df.to_dict(orient="records")


class DemandSourceLoader:
    """
    Loads client and internal demand sheets plus inventory positions.

    Usage:
        loader = DemandSourceLoader("data/")
        client_rows = loader.load_client_forecast("client_forecast.xlsx")
        positions = loader.load_inventory_positions("stock.csv")
    """

    def __init__(self, data_dir: Path | str = ".", aliases: FieldAliases | None = None):
        self.data_dir = Path(data_dir)
        self.aliases = aliases or FieldAliases()

    def read_rows(self, source: Path | str | BinaryIO, name: str | None = None) -> list[dict[str, Any]]:
        if isinstance(source, (str, Path)):
            source = self.data_dir / source
            if not source.exists():
                raise FileNotFoundError(f"demand file not found: {source}")
        rows = frame_to_rows(read_frame(source, name))
        logger.info("Read %d rows from %s", len(rows), name or getattr(source, "name", source))
        return rows

    def load_client_forecast(self, source: Path | str | BinaryIO, name: str | None = None) -> list[dict[str, Any]]:
        """Client-supplied forecast sheet (weekly, monthly or keyed)."""
        return self.read_rows(source, name)

    def load_internal_forecast(self, source: Path | str | BinaryIO, name: str | None = None) -> list[dict[str, Any]]:
        """Internal demand plan exported from the planning system."""
        return self.read_rows(source, name)

    def load_inventory_positions(
        self, source: Path | str | BinaryIO, name: str | None = None
    ) -> list[InventoryPosition]:
        """
        Stock sheet -> InventoryPositions.

        Rows without a part number are skipped. A customer column, when
        present and populated, dedicates the position to that customer.
        """
        rows = self.read_rows(source, name)
        field_names = list(rows[0].keys()) if rows else []

        parts = IdentifierResolver(self.aliases.resolve_columns("part", field_names))
        customers = IdentifierResolver(self.aliases.resolve_columns("customer", field_names))
        stock_cols = self.aliases.resolve_columns("current_stock", field_names)
        safety_cols = self.aliases.resolve_columns("safety_stock", field_names)
        quantities = QuantityParser()

        positions = []
        skipped = 0
        for row in rows:
            part_id = parts.resolve(row)
            if not part_id:
                skipped += 1
                continue
            positions.append(
                InventoryPosition(
                    part_id=part_id,
                    current_stock=quantities.parse(_first_value(row, stock_cols)),
                    safety_stock=quantities.parse(_first_value(row, safety_cols)),
                    customer_id=customers.resolve(row),
                )
            )

        if skipped:
            logger.warning("Skipped %d inventory rows without a part number", skipped)
        return positions


def _first_value(row: dict[str, Any], columns: list[Any]) -> Any:
    for column in columns:
        if row.get(column) is not None:
            return row[column]
    return None
