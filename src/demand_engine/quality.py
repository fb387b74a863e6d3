"""
Data quality reporting for normalized demand batches.

Normalization never aborts on bad rows, it skips or zeroes them. This
module turns those silent repairs into a report planners can read before
trusting a comparison:
- rows dropped for missing identifiers or period keys
- quantity cells that could not be parsed
- negative quantities clamped to zero
- duplicate customer/part/week lines (summed downstream)
- sheets whose format was not recognized at all
"""

from dataclasses import dataclass, field
from typing import Any, Callable

import pandas as pd

from demand_engine.normalization import NormalizationOutcome


@dataclass
class DataQualityIssue:
    """A single data quality issue found in a batch."""

    column: str
    issue_type: str  # e.g. "skipped_rows", "unparsed_quantity", "duplicate", "unknown_format"
    severity: str  # "critical", "warning", "info"
    count: int
    percentage: float
    sample_values: list[Any] = field(default_factory=list)
    description: str = ""


@dataclass
class DataQualityReport:
    """Data quality of one normalized batch, with its detected format and output size."""

    source_name: str
    total_rows: int
    detected_format: str = "unknown"  # FormatKind value
    weekly_rows: int = 0
    total_quantity: float = 0.0
    issues: list[DataQualityIssue] = field(default_factory=list)

    @property
    def critical_issues(self) -> list[DataQualityIssue]:
        return [i for i in self.issues if i.severity == "critical"]

    @property
    def warning_issues(self) -> list[DataQualityIssue]:
        return [i for i in self.issues if i.severity == "warning"]

    @property
    def has_critical_issues(self) -> bool:
        return len(self.critical_issues) > 0

    def summary(self) -> dict:
        """Return a summary dict for display."""
        return {
            "source": self.source_name,
            "format": self.detected_format,
            "total_rows": self.total_rows,
            "weekly_rows": self.weekly_rows,
            "total_quantity": self.total_quantity,
            "critical": len(self.critical_issues),
            "warnings": len(self.warning_issues),
            "info": len([i for i in self.issues if i.severity == "info"]),
        }


def severity_for(percentage: float) -> str:
    return "critical" if percentage > 20 else "warning" if percentage > 5 else "info"


class BatchQualityChecker:
    """
    Quality checks over a NormalizationOutcome.

    Default checks cover the repairs the normalizer makes. Extend with
    add_check() for client-specific rules (e.g. known discontinued parts).
    """

    def __init__(self, source_name: str):
        self.source_name = source_name
        self._checks: list[Callable[[NormalizationOutcome], list[DataQualityIssue]]] = [
            self._check_unknown_format,
            self._check_skipped_rows,
            self._check_unparsed_quantities,
            self._check_clamped_quantities,
            self._check_duplicates,
        ]

    def add_check(
        self, check_fn: Callable[[NormalizationOutcome], list[DataQualityIssue]]
    ) -> "BatchQualityChecker":
        """Add a custom check function. Returns self for chaining."""
        self._checks.append(check_fn)
        return self

    def _check_unknown_format(self, outcome: NormalizationOutcome) -> list[DataQualityIssue]:
        if outcome.detected.is_known or outcome.rows_read == 0:
            return []
        return [
            DataQualityIssue(
                column="*",
                issue_type="unknown_format",
                severity="critical",
                count=outcome.rows_read,
                percentage=100.0,
                description="No weekly, monthly or periodKey columns found; nothing was imported",
            )
        ]

    def _check_skipped_rows(self, outcome: NormalizationOutcome) -> list[DataQualityIssue]:
        if not outcome.rows_skipped:
            return []
        pct = outcome.rows_skipped / outcome.rows_read * 100
        return [
            DataQualityIssue(
                column="customer_id, part_id",
                issue_type="skipped_rows",
                severity=severity_for(pct),
                count=outcome.rows_skipped,
                percentage=pct,
                description=f"{outcome.rows_skipped:,} rows skipped for missing identifiers or week ({pct:.1f}%)",
            )
        ]

    def _check_unparsed_quantities(self, outcome: NormalizationOutcome) -> list[DataQualityIssue]:
        if not outcome.cells_zeroed:
            return []
        pct = outcome.cells_zeroed / max(len(outcome.rows), 1) * 100
        return [
            DataQualityIssue(
                column="quantity",
                issue_type="unparsed_quantity",
                severity="warning",
                count=outcome.cells_zeroed,
                percentage=pct,
                description=f"{outcome.cells_zeroed:,} quantity cells couldn't be parsed and were set to 0",
            )
        ]

    def _check_clamped_quantities(self, outcome: NormalizationOutcome) -> list[DataQualityIssue]:
        if not outcome.quantities_clamped:
            return []
        pct = outcome.quantities_clamped / max(len(outcome.rows), 1) * 100
        return [
            DataQualityIssue(
                column="quantity",
                issue_type="negative_quantity",
                severity="warning",
                count=outcome.quantities_clamped,
                percentage=pct,
                description=f"{outcome.quantities_clamped:,} negative quantities set to 0",
            )
        ]

    def _check_duplicates(self, outcome: NormalizationOutcome) -> list[DataQualityIssue]:
        if not outcome.rows:
            return []
        frame = pd.DataFrame([r.key for r in outcome.rows], columns=["customer_id", "part_id", "period_key"])
        mask = frame.duplicated(keep=False)
        dupes = int(mask.sum())
        if dupes == 0:
            return []
        samples = ["|".join(key) for key in frame[mask].drop_duplicates().head(5).itertuples(index=False)]
        return [
            DataQualityIssue(
                column="customer_id, part_id, period_key",
                issue_type="duplicate",
                severity="info",
                count=dupes,
                percentage=dupes / len(frame) * 100,
                sample_values=samples,
                description=f"{dupes:,} rows share a customer/part/week key and will be summed",
            )
        ]

    def run(self, outcome: NormalizationOutcome) -> DataQualityReport:
        """Run all checks and return a quality report."""
        all_issues = []
        for check_fn in self._checks:
            all_issues.extend(check_fn(outcome))

        return DataQualityReport(
            source_name=self.source_name,
            total_rows=outcome.rows_read,
            detected_format=outcome.detected.kind.value,
            weekly_rows=len(outcome.rows),
            total_quantity=outcome.total_quantity,
            issues=all_issues,
        )
