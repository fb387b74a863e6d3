"""
Tests for sheet format detection
"""

import pytest

from demand_engine.detection import DetectedFormat, FormatKind, detect_format, month_of, week_number


class TestColumnPatterns:

    @pytest.mark.parametrize("column,expected", [
        ("WK_01", 1),
        ("wk 7", 7),
        ("WK-12", 12),
        ("wk07", 7),
        ("WK_53", 53),
        ("WEEK_01", None),
        ("WK_123", None),
    ])
    def test_week_number(self, column, expected):
        assert week_number(column) == expected

    def test_month_of(self):
        assert month_of("04-2025") == (2025, 4)
        assert month_of("12-2024") == (2024, 12)
        assert month_of("4-2025") is None
        assert month_of("13-2025") is None
        assert month_of("00-2025") is None


class TestDetectFormat:

    def test_weekly(self, weekly_sheet):
        detected = detect_format(weekly_sheet)
        assert detected.kind is FormatKind.WEEKLY
        assert detected.week_columns == ("WK_01", "WK_02", "WK_03")
        assert detected.declared_year is None

    def test_weekly_year_column(self):
        detected = detect_format([{"customer": "C1", "part": "P1", "Year": 2024.0, "WK_01": 1}])
        assert detected.kind is FormatKind.WEEKLY
        assert detected.declared_year == 2024

    def test_weekly_ignores_non_year_values(self):
        detected = detect_format([{"customer": "C1", "part": "P1", "year": "FY25", "WK_01": 1}])
        assert detected.declared_year is None

    def test_monthly_declared_year_from_first_column(self, monthly_sheet):
        detected = detect_format(monthly_sheet)
        assert detected.kind is FormatKind.MONTHLY
        assert detected.declared_year == 2025
        assert detected.month_columns == ("02-2025", "03-2025")

    def test_weekly_takes_precedence_over_monthly(self):
        detected = detect_format([{"customer": "C1", "part": "P1", "04-2025": 5, "WK_01": 1}])
        assert detected.kind is FormatKind.WEEKLY

    def test_weekly_keyed(self, keyed_sheet):
        assert detect_format(keyed_sheet).kind is FormatKind.WEEKLY_KEYED

    def test_period_key_is_case_insensitive(self):
        assert detect_format([{"PERIODKEY": "2025-W01"}]).kind is FormatKind.WEEKLY_KEYED
        assert detect_format([{"period_key": "2025-W01"}]).kind is FormatKind.WEEKLY_KEYED

    def test_unknown(self):
        detected = detect_format([{"customer": "C1", "amount": 4}])
        assert detected.kind is FormatKind.UNKNOWN
        assert not detected.is_known

    def test_invalid_month_columns_are_not_monthly(self):
        assert detect_format([{"customer": "C1", "13-2025": 4}]).kind is FormatKind.UNKNOWN

    def test_empty_batch_is_unknown(self):
        assert detect_format([]) == DetectedFormat(kind=FormatKind.UNKNOWN)

    def test_only_first_row_is_inspected(self):
        rows = [{"customer": "C1", "amount": 1}, {"customer": "C1", "WK_01": 1}]
        assert detect_format(rows).kind is FormatKind.UNKNOWN

    def test_detection_is_idempotent(self, weekly_sheet, monthly_sheet, keyed_sheet):
        for sheet in (weekly_sheet, monthly_sheet, keyed_sheet):
            assert detect_format(sheet) == detect_format(sheet)
