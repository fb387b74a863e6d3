"""
Pytest configuration and shared fixtures for all tests
Centralized sample sheets and row builders
"""

import pytest

from demand_engine.config import EngineSettings
from demand_engine.normalization import NormalizedRow
from demand_engine.isoweek import add_weeks


# ===== ROW BUILDERS =====

@pytest.fixture
def make_rows():
    """
    Builds NormalizedRows from (customer, part, week, qty) tuples.
    """
    def _make(*items):
        return [NormalizedRow(c, p, w, float(q)) for c, p, w, q in items]
    return _make


@pytest.fixture
def weekly_series_rows():
    """
    Builds one part's consecutive weekly rows from a list of quantities.
    """
    def _make(quantities, part="P1", customer="C1", start="2025-W01"):
        return [
            NormalizedRow(customer, part, add_weeks(start, i), float(q))
            for i, q in enumerate(quantities)
        ]
    return _make


# ===== SAMPLE SHEETS =====

@pytest.fixture
def weekly_sheet():
    """
    Client weekly template:
    - alias column names (custId, Part #)
    - one row with a text quantity and one with a blank
    - one row missing its part number
    """
    return [
        {"custId": "C1", "Part #": "P1", "WK_01": 10, "WK_02": "20", "WK_03": 30},
        {"custId": "C2", "Part #": "P2", "WK_01": "1,200", "WK_02": None, "WK_03": "n/a"},
        {"custId": "C3", "Part #": None, "WK_01": 5, "WK_02": 5, "WK_03": 5},
    ]


@pytest.fixture
def monthly_sheet():
    return [
        {"customerId": "C1", "partId": "P1", "02-2025": 100, "03-2025": 0},
        {"customerId": "C2", "partId": "P1", "02-2025": 50, "03-2025": 60},
    ]


@pytest.fixture
def keyed_sheet():
    return [
        {"clientId": "C1", "partNum": "P1", "periodKey": "2025-W14", "qty": 80},
        {"clientId": "C1", "partNum": "P2", "periodKey": "2025-w15", "qty": "40"},
        {"clientId": "C2", "partNum": "P1", "periodKey": "not-a-week", "qty": 5},
    ]


@pytest.fixture
def settings():
    """Settings pinned to 2025 so weekly sheets never depend on the clock."""
    return EngineSettings(default_year=2025)
