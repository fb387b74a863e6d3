"""
Tests for volatility ranking, customer instability and weekly summaries
"""

import pytest

from demand_engine.config import VolatilitySettings
from demand_engine.detection import detect_format
from demand_engine.normalization import RowNormalizer
from demand_engine.volatility import (
    VolatilityRanker,
    normalized_slope,
    rank_customer_instability,
    summarize_weeks,
    trend_label,
    volatility_score,
    volatility_tier,
)


class TestVolatilityScore:

    def test_flat_series_is_zero(self):
        assert volatility_score([100, 100, 100, 100]) == 0.0

    def test_coefficient_of_variation(self):
        # mean 20, population std 10
        assert volatility_score([10, 30]) == pytest.approx(0.5)

    def test_scale_invariant(self):
        assert volatility_score([10, 20, 30]) == pytest.approx(volatility_score([20, 40, 60]))

    def test_zero_mean_and_empty(self):
        assert volatility_score([0, 0, 0]) == 0.0
        assert volatility_score([]) == 0.0


class TestTrend:

    def test_trend_labels(self):
        assert trend_label([10, 20, 30, 40]) == "up"
        assert trend_label([40, 30, 20, 10]) == "down"
        assert trend_label([10, 11, 10, 11]) == "stable"

    def test_normalized_slope(self):
        # slope 10 per week over a mean of 25
        assert normalized_slope([10, 20, 30, 40]) == pytest.approx(0.4)
        assert normalized_slope([5]) == 0.0


class TestVolatilityTier:

    @pytest.mark.parametrize("score,tier", [(0.7, "high"), (0.6, "moderate"), (0.5, "moderate"), (0.4, "normal"), (0.0, "normal")])
    def test_default_thresholds(self, score, tier):
        assert volatility_tier(score) == tier

    def test_custom_thresholds(self):
        settings = VolatilitySettings(moderate_threshold=0.1, high_threshold=0.2)
        assert volatility_tier(0.15, settings) == "moderate"
        assert volatility_tier(0.25, settings) == "high"


class TestVolatilityRanker:

    def test_ranked_by_score_descending(self, make_rows):
        rows = make_rows(
            ("C1", "P1", "2025-W01", 100), ("C1", "P1", "2025-W02", 100),
            ("C1", "P2", "2025-W01", 10), ("C1", "P2", "2025-W02", 30),
        )
        records = VolatilityRanker().rank(rows)
        assert [(r.part_id, r.rank) for r in records] == [("P2", 1), ("P1", 2)]
        assert records[0].volatility_score == pytest.approx(0.5)

    def test_ties_break_by_key(self, make_rows):
        rows = make_rows(
            ("C2", "P1", "2025-W01", 5),
            ("C1", "P1", "2025-W01", 5),
            ("C1", "P0", "2025-W01", 5),
        )
        records = VolatilityRanker().rank(rows)
        assert [(r.part_id, r.customer_id) for r in records] == [("P0", "C1"), ("P1", "C1"), ("P1", "C2")]
        assert [r.rank for r in records] == [1, 2, 3]

    def test_ranking_is_deterministic(self, make_rows):
        rows = make_rows(
            ("C1", "P1", "2025-W01", 3), ("C1", "P1", "2025-W02", 9),
            ("C2", "P2", "2025-W01", 3), ("C2", "P2", "2025-W02", 9),
        )
        assert VolatilityRanker().rank(rows) == VolatilityRanker().rank(list(reversed(rows)))

    def test_weekly_stats_sum_duplicate_weeks(self, make_rows):
        rows = make_rows(
            ("C1", "P1", "2025-W01", 10), ("C1", "P1", "2025-W01", 10),
            ("C1", "P1", "2025-W02", 20),
        )
        record = VolatilityRanker().rank(rows)[0]
        assert record.week_count == 2
        assert record.avg_weekly_qty == 20
        assert record.max_weekly_qty == 20
        assert record.total_qty == 40
        assert record.volatility_score == 0.0

    def test_blank_template_weeks_are_not_counted(self):
        sheet = [{"custId": "C1", "partId": "P1", "WK_01": 100, "WK_02": None, "WK_03": None, "WK_04": None}]
        rows = RowNormalizer(2025).normalize(sheet, detect_format(sheet)).rows
        assert len(rows) == 4

        record = VolatilityRanker().rank(rows)[0]
        assert record.week_count == 1
        assert record.avg_weekly_qty == 100
        assert record.volatility_score == 0.0

    def test_all_zero_pairing_is_not_ranked(self, make_rows):
        rows = make_rows(("C1", "P1", "2025-W01", 0), ("C1", "P2", "2025-W01", 5))
        assert [r.part_id for r in VolatilityRanker().rank(rows)] == ["P2"]

    def test_part_level_grouping(self, make_rows):
        rows = make_rows(("C1", "P1", "2025-W01", 10), ("C2", "P1", "2025-W01", 30))
        records = VolatilityRanker(by_customer=False).rank(rows)
        assert len(records) == 1
        assert records[0].customer_id is None
        assert records[0].avg_weekly_qty == 40

    def test_empty_rows(self):
        assert VolatilityRanker().rank([]) == []


class TestCustomerInstability:

    def test_instability_ranking(self, make_rows):
        rows = make_rows(
            ("C1", "P1", "2025-W01", 10), ("C1", "P1", "2025-W02", 30),
            ("C1", "P2", "2025-W01", 20), ("C1", "P2", "2025-W02", 60),
            ("C2", "P1", "2025-W01", 50), ("C2", "P1", "2025-W02", 50),
        )
        ranking = rank_customer_instability(VolatilityRanker().rank(rows))

        assert [c.customer_id for c in ranking] == ["C1", "C2"]
        assert ranking[0].part_count == 2
        assert ranking[0].avg_volatility == pytest.approx(0.5)
        # (0.5 mean + 0 spread) / 2
        assert ranking[0].instability_score == pytest.approx(0.25)
        assert ranking[1].instability_score == 0.0

    def test_part_level_records_are_ignored(self, make_rows):
        rows = make_rows(("C1", "P1", "2025-W01", 10))
        assert rank_customer_instability(VolatilityRanker(by_customer=False).rank(rows)) == []


class TestWeeklySummary:

    def test_summarize_weeks(self, make_rows):
        rows = make_rows(
            ("C1", "P1", "2025-W02", 10),
            ("C2", "P1", "2025-W02", 20),
            ("C1", "P2", "2025-W02", 30),
            ("C1", "P1", "2025-W01", 5),
        )
        weeks = summarize_weeks(rows)
        assert [w.period_key for w in weeks] == ["2025-W01", "2025-W02"]
        assert weeks[1].total_qty == 60
        assert weeks[1].unique_parts == 2
        assert weeks[1].unique_customers == 2
        assert weeks[1].avg_qty_per_part == 30

    def test_empty(self):
        assert summarize_weeks([]) == []
