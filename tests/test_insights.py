"""
Tests for AI narrative generation (OpenAI replaced by a fake client)
"""

from types import SimpleNamespace

import pytest

from demand_engine.insights import DemandInsightGenerator, DemandInsightReport
from demand_engine.inventory import InventoryPosition
from demand_engine.pipeline import DemandAnalysisPipeline
from demand_engine.reconciliation import Reconciler


class FakeCompletions:
    def __init__(self, report):
        self.report = report
        self.calls = []

    def parse(self, **kwargs):
        self.calls.append(kwargs)
        message = SimpleNamespace(parsed=self.report)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


@pytest.fixture
def report():
    return DemandInsightReport(
        executive_summary="P1 is out of cover.",
        volatility_findings=[],
        inventory_actions=[],
        forecast_concerns=[],
        reconciliation_notes=[],
    )


@pytest.fixture
def fake_client(report):
    completions = FakeCompletions(report)
    return SimpleNamespace(beta=SimpleNamespace(chat=SimpleNamespace(completions=completions)))


@pytest.fixture
def analysis(settings, weekly_series_rows):
    pipeline = DemandAnalysisPipeline(settings)
    batch = pipeline.normalize_batch("client", [])
    batch.rows = weekly_series_rows([100, 100, 100, 300, 100, 100, 100, 100])
    return pipeline.analyze(batch, [InventoryPosition("P1", 0, 50), InventoryPosition("P9", 10)])


class TestDemandInsightGenerator:

    def test_returns_parsed_report(self, fake_client, analysis, report):
        generator = DemandInsightGenerator(client=fake_client)
        assert generator.generate_insights(analysis) is report

        call = fake_client.beta.chat.completions.calls[0]
        assert call["model"] == "gpt-4o-mini"
        assert call["response_format"] is DemandInsightReport
        assert [m["role"] for m in call["messages"]] == ["system", "user"]

    def test_prompt_contains_computed_numbers(self, fake_client, analysis):
        prompt = DemandInsightGenerator(client=fake_client)._build_prompt(analysis)
        assert '"batch_id": "client"' in prompt
        assert "2025-W04" in prompt
        assert "below safety stock" in prompt
        # healthy positions are left out, unbounded coverage is sent as null
        assert "P9" not in prompt
        assert "Infinity" not in prompt
        assert "Client vs Internal" not in prompt

    def test_prompt_includes_reconciliation(self, fake_client, analysis, make_rows):
        reconciliation = Reconciler().reconcile(
            make_rows(("C1", "P1", "2025-W01", 100)),
            make_rows(("C1", "P1", "2025-W01", 80)),
        )
        prompt = DemandInsightGenerator(client=fake_client)._build_prompt(analysis, reconciliation)
        assert "Client vs Internal" in prompt
        assert '"delta_pct": 25.0' in prompt

