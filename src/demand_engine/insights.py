"""
AI-assisted narrative for demand analysis results.

Uses Pydantic models so the LLM output is structured and can be shown
next to the computed tables. All numbers are computed by the engine and
passed in; the model only interprets them.
"""

import json
import logging
from typing import Literal

from openai import OpenAI
from pydantic import BaseModel, Field

from demand_engine.pipeline import DemandAnalysisResult
from demand_engine.reconciliation import ReconciliationResult

logger = logging.getLogger(__name__)


class VolatilityFinding(BaseModel):
    """A part or customer whose demand needs attention."""

    part_id: str | None = Field(default=None, description="Part number, if the finding is part-level")
    customer_id: str | None = Field(default=None, description="Customer id, if the finding is customer-level")
    observation: str = Field(description="What the numbers show")
    recommendation: str = Field(description="Specific planning action")


class InventoryAction(BaseModel):
    """A stock action for a part at risk."""

    part_id: str
    risk_level: Literal["critical", "high", "none"]
    weeks_of_stock: float | None = Field(description="Coverage in weeks, null if unbounded")
    action: str = Field(description="What to order, expedite or review")


class ForecastConcern(BaseModel):
    part_id: str
    week_key: str = Field(description="ISO week, e.g. 2025-W14")
    severity: Literal["critical", "warning"]
    explanation: str = Field(description="Likely reason the week looks abnormal")


class DemandInsightReport(BaseModel):
    """Complete AI-generated demand review."""

    executive_summary: str = Field(
        description="2-3 sentence summary for a supply chain manager"
    )
    volatility_findings: list[VolatilityFinding] = Field(
        description="Most unpredictable parts and customers"
    )
    inventory_actions: list[InventoryAction] = Field(
        description="Parts that need stock action, most urgent first"
    )
    forecast_concerns: list[ForecastConcern] = Field(
        description="Anomalous or unusual weeks worth investigating"
    )
    reconciliation_notes: list[str] = Field(
        description="Largest client vs internal forecast gaps and what they suggest",
    )


def _finite(value: float) -> float | None:
    return None if value == float("inf") else value


class DemandInsightGenerator:
    """
    Generates a narrative review with structured output.

    What to trust vs verify:
    - TRUST: summarization, wording of recommendations
    - VERIFY: any number quoted back (the tables are the source of truth)
    """

    def __init__(self, model: str = "gpt-4o-mini", client: OpenAI | None = None):
        self.client = client or OpenAI()
        self.model = model

    def generate_insights(
        self,
        analysis: DemandAnalysisResult,
        reconciliation: ReconciliationResult | None = None,
    ) -> DemandInsightReport:
        prompt = self._build_prompt(analysis, reconciliation)
        logger.info("Requesting demand insights from %s for batch %s", self.model, analysis.batch_id)

        response = self.client.beta.chat.completions.parse(
            model=self.model,
            messages=[
                {
                    "role": "system",
                    "content": """You are a demand planning expert reviewing customer forecasts for a manufacturer.

Your job is to:
1. Explain which parts and customers drive forecast instability
2. Turn inventory risk into concrete stock actions
3. Point out anomalous weeks and plausible causes

Be direct and specific. Use the exact numbers provided.""",
                },
                {"role": "user", "content": prompt},
            ],
            response_format=DemandInsightReport,
        )

        return response.choices[0].message.parsed

    def _build_prompt(
        self,
        analysis: DemandAnalysisResult,
        reconciliation: ReconciliationResult | None = None,
    ) -> str:
        """Build the prompt with all the pre-computed data."""
        volatility = [r.to_dict() for r in analysis.volatility[:20]]
        customers = [r.to_dict() for r in analysis.customer_instability[:10]]
        risks = [
            {**r.to_dict(), "weeks_of_stock": _finite(r.weeks_of_stock), "alerts": list(r.alerts)}
            for r in analysis.inventory_risks
            if r.risk_level != "none"
        ][:20]
        anomalies = [a.to_dict() for a in analysis.anomalies[:20]]

        sections = f"""Review this demand analysis and generate a DemandInsightReport.

## Key Metrics (pre-computed, use these exact numbers)
{json.dumps(analysis.summary(), indent=2)}

## Most Volatile Part/Customer Pairings (coefficient of variation)
{json.dumps(volatility, indent=2)}

## Customer Instability Ranking
{json.dumps(customers, indent=2)}

## Inventory at Risk
{json.dumps(risks, indent=2)}

## Forecast Anomalies
{json.dumps(anomalies, indent=2)}
"""
        if reconciliation is not None:
            gaps = [r.to_dict() for r in reconciliation.largest_deltas(15)]
            sections += f"""
## Client vs Internal Forecast
{json.dumps(reconciliation.summary(), indent=2)}

## Largest Gaps
{json.dumps(gaps, indent=2)}
"""
        return sections + "\nBe specific and actionable. Use the exact numbers provided."
