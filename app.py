"""
Demand Review Dashboard

A Streamlit dashboard for comparing client and internal demand and
reviewing volatility, inventory risk and forecast anomalies.
Run with: streamlit run app.py
"""

import logging
import os
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent / "src"))

import streamlit as st
import plotly.graph_objects as go

from demand_engine import (
    DemandAnalysisPipeline,
    EngineSettings,
    SettingsError,
    load_settings,
    records_to_frame,
)
from demand_engine.insights import DemandInsightGenerator
from demand_sources import DemandSourceLoader

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("demand_dashboard")

# Page config
st.set_page_config(
    page_title="Demand Review Dashboard",
    page_icon="📈",
    layout="wide",
)

st.title("📈 Demand Review Dashboard")
st.caption("Client vs internal forecast, volatility, inventory risk and anomalies")

SEVERITY_ICON = {"critical": "🔴", "high": "🟠", "warning": "🟡", "info": "🔵", "none": "🟢"}


def get_settings() -> EngineSettings:
    settings_path = os.environ.get("DEMAND_ENGINE_SETTINGS")
    if not settings_path:
        return EngineSettings()
    try:
        return load_settings(settings_path)
    except SettingsError as e:
        st.warning(f"Using default settings: {e}")
        return EngineSettings()


def show_quality(batch) -> None:
    report = batch.quality
    if not report.issues:
        st.markdown(f"✅ **{batch.batch_id}**: no issues found")
        return
    st.markdown(f"**{batch.batch_id}** ({batch.detected.kind.value}, {report.total_rows:,} rows)")
    for issue in report.issues:
        st.markdown(f"{SEVERITY_ICON.get(issue.severity, '')} {issue.column}: {issue.description}")


# --- Sidebar: inputs ---
with st.sidebar:
    st.header("Inputs")
    client_file = st.file_uploader("Client forecast", type=["csv", "xlsx", "xls"])
    internal_file = st.file_uploader("Internal forecast", type=["csv", "xlsx", "xls"])
    inventory_file = st.file_uploader("Inventory positions (optional)", type=["csv", "xlsx", "xls"])
    declared_year = st.number_input(
        "Plan year for weekly sheets (0 = detect)", min_value=0, max_value=9999, value=0, step=1
    )
    horizon = st.slider("Forecast horizon (weeks)", min_value=4, max_value=12, value=8)

if client_file is None:
    st.info("Upload a client forecast to start. Add the internal forecast to compare both.")
    st.stop()

settings = get_settings()
pipeline = DemandAnalysisPipeline(settings)
loader = DemandSourceLoader()
year = int(declared_year) or None

try:
    with st.spinner("Normalizing sheets..."):
        client_batch = pipeline.normalize_batch(
            client_file.name, loader.load_client_forecast(client_file), declared_year=year
        )
        internal_batch = None
        if internal_file is not None:
            internal_batch = pipeline.normalize_batch(
                internal_file.name, loader.load_internal_forecast(internal_file), declared_year=year
            )
        positions = loader.load_inventory_positions(inventory_file) if inventory_file is not None else []
except ValueError as e:
    logger.exception("Could not load uploaded sheets")
    st.error(str(e))
    st.stop()

analysis = pipeline.analyze(
    client_batch,
    inventory_positions=positions,
    observed_rows=internal_batch.rows if internal_batch else None,
    horizon_weeks=horizon,
)
reconciliation = pipeline.compare(client_batch, internal_batch) if internal_batch else None
summary = analysis.summary()

# --- Key Metrics Row ---
st.header("Key Metrics")
col1, col2, col3, col4 = st.columns(4)

with col1:
    st.metric(
        "Client Demand",
        f"{sum(r.quantity for r in client_batch.rows):,.0f}",
        delta=f"{summary['parts']} parts, {summary['weeks']} weeks",
        delta_color="off",
    )

with col2:
    if reconciliation:
        st.metric(
            "Client vs Internal",
            f"{reconciliation.totals.delta:+,.0f}",
            delta=f"{reconciliation.totals.delta_pct:+.1f}%",
        )
    else:
        st.metric("Client vs Internal", "n/a", delta="No internal sheet", delta_color="off")

with col3:
    st.metric(
        "Inventory Risks",
        f"{summary['critical_inventory'] + summary['high_inventory']}",
        delta=f"{summary['critical_inventory']} critical, {summary['high_inventory']} high",
        delta_color="inverse",
    )

with col4:
    st.metric(
        "Anomalies",
        f"{summary['anomalies']}",
        delta=f"{summary['high_volatility']} highly volatile pairings",
        delta_color="inverse",
    )

st.divider()

# --- Reconciliation ---
if reconciliation and reconciliation.rows:
    st.subheader("⚖️ Client vs Internal Forecast")
    left_col, right_col = st.columns([2, 1])

    comparison = records_to_frame(reconciliation.rows)

    with left_col:
        gaps = records_to_frame(reconciliation.largest_deltas(20))
        gaps.columns = ["Customer", "Part", "Week", "Client", "Internal", "Delta", "Delta %"]
        st.dataframe(
            gaps,
            use_container_width=True,
            hide_index=True,
            column_config={
                "Delta %": st.column_config.NumberColumn(format="%.1f%%"),
            },
        )
        st.caption(f"Largest 20 of {len(comparison):,} customer/part/week keys")

    with right_col:
        by_week = comparison.groupby("period_key")[["client_qty", "internal_qty"]].sum()
        fig_weeks = go.Figure(
            data=[
                go.Scatter(x=by_week.index, y=by_week["client_qty"], name="Client", line_color="#3498db"),
                go.Scatter(x=by_week.index, y=by_week["internal_qty"], name="Internal", line_color="#2ecc71"),
            ]
        )
        fig_weeks.update_layout(
            title="Weekly Totals",
            height=300,
            margin=dict(t=40, b=20, l=20, r=20),
            legend=dict(orientation="h", yanchor="bottom", y=-0.3),
        )
        st.plotly_chart(fig_weeks, use_container_width=True)

    st.divider()

# --- Volatility ---
st.subheader("🌪️ Demand Volatility")
left_col, right_col = st.columns([2, 1])

with left_col:
    if analysis.volatility:
        volatility = records_to_frame(analysis.volatility)
        volatility = volatility[
            ["rank", "part_id", "customer_id", "avg_weekly_qty", "max_weekly_qty", "week_count", "volatility_score", "trend"]
        ]
        volatility.columns = ["Rank", "Part", "Customer", "Avg/Week", "Peak", "Weeks", "Volatility", "Trend"]
        st.dataframe(
            volatility.head(20),
            use_container_width=True,
            hide_index=True,
            column_config={
                "Avg/Week": st.column_config.NumberColumn(format="%.1f"),
                "Volatility": st.column_config.NumberColumn(format="%.2f"),
            },
        )
    else:
        st.info("No demand rows to rank")

with right_col:
    if analysis.customer_instability:
        customers = records_to_frame(analysis.customer_instability).head(10).sort_values("instability_score")
        fig_customers = go.Figure(
            data=[
                go.Bar(
                    x=customers["instability_score"],
                    y=customers["customer_id"],
                    orientation="h",
                    marker_color="#e67e22",
                )
            ]
        )
        fig_customers.update_layout(
            title="Most Unstable Customers",
            height=300,
            margin=dict(t=40, b=20, l=20, r=20),
            xaxis_title="Instability score",
        )
        st.plotly_chart(fig_customers, use_container_width=True)

st.divider()

# --- Inventory ---
st.subheader("🚨 Inventory Risk")

if analysis.inventory_risks:
    risk_filter = st.multiselect(
        "Filter by risk level:",
        ["critical", "high", "none"],
        default=["critical", "high"],
    )
    risks = records_to_frame(analysis.inventory_risks)
    risks = risks[risks["risk_level"].isin(risk_filter)].copy()
    risks["alerts"] = risks["alerts"].apply(", ".join)
    risks["risk_level"] = risks["risk_level"].apply(lambda x: f"{SEVERITY_ICON.get(x, '')} {x.upper()}")
    risks = risks[
        ["part_id", "customer_id", "current_stock", "safety_stock", "avg_weekly_consumption",
         "weeks_of_stock", "recommended_stock", "risk_level", "alerts"]
    ]
    risks.columns = ["Part", "Customer", "Stock", "Safety", "Use/Week", "Weeks Left", "Recommended", "Risk", "Alerts"]
    st.dataframe(
        risks,
        use_container_width=True,
        hide_index=True,
        column_config={
            "Use/Week": st.column_config.NumberColumn(format="%.1f"),
            "Weeks Left": st.column_config.NumberColumn(format="%.1f"),
        },
    )
else:
    st.info("Upload an inventory sheet to classify stock positions")

st.divider()

# --- Forecast ---
st.subheader("🔮 Forecast & Anomalies")

forecast_parts = sorted({f.part_id for f in analysis.forecasts})
if forecast_parts:
    part = st.selectbox("Part", forecast_parts)
    history = (
        records_to_frame([r for r in client_batch.rows if r.part_id == part])
        .groupby("period_key")["quantity"]
        .sum()
    )
    forecast = records_to_frame([f for f in analysis.forecasts if f.part_id == part])
    anomalies = [a for a in analysis.anomalies if a.part_id == part]

    fig_forecast = go.Figure()
    fig_forecast.add_trace(go.Scatter(x=history.index, y=history.values, name="History", line_color="#34495e"))
    fig_forecast.add_trace(
        go.Scatter(x=forecast["week_key"], y=forecast["upper"], line=dict(width=0), showlegend=False)
    )
    fig_forecast.add_trace(
        go.Scatter(
            x=forecast["week_key"],
            y=forecast["lower"],
            fill="tonexty",
            line=dict(width=0),
            fillcolor="rgba(52, 152, 219, 0.2)",
            name="Band",
        )
    )
    fig_forecast.add_trace(
        go.Scatter(x=forecast["week_key"], y=forecast["predicted_qty"], name="Forecast", line_color="#3498db")
    )
    if anomalies:
        fig_forecast.add_trace(
            go.Scatter(
                x=[a.week_key for a in anomalies],
                y=[a.observed_qty for a in anomalies],
                mode="markers",
                marker=dict(color="#e74c3c", size=10),
                name="Anomaly",
            )
        )
    fig_forecast.update_layout(height=350, margin=dict(t=20, b=20, l=20, r=20))
    st.plotly_chart(fig_forecast, use_container_width=True)

    if analysis.anomalies:
        anomaly_df = records_to_frame(analysis.anomalies).sort_values("anomaly_score", ascending=False)
        st.dataframe(anomaly_df.head(20), use_container_width=True, hide_index=True)
else:
    st.info(f"Not enough history to forecast (need {settings.forecast.min_history_weeks}+ weeks per part)")

st.divider()

# --- Data Quality ---
with st.expander("📋 View Data Quality Reports"):
    quality_cols = st.columns(2)
    with quality_cols[0]:
        show_quality(client_batch)
    with quality_cols[1]:
        if internal_batch:
            show_quality(internal_batch)

# --- AI Review ---
if os.environ.get("OPENAI_API_KEY"):
    if st.button("Generate AI review"):
        with st.spinner("Asking the model..."):
            report = DemandInsightGenerator().generate_insights(analysis, reconciliation)
        st.markdown(f"**Summary:** {report.executive_summary}")
        for action in report.inventory_actions:
            st.markdown(f"{SEVERITY_ICON.get(action.risk_level, '')} **{action.part_id}**: {action.action}")
        for concern in report.forecast_concerns:
            st.markdown(f"{SEVERITY_ICON.get(concern.severity, '')} **{concern.part_id} {concern.week_key}**: {concern.explanation}")
        for note in report.reconciliation_notes:
            st.markdown(f"- {note}")

# --- Footer ---
st.divider()
st.caption(
    "Built with Streamlit | "
    f"Client: {client_batch.detected.kind.value}, {len(client_batch.rows):,} weekly rows | "
    + (f"Internal: {internal_batch.detected.kind.value}, {len(internal_batch.rows):,} weekly rows"
       if internal_batch else "Internal: not loaded")
)
