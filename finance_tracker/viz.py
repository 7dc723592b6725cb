"""Visualization utilities for the Finance Tracker dashboard."""

from __future__ import annotations

from collections.abc import Iterable, Mapping

import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

from . import aggregation, utils

INCOME_COLOR = "#059669"
EXPENSE_COLOR = "#dc2626"
BALANCE_COLOR = "#2563eb"
PIE_COLORS = ["#0088FE", "#00C49F", "#FFBB28", "#FF8042", "#8884D8"]


def _empty_figure(message: str, *, dark: bool = False) -> go.Figure:
    fig = go.Figure()
    fig.add_annotation(
        text=message,
        showarrow=False,
        x=0.5,
        y=0.5,
        xref="paper",
        yref="paper",
        font=dict(size=14, color="#6c757d"),
    )
    fig.update_layout(margin=dict(l=0, r=0, t=20, b=20), template=_template(dark))
    return fig


def _template(dark: bool) -> str:
    return "plotly_dark" if dark else "plotly_white"


def plot_monthly_summary(
    buckets: Iterable[Mapping[str, object]],
    *,
    currency: str = "R$ ",
    dark: bool = False,
) -> go.Figure:
    """Grouped income/expense bars with the monthly balance as a line."""

    data = list(buckets)
    if not data:
        return _empty_figure("No monthly data available.", dark=dark)

    df = pd.DataFrame(data)
    for column in ("income", "expense", "balance"):
        df[column] = df[column].map(lambda cents: utils.from_cents(int(cents)))

    fig = go.Figure()
    fig.add_bar(name="Income", x=df["label"], y=df["income"], marker_color=INCOME_COLOR)
    fig.add_bar(name="Expense", x=df["label"], y=df["expense"], marker_color=EXPENSE_COLOR)
    fig.add_trace(
        go.Scatter(
            name="Balance",
            x=df["label"],
            y=df["balance"],
            mode="lines+markers",
            line=dict(color=BALANCE_COLOR, width=2),
        )
    )
    fig.update_traces(hovertemplate=f"%{{x}}<br>{currency}%{{y:,.2f}}<extra>%{{fullData.name}}</extra>")
    fig.update_layout(
        barmode="group",
        title="Income vs expense (last 6 months)",
        yaxis_title="Amount",
        xaxis_title="Month",
        template=_template(dark),
        margin=dict(l=0, r=0, t=45, b=0),
        legend=dict(orientation="h", yanchor="bottom", y=1.02, xanchor="right", x=1),
    )
    return fig


def plot_category_pie(
    buckets: Iterable[Mapping[str, object]],
    *,
    currency: str = "R$ ",
    dark: bool = False,
) -> go.Figure:
    data = list(buckets)
    if not data:
        return _empty_figure("No expenses to display.", dark=dark)

    df = pd.DataFrame(data)
    placeholder = len(df) == 1 and df["name"].iat[0] == aggregation.NO_DATA_LABEL
    df["amount"] = df["value"].map(lambda cents: utils.from_cents(int(cents)))

    fig = px.pie(
        df,
        names="name",
        values="value" if placeholder else "amount",
        hole=0.55,
        title="Expenses by category",
        color_discrete_sequence=["#e5e7eb"] if placeholder else PIE_COLORS,
    )
    if placeholder:
        fig.update_traces(textinfo="label", hoverinfo="skip", hovertemplate=None)
    else:
        fig.update_traces(
            textinfo="percent",
            hovertemplate=f"%{{label}}<br>{currency}%{{value:,.2f}}<extra></extra>",
        )
    fig.update_layout(template=_template(dark), margin=dict(l=0, r=0, t=40, b=0))
    return fig
