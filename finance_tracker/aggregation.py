"""Dashboard aggregation helpers.

All amounts are integer cents. Conversion to floats or display strings happens
at render time only (see :mod:`finance_tracker.utils`).
"""

from __future__ import annotations

from datetime import date
from typing import Any, Iterable, Mapping, TypedDict

import pandas as pd

from . import utils

MONTH_WINDOW = 6
NO_DATA_LABEL = "No data"
UNCATEGORISED = "Uncategorised"

KIND_ALIASES = {
    "income": "income",
    "receita": "income",
    "expense": "expense",
    "despesa": "expense",
}


class MonthBucket(TypedDict):
    month: str
    label: str
    income: int
    expense: int
    balance: int


class CategoryBucket(TypedDict):
    name: str
    value: int


class Totals(TypedDict):
    total_income: int
    total_expense: int
    balance: int
    monthly_income: int
    monthly_expense: int
    monthly_balance: int


class DashboardPayload(TypedDict):
    totals: Totals
    monthly: list[MonthBucket]
    categories: list[CategoryBucket]


def _parse_date(value: object) -> pd.Timestamp:
    if value is None or value == "":
        return pd.NaT
    try:
        ts = pd.Timestamp(value)
    except (TypeError, ValueError):
        return pd.NaT
    if ts is pd.NaT:
        return ts
    if ts.tzinfo is not None:
        ts = ts.tz_convert(None)
    return ts


def _normalise_kind(raw: object, cents: int) -> str:
    if isinstance(raw, str):
        kind = KIND_ALIASES.get(raw.strip().lower())
        if kind:
            return kind
    return "expense" if cents < 0 else "income"


def prepare_transactions(transactions: Iterable[Mapping[str, Any]] | pd.DataFrame) -> pd.DataFrame:
    """Normalise API transaction records into ``date, month, kind, category, cents``."""

    df = utils.ensure_dataframe(transactions)
    if df.empty:
        return pd.DataFrame(
            {
                "date": pd.Series(dtype="datetime64[ns]"),
                "month": pd.Series(dtype="period[M]"),
                "kind": pd.Series(dtype="object"),
                "category": pd.Series(dtype="object"),
                "cents": pd.Series(dtype="int64"),
            }
        )

    raw_amounts = df["amount"] if "amount" in df else pd.Series([0] * len(df), index=df.index)
    signed = raw_amounts.map(utils.to_cents)
    kinds = df["type"] if "type" in df else pd.Series([None] * len(df), index=df.index)
    categories = df["category"] if "category" in df else pd.Series([None] * len(df), index=df.index)
    dates = df["date"] if "date" in df else pd.Series([None] * len(df), index=df.index)

    prepared = pd.DataFrame(
        {
            "date": pd.to_datetime(dates.map(_parse_date)),
            "kind": [_normalise_kind(kind, cents) for kind, cents in zip(kinds, signed)],
            "category": categories.fillna(UNCATEGORISED).astype(str).replace("", UNCATEGORISED),
            "cents": signed.abs().astype("int64"),
        },
        index=df.index,
    )
    prepared["month"] = prepared["date"].dt.to_period("M")
    return prepared


def monthly_summary(
    transactions: Iterable[Mapping[str, Any]] | pd.DataFrame,
    *,
    months: int = MONTH_WINDOW,
    today: date | None = None,
) -> list[MonthBucket]:
    """One bucket per calendar month, oldest first, ending at the current month.

    Months with no transactions still get a bucket with zero totals.
    """

    df = prepare_transactions(transactions)
    reference = pd.Timestamp(today or date.today()).to_period("M")
    periods = pd.period_range(end=reference, periods=months, freq="M")

    income = df.loc[df["kind"] == "income"].groupby("month")["cents"].sum()
    expense = df.loc[df["kind"] == "expense"].groupby("month")["cents"].sum()

    buckets: list[MonthBucket] = []
    for period in periods:
        month_income = int(income.get(period, 0))
        month_expense = int(expense.get(period, 0))
        buckets.append(
            {
                "month": period.strftime("%Y-%m"),
                "label": period.strftime("%b %y"),
                "income": month_income,
                "expense": month_expense,
                "balance": month_income - month_expense,
            }
        )
    return buckets


def category_summary(transactions: Iterable[Mapping[str, Any]] | pd.DataFrame) -> list[CategoryBucket]:
    """Expense totals per category, largest first.

    An empty input yields a single placeholder bucket so a pie chart still
    draws a ring.
    """

    df = prepare_transactions(transactions)
    if df.empty:
        return [{"name": NO_DATA_LABEL, "value": 1}]

    spend = df.loc[df["kind"] == "expense"]
    if spend.empty:
        return []

    totals = spend.groupby("category")["cents"].sum()
    ordered = sorted(totals.items(), key=lambda item: (-int(item[1]), str(item[0])))
    return [{"name": str(name), "value": int(value)} for name, value in ordered]


def summarize_totals(
    transactions: Iterable[Mapping[str, Any]] | pd.DataFrame,
    *,
    today: date | None = None,
) -> Totals:
    """All-time and current-month totals computed on the client."""

    df = prepare_transactions(transactions)
    current = pd.Timestamp(today or date.today()).to_period("M")

    def _sum(frame: pd.DataFrame, kind: str) -> int:
        return int(frame.loc[frame["kind"] == kind, "cents"].sum())

    this_month = df.loc[df["month"] == current]
    total_income = _sum(df, "income")
    total_expense = _sum(df, "expense")
    monthly_income = _sum(this_month, "income")
    monthly_expense = _sum(this_month, "expense")
    return {
        "total_income": total_income,
        "total_expense": total_expense,
        "balance": total_income - total_expense,
        "monthly_income": monthly_income,
        "monthly_expense": monthly_expense,
        "monthly_balance": monthly_income - monthly_expense,
    }


def normalize_stats(stats: Mapping[str, Any] | None) -> Totals | None:
    """Parse the ``/transactions/stats`` body into cents, or ``None`` if unusable."""

    if not isinstance(stats, Mapping) or not stats:
        return None
    keys = {
        "total_income": "totalIncome",
        "total_expense": "totalExpense",
        "balance": "balance",
        "monthly_income": "monthlyIncome",
        "monthly_expense": "monthlyExpense",
        "monthly_balance": "monthlyBalance",
    }
    if not any(remote in stats for remote in keys.values()):
        return None
    return {local: utils.to_cents(stats.get(remote)) for local, remote in keys.items()}  # type: ignore[return-value]


def build_dashboard(
    transactions: Iterable[Mapping[str, Any]] | pd.DataFrame,
    stats: Mapping[str, Any] | None = None,
    *,
    today: date | None = None,
) -> DashboardPayload:
    """Compute everything the dashboard renders from one transaction list."""

    records = utils.ensure_dataframe(transactions)
    totals = normalize_stats(stats) or summarize_totals(records, today=today)
    return {
        "totals": totals,
        "monthly": monthly_summary(records, today=today),
        "categories": category_summary(records),
    }
