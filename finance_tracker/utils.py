"""Shared utilities for the Finance Tracker client."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable, Mapping

import pandas as pd

CENTS = Decimal("0.01")


def ensure_dataframe(records: Iterable[Mapping] | pd.DataFrame) -> pd.DataFrame:
    """Ensure the input payload is normalised to a :class:`pandas.DataFrame`."""

    if isinstance(records, pd.DataFrame):
        return records.copy()

    return pd.DataFrame(list(records))


def to_cents(value: object) -> int:
    """Parse an amount in its transport form (string or number) into minor units.

    ``None``, empty strings and unparseable values count as zero, matching the
    lenient parsing the dashboard has always applied to server payloads.
    """

    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value * 100
    try:
        amount = Decimal(str(value).strip().replace(",", ""))
    except InvalidOperation:
        return 0
    if not amount.is_finite():
        return 0
    return int((amount.quantize(CENTS, rounding=ROUND_HALF_UP) * 100).to_integral_value())


def from_cents(cents: int) -> float:
    """Return a float for display or JSON transport."""

    return float(Decimal(cents) / 100)


def cents_to_decimal(cents: int) -> Decimal:
    return (Decimal(cents) / 100).quantize(CENTS)


def format_currency(cents: int, currency: str = "R$ ") -> str:
    """Return a human-readable currency string."""

    sign = "-" if cents < 0 else ""
    return f"{sign}{currency}{cents_to_decimal(abs(cents)):,.2f}"
