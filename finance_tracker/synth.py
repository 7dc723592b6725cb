"""Deterministic sample transactions shaped like the API's records."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any

import numpy as np

DEFAULT_ROWS = 120
DEFAULT_SEED = 7


@dataclass(frozen=True)
class CategoryProfile:
    """Static metadata for a transaction category."""

    name: str
    kind: str
    amount_range: tuple[float, float]
    weight: float


CATEGORIES = (
    CategoryProfile("Salário", "receita", (3800.0, 4200.0), 0.06),
    CategoryProfile("Freelance", "receita", (300.0, 1200.0), 0.04),
    CategoryProfile("Moradia", "despesa", (1200.0, 1500.0), 0.08),
    CategoryProfile("Alimentação", "despesa", (15.0, 180.0), 0.32),
    CategoryProfile("Transporte", "despesa", (8.0, 90.0), 0.2),
    CategoryProfile("Lazer", "despesa", (20.0, 250.0), 0.15),
    CategoryProfile("Saúde", "despesa", (40.0, 400.0), 0.08),
    CategoryProfile("Educação", "despesa", (100.0, 600.0), 0.07),
)

STATUSES = ("concluida", "pendente", "cancelada")
STATUS_WEIGHTS = (0.85, 0.12, 0.03)


def generate_transactions(
    rows: int = DEFAULT_ROWS,
    seed: int | None = DEFAULT_SEED,
    *,
    today: date | None = None,
    days: int = 180,
) -> list[dict[str, Any]]:
    """Return ``rows`` transaction records spread over the trailing ``days``.

    Amounts are strings with two decimals, as the API serialises them.
    """

    rng = np.random.default_rng(seed)
    end = today or date.today()
    weights = np.array([profile.weight for profile in CATEGORIES])
    weights = weights / weights.sum()

    records: list[dict[str, Any]] = []
    for index in range(rows):
        profile = CATEGORIES[int(rng.choice(len(CATEGORIES), p=weights))]
        low, high = profile.amount_range
        posted = end - timedelta(days=int(rng.integers(0, days)))
        records.append(
            {
                "id": index + 1,
                "description": f"{profile.name} #{index + 1}",
                "amount": f"{rng.uniform(low, high):.2f}",
                "type": profile.kind,
                "category": profile.name,
                "date": posted.isoformat(),
                "status": str(rng.choice(STATUSES, p=STATUS_WEIGHTS)),
            }
        )
    records.sort(key=lambda record: record["date"])
    return records
