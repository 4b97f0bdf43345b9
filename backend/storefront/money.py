# Overview: Helpers for integer-paise money amounts.
"""
Money is stored and computed as integer paise everywhere.
Rupee values appear only at the API boundary.
"""

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP


def paise_to_rupees(amount_paise: int | None) -> float | None:
    if amount_paise is None:
        return None
    return float((Decimal(amount_paise) / 100).quantize(Decimal("0.01")))


def percent_of(amount_paise: int, basis_points: int) -> int:
    """basis_points / 10000 of amount, rounded half-up to the paisa."""
    value = Decimal(amount_paise) * Decimal(basis_points) / Decimal(10000)
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
