"""Integer-cents helpers for proposal pricing.

All prices, fees, and totals inside the wizard are integer cents. Dollar
values only exist at the edges: user input and the JSON payloads exchanged
with the back-office API.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

CENTS_PER_DOLLAR = 100


def dollars_to_cents(amount: int | float | str | Decimal) -> int:
    """Convert a dollar amount to integer cents (half-up on the third decimal).

    Raises:
        ValueError: If the amount cannot be read as a number.
    """
    try:
        value = Decimal(str(amount))
    except InvalidOperation as exc:
        raise ValueError(f"Not a monetary amount: {amount!r}") from exc
    if not value.is_finite():
        raise ValueError(f"Not a monetary amount: {amount!r}")
    return int((value * CENTS_PER_DOLLAR).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def cents_to_dollars(cents: int) -> float:
    """Wire representation of a cents amount."""
    return cents / CENTS_PER_DOLLAR


def percentage_of(cents: int, percentage: int | float | Decimal, *, quantum: int = 1) -> int:
    """Return ``percentage`` percent of ``cents``, rounded half-up to a multiple of ``quantum``.

    ``quantum=CENTS_PER_DOLLAR`` rounds to whole dollars.
    """
    raw = Decimal(cents) * Decimal(str(percentage)) / Decimal(100)
    steps = (raw / quantum).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(steps) * quantum
