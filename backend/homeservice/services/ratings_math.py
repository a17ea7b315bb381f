from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

ONE_DECIMAL = Decimal("0.1")
ZERO_RATING = Decimal("0.0")


def round_half_up(value: Decimal, quantum: Decimal = ONE_DECIMAL) -> Decimal:
    return value.quantize(quantum, rounding=ROUND_HALF_UP)


def average_rating(rating_sum: int, count: int) -> Decimal:
    """Mean of integer ratings rounded half-up to one decimal; 0.0 when empty."""
    if count <= 0:
        return ZERO_RATING
    return round_half_up(Decimal(int(rating_sum)) / Decimal(int(count)))
