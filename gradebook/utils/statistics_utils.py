"""Utility functions for calculating statistics."""

from decimal import ROUND_HALF_UP, Decimal
from typing import Sequence

TWO_PLACES = Decimal("0.01")
HUNDRED = Decimal(100)


def round_half_up(value: Decimal, places: Decimal = TWO_PLACES) -> Decimal:
    """Round a Decimal to the given exponent, ties away from zero."""
    return value.quantize(places, rounding=ROUND_HALF_UP)


def calculate_mean(data: Sequence[Decimal]) -> Decimal | None:
    """Arithmetic mean rounded to two decimal places, None for an empty dataset."""
    if not data:
        return None
    return round_half_up(sum(data, Decimal(0)) / Decimal(len(data)))


def calculate_rate(count: int, total: int) -> Decimal:
    """
    Express count/total as a percentage rounded to two decimal places.

    Args:
        count: Number of matching items
        total: Size of the population, must be > 0

    Returns:
        Percentage in [0, 100], e.g. Decimal("66.67") for 2 of 3
    """
    if total <= 0:
        raise ValueError("total must be greater than 0")
    return round_half_up(Decimal(count) * HUNDRED / Decimal(total))


def count_at_or_above(data: Sequence[Decimal], cutoff: Decimal) -> int:
    """Count values that reach the cutoff (inclusive)."""
    return sum(1 for value in data if value >= cutoff)
