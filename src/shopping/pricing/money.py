"""Monetary rounding for cart amounts.

All amounts are single-currency floats; every derived total passes through
``to_money`` so that sums of cents never drift (89.90 × 4 == 359.60).
"""

from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")


def to_money(value) -> float:
    """Round an amount to cents, half-up, and return it as a float."""
    return float(Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP))
