# purchases/utils.py
from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal("0.01")


def cents_to_decimal(cents):
    """Convert an integer amount in cents to a 2-place Decimal (1499 -> 14.99)"""
    return (Decimal(int(cents)) / 100).quantize(CENT, rounding=ROUND_HALF_UP)

