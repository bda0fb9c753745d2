"""Monetary helpers. All amounts are Decimals quantised to cents."""
from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value) -> Decimal:
    """Quantise ``value`` (Decimal, int, float or str) to two places, half-up."""
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        # str() first so 0.1 becomes Decimal("0.1"), not the binary float
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def line_total(unit_price, quantity: int, discount) -> Decimal:
    return to_money(to_money(unit_price) * quantity - to_money(discount))
