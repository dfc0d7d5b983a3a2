"""
Money helpers - all monetary values are Decimal rounded to 2 places
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Union

Number = Union[Decimal, int, float, str]

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def money(value: Number) -> Decimal:
    # Quantize to 2 decimal places with HALF_UP
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def money_sum(values: Iterable[Number]) -> Decimal:
    # Each term is rounded before it is added
    total = ZERO
    for value in values:
        total += money(value)
    return money(total)


def to_float(value: Number) -> float:
    return float(money(value))
