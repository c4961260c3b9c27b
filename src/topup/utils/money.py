"""Currency rounding helpers."""

from decimal import ROUND_HALF_UP, Decimal
from typing import Union

CENT = Decimal("0.01")
UNIT = Decimal("1")

Number = Union[Decimal, int, float, str]


def to_money(value: Number) -> Decimal:
    """Coerce to Decimal rounded half-up to the minor unit (2 places)."""

    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def to_whole_units(value: Number) -> Decimal:
    """Round half-up to whole currency units, the precision the gateway charges in."""

    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(UNIT, rounding=ROUND_HALF_UP)
