from decimal import Decimal, ROUND_HALF_UP
from typing import Union

Number = Union[int, float, Decimal]

_CENT = Decimal("0.01")


def round_money(value: Number) -> float:
    """Round half-up to two decimals, the way amounts are displayed."""
    return float(Decimal(str(value)).quantize(_CENT, rounding=ROUND_HALF_UP))
