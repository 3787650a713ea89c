from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

# Two monetary figures closer than this are treated as equal
TOLERANCE = Decimal("0.01")


def quantize(value) -> Decimal:
    """Round to cents, half away from zero."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def to_money_str(value) -> Optional[str]:
    """Serialize a monetary amount as a fixed two-decimal string."""
    if value is None:
        return None
    return f"{quantize(value):.2f}"


def to_rate_str(value) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return f"{value.quantize(CENT, rounding=ROUND_HALF_UP):.2f}"


def close_enough(a, b) -> bool:
    return abs(quantize(a) - quantize(b)) <= TOLERANCE
