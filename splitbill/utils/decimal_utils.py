"""Decimal arithmetic helpers"""

from decimal import Decimal, InvalidOperation
from typing import Any

HUNDRED = Decimal("100")

# Digits kept after the point by the matching database columns
MONEY_PLACES = 2
PERCENT_PLACES = 2
SHARE_PLACES = 4
# (subtotal + tax) * tip_percent / 100 never needs more than this
TIP_AMOUNT_PLACES = MONEY_PLACES + PERCENT_PLACES + 2


def to_decimal(value: Any) -> Decimal:
    """
    Convert a JSON number or numeric string to Decimal.

    Floats go through ``str`` so that 12.99 becomes Decimal("12.99").

    Raises:
        ValueError: If the value is not numeric
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool) or value is None:
        raise ValueError(f"Not a number: {value!r}")
    try:
        result = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValueError(f"Not a number: {value!r}")
    if not result.is_finite():
        raise ValueError(f"Not a finite number: {value!r}")
    return result


def sum_decimals(values: list[Decimal]) -> Decimal:
    """
    Sum a list of decimal values.

    Args:
        values: List of decimal values

    Returns:
        Sum of all values
    """
    return sum(values, Decimal("0"))


def compute_tip_amount(subtotal: Decimal, tax: Decimal, tip_percent: Decimal) -> Decimal:
    """Tip is charged on the taxed subtotal: (subtotal + tax) * tip_percent / 100"""
    return (subtotal + tax) * tip_percent / HUNDRED


def fits_places(value: Decimal, places: int) -> bool:
    """True if ``value`` has no non-zero digits beyond ``places`` after the point"""
    return value == value.quantize(Decimal(1).scaleb(-places))
