"""Utilities for working with session prices in the PlayZone console."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional, Union

CENT = Decimal("0.01")
CURRENCY_LABEL = "Rs."

AmountLike = Union[Decimal, int, float, str, None]


def to_decimal(value: AmountLike) -> Decimal:
    """Convert ``value`` to a :class:`~decimal.Decimal` with two decimal places.

    The API sends prices as numbers or numeric strings; missing or malformed
    values count as zero so a half-filled row still renders.
    """

    if value is None or value == "":
        return Decimal("0.00")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        raise TypeError(f"Unsupported amount type: {type(value)!r}")
    elif isinstance(value, (int, float)):
        result = Decimal(str(value))
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip().replace(",", ""))
        except InvalidOperation:
            return Decimal("0.00")
    else:
        raise TypeError(f"Unsupported amount type: {type(value)!r}")
    if not result.is_finite():
        return Decimal("0.00")
    return result.quantize(CENT, rounding=ROUND_HALF_UP)


def format_currency(amount: AmountLike, *, label: Optional[str] = None) -> str:
    """Return ``amount`` formatted for display (e.g. ``Rs. 1,600``).

    Whole amounts drop the cents the way the front desk writes them.
    """

    value = to_decimal(amount)
    prefix = label or CURRENCY_LABEL
    if value == value.to_integral_value():
        return f"{prefix} {value:,.0f}"
    return f"{prefix} {value:,.2f}"


__all__ = ["AmountLike", "CENT", "CURRENCY_LABEL", "format_currency", "to_decimal"]
