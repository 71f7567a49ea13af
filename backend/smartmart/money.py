# Overview: Decimal coercion, scale checks and half-up rounding for money and quantities.

"""Decimal helpers shared by the ledger, costing and pricing code."""
from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

ZERO = Decimal("0")
CENT = Decimal("0.01")


def to_decimal(value, field: str = "value") -> Decimal:
    """
    Coerce int / str / Decimal to Decimal.

    Floats go through str() so 0.1 stays 0.1 instead of its binary expansion.
    Raises ValueError for anything that is not a finite number.
    """
    if value is None:
        raise ValueError(f"{field} is required")
    if isinstance(value, bool):
        raise ValueError(f"{field} must be a number")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValueError(f"{field} must be a number")
    else:
        raise ValueError(f"{field} must be a number")
    if not result.is_finite():
        raise ValueError(f"{field} must be a finite number")
    return result


def quantize_money(value: Decimal) -> Decimal:
    """Round half-up to the currency minor unit (2 dp)."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def decimal_str(value) -> str | None:
    if value is None:
        return None
    return str(value)


def exceeds_scale(value: Decimal) -> bool:
    """True when value carries digits below the stored 2 dp scale (0.015, 1.004)."""
    return value != value.quantize(CENT, rounding=ROUND_HALF_UP)
