# Overview: Fixed-point helpers for monetary amounts and stock quantities.

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from .errors import ValidationError

CENT = Decimal("0.01")
ZERO = Decimal("0")


def to_decimal(value: Any, field: str = "value") -> Decimal:
    """
    Coerce an incoming number to Decimal without passing through float.

    Floats are converted via their repr so 0.1 becomes Decimal("0.1"),
    not the binary expansion. Booleans are rejected.
    """
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be a number")
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValidationError(f"{field} must be a number")
    elif isinstance(value, float):
        result = Decimal(repr(value))
    else:
        raise ValidationError(f"{field} must be a number")

    if not result.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    return result


def quantize(value: Decimal) -> Decimal:
    """Round half-up to two decimal places (cents / hundredths of a unit)."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def to_str(value: Decimal | None) -> str | None:
    """Serialize for JSON; strings keep the exact decimal value."""
    if value is None:
        return None
    return str(quantize(Decimal(value)))
