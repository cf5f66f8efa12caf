"""
Monetary value helpers.

All amounts in the ledger are ``Decimal``.  Floats are converted through
``str`` so ``0.1`` becomes ``Decimal("0.1")`` rather than the binary
approximation.  Rounding is ROUND_HALF_UP to two places, applied where
tax is computed.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

ZERO = Decimal("0")
_TWO_PLACES = Decimal("0.01")


def to_decimal(value: object) -> Decimal:
    """
    Convert an int, str, float or Decimal to ``Decimal``.

    Raises:
        ValueError: If the value is not numeric, is a bool, or is not finite.
    """
    if isinstance(value, bool):
        raise ValueError(f"Not a monetary value: {value!r}")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(value)
        except InvalidOperation as exc:
            raise ValueError(f"Not a monetary value: {value!r}") from exc
    elif isinstance(value, float):
        result = Decimal(str(value))
    else:
        raise ValueError(f"Not a monetary value: {value!r}")
    if not result.is_finite():
        raise ValueError(f"Not a finite monetary value: {value!r}")
    return result


def round_money(value: Decimal) -> Decimal:
    """Round to cents using ROUND_HALF_UP."""
    return value.quantize(_TWO_PLACES, rounding=ROUND_HALF_UP)


def sum_amounts(amounts) -> Decimal:
    """Sum an iterable of Decimals, starting from zero."""
    total = ZERO
    for amount in amounts:
        total += amount
    return total
