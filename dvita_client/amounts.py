"""Conversion between human decimal amounts and integer ledger units."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, localcontext
from typing import Union

GAS_DECIMALS = 8

AmountLike = Union[Decimal, str, int]


class ScaleConversionError(ValueError):
    """Raised when an amount cannot be represented exactly in ledger units."""


def _to_decimal(amount: AmountLike) -> Decimal:
    if isinstance(amount, float):
        # Floats would smuggle binary rounding into the ledger value.
        raise ScaleConversionError("Amounts must be given as decimal strings, not floats")
    try:
        value = Decimal(amount.strip() if isinstance(amount, str) else amount)
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise ScaleConversionError(f"Invalid amount: {amount!r}") from exc
    if not value.is_finite():
        raise ScaleConversionError(f"Amount must be finite: {amount!r}")
    return value


def scale_amount(amount: AmountLike, decimals: int) -> int:
    """Return ``amount * 10**decimals`` as an exact integer.

    >>> scale_amount("1.23456789", 8)
    123456789
    """

    if not isinstance(decimals, int) or isinstance(decimals, bool) or decimals < 0:
        raise ScaleConversionError(f"Decimals must be a non-negative integer, got {decimals!r}")
    value = _to_decimal(amount)
    with localcontext() as ctx:
        ctx.prec = 100
        scaled = value.scaleb(decimals)
    if scaled != scaled.to_integral_value():
        raise ScaleConversionError(
            f"Amount {amount} has more than {decimals} fractional digits"
        )
    return int(scaled)


def format_amount(value: int, decimals: int) -> str:
    """Render an integer ledger value with exactly ``decimals`` fractional digits."""

    if decimals < 0:
        raise ScaleConversionError(f"Decimals must be non-negative, got {decimals}")
    sign = "-" if value < 0 else ""
    magnitude = abs(int(value))
    if decimals == 0:
        return f"{sign}{magnitude}"
    whole, fraction = divmod(magnitude, 10**decimals)
    return f"{sign}{whole}.{fraction:0{decimals}d}"


def format_gas(value: int) -> str:
    return format_amount(value, GAS_DECIMALS)
