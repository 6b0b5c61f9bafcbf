"""Decimal money helpers."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from pdv.config import CURRENCY_SYMBOL
from pdv.errors import ValidationError

CENT = Decimal("0.01")
ZERO = Decimal("0")


def to_decimal(value: Decimal | int | float | str) -> Decimal:
    """Convert a price-like value to Decimal without binary float noise."""
    try:
        if isinstance(value, Decimal):
            amount = value
        elif isinstance(value, float):
            amount = Decimal(repr(value))
        else:
            amount = Decimal(value)
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise ValidationError(f"Invalid amount: {value!r}") from exc
    if not amount.is_finite():
        raise ValidationError(f"Invalid amount: {value!r}")
    return amount


def round_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def parse_amount(text: str) -> Decimal:
    """Parse operator input such as ``12.50`` or ``12,50`` into a non-negative amount."""
    raw = text.strip().replace(",", ".")
    if not raw:
        raise ValidationError("Amount is required")
    try:
        amount = Decimal(raw)
    except InvalidOperation as exc:
        raise ValidationError(f"Invalid amount: {text!r}") from exc
    if not amount.is_finite():
        raise ValidationError(f"Invalid amount: {text!r}")
    if amount < ZERO:
        raise ValidationError("Amount must not be negative")
    return round_money(amount)


def format_money(value: Decimal) -> str:
    return f"{CURRENCY_SYMBOL} {round_money(value):.2f}"
