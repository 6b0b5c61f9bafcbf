"""Settlement, order numbering and receipt payloads for finalized sales."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Iterable

from pdv.cart import Cart
from pdv.constant import ORDER_NUMBER_PREFIX_SALE
from pdv.errors import InsufficientPayment, ValidationError
from pdv.models import CartLine, PaymentMethod
from pdv.money import ZERO, round_money, to_decimal

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class Settlement:
    method: PaymentMethod
    amount_paid: Decimal
    change_due: Decimal


@dataclass(frozen=True)
class ReceiptLine:
    product_id: str
    name: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal


@dataclass(frozen=True)
class Receipt:
    """Structured receipt handed to the printer/text renderer."""

    order_number: str
    created_at: datetime
    lines: tuple[ReceiptLine, ...]
    total: Decimal
    method: PaymentMethod
    amount_paid: Decimal
    change_due: Decimal


@dataclass(frozen=True)
class CheckoutResult:
    settlement: Settlement
    order_number: str
    receipt: Receipt


def settle(
    total: Decimal | int | float | str,
    method: PaymentMethod | str,
    tendered: Decimal | int | float | str | None = None,
) -> Settlement:
    """
    Compute amount paid and change for ``total``.

    Cash needs ``tendered`` >= ``total`` and raises InsufficientPayment
    otherwise. PIX and card always pay the exact total; ``tendered`` is
    ignored for them.
    """
    total = round_money(to_decimal(total))
    if total < ZERO:
        raise ValidationError("Total must not be negative")
    try:
        method = PaymentMethod(method)
    except ValueError as exc:
        raise ValidationError(f"Unknown payment method: {method!r}") from exc

    if method is not PaymentMethod.CASH:
        return Settlement(method=method, amount_paid=total, change_due=round_money(ZERO))

    if tendered is None:
        raise ValidationError("Cash payment requires the amount tendered")
    paid = round_money(to_decimal(tendered))
    if paid < total:
        raise InsufficientPayment(total, paid)
    return Settlement(method=method, amount_paid=paid, change_due=round_money(max(ZERO, paid - total)))


def generate_order_number(prefix: str, now: datetime | None = None) -> str:
    """``prefix`` followed by the last 6 digits of the epoch-millisecond clock."""
    if now is None:
        now = datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    millis = (now - _EPOCH) // timedelta(milliseconds=1)
    return f"{prefix}{str(millis)[-6:].zfill(6)}"


def receipt_lines_from_cart(lines: Iterable[CartLine]) -> tuple[ReceiptLine, ...]:
    return tuple(
        ReceiptLine(
            product_id=line.product_id,
            name=line.name,
            quantity=line.quantity,
            unit_price=line.price,
            line_total=round_money(line.line_total),
        )
        for line in lines
    )


def build_receipt(
    order_number: str,
    lines: Iterable[ReceiptLine],
    settlement: Settlement,
    created_at: datetime,
    total: Decimal | None = None,
) -> Receipt:
    line_tuple = tuple(lines)
    if total is None:
        total = round_money(sum((line.unit_price * line.quantity for line in line_tuple), ZERO))
    return Receipt(
        order_number=order_number,
        created_at=created_at,
        lines=line_tuple,
        total=total,
        method=settlement.method,
        amount_paid=settlement.amount_paid,
        change_due=settlement.change_due,
    )


def checkout(
    cart: Cart,
    method: PaymentMethod | str,
    tendered: Decimal | int | float | str | None = None,
    now: datetime | None = None,
) -> CheckoutResult:
    """Settle ``cart`` and produce the order number and receipt for a sale."""
    if cart.is_empty():
        raise ValidationError("Cart is empty")
    if now is None:
        now = datetime.now(timezone.utc)

    total = cart.total_price()
    settlement = settle(total, method, tendered)
    order_number = generate_order_number(ORDER_NUMBER_PREFIX_SALE, now)
    receipt = build_receipt(order_number, receipt_lines_from_cart(cart.lines()), settlement, now, total=total)
    return CheckoutResult(settlement=settlement, order_number=order_number, receipt=receipt)
