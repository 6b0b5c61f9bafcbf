"""Terminal operations that combine the cart, checkout, lifecycle and store.

Every operation returns a Notice instead of raising to the UI. In-memory
state (the cart) is only cleared once the order header and its items are
stored, so a failed submission can simply be retried by the operator.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal

from pdv import lifecycle, persistence
from pdv.cart import Cart
from pdv.checkout import Receipt, checkout, generate_order_number
from pdv.constant import CASH_MOVEMENT_LABELS, ORDER_NUMBER_PREFIX_KITCHEN
from pdv.errors import BackendFailure, IllegalTransition, InsufficientPayment, ValidationError
from pdv.feed import TOPIC_CASH, TOPIC_ORDERS, TOPIC_PRODUCTS, TOPIC_TABLES, ChangeFeed
from pdv.models import (
    CartLine,
    CashMovement,
    MovementType,
    Order,
    OrderLine,
    OrderStatus,
    OrderType,
    PaymentMethod,
    Product,
    TableStatus,
)
from pdv.money import ZERO, format_money, parse_amount, round_money, to_decimal

logger = logging.getLogger(__name__)

LEVEL_INFO = "info"
LEVEL_WARNING = "warning"
LEVEL_ERROR = "error"


@dataclass(frozen=True)
class Notice:
    """Outcome of a terminal operation, for the UI to surface."""

    ok: bool
    title: str
    message: str = ""
    level: str = LEVEL_INFO
    order: Order | None = None
    receipt: Receipt | None = None
    warnings: tuple[str, ...] = ()


@dataclass(frozen=True)
class CashSummary:
    day: date
    movements: list[CashMovement] = field(default_factory=list)
    balance: Decimal = ZERO
    is_open: bool = False


def _error(title: str, message: str) -> Notice:
    return Notice(ok=False, title=title, message=message, level=LEVEL_ERROR)


def _notify(feed: ChangeFeed | None, *topics: str) -> None:
    if feed is None:
        return
    for topic in topics:
        feed.notify(topic)


def _order_lines(lines: list[CartLine]) -> list[OrderLine]:
    return [
        OrderLine(
            product_id=line.product_id,
            product_name=line.name,
            quantity=line.quantity,
            unit_price=line.price,
            total_price=round_money(line.line_total),
        )
        for line in lines
    ]


def send_to_kitchen(
    cart: Cart,
    table_id: str | None = None,
    order_type: OrderType = OrderType.TABLE,
    feed: ChangeFeed | None = None,
    now: datetime | None = None,
) -> Notice:
    """Submit the cart as a ``received`` order without payment."""
    if cart.is_empty():
        logger.info("send_to_kitchen_blocked reason=empty_cart")
        return _error("Empty cart", "Add products to the cart before sending to the kitchen.")

    now = now or datetime.now(timezone.utc)
    order_type = OrderType(order_type)
    order_number = generate_order_number(ORDER_NUMBER_PREFIX_KITCHEN, now)
    try:
        order = persistence.create_order(
            order_number=order_number,
            lines=_order_lines(cart.lines()),
            total=cart.total_price(),
            status=OrderStatus.RECEIVED,
            order_type=order_type,
            table_id=table_id,
            created_at=now,
        )
    except BackendFailure as exc:
        logger.error("send_to_kitchen_failed order_number=%s error=%s", order_number, exc)
        return _error("Error", "Could not send the order to the kitchen.")

    logger.info(
        "send_to_kitchen_saved order_id=%s order_number=%s items=%d table_id=%s",
        order.order_id,
        order.order_number,
        cart.total_items(),
        table_id,
    )
    cart.clear()

    warnings: list[str] = []
    topics = [TOPIC_ORDERS]
    if table_id and order_type is OrderType.TABLE:
        # Independent call: a failure here leaves the order stored with a stale table status.
        try:
            persistence.update_table_status(table_id, TableStatus.OCCUPIED)
            topics.append(TOPIC_TABLES)
        except BackendFailure as exc:
            logger.warning("table_occupy_failed order_id=%s table_id=%s error=%s", order.order_id, table_id, exc)
            warnings.append("Order sent, but the table status could not be updated.")

    _notify(feed, *topics)
    return Notice(
        ok=True,
        title="Order sent!",
        message=f"Order {order.order_number} sent to the kitchen.",
        level=LEVEL_WARNING if warnings else LEVEL_INFO,
        order=order,
        warnings=tuple(warnings),
    )


def finalize_sale(
    cart: Cart,
    method: PaymentMethod | str,
    tendered: Decimal | str | None = None,
    feed: ChangeFeed | None = None,
    now: datetime | None = None,
) -> Notice:
    """Settle and store a counter sale; the Notice carries the receipt to print."""
    if isinstance(tendered, str):
        try:
            tendered = parse_amount(tendered)
        except ValidationError as exc:
            return _error("Invalid amount", str(exc))

    try:
        result = checkout(cart, method, tendered, now=now)
    except InsufficientPayment as exc:
        logger.info("finalize_sale_blocked reason=insufficient_payment total=%s tendered=%s", exc.total, exc.tendered)
        return _error("Insufficient amount", "The amount paid must be greater than or equal to the total.")
    except ValidationError as exc:
        logger.info("finalize_sale_blocked reason=%r", str(exc))
        return _error("Cannot finalize sale", str(exc))

    settlement = result.settlement
    try:
        order = persistence.create_order(
            order_number=result.order_number,
            lines=_order_lines(cart.lines()),
            total=result.receipt.total,
            status=OrderStatus.DELIVERED,
            order_type=OrderType.TAKEAWAY,
            payment_method=settlement.method,
            amount_paid=settlement.amount_paid,
            change_amount=settlement.change_due,
            created_at=result.receipt.created_at,
        )
    except BackendFailure as exc:
        logger.error("finalize_sale_failed order_number=%s error=%s", result.order_number, exc)
        return _error("Error", "Could not finalize the sale.")

    logger.info(
        "finalize_sale_saved order_id=%s order_number=%s method=%s total=%s change=%s",
        order.order_id,
        order.order_number,
        settlement.method.value,
        order.total,
        settlement.change_due,
    )
    cart.clear()

    warnings: list[str] = []
    topics = [TOPIC_ORDERS]
    try:
        persistence.add_movement(
            MovementType.SALE,
            order.total,
            description=f"Sale {order.order_number}",
            payment_method=settlement.method,
            order_id=order.order_id,
            created_at=result.receipt.created_at,
        )
        topics.append(TOPIC_CASH)
    except BackendFailure as exc:
        logger.warning("ledger_sale_failed order_id=%s error=%s", order.order_id, exc)
        warnings.append("Sale stored, but the cash ledger entry could not be written.")

    _notify(feed, *topics)
    return Notice(
        ok=True,
        title="Sale finalized!",
        message=f"Sale {order.order_number} finalized.",
        level=LEVEL_WARNING if warnings else LEVEL_INFO,
        order=order,
        receipt=result.receipt,
        warnings=tuple(warnings),
    )


def _apply_intent(order_id: str, build_intent, feed: ChangeFeed | None) -> Notice:
    try:
        order = persistence.get_order(order_id)
    except BackendFailure as exc:
        logger.error("order_lookup_failed order_id=%s error=%s", order_id, exc)
        return _error("Error", "Could not update the order status.")
    if order is None:
        return _error("Order not found", f"Order {order_id} does not exist.")

    try:
        intent = build_intent(order)
    except IllegalTransition as exc:
        logger.info("transition_rejected order_id=%s error=%s", order_id, exc)
        return _error("Illegal status change", str(exc))

    try:
        persistence.update_order_status(
            intent.order_id,
            intent.to_status,
            updated_at=intent.requested_at,
            expected_status=intent.from_status,
        )
    except IllegalTransition as exc:
        logger.info("transition_stale order_id=%s error=%s", order_id, exc)
        return _error("Order changed", f"Order {order.order_number} was updated elsewhere; reload and try again.")
    except BackendFailure as exc:
        logger.error("transition_failed order_id=%s to=%s error=%s", order_id, intent.to_status.value, exc)
        return _error("Error", "Could not update the order status.")

    logger.info(
        "transition_saved order_id=%s from=%s to=%s",
        order_id,
        intent.from_status.value,
        intent.to_status.value,
    )
    _notify(feed, TOPIC_ORDERS)
    return Notice(
        ok=True,
        title=f"Order {lifecycle.label(intent.to_status).lower()}",
        message=f"Order {order.order_number} updated.",
    )


def advance_order(order_id: str, target: OrderStatus | None = None, feed: ChangeFeed | None = None) -> Notice:
    """Move an order one step forward, validated against its stored status."""
    return _apply_intent(
        order_id,
        lambda order: lifecycle.request_transition(order.order_id, order.status, target),
        feed,
    )


def cancel_order(order_id: str, feed: ChangeFeed | None = None) -> Notice:
    return _apply_intent(
        order_id,
        lambda order: lifecycle.request_cancellation(order.order_id, order.status),
        feed,
    )


def kitchen_orders(by_urgency: bool = False) -> list[Order]:
    """Active orders, oldest first, or most urgent status first when ``by_urgency`` is set."""
    orders = persistence.list_orders(statuses=lifecycle.ACTIVE_STATUSES, ascending=True)
    if by_urgency:
        orders.sort(key=lifecycle.urgency_sort_key)
    return orders


# Cash ledger


def cash_balance(movements: list[CashMovement]) -> Decimal:
    """Opening float plus sales minus withdrawals; close rows are informational."""
    balance = ZERO
    for movement in movements:
        if movement.movement_type in (MovementType.OPEN, MovementType.SALE):
            balance += movement.amount
        elif movement.movement_type is MovementType.WITHDRAWAL:
            balance -= movement.amount
    return round_money(balance)


def drawer_is_open(movements: list[CashMovement]) -> bool:
    types = {movement.movement_type for movement in movements}
    return MovementType.OPEN in types and MovementType.CLOSE not in types


def cash_summary(day: date | None = None) -> CashSummary:
    day = day or datetime.now(timezone.utc).date()
    movements = persistence.list_movements_for_day(day)
    return CashSummary(
        day=day,
        movements=movements,
        balance=cash_balance(movements),
        is_open=drawer_is_open(movements),
    )


def _load_summary(operation: str) -> CashSummary | Notice:
    try:
        return cash_summary()
    except BackendFailure as exc:
        logger.error("%s_failed error=%s", operation, exc)
        return _error("Error", "Could not read the cash ledger.")


def open_cash(opening_amount: Decimal = ZERO, feed: ChangeFeed | None = None) -> Notice:
    summary = _load_summary("open_cash")
    if isinstance(summary, Notice):
        return summary
    if summary.is_open:
        return _error("Drawer already open", "The cash drawer is already open.")
    if any(m.movement_type is MovementType.CLOSE for m in summary.movements):
        return _error("Drawer closed", "The cash drawer was already closed today.")

    try:
        persistence.add_movement(MovementType.OPEN, opening_amount, description=CASH_MOVEMENT_LABELS["open"])
    except (BackendFailure, ValidationError) as exc:
        logger.error("open_cash_failed error=%s", exc)
        return _error("Error", "Could not open the cash drawer.")

    logger.info("cash_opened amount=%s", opening_amount)
    _notify(feed, TOPIC_CASH)
    return Notice(ok=True, title="Drawer opened", message="Cash drawer opened.")


def withdraw_cash(amount: Decimal | str, description: str | None = None, feed: ChangeFeed | None = None) -> Notice:
    try:
        amount = parse_amount(amount) if isinstance(amount, str) else round_money(to_decimal(amount))
    except ValidationError as exc:
        return _error("Invalid amount", str(exc))
    if amount <= ZERO:
        return _error("Invalid amount", "Withdrawal must be greater than zero.")

    summary = _load_summary("withdraw_cash")
    if isinstance(summary, Notice):
        return summary
    if not summary.is_open:
        return _error("Drawer closed", "Open the cash drawer first.")
    if amount > summary.balance:
        return _error("Insufficient balance", f"Only {format_money(summary.balance)} in the drawer.")

    try:
        persistence.add_movement(
            MovementType.WITHDRAWAL,
            amount,
            description=(description or "").strip() or CASH_MOVEMENT_LABELS["withdrawal"],
        )
    except BackendFailure as exc:
        logger.error("withdraw_cash_failed error=%s", exc)
        return _error("Error", "Could not register the withdrawal.")

    logger.info("cash_withdrawn amount=%s", amount)
    _notify(feed, TOPIC_CASH)
    return Notice(ok=True, title="Withdrawal registered", message=f"{format_money(amount)} withdrawn.")


def close_cash(feed: ChangeFeed | None = None) -> Notice:
    summary = _load_summary("close_cash")
    if isinstance(summary, Notice):
        return summary
    if not summary.is_open:
        return _error("Drawer not open", "The cash drawer is not open.")

    try:
        persistence.add_movement(
            MovementType.CLOSE,
            summary.balance,
            description=f"{CASH_MOVEMENT_LABELS['close']} - Total: {format_money(summary.balance)}",
        )
    except BackendFailure as exc:
        logger.error("close_cash_failed error=%s", exc)
        return _error("Error", "Could not close the cash drawer.")

    logger.info("cash_closed balance=%s", summary.balance)
    _notify(feed, TOPIC_CASH)
    return Notice(ok=True, title="Drawer closed", message=f"Drawer closed. Total: {format_money(summary.balance)}")


# Catalog


def register_product(
    name: str,
    price: Decimal | str,
    category: str,
    description: str | None = None,
    feed: ChangeFeed | None = None,
) -> Notice:
    try:
        price = parse_amount(price) if isinstance(price, str) else price
        product: Product = persistence.add_product(name, price, category, description)
    except ValidationError as exc:
        return _error("Invalid product", str(exc))
    except BackendFailure as exc:
        logger.error("register_product_failed name=%r error=%s", name, exc)
        return _error("Error", "Could not add the product.")

    logger.info("product_added product_id=%s name=%r", product.product_id, product.name)
    _notify(feed, TOPIC_PRODUCTS)
    return Notice(ok=True, title="Product added", message=f"{product.name} registered.")
