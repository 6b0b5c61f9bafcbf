"""Rich text helpers shared by the terminal screens."""

from __future__ import annotations

from datetime import datetime

from rich.text import Text

from pdv import lifecycle
from pdv.constant import PAYMENT_METHOD_LABELS, TABLE_STATUS_META
from pdv.models import CartLine, Order, OrderStatus, OrderType, Product, Table
from pdv.money import format_money


def status_badge(status: OrderStatus) -> Text:
    """Render a colored status tag."""
    meta = lifecycle.display_metadata(status)
    return Text(f" {meta.label} ", style=meta.badge_style)


def table_badge(table: Table) -> Text:
    meta = TABLE_STATUS_META[table.status.value]
    text = Text()
    text.append(f"T{table.table_number:02d}", style="bold")
    text.append(" ")
    text.append(f" {meta['label']} ", style=meta["badge_style"])
    return text


def format_product_row(product: Product, in_cart: int = 0) -> Text:
    text = Text()
    text.append(product.name)
    text.append(f"  {format_money(product.price)}", style="bold")
    if in_cart:
        text.append(f"  x{in_cart}", style="bold #5fbf72")
    return text


def format_cart_line(line: CartLine) -> Text:
    text = Text()
    text.append(f"{line.quantity}x ", style="bold")
    text.append(line.name)
    text.append(f"  {format_money(line.line_total)}", style="dim")
    return text


def format_order_card(order: Order, now: datetime | None = None, table_number: int | None = None) -> Text:
    """Kitchen card: number, status, age, destination and item list."""
    text = Text()
    text.append(f"Order {order.order_number} ", style="bold")
    text.append_text(status_badge(order.status))
    age = lifecycle.format_elapsed(lifecycle.elapsed_since(order.created_at, now))
    text.append("  just now" if age == "now" else f"  {age} ago", style="dim")
    if order.order_type is OrderType.TABLE and table_number is not None:
        text.append(f"  Table {table_number}", style="bold")
    elif order.order_type is OrderType.TAKEAWAY:
        text.append("  Takeaway", style="bold")
    for line in order.lines:
        text.append(f"\n      {line.quantity}x {line.product_name}")
    meta = lifecycle.display_metadata(order.status)
    if meta.action_label:
        text.append(f"\n      [Enter] {meta.action_label}", style="italic dim")
    return text


def format_order_summary(order: Order) -> str:
    method = PAYMENT_METHOD_LABELS.get(order.payment_method.value, "") if order.payment_method else "-"
    return f"{order.order_number}  {lifecycle.label(order.status)}  {format_money(order.total)}  {method}"
