"""PDV terminal screen: catalog search, cart, kitchen submission and checkout."""

from __future__ import annotations

import logging

from rich.text import Text
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.css.query import NoMatches
from textual.events import Key
from textual.screen import Screen
from textual.widgets import Header, Static

from pdv import persistence, services
from pdv.cart import Cart
from pdv.cash_modal import CashModal
from pdv.checkout_modal import CheckoutModal, CheckoutRequest
from pdv.errors import BackendFailure
from pdv.feed import TOPIC_PRODUCTS, TOPIC_TABLES, ChangeFeed, Unsubscribe
from pdv.models import OrderType, Product, Table
from pdv.money import format_money
from pdv.printer import print_receipt
from pdv.product_modal import ProductDraft, ProductModal
from pdv.rendering import format_cart_line, format_order_summary, format_product_row
from pdv.table_modal import TableChoice, TableModal

logger = logging.getLogger(__name__)

ALL_CATEGORIES = "All"


def window_bounds(total: int, rows: int, selected: int | None) -> tuple[int, int]:
    """Visible slice of a scrolling list that keeps ``selected`` centered."""
    if total <= 0:
        return (0, 0)

    rows = max(1, rows)
    if total <= rows:
        return (0, total)

    if selected is None:
        start = 0
    else:
        half = rows // 2
        start = selected - half
        start = max(0, start)
        start = min(start, total - rows)

    return (start, start + rows)


def visible_rows(widget: Static) -> int:
    height = widget.size.height
    if height <= 0:
        return 8
    return max(1, height)


class PosScreen(Screen):
    """Point-of-sale terminal."""

    CSS = """
    #pos-layout {
        height: 1fr;
    }

    #catalog-pane {
        width: 3fr;
        border: round $secondary;
        padding: 1;
    }

    #cart-pane {
        width: 2fr;
        border: round $primary;
        padding: 1;
    }

    #search-bar {
        border: heavy $secondary;
        padding: 0 1;
        margin-bottom: 1;
        height: 4;
    }

    #results {
        height: 1fr;
        border: tall $surface;
        padding: 0 1;
    }

    #cart-list {
        height: 1fr;
        border: tall $surface;
        padding: 0 1;
    }

    #cart-footer {
        height: auto;
        padding: 0 1;
    }

    .pane-title {
        text-style: bold;
        margin-bottom: 1;
    }
    """

    BINDINGS = [
        ("up", "cycle_results(-1)", "Previous product"),
        ("down", "cycle_results(1)", "Next product"),
        ("enter", "add_selected", "Add to cart"),
        ("backspace", "backspace_query", "Delete query char"),
        ("ctrl+c", "cancel_search", "Exit search"),
    ]

    def __init__(self, feed: ChangeFeed | None = None) -> None:
        super().__init__()
        self.feed = feed
        self.cart = Cart()
        self.products: list[Product] = []
        self.tables: list[Table] = []
        self.category = ALL_CATEGORIES
        self.searching = False
        self.search_text = ""
        self.selected_index = 0
        self.cart_selected_index: int | None = None
        self.order_type = OrderType.TAKEAWAY
        self.table: Table | None = None
        self.system_status = ""
        self._unsubscribers: list[Unsubscribe] = []

    def compose(self) -> ComposeResult:
        yield Header()
        with Horizontal(id="pos-layout"):
            with Vertical(id="catalog-pane"):
                yield Static(id="search-bar")
                yield Static(id="results")
            with Vertical(id="cart-pane"):
                yield Static("Cart", classes="pane-title")
                yield Static("(cart is empty)", id="cart-list")
                yield Static(id="cart-footer")

    def on_mount(self) -> None:
        if self.feed is not None:
            self._unsubscribers.append(self.feed.subscribe(TOPIC_PRODUCTS, self._reload_products))
            self._unsubscribers.append(self.feed.subscribe(TOPIC_TABLES, self._reload_tables))
        self._reload_products()
        self._reload_tables()

    def on_unmount(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()

    # Data

    def _reload_products(self) -> None:
        try:
            self.products = persistence.list_active_products()
        except BackendFailure as exc:
            logger.error("products_fetch_failed error=%s", exc)
            self.system_status = "Could not load products"
        if self.category != ALL_CATEGORIES and self.category not in self._categories():
            self.category = ALL_CATEGORIES
        self._refresh_all()

    def _reload_tables(self) -> None:
        try:
            self.tables = persistence.list_tables()
        except BackendFailure as exc:
            logger.error("tables_fetch_failed error=%s", exc)
            self.system_status = "Could not load tables"
        if self.table is not None:
            self.table = next((t for t in self.tables if t.table_id == self.table.table_id), None)
            if self.table is None:
                self.order_type = OrderType.TAKEAWAY
        self._refresh_cart()

    def _categories(self) -> list[str]:
        seen: list[str] = []
        for product in self.products:
            if product.category not in seen:
                seen.append(product.category)
        return seen

    def _filtered_results(self) -> list[Product]:
        source = self.products
        if self.category != ALL_CATEGORIES:
            source = [product for product in source if product.category == self.category]
        if not self.search_text:
            return source
        q = self.search_text.lower()
        return [product for product in source if q in product.name.lower()]

    # Keys

    def on_key(self, event: Key) -> None:
        if not event.is_printable or not event.character or len(event.character) != 1:
            return

        char = event.character
        if self.searching:
            if char.isprintable():
                self.search_text += char
                self.selected_index = 0
                self._refresh_catalog()
                event.stop()
            return

        key = char.lower()
        handlers = {
            "/": self._start_search,
            "c": self._cycle_category,
            "j": lambda: self._move_cart_selection(1),
            "k": lambda: self._move_cart_selection(-1),
            "+": lambda: self._change_selected_quantity(1),
            "=": lambda: self._change_selected_quantity(1),
            "-": lambda: self._change_selected_quantity(-1),
            "d": self._delete_selected_line,
            "x": self._clear_cart,
            "t": self._open_tables,
            "s": self._send_to_kitchen,
            "f": self._open_checkout,
            "n": self._open_product_form,
            "m": self._open_cash,
            "q": self.app.pop_screen,
        }
        handler = handlers.get(key)
        if handler is None:
            return
        handler()
        event.stop()

    def action_cycle_results(self, delta: int) -> None:
        results = self._filtered_results()
        if not results:
            self.selected_index = 0
            self._refresh_catalog()
            return
        self.selected_index = (self.selected_index + delta) % len(results)
        self._refresh_catalog()

    def action_add_selected(self) -> None:
        results = self._filtered_results()
        if not results:
            return
        if self.selected_index >= len(results):
            self.selected_index = 0
        product = results[self.selected_index]
        self.cart.add_item(product)
        self.cart_selected_index = [line.product_id for line in self.cart.lines()].index(product.product_id)
        self._refresh_all()

    def action_backspace_query(self) -> None:
        if not self.searching or not self.search_text:
            return
        self.search_text = self.search_text[:-1]
        self.selected_index = 0
        self._refresh_catalog()

    def action_cancel_search(self) -> None:
        if not self.searching:
            return
        self.searching = False
        self.search_text = ""
        self.selected_index = 0
        self._refresh_catalog()

    def _start_search(self) -> None:
        self.searching = True
        self.search_text = ""
        self.selected_index = 0
        self._refresh_catalog()

    def _cycle_category(self) -> None:
        options = [ALL_CATEGORIES, *self._categories()]
        idx = options.index(self.category) if self.category in options else 0
        self.category = options[(idx + 1) % len(options)]
        self.selected_index = 0
        self._refresh_catalog()

    # Cart

    def _move_cart_selection(self, delta: int) -> None:
        count = len(self.cart)
        if not count:
            return
        if self.cart_selected_index is None:
            self.cart_selected_index = 0 if delta > 0 else count - 1
        else:
            self.cart_selected_index = (self.cart_selected_index + delta) % count
        self._refresh_cart()

    def _selected_line_id(self) -> str | None:
        lines = self.cart.lines()
        if self.cart_selected_index is None or not (0 <= self.cart_selected_index < len(lines)):
            return None
        return lines[self.cart_selected_index].product_id

    def _change_selected_quantity(self, delta: int) -> None:
        product_id = self._selected_line_id()
        if product_id is None:
            return
        self.cart.set_quantity(product_id, max(0, self.cart.quantity_of(product_id) + delta))
        self._clamp_cart_selection()
        self._refresh_all()

    def _delete_selected_line(self) -> None:
        product_id = self._selected_line_id()
        if product_id is None:
            return
        self.cart.remove_item(product_id)
        self._clamp_cart_selection()
        self._refresh_all()

    def _clear_cart(self) -> None:
        self.cart.clear()
        self.cart_selected_index = None
        self._refresh_all()

    def _clamp_cart_selection(self) -> None:
        count = len(self.cart)
        if not count:
            self.cart_selected_index = None
        elif self.cart_selected_index is not None:
            self.cart_selected_index = min(self.cart_selected_index, count - 1)

    # Submission

    def _send_to_kitchen(self) -> None:
        table_id = self.table.table_id if self.order_type is OrderType.TABLE and self.table else None
        notice = services.send_to_kitchen(self.cart, table_id=table_id, order_type=self.order_type, feed=self.feed)
        self._show_notice(notice)
        if notice.ok:
            self.cart_selected_index = None
            self._refresh_all()

    def _open_checkout(self) -> None:
        if self.cart.is_empty():
            self.system_status = "Empty cart: add products first"
            self._refresh_catalog()
            return
        self.app.push_screen(CheckoutModal(self.cart.lines(), self.cart.total_price()), self._on_checkout)

    def _on_checkout(self, request: CheckoutRequest | None) -> None:
        if request is None:
            return
        notice = services.finalize_sale(self.cart, request.method, request.tendered, feed=self.feed)
        self._show_notice(notice)
        if not notice.ok or notice.receipt is None:
            return
        self.cart_selected_index = None
        try:
            print_receipt(notice.receipt)
        except Exception as exc:
            logger.warning("receipt_print_failed order_number=%s error=%r", notice.receipt.order_number, exc)
            self.system_status = f"Sale {notice.receipt.order_number} saved but print failed: {exc}"
        self._refresh_all()

    def _open_tables(self) -> None:
        selected = self.table.table_id if self.table is not None else None
        self.app.push_screen(TableModal(self.tables, selected), self._on_table_chosen)

    def _on_table_chosen(self, choice: TableChoice | None) -> None:
        if choice is None:
            return
        self.order_type = choice.order_type
        self.table = choice.table
        self._refresh_cart()

    def _open_product_form(self) -> None:
        self.app.push_screen(ProductModal(self._categories()), self._on_product_draft)

    def _on_product_draft(self, draft: ProductDraft | None) -> None:
        if draft is None:
            return
        notice = services.register_product(
            draft.name, draft.price, draft.category, draft.description or None, feed=self.feed
        )
        self._show_notice(notice)
        if self.feed is None:
            self._reload_products()

    def _open_cash(self) -> None:
        self.app.push_screen(CashModal(self.feed))

    def _show_notice(self, notice: services.Notice) -> None:
        text = f"{notice.title} {notice.message}".strip()
        if notice.ok and notice.order is not None:
            text = f"{notice.title} {format_order_summary(notice.order)}"
        if notice.warnings:
            text = f"{text} ({' '.join(notice.warnings)})"
        self.system_status = text
        self._refresh_catalog()

    # Rendering

    def _refresh_all(self) -> None:
        self._refresh_catalog()
        self._refresh_cart()

    def _refresh_catalog(self) -> None:
        try:
            bar = self.query_one("#search-bar", Static)
            results_widget = self.query_one("#results", Static)
        except NoMatches:
            return

        header = Text()
        header.append(f" {self.category} ", style="bold reverse")
        if self.searching:
            header.append(f"  /{self.search_text}")
        else:
            header.append("  / search  c category  Enter add  n new product  m cash  q back")
        header.append(f"\n{self.system_status or 'Ready'}", style="dim")
        bar.update(header)

        results = self._filtered_results()
        if not results:
            results_widget.update("No products")
            return
        if self.selected_index >= len(results):
            self.selected_index = 0

        start, end = window_bounds(len(results), visible_rows(results_widget), self.selected_index)
        lines = Text()
        if start > 0:
            lines.append("⋮\n", style="dim")
        for idx in range(start, end):
            if idx > start:
                lines.append("\n")
            lines.append("➤ " if idx == self.selected_index else "  ")
            lines.append_text(format_product_row(results[idx], self.cart.quantity_of(results[idx].product_id)))
        if end < len(results):
            lines.append("\n⋮", style="dim")
        results_widget.update(lines)

    def _refresh_cart(self) -> None:
        try:
            cart_widget = self.query_one("#cart-list", Static)
            footer = self.query_one("#cart-footer", Static)
        except NoMatches:
            return

        lines_list = self.cart.lines()
        if not lines_list:
            self.cart_selected_index = None
            cart_widget.update("(cart is empty)")
        else:
            start, end = window_bounds(len(lines_list), visible_rows(cart_widget), self.cart_selected_index)
            lines = Text()
            if start > 0:
                lines.append("⋮\n", style="dim")
            for idx in range(start, end):
                if idx > start:
                    lines.append("\n")
                lines.append("➤ " if idx == self.cart_selected_index else "  ")
                lines.append_text(format_cart_line(lines_list[idx]))
            if end < len(lines_list):
                lines.append("\n⋮", style="dim")
            cart_widget.update(lines)

        summary = Text()
        destination = f"Table {self.table.table_number}" if self.order_type is OrderType.TABLE and self.table else "Takeaway"
        summary.append(f"{self.cart.total_items()} items  ")
        summary.append(format_money(self.cart.total_price()), style="bold")
        summary.append(f"\nDestination: {destination}")
        summary.append("\nj/k select  +/- qty  d remove  x clear  t table  s kitchen  f finalize", style="dim")
        footer.update(summary)
