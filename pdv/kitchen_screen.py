"""Kitchen terminal screen: active orders and status advancement."""

from __future__ import annotations

import logging

from rich.text import Text
from textual.app import ComposeResult
from textual.containers import Vertical
from textual.css.query import NoMatches
from textual.screen import Screen
from textual.widgets import Header, Static

from pdv import persistence, services
from pdv.errors import BackendFailure
from pdv.feed import TOPIC_ORDERS, TOPIC_TABLES, ChangeFeed, Unsubscribe
from pdv.models import Order
from pdv.pos_screen import visible_rows, window_bounds
from pdv.rendering import format_order_card

logger = logging.getLogger(__name__)

# Order ages are re-rendered even when nothing changed in the store.
_AGE_REFRESH_SECONDS = 30.0


class KitchenScreen(Screen):
    """Active orders oldest-first (or by urgency); Enter moves the selected order one step forward."""

    CSS = """
    #kitchen-pane {
        height: 1fr;
        border: round $primary;
        padding: 1;
    }

    #kitchen-status {
        border: heavy $secondary;
        padding: 0 1;
        margin-bottom: 1;
        height: 4;
    }

    #kitchen-orders {
        height: 1fr;
        border: tall $surface;
        padding: 0 1;
    }
    """

    BINDINGS = [
        ("j", "move_selection(1)", "Next order"),
        ("k", "move_selection(-1)", "Previous order"),
        ("down", "move_selection(1)", "Next order"),
        ("up", "move_selection(-1)", "Previous order"),
        ("enter", "advance_selected", "Advance status"),
        ("x", "cancel_selected", "Cancel order"),
        ("r", "reload", "Reload"),
        ("u", "toggle_urgency", "Sort by urgency"),
        ("q", "back", "Back"),
        ("escape", "back", "Back"),
    ]

    def __init__(self, feed: ChangeFeed | None = None) -> None:
        super().__init__()
        self.feed = feed
        self.orders: list[Order] = []
        self.table_numbers: dict[str, int] = {}
        self.by_urgency = False
        self.selected_index: int | None = None
        self.system_status = ""
        self._unsubscribers: list[Unsubscribe] = []

    def compose(self) -> ComposeResult:
        yield Header()
        with Vertical(id="kitchen-pane"):
            yield Static(id="kitchen-status")
            yield Static("Loading orders...", id="kitchen-orders")

    def on_mount(self) -> None:
        if self.feed is not None:
            self._unsubscribers.append(self.feed.subscribe(TOPIC_ORDERS, self.action_reload))
            self._unsubscribers.append(self.feed.subscribe(TOPIC_TABLES, self.action_reload))
        self.set_interval(_AGE_REFRESH_SECONDS, self._refresh_orders)
        self.action_reload()

    def on_unmount(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()

    def action_reload(self) -> None:
        """Re-fetch the full active set; notifications carry no payload."""
        selected_id = self._selected_order_id()
        try:
            self.orders = services.kitchen_orders(by_urgency=self.by_urgency)
            self.table_numbers = {table.table_id: table.table_number for table in persistence.list_tables()}
        except BackendFailure as exc:
            logger.error("kitchen_fetch_failed error=%s", exc)
            self.system_status = "Could not load orders"
        ids = [order.order_id for order in self.orders]
        if selected_id in ids:
            self.selected_index = ids.index(selected_id)
        elif not self.orders:
            self.selected_index = None
        elif self.selected_index is None:
            self.selected_index = 0
        else:
            self.selected_index = min(self.selected_index, len(self.orders) - 1)
        self._refresh_orders()

    def action_toggle_urgency(self) -> None:
        self.by_urgency = not self.by_urgency
        self.action_reload()

    def action_move_selection(self, delta: int) -> None:
        if not self.orders:
            return
        if self.selected_index is None:
            self.selected_index = 0 if delta > 0 else len(self.orders) - 1
        else:
            self.selected_index = (self.selected_index + delta) % len(self.orders)
        self._refresh_orders()

    def action_advance_selected(self) -> None:
        order_id = self._selected_order_id()
        if order_id is None:
            return
        self._show(services.advance_order(order_id, feed=self.feed))

    def action_cancel_selected(self) -> None:
        order_id = self._selected_order_id()
        if order_id is None:
            return
        self._show(services.cancel_order(order_id, feed=self.feed))

    def action_back(self) -> None:
        self.app.pop_screen()

    def _show(self, notice: services.Notice) -> None:
        self.system_status = f"{notice.title}: {notice.message}" if notice.message else notice.title
        if self.feed is None:
            self.action_reload()
        else:
            self._refresh_orders()

    def _selected_order_id(self) -> str | None:
        if self.selected_index is None or not (0 <= self.selected_index < len(self.orders)):
            return None
        return self.orders[self.selected_index].order_id

    def _refresh_orders(self) -> None:
        try:
            status_widget = self.query_one("#kitchen-status", Static)
            orders_widget = self.query_one("#kitchen-orders", Static)
        except NoMatches:
            return

        header = Text()
        header.append(f"{len(self.orders)} active orders", style="bold")
        header.append(" (most urgent first)" if self.by_urgency else " (oldest first)", style="dim")
        header.append("   j/k select  Enter advance  x cancel  u sort  r reload  q back", style="dim")
        header.append(f"\n{self.system_status or 'Ready'}", style="dim")
        status_widget.update(header)

        if not self.orders:
            orders_widget.update("No active orders. New orders show up here automatically.")
            return

        # Cards are several lines tall; keep roughly one card per four rows.
        rows = max(1, visible_rows(orders_widget) // 4)
        start, end = window_bounds(len(self.orders), rows, self.selected_index)
        lines = Text()
        if start > 0:
            lines.append("⋮\n", style="dim")
        for idx in range(start, end):
            if idx > start:
                lines.append("\n\n")
            order = self.orders[idx]
            lines.append("➤ " if idx == self.selected_index else "  ")
            table_number = self.table_numbers.get(order.table_id) if order.table_id else None
            lines.append_text(format_order_card(order, table_number=table_number))
        if end < len(self.orders):
            lines.append("\n⋮", style="dim")
        orders_widget.update(lines)
