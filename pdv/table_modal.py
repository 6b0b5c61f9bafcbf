"""Table / takeaway selection modal screen."""

from __future__ import annotations

from dataclasses import dataclass

from rich.text import Text
from textual.app import ComposeResult
from textual.containers import Container
from textual.screen import ModalScreen
from textual.widgets import Static

from pdv.models import OrderType, Table
from pdv.rendering import table_badge


@dataclass(frozen=True)
class TableChoice:
    order_type: OrderType
    table: Table | None = None


class TableModal(ModalScreen[TableChoice | None]):
    """Pick the destination of the next kitchen order."""

    BINDINGS = [
        ("escape", "close", "Close"),
        ("q", "close", "Close"),
        ("j", "move_cursor(1)", "Next"),
        ("k", "move_cursor(-1)", "Previous"),
        ("down", "move_cursor(1)", "Next"),
        ("up", "move_cursor(-1)", "Previous"),
        ("enter", "choose", "Choose"),
    ]

    CSS = """
    TableModal {
        align: center middle;
        background: $background 60%;
    }

    #tables-dialog {
        width: 48;
        height: auto;
        border: round $secondary;
        background: $panel;
        padding: 1 2;
    }

    #tables-title {
        text-style: bold;
        margin-bottom: 1;
        color: white;
    }

    #tables-help {
        margin-top: 1;
        color: #dddddd;
    }
    """

    def __init__(self, tables: list[Table], selected_table_id: str | None = None) -> None:
        super().__init__()
        self.tables = tables
        self.cursor_index = 0
        # Row 0 is takeaway; tables follow in number order.
        for idx, table in enumerate(tables, start=1):
            if table.table_id == selected_table_id:
                self.cursor_index = idx
                break

    def compose(self) -> ComposeResult:
        with Container(id="tables-dialog"):
            yield Static("Tables", id="tables-title")
            yield Static(id="tables-body")
            yield Static("j/k move. Enter choose. Esc close.", id="tables-help")

    def on_mount(self) -> None:
        self._refresh_body()

    def action_move_cursor(self, delta: int) -> None:
        total = len(self.tables) + 1
        self.cursor_index = (self.cursor_index + delta) % total
        self._refresh_body()

    def action_choose(self) -> None:
        if self.cursor_index == 0:
            self.dismiss(TableChoice(order_type=OrderType.TAKEAWAY))
            return
        self.dismiss(TableChoice(order_type=OrderType.TABLE, table=self.tables[self.cursor_index - 1]))

    def action_close(self) -> None:
        self.dismiss(None)

    def _refresh_body(self) -> None:
        lines = Text()
        lines.append("➤ " if self.cursor_index == 0 else "  ")
        lines.append("Takeaway", style="bold")
        for idx, table in enumerate(self.tables, start=1):
            lines.append("\n")
            lines.append("➤ " if idx == self.cursor_index else "  ")
            lines.append_text(table_badge(table))
        self.query_one("#tables-body", Static).update(lines)
