"""Main Textual app class and terminal selector."""

from __future__ import annotations

import logging

from rich.text import Text
from textual.app import App, ComposeResult
from textual.containers import Container
from textual.screen import Screen
from textual.widgets import Header, Static

from pdv import persistence
from pdv.config import FEED_POLL_SECONDS, STORE_NAME
from pdv.errors import BackendFailure
from pdv.feed import ChangeFeed
from pdv.kitchen_screen import KitchenScreen
from pdv.pos_screen import PosScreen
from pdv.printer import check_printer_dependencies

logger = logging.getLogger(__name__)


class SelectorScreen(Screen):
    """Choose which terminal this session runs."""

    BINDINGS = [
        ("1", "open_pos", "PDV terminal"),
        ("p", "open_pos", "PDV terminal"),
        ("2", "open_kitchen", "Kitchen terminal"),
        ("k", "open_kitchen", "Kitchen terminal"),
        ("q", "quit", "Quit"),
    ]

    CSS = """
    SelectorScreen {
        align: center middle;
    }

    #selector-dialog {
        width: 60;
        height: auto;
        border: round $secondary;
        padding: 1 2;
    }

    #selector-title {
        text-style: bold;
        margin-bottom: 1;
    }

    #selector-status {
        margin-top: 1;
        color: $text-muted;
    }
    """

    def compose(self) -> ComposeResult:
        yield Header()
        with Container(id="selector-dialog"):
            yield Static("PDV & Kitchen System", id="selector-title")
            yield Static(id="selector-body")
            yield Static(id="selector-status")

    def on_mount(self) -> None:
        body = Text()
        body.append("1", style="bold reverse")
        body.append("  PDV terminal: take orders, process sales, manage the cash drawer\n")
        body.append("2", style="bold reverse")
        body.append("  Kitchen terminal: follow and advance active orders\n\n")
        body.append("q  quit", style="dim")
        self.query_one("#selector-body", Static).update(body)
        self.query_one("#selector-status", Static).update(getattr(self.app, "system_status", ""))

    def action_open_pos(self) -> None:
        logger.info("terminal_selected terminal=pdv")
        self.app.push_screen(PosScreen(getattr(self.app, "feed", None)))

    def action_open_kitchen(self) -> None:
        logger.info("terminal_selected terminal=kitchen")
        self.app.push_screen(KitchenScreen(getattr(self.app, "feed", None)))

    async def action_quit(self) -> None:
        await self.app.action_quit()


class PdvApp(App):
    """PDV and kitchen terminals over a shared store."""

    TITLE = "PDV & Kitchen"
    SUB_TITLE = STORE_NAME

    BINDINGS = [
        ("ctrl+q", "quit", "Quit"),
    ]

    def __init__(self, seed: bool = True) -> None:
        super().__init__()
        self.seed = seed
        self.feed = ChangeFeed(persistence.db_file())
        self.system_status = ""

    def on_mount(self) -> None:
        try:
            persistence.bootstrap_schema()
            if self.seed:
                persistence.seed_defaults()
        except BackendFailure as exc:
            logger.error("store_bootstrap_failed error=%s", exc)
            self.system_status = f"Store unavailable: {exc}"
        _, printer_msg = check_printer_dependencies()
        self.system_status = self.system_status or printer_msg
        logger.info("app_mounted printer_status=%r", printer_msg)
        self.feed.poll()
        self.set_interval(FEED_POLL_SECONDS, self.feed.poll)
        self.push_screen(SelectorScreen())

    def on_unmount(self) -> None:
        self.feed.close()
