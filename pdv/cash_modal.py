"""Cash drawer management modal screen."""

from __future__ import annotations

import logging

from rich.text import Text
from textual.app import ComposeResult
from textual.containers import Container
from textual.events import Key
from textual.screen import ModalScreen
from textual.widgets import Static

from pdv import services
from pdv.constant import CASH_MOVEMENT_LABELS
from pdv.errors import BackendFailure
from pdv.feed import TOPIC_CASH, ChangeFeed, Unsubscribe
from pdv.models import MovementType
from pdv.money import format_money
from pdv.printer import print_close_report

logger = logging.getLogger(__name__)

_RECENT_ROWS = 5


class CashModal(ModalScreen[None]):
    """Open, withdraw from and close today's cash drawer."""

    CSS = """
    CashModal {
        align: center middle;
        background: $background 60%;
    }

    #cash-dialog {
        width: 64;
        height: auto;
        border: round $secondary;
        background: $panel;
        padding: 1 2;
    }

    #cash-title {
        text-style: bold;
        margin-bottom: 1;
        color: white;
    }

    #cash-body {
        color: white;
        margin-bottom: 1;
    }

    #cash-status {
        color: #dddddd;
        margin-bottom: 1;
    }

    #cash-help {
        color: #dddddd;
    }
    """

    def __init__(self, feed: ChangeFeed | None = None) -> None:
        super().__init__()
        self.feed = feed
        self.summary: services.CashSummary | None = None
        self.withdrawing = False
        self.value = ""
        self.status = ""
        self._unsubscribe: Unsubscribe | None = None

    def compose(self) -> ComposeResult:
        with Container(id="cash-dialog"):
            yield Static("Cash Drawer", id="cash-title")
            yield Static(id="cash-body")
            yield Static(id="cash-status")
            yield Static(id="cash-help")

    def on_mount(self) -> None:
        if self.feed is not None:
            self._unsubscribe = self.feed.subscribe(TOPIC_CASH, self._reload)
        self._reload()

    def on_unmount(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def on_key(self, event: Key) -> None:
        if self.withdrawing:
            self._on_withdraw_key(event)
            return

        if event.key in {"escape", "q", "ctrl+c"}:
            self.dismiss(None)
            event.stop()
            return

        if not event.is_printable or not event.character:
            return
        key = event.character.lower()
        if key == "o":
            self._show(services.open_cash(feed=self.feed))
        elif key == "w":
            self.withdrawing = True
            self.value = ""
            self.status = ""
            self._refresh_content()
        elif key == "c":
            notice = services.close_cash(feed=self.feed)
            self._show(notice)
            if notice.ok:
                self._print_report()
        elif key == "p":
            self._print_report()
        event.stop()

    def _on_withdraw_key(self, event: Key) -> None:
        event.stop()
        if event.key in {"escape", "ctrl+c"}:
            self.withdrawing = False
            self.status = ""
            self._refresh_content()
            return
        if event.key == "enter":
            notice = services.withdraw_cash(self.value, feed=self.feed)
            if notice.ok:
                self.withdrawing = False
            self._show(notice)
            return
        if event.key == "backspace":
            self.value = self.value[:-1]
            self._refresh_content()
            return
        char = event.character or ""
        if event.is_printable and (char.isdigit() or (char in {".", ","} and not any(s in self.value for s in ".,"))):
            if len(self.value) < 10:
                self.value += char
            self._refresh_content()

    def _show(self, notice: services.Notice) -> None:
        self.status = f"{notice.title}: {notice.message}" if notice.message else notice.title
        self._reload()

    def _print_report(self) -> None:
        if self.summary is None:
            return
        try:
            print_close_report(self.summary.movements, self.summary.balance)
        except Exception as exc:
            logger.warning("close_report_print_failed error=%r", exc)
            self.status = f"Report print failed: {exc}"
            self._refresh_content()
            return
        self.status = "Report printed"
        self._refresh_content()

    def _reload(self) -> None:
        try:
            self.summary = services.cash_summary()
        except BackendFailure as exc:
            logger.error("cash_summary_failed error=%s", exc)
            self.status = "Could not read the cash ledger."
        self._refresh_content()

    def _refresh_content(self) -> None:
        body = Text()
        if self.summary is not None:
            state = "OPEN" if self.summary.is_open else "CLOSED"
            body.append(f"Drawer: {state}\n", style="bold")
            body.append("Total in drawer: ")
            body.append(format_money(self.summary.balance), style="bold #5fbf72")
            if self.summary.movements:
                body.append("\n\nLatest movements:")
            for movement in self.summary.movements[:_RECENT_ROWS]:
                sign = "-" if movement.movement_type is MovementType.WITHDRAWAL else "+"
                label = movement.description or CASH_MOVEMENT_LABELS[movement.movement_type.value]
                body.append(f"\n  {label}  {sign}{format_money(movement.amount)}")
        if self.withdrawing:
            body.append(f"\n\nWithdraw amount: {self.value or '0,00'}", style="bold")
        self.query_one("#cash-body", Static).update(body)
        self.query_one("#cash-status", Static).update(self.status)
        help_text = (
            "Digits amount. Enter confirm. Esc cancel."
            if self.withdrawing
            else "o open  w withdraw  c close + report  p print report  Esc back"
        )
        self.query_one("#cash-help", Static).update(help_text)
