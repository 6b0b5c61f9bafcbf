"""Payment entry modal screen for finalizing a sale."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from rich.text import Text
from textual.app import ComposeResult
from textual.containers import Container
from textual.events import Key
from textual.screen import ModalScreen
from textual.widgets import Static

from pdv.checkout import settle
from pdv.constant import PAYMENT_METHOD_LABELS
from pdv.errors import InsufficientPayment, ValidationError
from pdv.models import CartLine, PaymentMethod
from pdv.money import format_money, parse_amount

_METHOD_ORDER: tuple[PaymentMethod, ...] = (PaymentMethod.CASH, PaymentMethod.PIX, PaymentMethod.CARD)


@dataclass(frozen=True)
class CheckoutRequest:
    method: PaymentMethod
    tendered: Decimal | None


class CheckoutModal(ModalScreen[CheckoutRequest | None]):
    """Pick a payment method and, for cash, type the amount received."""

    CSS = """
    CheckoutModal {
        align: center middle;
        background: $background 60%;
    }

    #checkout-dialog {
        width: 60;
        height: auto;
        border: round $secondary;
        background: $panel;
        padding: 1 2;
    }

    #checkout-title {
        text-style: bold;
        margin-bottom: 1;
        color: white;
    }

    #checkout-summary {
        color: white;
        margin-bottom: 1;
    }

    #checkout-methods {
        color: white;
        margin-bottom: 1;
    }

    #checkout-tendered {
        border: heavy $secondary;
        padding: 0 1;
        color: white;
        margin-bottom: 1;
    }

    #checkout-error {
        color: #ffb3b3;
        margin-bottom: 1;
    }

    #checkout-help {
        color: #dddddd;
    }
    """

    def __init__(self, lines: list[CartLine], total: Decimal) -> None:
        super().__init__()
        self.lines = lines
        self.total = total
        self.method = PaymentMethod.CASH
        self.value = ""
        self.error = ""

    def compose(self) -> ComposeResult:
        with Container(id="checkout-dialog"):
            yield Static("Finalize Sale", id="checkout-title")
            yield Static(id="checkout-summary")
            yield Static(id="checkout-methods")
            yield Static(id="checkout-tendered")
            yield Static(id="checkout-error")
            yield Static("Tab/arrows change method. Enter confirm. Esc cancel.", id="checkout-help")

    def on_mount(self) -> None:
        self._refresh_content()

    def on_key(self, event: Key) -> None:
        if event.key in {"escape", "ctrl+c"}:
            self.dismiss(None)
            event.stop()
            return

        if event.key == "enter":
            self._confirm()
            event.stop()
            return

        if event.key in {"tab", "left", "right"}:
            step = -1 if event.key == "left" else 1
            idx = (_METHOD_ORDER.index(self.method) + step) % len(_METHOD_ORDER)
            self.method = _METHOD_ORDER[idx]
            self.value = ""
            self.error = ""
            self._refresh_content()
            event.prevent_default()
            event.stop()
            return

        if event.key == "backspace":
            if self.value:
                self.value = self.value[:-1]
                self.error = ""
                self._refresh_content()
            event.stop()
            return

        if not event.is_printable or not event.character:
            return

        char = event.character
        if self.method is not PaymentMethod.CASH:
            event.stop()
            return

        if char.isdigit() or (char in {".", ","} and not any(sep in self.value for sep in ".,")):
            if len(self.value) < 10:
                self.value += char
            self.error = ""
            self._refresh_content()
        event.stop()

    def _tendered(self) -> Decimal | None:
        if self.method is not PaymentMethod.CASH:
            return None
        return parse_amount(self.value)

    def _confirm(self) -> None:
        try:
            tendered = self._tendered()
            settle(self.total, self.method, tendered)
        except InsufficientPayment:
            self.error = "The amount paid must be greater than or equal to the total."
            self._refresh_content()
            return
        except ValidationError as exc:
            self.error = str(exc)
            self._refresh_content()
            return
        self.dismiss(CheckoutRequest(method=self.method, tendered=tendered))

    def _refresh_content(self) -> None:
        summary = Text()
        for line in self.lines:
            summary.append(f"{line.quantity}x {line.name}  {format_money(line.line_total)}\n")
        summary.append(f"Total: {format_money(self.total)}", style="bold")
        self.query_one("#checkout-summary", Static).update(summary)

        methods = Text()
        for method in _METHOD_ORDER:
            label = f" {PAYMENT_METHOD_LABELS[method.value]} "
            methods.append(label, style="bold reverse" if method is self.method else "")
            methods.append(" ")
        self.query_one("#checkout-methods", Static).update(methods)

        tendered_widget = self.query_one("#checkout-tendered", Static)
        if self.method is PaymentMethod.CASH:
            shown = Text(f"Received: {self.value or '0,00'}")
            try:
                paid = parse_amount(self.value) if self.value else None
            except ValidationError:
                paid = None
            if paid is not None and paid >= self.total:
                shown.append(f"   Change: {format_money(paid - self.total)}", style="bold #5fbf72")
            tendered_widget.update(shown)
            tendered_widget.display = True
        else:
            tendered_widget.update("")
            tendered_widget.display = False

        self.query_one("#checkout-error", Static).update(self.error or "")
