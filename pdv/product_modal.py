"""New product form modal screen."""

from __future__ import annotations

from dataclasses import dataclass

from rich.text import Text
from textual.app import ComposeResult
from textual.containers import Container
from textual.events import Key
from textual.screen import ModalScreen
from textual.widgets import Static

from pdv.errors import ValidationError
from pdv.money import parse_amount

_FIELDS: tuple[tuple[str, str], ...] = (
    ("name", "Name"),
    ("price", "Price"),
    ("category", "Category"),
    ("description", "Description (optional)"),
)
_MAX_FIELD_LEN = 60


@dataclass(frozen=True)
class ProductDraft:
    name: str
    price: str
    category: str
    description: str


class ProductModal(ModalScreen[ProductDraft | None]):
    """Collect the fields for a new catalog product."""

    CSS = """
    ProductModal {
        align: center middle;
        background: $background 60%;
    }

    #product-dialog {
        width: 64;
        height: auto;
        border: round $secondary;
        background: $panel;
        padding: 1 2;
    }

    #product-title {
        text-style: bold;
        margin-bottom: 1;
        color: white;
    }

    #product-body {
        color: white;
        margin-bottom: 1;
    }

    #product-error {
        color: #ffb3b3;
        margin-bottom: 1;
    }

    #product-help {
        color: #dddddd;
    }
    """

    def __init__(self, categories: list[str] | None = None) -> None:
        super().__init__()
        self.categories = categories or []
        self.values: dict[str, str] = {key: "" for key, _ in _FIELDS}
        self.field_index = 0
        self.error = ""

    def compose(self) -> ComposeResult:
        with Container(id="product-dialog"):
            yield Static("New Product", id="product-title")
            yield Static(id="product-body")
            yield Static(id="product-error")
            yield Static("Tab/up/down switch field. Enter save. Esc cancel.", id="product-help")

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

        if event.key in {"tab", "down", "up"}:
            step = -1 if event.key == "up" else 1
            self.field_index = (self.field_index + step) % len(_FIELDS)
            self._refresh_content()
            event.prevent_default()
            event.stop()
            return

        key = _FIELDS[self.field_index][0]
        if event.key == "backspace":
            self.values[key] = self.values[key][:-1]
            self.error = ""
            self._refresh_content()
            event.stop()
            return

        if event.is_printable and event.character:
            if key == "price" and not (event.character.isdigit() or event.character in {".", ","}):
                event.stop()
                return
            if len(self.values[key]) < _MAX_FIELD_LEN:
                self.values[key] += event.character
            self.error = ""
            self._refresh_content()
            event.stop()

    def _confirm(self) -> None:
        name = self.values["name"].strip()
        category = self.values["category"].strip()
        if not name:
            self.error = "Name is required."
        elif not category:
            self.error = "Category is required."
        else:
            try:
                parse_amount(self.values["price"])
            except ValidationError as exc:
                self.error = str(exc)
        if self.error:
            self._refresh_content()
            return
        self.dismiss(
            ProductDraft(
                name=name,
                price=self.values["price"],
                category=category,
                description=self.values["description"].strip(),
            )
        )

    def _refresh_content(self) -> None:
        body = Text()
        for idx, (key, label) in enumerate(_FIELDS):
            if idx > 0:
                body.append("\n")
            active = idx == self.field_index
            body.append("➤ " if active else "  ")
            body.append(f"{label}: ", style="bold")
            body.append(self.values[key], style="reverse" if active else "")
            if active:
                body.append("▏")
        if self.categories:
            body.append(f"\n\nCategories: {', '.join(self.categories)}", style="dim")
        self.query_one("#product-body", Static).update(body)
        self.query_one("#product-error", Static).update(self.error or "")
