"""In-progress cart for the order being built at a PDV terminal."""

from __future__ import annotations

from decimal import Decimal

from pdv.errors import ValidationError
from pdv.models import CartLine, Product
from pdv.money import ZERO, round_money, to_decimal


class Cart:
    """
    Lines keyed by product id, kept in the order they were first added.

    Prices are snapshotted when a line is created so later catalog edits do
    not change an order that is already being built. Totals are summed at
    full precision and only rounded on the way out.
    """

    def __init__(self) -> None:
        self._lines: dict[str, CartLine] = {}

    def add_item(self, product: Product) -> CartLine:
        """Add one unit of ``product``."""
        line = self._lines.get(product.product_id)
        if line is not None:
            line.quantity += 1
            return line
        line = CartLine(
            product_id=product.product_id,
            name=product.name,
            price=to_decimal(product.price),
            quantity=1,
        )
        self._lines[product.product_id] = line
        return line

    def set_quantity(self, product_id: str, quantity: int, product: Product | None = None) -> None:
        """Set an absolute quantity; zero removes the line."""
        if quantity < 0:
            raise ValidationError("Quantity must not be negative")
        if quantity == 0:
            self._lines.pop(product_id, None)
            return

        line = self._lines.get(product_id)
        if line is not None:
            line.quantity = quantity
            return
        if product is None or product.product_id != product_id:
            raise ValidationError(f"Unknown product {product_id!r} for a new cart line")
        self._lines[product_id] = CartLine(
            product_id=product_id,
            name=product.name,
            price=to_decimal(product.price),
            quantity=quantity,
        )

    def remove_item(self, product_id: str) -> None:
        self._lines.pop(product_id, None)

    def clear(self) -> None:
        self._lines.clear()

    def lines(self) -> list[CartLine]:
        """Return copies of the current lines in insertion order."""
        return [
            CartLine(product_id=line.product_id, name=line.name, price=line.price, quantity=line.quantity)
            for line in self._lines.values()
        ]

    def quantity_of(self, product_id: str) -> int:
        line = self._lines.get(product_id)
        return line.quantity if line is not None else 0

    def is_empty(self) -> bool:
        return not self._lines

    def total_items(self) -> int:
        return sum(line.quantity for line in self._lines.values())

    def exact_total(self) -> Decimal:
        return sum((line.line_total for line in self._lines.values()), ZERO)

    def total_price(self) -> Decimal:
        """Cart total rounded to cents."""
        return round_money(self.exact_total())

    def __len__(self) -> int:
        return len(self._lines)
