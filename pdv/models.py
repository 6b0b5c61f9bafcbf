"""Domain models for the PDV and kitchen terminals."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum


class OrderStatus(str, Enum):
    RECEIVED = "received"
    PREPARING = "preparing"
    READY = "ready"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentMethod(str, Enum):
    CASH = "cash"
    PIX = "pix"
    CARD = "card"


class OrderType(str, Enum):
    TABLE = "table"
    TAKEAWAY = "takeaway"


class TableStatus(str, Enum):
    AVAILABLE = "available"
    OCCUPIED = "occupied"
    RESERVED = "reserved"


class MovementType(str, Enum):
    OPEN = "open"
    CLOSE = "close"
    SALE = "sale"
    WITHDRAWAL = "withdrawal"


@dataclass(frozen=True)
class Product:
    """A sellable catalog item."""

    product_id: str
    name: str
    price: Decimal
    category: str
    active: bool = True
    description: str | None = None


@dataclass
class CartLine:
    """One product in the cart with the name and price captured at add time."""

    product_id: str
    name: str
    price: Decimal
    quantity: int

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity


@dataclass(frozen=True)
class OrderLine:
    """Immutable snapshot of one cart line stored with an order."""

    product_id: str
    product_name: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal


@dataclass(frozen=True)
class Order:
    """A submitted order as read back from the store."""

    order_id: str
    order_number: str
    total: Decimal
    status: OrderStatus
    order_type: OrderType
    created_at: datetime
    payment_method: PaymentMethod | None = None
    amount_paid: Decimal | None = None
    change_amount: Decimal | None = None
    table_id: str | None = None
    updated_at: datetime | None = None
    lines: tuple[OrderLine, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class Table:
    table_id: str
    table_number: int
    status: TableStatus


@dataclass(frozen=True)
class CashMovement:
    """One append-only cash ledger row."""

    movement_id: str
    movement_type: MovementType
    amount: Decimal
    created_at: datetime
    description: str | None = None
    payment_method: PaymentMethod | None = None
    order_id: str | None = None
