"""SQLite table store for products, tables, orders and the cash ledger."""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from pathlib import Path
from typing import Iterable, Iterator
from uuid import uuid4

from pdv.config import DB_PATH
from pdv.constant import SEED_PRODUCTS, SEED_TABLE_COUNT
from pdv.errors import BackendFailure, IllegalTransition, ValidationError
from pdv.models import (
    CashMovement,
    MovementType,
    Order,
    OrderLine,
    OrderStatus,
    OrderType,
    PaymentMethod,
    Product,
    Table,
    TableStatus,
)
from pdv.money import round_money, to_decimal

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _to_iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _from_iso(value: str | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromisoformat(value)


def _money_text(value: Decimal | None) -> str | None:
    if value is None:
        return None
    return str(round_money(to_decimal(value)))


def _money(value: str | None) -> Decimal | None:
    if value is None:
        return None
    return Decimal(value)


def db_file() -> Path:
    return Path(DB_PATH)


def _connect() -> sqlite3.Connection:
    path = db_file()
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@contextmanager
def _store_call(operation: str) -> Iterator[sqlite3.Connection]:
    """Open a connection and translate sqlite errors into BackendFailure."""
    conn: sqlite3.Connection | None = None
    try:
        conn = _connect()
        yield conn
    except sqlite3.Error as exc:
        logger.error("store_failed operation=%s error=%r", operation, exc)
        raise BackendFailure(operation, exc) from exc
    finally:
        if conn is not None:
            conn.close()


def bootstrap_schema() -> None:
    """Create persistence schema if it does not already exist."""
    with _store_call("bootstrap_schema") as conn:
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS products (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                price TEXT NOT NULL,
                category TEXT NOT NULL,
                description TEXT,
                active INTEGER NOT NULL DEFAULT 1,
                created_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS dining_tables (
                id TEXT PRIMARY KEY,
                table_number INTEGER NOT NULL UNIQUE,
                status TEXT NOT NULL DEFAULT 'available',
                created_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS orders (
                id TEXT PRIMARY KEY,
                order_number TEXT NOT NULL UNIQUE,
                total TEXT NOT NULL,
                status TEXT NOT NULL,
                payment_method TEXT,
                amount_paid TEXT,
                change_amount TEXT,
                table_id TEXT,
                order_type TEXT NOT NULL DEFAULT 'table',
                created_at TEXT NOT NULL,
                updated_at TEXT,
                FOREIGN KEY(table_id) REFERENCES dining_tables(id)
            );

            CREATE TABLE IF NOT EXISTS order_items (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                order_id TEXT NOT NULL,
                line_index INTEGER NOT NULL,
                product_id TEXT NOT NULL,
                product_name TEXT NOT NULL,
                quantity INTEGER NOT NULL CHECK (quantity > 0),
                unit_price TEXT NOT NULL,
                total_price TEXT NOT NULL,
                FOREIGN KEY(order_id) REFERENCES orders(id)
            );

            CREATE TABLE IF NOT EXISTS cash_movements (
                id TEXT PRIMARY KEY,
                type TEXT NOT NULL,
                amount TEXT NOT NULL,
                description TEXT,
                payment_method TEXT,
                order_id TEXT,
                created_at TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_orders_status_created
                ON orders(status, created_at);

            CREATE INDEX IF NOT EXISTS idx_order_items_order_id_line
                ON order_items(order_id, line_index);

            CREATE INDEX IF NOT EXISTS idx_cash_movements_created
                ON cash_movements(created_at);
            """
        )


def seed_defaults() -> bool:
    """Install the demo catalog and tables when the store has none. Returns True if seeded."""
    with _store_call("seed_defaults") as conn:
        product_count = conn.execute("SELECT COUNT(*) FROM products").fetchone()[0]
        table_count = conn.execute("SELECT COUNT(*) FROM dining_tables").fetchone()[0]
        if product_count or table_count:
            return False
        now = _to_iso(_utc_now())
        with conn:
            for product in SEED_PRODUCTS:
                conn.execute(
                    """
                    INSERT INTO products (id, name, price, category, description, active, created_at)
                    VALUES (?, ?, ?, ?, NULL, 1, ?)
                    """,
                    (uuid4().hex, product["name"], _money_text(Decimal(product["price"])), product["category"], now),
                )
            for number in range(1, SEED_TABLE_COUNT + 1):
                conn.execute(
                    "INSERT INTO dining_tables (id, table_number, status, created_at) VALUES (?, ?, 'available', ?)",
                    (uuid4().hex, number, now),
                )
    logger.info("seeded_defaults products=%d tables=%d", len(SEED_PRODUCTS), SEED_TABLE_COUNT)
    return True


# Products


def _product_from_row(row: sqlite3.Row) -> Product:
    return Product(
        product_id=row["id"],
        name=row["name"],
        price=Decimal(row["price"]),
        category=row["category"],
        active=bool(row["active"]),
        description=row["description"],
    )


def list_active_products() -> list[Product]:
    with _store_call("list_active_products") as conn:
        rows = conn.execute(
            "SELECT * FROM products WHERE active = 1 ORDER BY category ASC, name ASC, rowid ASC"
        ).fetchall()
    return [_product_from_row(row) for row in rows]


def add_product(name: str, price: Decimal, category: str, description: str | None = None) -> Product:
    """Register a new active product."""
    name = name.strip()
    category = category.strip()
    if not name:
        raise ValidationError("Product name is required")
    if not category:
        raise ValidationError("Product category is required")
    price = round_money(to_decimal(price))
    if price < 0:
        raise ValidationError("Product price must not be negative")
    description = (description or "").strip() or None

    product = Product(
        product_id=uuid4().hex,
        name=name,
        price=price,
        category=category,
        active=True,
        description=description,
    )
    with _store_call("add_product") as conn:
        with conn:
            conn.execute(
                """
                INSERT INTO products (id, name, price, category, description, active, created_at)
                VALUES (?, ?, ?, ?, ?, 1, ?)
                """,
                (product.product_id, name, _money_text(price), category, description, _to_iso(_utc_now())),
            )
    return product


# Tables


def _table_from_row(row: sqlite3.Row) -> Table:
    return Table(table_id=row["id"], table_number=int(row["table_number"]), status=TableStatus(row["status"]))


def list_tables() -> list[Table]:
    with _store_call("list_tables") as conn:
        rows = conn.execute("SELECT * FROM dining_tables ORDER BY table_number ASC").fetchall()
    return [_table_from_row(row) for row in rows]


def get_table(table_id: str) -> Table | None:
    with _store_call("get_table") as conn:
        row = conn.execute("SELECT * FROM dining_tables WHERE id = ?", (table_id,)).fetchone()
    return _table_from_row(row) if row is not None else None


def add_table(table_number: int) -> Table:
    if table_number < 1:
        raise ValidationError("Table number must be positive")
    table = Table(table_id=uuid4().hex, table_number=table_number, status=TableStatus.AVAILABLE)
    with _store_call("add_table") as conn:
        with conn:
            conn.execute(
                "INSERT INTO dining_tables (id, table_number, status, created_at) VALUES (?, ?, ?, ?)",
                (table.table_id, table_number, table.status.value, _to_iso(_utc_now())),
            )
    return table


def update_table_status(table_id: str, status: TableStatus) -> None:
    status = TableStatus(status)
    with _store_call("update_table_status") as conn:
        with conn:
            cur = conn.execute("UPDATE dining_tables SET status = ? WHERE id = ?", (status.value, table_id))
    if cur.rowcount == 0:
        raise BackendFailure("update_table_status", LookupError(f"table {table_id} not found"))


# Orders


def _order_from_rows(row: sqlite3.Row, item_rows: Iterable[sqlite3.Row]) -> Order:
    lines = tuple(
        OrderLine(
            product_id=item["product_id"],
            product_name=item["product_name"],
            quantity=int(item["quantity"]),
            unit_price=Decimal(item["unit_price"]),
            total_price=Decimal(item["total_price"]),
        )
        for item in item_rows
    )
    return Order(
        order_id=row["id"],
        order_number=row["order_number"],
        total=Decimal(row["total"]),
        status=OrderStatus(row["status"]),
        order_type=OrderType(row["order_type"]),
        created_at=_from_iso(row["created_at"]),  # type: ignore[arg-type]
        payment_method=PaymentMethod(row["payment_method"]) if row["payment_method"] else None,
        amount_paid=_money(row["amount_paid"]),
        change_amount=_money(row["change_amount"]),
        table_id=row["table_id"],
        updated_at=_from_iso(row["updated_at"]),
        lines=lines,
    )


def create_order(
    order_number: str,
    lines: Iterable[OrderLine],
    total: Decimal,
    status: OrderStatus,
    order_type: OrderType = OrderType.TABLE,
    payment_method: PaymentMethod | None = None,
    amount_paid: Decimal | None = None,
    change_amount: Decimal | None = None,
    table_id: str | None = None,
    created_at: datetime | None = None,
) -> Order:
    """
    Persist an order header and its line items in one transaction.

    Table occupancy is not touched here; the caller issues that update as a
    separate call.
    """
    copied_lines = tuple(lines)
    if not copied_lines:
        raise ValidationError("Cannot save an order without items")

    order_id = uuid4().hex
    created_at = created_at or _utc_now()
    status = OrderStatus(status)
    order_type = OrderType(order_type)

    with _store_call("create_order") as conn:
        with conn:
            conn.execute(
                """
                INSERT INTO orders (
                    id, order_number, total, status, payment_method, amount_paid,
                    change_amount, table_id, order_type, created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, NULL)
                """,
                (
                    order_id,
                    order_number,
                    _money_text(total),
                    status.value,
                    PaymentMethod(payment_method).value if payment_method is not None else None,
                    _money_text(amount_paid),
                    _money_text(change_amount),
                    table_id,
                    order_type.value,
                    _to_iso(created_at),
                ),
            )
            for idx, line in enumerate(copied_lines):
                conn.execute(
                    """
                    INSERT INTO order_items (
                        order_id, line_index, product_id, product_name, quantity, unit_price, total_price
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        order_id,
                        idx,
                        line.product_id,
                        line.product_name,
                        line.quantity,
                        _money_text(line.unit_price),
                        _money_text(line.total_price),
                    ),
                )

    return Order(
        order_id=order_id,
        order_number=order_number,
        total=round_money(to_decimal(total)),
        status=status,
        order_type=order_type,
        created_at=datetime.fromisoformat(_to_iso(created_at)),
        payment_method=PaymentMethod(payment_method) if payment_method is not None else None,
        amount_paid=_money(_money_text(amount_paid)),
        change_amount=_money(_money_text(change_amount)),
        table_id=table_id,
        lines=copied_lines,
    )


def _items_by_order(conn: sqlite3.Connection, order_ids: list[str]) -> dict[str, list[sqlite3.Row]]:
    grouped: dict[str, list[sqlite3.Row]] = {order_id: [] for order_id in order_ids}
    if not order_ids:
        return grouped
    placeholders = ", ".join("?" for _ in order_ids)
    rows = conn.execute(
        f"SELECT * FROM order_items WHERE order_id IN ({placeholders}) ORDER BY order_id, line_index",
        order_ids,
    ).fetchall()
    for row in rows:
        grouped[row["order_id"]].append(row)
    return grouped


def list_orders(statuses: Iterable[OrderStatus] | None = None, ascending: bool = False) -> list[Order]:
    """Orders with their lines, optionally filtered by status, ordered by creation time."""
    direction = "ASC" if ascending else "DESC"
    params: list[str] = []
    where = ""
    if statuses is not None:
        status_values = [OrderStatus(status).value for status in statuses]
        if not status_values:
            return []
        where = f"WHERE status IN ({', '.join('?' for _ in status_values)})"
        params.extend(status_values)

    with _store_call("list_orders") as conn:
        rows = conn.execute(
            f"SELECT * FROM orders {where} ORDER BY created_at {direction}, rowid {direction}",
            params,
        ).fetchall()
        items = _items_by_order(conn, [row["id"] for row in rows])
    return [_order_from_rows(row, items[row["id"]]) for row in rows]


def get_order(order_id: str) -> Order | None:
    with _store_call("get_order") as conn:
        row = conn.execute("SELECT * FROM orders WHERE id = ?", (order_id,)).fetchone()
        if row is None:
            return None
        items = _items_by_order(conn, [order_id])
    return _order_from_rows(row, items[order_id])


def update_order_status(
    order_id: str,
    status: OrderStatus,
    updated_at: datetime | None = None,
    expected_status: OrderStatus | None = None,
) -> None:
    """
    Update status for a persisted order.

    With ``expected_status`` the row is only written while it still holds
    that status; if another terminal moved it first, IllegalTransition is
    raised with the status actually stored.
    """
    status = OrderStatus(status)
    sql = "UPDATE orders SET status = ?, updated_at = ? WHERE id = ?"
    params: list[str] = [status.value, _to_iso(updated_at or _utc_now()), order_id]
    expected = OrderStatus(expected_status).value if expected_status is not None else None
    if expected is not None:
        sql += " AND status = ?"
        params.append(expected)

    stored: str | None = None
    with _store_call("update_order_status") as conn:
        with conn:
            cur = conn.execute(sql, params)
            if cur.rowcount == 0:
                row = conn.execute("SELECT status FROM orders WHERE id = ?", (order_id,)).fetchone()
                stored = row["status"] if row is not None else None
            updated = cur.rowcount
    if updated:
        return
    if stored is None:
        raise BackendFailure("update_order_status", LookupError(f"order {order_id} not found"))
    logger.info("order_status_stale order_id=%s expected=%s stored=%s", order_id, expected, stored)
    raise IllegalTransition(stored, status.value)


# Cash ledger


def _movement_from_row(row: sqlite3.Row) -> CashMovement:
    return CashMovement(
        movement_id=row["id"],
        movement_type=MovementType(row["type"]),
        amount=Decimal(row["amount"]),
        created_at=_from_iso(row["created_at"]),  # type: ignore[arg-type]
        description=row["description"],
        payment_method=PaymentMethod(row["payment_method"]) if row["payment_method"] else None,
        order_id=row["order_id"],
    )


def add_movement(
    movement_type: MovementType,
    amount: Decimal,
    description: str | None = None,
    payment_method: PaymentMethod | None = None,
    order_id: str | None = None,
    created_at: datetime | None = None,
) -> CashMovement:
    """Append one row to the cash ledger."""
    movement_type = MovementType(movement_type)
    amount = round_money(to_decimal(amount))
    if amount < 0:
        raise ValidationError("Movement amount must not be negative")
    movement = CashMovement(
        movement_id=uuid4().hex,
        movement_type=movement_type,
        amount=amount,
        created_at=datetime.fromisoformat(_to_iso(created_at or _utc_now())),
        description=description,
        payment_method=PaymentMethod(payment_method) if payment_method is not None else None,
        order_id=order_id,
    )
    with _store_call("add_movement") as conn:
        with conn:
            conn.execute(
                """
                INSERT INTO cash_movements (id, type, amount, description, payment_method, order_id, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    movement.movement_id,
                    movement_type.value,
                    _money_text(amount),
                    description,
                    movement.payment_method.value if movement.payment_method is not None else None,
                    order_id,
                    _to_iso(movement.created_at),
                ),
            )
    return movement


def list_movements_for_day(day: date | None = None) -> list[CashMovement]:
    """Ledger rows for one UTC day, newest first."""
    if day is None:
        day = _utc_now().date()
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    end = start + timedelta(days=1)
    with _store_call("list_movements_for_day") as conn:
        rows = conn.execute(
            """
            SELECT * FROM cash_movements
            WHERE created_at >= ? AND created_at < ?
            ORDER BY created_at DESC, rowid DESC
            """,
            (_to_iso(start), _to_iso(end)),
        ).fetchall()
    return [_movement_from_row(row) for row in rows]
