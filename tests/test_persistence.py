from __future__ import annotations

import sqlite3
from datetime import timedelta
from decimal import Decimal

import pytest

from pdv import persistence
from pdv.constant import SEED_PRODUCTS, SEED_TABLE_COUNT
from pdv.errors import BackendFailure, IllegalTransition, ValidationError
from pdv.models import MovementType, OrderLine, OrderStatus, OrderType, PaymentMethod, TableStatus


def _lines() -> list[OrderLine]:
    return [
        OrderLine("p1", "Meat Pastel", 2, Decimal("25.90"), Decimal("51.80")),
        OrderLine("p2", "Sugarcane Juice", 1, Decimal("6.90"), Decimal("6.90")),
    ]


def test_bootstrap_creates_tables(store) -> None:
    conn = sqlite3.connect(store)
    try:
        names = {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")}
    finally:
        conn.close()
    assert {"products", "dining_tables", "orders", "order_items", "cash_movements"} <= names


def test_seed_defaults_is_idempotent(store) -> None:
    assert persistence.seed_defaults() is True
    assert persistence.seed_defaults() is False

    assert len(persistence.list_active_products()) == len(SEED_PRODUCTS)
    tables = persistence.list_tables()
    assert [t.table_number for t in tables] == list(range(1, SEED_TABLE_COUNT + 1))
    assert all(t.status is TableStatus.AVAILABLE for t in tables)


def test_inactive_products_are_hidden(store) -> None:
    kept = persistence.add_product("Cheese Pastel", Decimal("8"), "Pastels")
    hidden = persistence.add_product("Old Soda", Decimal("5"), "Drinks")
    conn = sqlite3.connect(store)
    try:
        with conn:
            conn.execute("UPDATE products SET active = 0 WHERE id = ?", (hidden.product_id,))
    finally:
        conn.close()

    active = persistence.list_active_products()
    assert [p.product_id for p in active] == [kept.product_id]


@pytest.mark.parametrize(
    ("name", "price", "category"),
    [("", Decimal("1"), "Misc"), ("Item", Decimal("1"), " "), ("Item", Decimal("-1"), "Misc")],
)
def test_add_product_validates(store, name, price, category) -> None:
    with pytest.raises(ValidationError):
        persistence.add_product(name, price, category)


def test_create_order_round_trip(store, fixed_now) -> None:
    table = persistence.add_table(3)
    saved = persistence.create_order(
        order_number="PED000001",
        lines=_lines(),
        total=Decimal("58.70"),
        status=OrderStatus.RECEIVED,
        order_type=OrderType.TABLE,
        table_id=table.table_id,
        created_at=fixed_now,
    )

    loaded = persistence.get_order(saved.order_id)
    assert loaded is not None
    assert loaded.order_number == "PED000001"
    assert loaded.total == Decimal("58.70")
    assert loaded.status is OrderStatus.RECEIVED
    assert loaded.table_id == table.table_id
    assert loaded.created_at == fixed_now
    assert loaded.payment_method is None
    assert [(line.product_name, line.quantity, line.total_price) for line in loaded.lines] == [
        ("Meat Pastel", 2, Decimal("51.80")),
        ("Sugarcane Juice", 1, Decimal("6.90")),
    ]


def test_create_order_keeps_payment_fields(store, fixed_now) -> None:
    saved = persistence.create_order(
        order_number="VEN000001",
        lines=_lines(),
        total=Decimal("58.70"),
        status=OrderStatus.DELIVERED,
        order_type=OrderType.TAKEAWAY,
        payment_method=PaymentMethod.CASH,
        amount_paid=Decimal("60"),
        change_amount=Decimal("1.30"),
        created_at=fixed_now,
    )

    loaded = persistence.get_order(saved.order_id)
    assert loaded.payment_method is PaymentMethod.CASH
    assert loaded.amount_paid == Decimal("60.00")
    assert loaded.change_amount == Decimal("1.30")


def test_create_order_without_lines_is_rejected(store) -> None:
    with pytest.raises(ValidationError):
        persistence.create_order("PED000001", [], Decimal("0"), OrderStatus.RECEIVED)


def test_duplicate_order_number_is_a_backend_failure(store, fixed_now) -> None:
    persistence.create_order("PED000001", _lines(), Decimal("58.70"), OrderStatus.RECEIVED, created_at=fixed_now)

    with pytest.raises(BackendFailure) as excinfo:
        persistence.create_order("PED000001", _lines(), Decimal("58.70"), OrderStatus.RECEIVED, created_at=fixed_now)

    assert excinfo.value.operation == "create_order"
    assert isinstance(excinfo.value.cause, sqlite3.IntegrityError)
    # Header and items are written together, so nothing partial is left behind.
    assert len(persistence.list_orders()) == 1


def test_list_orders_filters_and_orders(store, fixed_now) -> None:
    first = persistence.create_order(
        "PED000001", _lines(), Decimal("58.70"), OrderStatus.RECEIVED, created_at=fixed_now - timedelta(minutes=5)
    )
    second = persistence.create_order("PED000002", _lines(), Decimal("58.70"), OrderStatus.READY, created_at=fixed_now)
    persistence.create_order(
        "VEN000003", _lines(), Decimal("58.70"), OrderStatus.DELIVERED, created_at=fixed_now + timedelta(minutes=1)
    )

    active = persistence.list_orders(statuses=[OrderStatus.RECEIVED, OrderStatus.READY], ascending=True)
    assert [o.order_id for o in active] == [first.order_id, second.order_id]

    newest_first = persistence.list_orders()
    assert [o.order_number for o in newest_first] == ["VEN000003", "PED000002", "PED000001"]

    assert persistence.list_orders(statuses=[]) == []


def test_update_order_status_sets_updated_at(store, fixed_now) -> None:
    saved = persistence.create_order("PED000001", _lines(), Decimal("58.70"), OrderStatus.RECEIVED, created_at=fixed_now)
    later = fixed_now + timedelta(minutes=3)

    persistence.update_order_status(saved.order_id, OrderStatus.PREPARING, updated_at=later)

    loaded = persistence.get_order(saved.order_id)
    assert loaded.status is OrderStatus.PREPARING
    assert loaded.updated_at == later


def test_update_order_status_refuses_stale_expected_status(store, fixed_now) -> None:
    saved = persistence.create_order("PED000001", _lines(), Decimal("58.70"), OrderStatus.RECEIVED, created_at=fixed_now)
    persistence.update_order_status(saved.order_id, OrderStatus.PREPARING, expected_status=OrderStatus.RECEIVED)
    persistence.update_order_status(saved.order_id, OrderStatus.READY, expected_status=OrderStatus.PREPARING)

    with pytest.raises(IllegalTransition) as excinfo:
        persistence.update_order_status(saved.order_id, OrderStatus.PREPARING, expected_status=OrderStatus.RECEIVED)

    assert excinfo.value.current == "ready"
    assert persistence.get_order(saved.order_id).status is OrderStatus.READY


def test_update_missing_rows_is_a_backend_failure(store) -> None:
    with pytest.raises(BackendFailure):
        persistence.update_order_status("missing", OrderStatus.READY)
    with pytest.raises(BackendFailure):
        persistence.update_table_status("missing", TableStatus.OCCUPIED)


def test_duplicate_table_number_is_a_backend_failure(store) -> None:
    persistence.add_table(1)
    with pytest.raises(BackendFailure):
        persistence.add_table(1)


def test_update_table_status(store) -> None:
    table = persistence.add_table(4)
    persistence.update_table_status(table.table_id, TableStatus.OCCUPIED)
    assert persistence.get_table(table.table_id).status is TableStatus.OCCUPIED


def test_movements_are_scoped_to_the_day(store, fixed_now) -> None:
    persistence.add_movement(MovementType.OPEN, Decimal("100"), created_at=fixed_now - timedelta(days=1))
    opened = persistence.add_movement(MovementType.OPEN, Decimal("50"), created_at=fixed_now)
    sale = persistence.add_movement(
        MovementType.SALE,
        Decimal("12.5"),
        description="Sale VEN000001",
        payment_method=PaymentMethod.PIX,
        created_at=fixed_now + timedelta(minutes=1),
    )

    rows = persistence.list_movements_for_day(fixed_now.date())
    assert [m.movement_id for m in rows] == [sale.movement_id, opened.movement_id]
    assert rows[0].amount == Decimal("12.50")
    assert rows[0].payment_method is PaymentMethod.PIX


def test_negative_movement_is_rejected(store) -> None:
    with pytest.raises(ValidationError):
        persistence.add_movement(MovementType.WITHDRAWAL, Decimal("-1"))


def test_store_errors_surface_as_backend_failure(tmp_path, monkeypatch) -> None:
    # Schema never bootstrapped.
    monkeypatch.setattr(persistence, "DB_PATH", str(tmp_path / "empty.db"))
    with pytest.raises(BackendFailure) as excinfo:
        persistence.list_tables()
    assert excinfo.value.operation == "list_tables"
