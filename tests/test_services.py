from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

import pytest

from pdv import persistence, services
from pdv.cart import Cart
from pdv.errors import BackendFailure
from pdv.feed import TOPIC_CASH, TOPIC_ORDERS, TOPIC_TABLES, ChangeFeed
from pdv.models import MovementType, OrderStatus, OrderType, PaymentMethod, TableStatus


class RecordingFeed(ChangeFeed):
    def __init__(self) -> None:
        super().__init__()
        self.topics: list[str] = []

    def notify(self, topic: str) -> None:
        self.topics.append(topic)
        super().notify(topic)


@pytest.fixture()
def cart(pastel, juice) -> Cart:
    cart = Cart()
    cart.add_item(pastel)
    cart.add_item(pastel)
    cart.add_item(juice)
    return cart


def _fail(*args, **kwargs):
    raise BackendFailure("simulated", OSError("offline"))


def test_send_empty_cart_never_reaches_store(store, monkeypatch) -> None:
    def unexpected(*args, **kwargs):
        raise AssertionError("create_order should not be called")

    monkeypatch.setattr(persistence, "create_order", unexpected)
    notice = services.send_to_kitchen(Cart())

    assert not notice.ok
    assert notice.level == services.LEVEL_ERROR


def test_send_to_kitchen_stores_order_and_occupies_table(store, cart, fixed_now) -> None:
    table = persistence.add_table(5)
    feed = RecordingFeed()

    notice = services.send_to_kitchen(cart, table_id=table.table_id, feed=feed, now=fixed_now)

    assert notice.ok
    assert notice.warnings == ()
    assert notice.order.order_number.startswith("PED")
    assert cart.is_empty()

    stored = persistence.get_order(notice.order.order_id)
    assert stored.status is OrderStatus.RECEIVED
    assert stored.total == Decimal("58.70")
    assert stored.payment_method is None
    assert persistence.get_table(table.table_id).status is TableStatus.OCCUPIED
    assert feed.topics == [TOPIC_ORDERS, TOPIC_TABLES]


def test_takeaway_order_leaves_tables_alone(store, cart, fixed_now, monkeypatch) -> None:
    monkeypatch.setattr(persistence, "update_table_status", _fail)

    notice = services.send_to_kitchen(cart, order_type=OrderType.TAKEAWAY, now=fixed_now)

    assert notice.ok
    assert notice.warnings == ()
    assert notice.order.order_type is OrderType.TAKEAWAY


def test_table_update_failure_keeps_order(store, cart, fixed_now, monkeypatch) -> None:
    table = persistence.add_table(2)
    monkeypatch.setattr(persistence, "update_table_status", _fail)

    notice = services.send_to_kitchen(cart, table_id=table.table_id, now=fixed_now)

    assert notice.ok
    assert notice.level == services.LEVEL_WARNING
    assert len(notice.warnings) == 1
    assert persistence.get_order(notice.order.order_id) is not None
    assert persistence.get_table(table.table_id).status is TableStatus.AVAILABLE


def test_failed_submission_keeps_cart(store, cart, pastel, fixed_now) -> None:
    first = Cart()
    first.add_item(pastel)
    assert services.send_to_kitchen(first, now=fixed_now).ok

    # Same clock reading, same order number.
    notice = services.send_to_kitchen(cart, now=fixed_now)

    assert not notice.ok
    assert cart.total_items() == 3
    assert len(persistence.list_orders()) == 1


def test_finalize_cash_sale(store, cart, fixed_now) -> None:
    feed = RecordingFeed()

    notice = services.finalize_sale(cart, PaymentMethod.CASH, "60,00", feed=feed, now=fixed_now)

    assert notice.ok
    assert cart.is_empty()
    order = persistence.get_order(notice.order.order_id)
    assert order.order_number.startswith("VEN")
    assert order.status is OrderStatus.DELIVERED
    assert order.order_type is OrderType.TAKEAWAY
    assert order.amount_paid == Decimal("60.00")
    assert order.change_amount == Decimal("1.30")
    assert notice.receipt.change_due == Decimal("1.30")

    sales = [m for m in services.cash_summary(fixed_now.date()).movements if m.movement_type is MovementType.SALE]
    assert [(m.amount, m.order_id) for m in sales] == [(Decimal("58.70"), order.order_id)]
    assert feed.topics == [TOPIC_ORDERS, TOPIC_CASH]


def test_finalize_card_sale_pays_exact_total(store, cart, fixed_now) -> None:
    notice = services.finalize_sale(cart, "card", now=fixed_now)

    assert notice.ok
    assert notice.order.amount_paid == Decimal("58.70")
    assert notice.order.change_amount == Decimal("0.00")


@pytest.mark.parametrize("tendered", ["40", "abc", None])
def test_finalize_rejects_bad_cash_and_keeps_cart(store, cart, fixed_now, tendered) -> None:
    notice = services.finalize_sale(cart, PaymentMethod.CASH, tendered, now=fixed_now)

    assert not notice.ok
    assert cart.total_items() == 3
    assert persistence.list_orders() == []


def test_ledger_failure_is_a_warning(store, cart, fixed_now, monkeypatch) -> None:
    monkeypatch.setattr(persistence, "add_movement", _fail)

    notice = services.finalize_sale(cart, PaymentMethod.PIX, now=fixed_now)

    assert notice.ok
    assert notice.level == services.LEVEL_WARNING
    assert persistence.get_order(notice.order.order_id) is not None


def test_advance_order_through_kitchen(store, cart, fixed_now) -> None:
    order_id = services.send_to_kitchen(cart, now=fixed_now).order.order_id
    feed = RecordingFeed()

    for expected in (OrderStatus.PREPARING, OrderStatus.READY, OrderStatus.DELIVERED):
        assert services.advance_order(order_id, feed=feed).ok
        assert persistence.get_order(order_id).status is expected

    notice = services.advance_order(order_id, feed=feed)
    assert not notice.ok
    assert persistence.get_order(order_id).status is OrderStatus.DELIVERED
    assert feed.topics == [TOPIC_ORDERS] * 3


def test_advance_rejects_skipping(store, cart, fixed_now) -> None:
    order_id = services.send_to_kitchen(cart, now=fixed_now).order.order_id

    notice = services.advance_order(order_id, target=OrderStatus.READY)

    assert not notice.ok
    assert persistence.get_order(order_id).status is OrderStatus.RECEIVED


def test_advance_unknown_order(store) -> None:
    assert not services.advance_order("missing").ok


def test_advance_from_stale_read_cannot_move_order_backwards(store, cart, fixed_now, monkeypatch) -> None:
    order_id = services.send_to_kitchen(cart, now=fixed_now).order.order_id
    stale = persistence.get_order(order_id)
    # Another kitchen terminal moves the order on.
    assert services.advance_order(order_id).ok
    assert services.advance_order(order_id).ok

    with monkeypatch.context() as patch:
        patch.setattr(persistence, "get_order", lambda _order_id: stale)
        notice = services.advance_order(order_id)

    assert not notice.ok
    assert notice.title == "Order changed"
    assert persistence.get_order(order_id).status is OrderStatus.READY


def test_cancel_from_stale_read_is_refused(store, cart, fixed_now, monkeypatch) -> None:
    order_id = services.send_to_kitchen(cart, now=fixed_now).order.order_id
    stale = persistence.get_order(order_id)
    services.advance_order(order_id)
    services.advance_order(order_id)

    with monkeypatch.context() as patch:
        patch.setattr(persistence, "get_order", lambda _order_id: stale)
        notice = services.cancel_order(order_id)

    assert not notice.ok
    assert persistence.get_order(order_id).status is OrderStatus.READY


def test_cancel_order(store, cart, pastel, fixed_now) -> None:
    order_id = services.send_to_kitchen(cart, now=fixed_now).order.order_id
    assert services.cancel_order(order_id).ok
    assert persistence.get_order(order_id).status is OrderStatus.CANCELLED
    assert not services.advance_order(order_id).ok

    other = Cart()
    other.add_item(pastel)
    ready_id = services.send_to_kitchen(other, now=fixed_now + timedelta(seconds=1)).order.order_id
    services.advance_order(ready_id)
    services.advance_order(ready_id)
    assert not services.cancel_order(ready_id).ok


def test_kitchen_orders_are_active_and_oldest_first(store, pastel, fixed_now) -> None:
    ids = []
    for offset in (0, 1, 2):
        cart = Cart()
        cart.add_item(pastel)
        ids.append(services.send_to_kitchen(cart, now=fixed_now + timedelta(seconds=offset)).order.order_id)
    services.cancel_order(ids[1])

    assert [o.order_id for o in services.kitchen_orders()] == [ids[0], ids[2]]


def test_kitchen_orders_by_urgency(store, pastel, fixed_now) -> None:
    ids = []
    for offset in (0, 1):
        cart = Cart()
        cart.add_item(pastel)
        ids.append(services.send_to_kitchen(cart, now=fixed_now + timedelta(seconds=offset)).order.order_id)
    services.advance_order(ids[0])

    assert [o.order_id for o in services.kitchen_orders()] == ids
    assert [o.order_id for o in services.kitchen_orders(by_urgency=True)] == [ids[1], ids[0]]


def test_sale_ledger_row_uses_sale_time(store, cart, fixed_now) -> None:
    sale_time = fixed_now - timedelta(days=3)

    notice = services.finalize_sale(cart, PaymentMethod.PIX, now=sale_time)

    assert notice.ok
    [row] = persistence.list_movements_for_day(sale_time.date())
    assert row.movement_type is MovementType.SALE
    assert row.created_at == sale_time
    assert persistence.list_movements_for_day(fixed_now.date()) == []


def test_cash_drawer_day(store, cart, fixed_now) -> None:
    assert not services.withdraw_cash("10").ok

    assert services.open_cash(Decimal("100")).ok
    assert not services.open_cash(Decimal("100")).ok

    assert services.finalize_sale(cart, PaymentMethod.CASH, "60").ok
    assert services.withdraw_cash("50", "Bank deposit").ok
    assert not services.withdraw_cash("500").ok
    assert not services.withdraw_cash("0").ok

    summary = services.cash_summary()
    assert summary.is_open
    assert summary.balance == Decimal("108.70")

    assert services.close_cash().ok
    summary = services.cash_summary()
    assert not summary.is_open
    close_row = summary.movements[0]
    assert close_row.movement_type is MovementType.CLOSE
    assert close_row.amount == Decimal("108.70")
    assert "R$ 108.70" in close_row.description

    assert not services.close_cash().ok
    assert not services.open_cash().ok


def test_register_product(store) -> None:
    feed = RecordingFeed()
    notice = services.register_product("Chicken Pastel", "9,50", "Pastels", feed=feed)

    assert notice.ok
    [product] = persistence.list_active_products()
    assert product.price == Decimal("9.50")
    assert feed.topics == ["products"]

    assert not services.register_product("", "1", "Pastels").ok
    assert not services.register_product("Thing", "x", "Pastels").ok
