from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from pdv import lifecycle
from pdv.errors import IllegalTransition
from pdv.models import Order, OrderStatus, OrderType


def _order(number: str, status: OrderStatus, created_at: datetime) -> Order:
    return Order(
        order_id=number.lower(),
        order_number=number,
        total=Decimal("10.00"),
        status=status,
        order_type=OrderType.TAKEAWAY,
        created_at=created_at,
    )


def test_forward_chain_reaches_delivered_in_three_steps() -> None:
    status = OrderStatus.RECEIVED
    seen = []
    while (nxt := lifecycle.next_state(status)) is not None:
        seen.append(nxt)
        status = nxt

    assert seen == [OrderStatus.PREPARING, OrderStatus.READY, OrderStatus.DELIVERED]
    assert lifecycle.is_terminal(OrderStatus.DELIVERED)
    assert lifecycle.is_terminal(OrderStatus.CANCELLED)
    assert not lifecycle.is_terminal(OrderStatus.READY)


def test_request_transition_defaults_to_successor(fixed_now) -> None:
    intent = lifecycle.request_transition("o1", OrderStatus.RECEIVED, now=fixed_now)

    assert intent.order_id == "o1"
    assert intent.from_status is OrderStatus.RECEIVED
    assert intent.to_status is OrderStatus.PREPARING
    assert intent.requested_at == fixed_now


def test_request_transition_accepts_string_statuses() -> None:
    intent = lifecycle.request_transition("o1", "preparing", "ready")
    assert intent.to_status is OrderStatus.READY


@pytest.mark.parametrize(
    ("current", "target"),
    [
        (OrderStatus.RECEIVED, OrderStatus.READY),
        (OrderStatus.READY, OrderStatus.PREPARING),
        (OrderStatus.PREPARING, OrderStatus.PREPARING),
        (OrderStatus.DELIVERED, None),
        (OrderStatus.CANCELLED, None),
    ],
)
def test_out_of_sequence_requests_are_rejected(current, target) -> None:
    with pytest.raises(IllegalTransition) as excinfo:
        lifecycle.request_transition("o1", current, target)
    assert excinfo.value.current == current.value


def test_cancellation_only_before_ready() -> None:
    intent = lifecycle.request_cancellation("o1", OrderStatus.PREPARING)
    assert intent.to_status is OrderStatus.CANCELLED

    with pytest.raises(IllegalTransition):
        lifecycle.request_cancellation("o1", OrderStatus.READY)
    with pytest.raises(IllegalTransition):
        lifecycle.request_cancellation("o1", OrderStatus.DELIVERED)


def test_display_metadata_urgency_decreases_along_chain() -> None:
    urgencies = [lifecycle.display_metadata(status).urgency for status in lifecycle.ACTIVE_STATUSES]
    assert urgencies == sorted(urgencies, reverse=True)
    assert lifecycle.display_metadata(OrderStatus.DELIVERED).action_label is None
    assert lifecycle.display_metadata(OrderStatus.RECEIVED).action_label


def test_elapsed_never_negative(fixed_now) -> None:
    assert lifecycle.elapsed_since(fixed_now + timedelta(minutes=5), fixed_now) == timedelta(0)
    assert lifecycle.elapsed_since(fixed_now - timedelta(minutes=5), fixed_now) == timedelta(minutes=5)


def test_elapsed_treats_naive_as_utc(fixed_now) -> None:
    naive = fixed_now.replace(tzinfo=None) - timedelta(minutes=2)
    assert lifecycle.elapsed_since(naive, fixed_now) == timedelta(minutes=2)


@pytest.mark.parametrize(
    ("delta", "expected"),
    [
        (timedelta(seconds=30), "now"),
        (timedelta(minutes=12, seconds=59), "12min"),
        (timedelta(minutes=65), "1h 5min"),
    ],
)
def test_format_elapsed(delta, expected) -> None:
    assert lifecycle.format_elapsed(delta) == expected


def test_kitchen_sort_oldest_first_with_number_tiebreak(fixed_now) -> None:
    earlier = fixed_now - timedelta(minutes=10)
    orders = [
        _order("PED000003", OrderStatus.READY, fixed_now),
        _order("PED000002", OrderStatus.RECEIVED, earlier),
        _order("PED000001", OrderStatus.PREPARING, earlier),
    ]

    ordered = sorted(orders, key=lifecycle.kitchen_sort_key)
    assert [o.order_number for o in ordered] == ["PED000001", "PED000002", "PED000003"]

    by_urgency = sorted(orders, key=lifecycle.urgency_sort_key)
    assert [o.status for o in by_urgency] == [OrderStatus.RECEIVED, OrderStatus.PREPARING, OrderStatus.READY]


def test_kitchen_sort_mixes_naive_and_aware(fixed_now) -> None:
    orders = [
        _order("PED000002", OrderStatus.RECEIVED, fixed_now),
        _order("PED000001", OrderStatus.RECEIVED, fixed_now.replace(tzinfo=None) - timedelta(seconds=1)),
    ]
    assert sorted(orders, key=lifecycle.kitchen_sort_key)[0].order_number == "PED000001"


def test_transition_intent_is_plain_value() -> None:
    now = datetime(2026, 1, 1, tzinfo=timezone.utc)
    a = lifecycle.request_transition("o1", OrderStatus.READY, now=now)
    b = lifecycle.request_transition("o1", OrderStatus.READY, now=now)
    assert a == b
