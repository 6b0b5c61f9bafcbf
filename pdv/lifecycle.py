"""Order status state machine used by the kitchen terminal."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from pdv.constant import ORDER_STATUS_META
from pdv.errors import IllegalTransition
from pdv.models import Order, OrderStatus

_FORWARD: dict[OrderStatus, OrderStatus | None] = {
    OrderStatus.RECEIVED: OrderStatus.PREPARING,
    OrderStatus.PREPARING: OrderStatus.READY,
    OrderStatus.READY: OrderStatus.DELIVERED,
    OrderStatus.DELIVERED: None,
    OrderStatus.CANCELLED: None,
}

ACTIVE_STATUSES: tuple[OrderStatus, ...] = (
    OrderStatus.RECEIVED,
    OrderStatus.PREPARING,
    OrderStatus.READY,
)
CANCELLABLE_STATUSES: frozenset[OrderStatus] = frozenset({OrderStatus.RECEIVED, OrderStatus.PREPARING})
TERMINAL_STATUSES: frozenset[OrderStatus] = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})


@dataclass(frozen=True)
class StatusMeta:
    """Display metadata for one status."""

    label: str
    urgency: int
    action_label: str | None
    badge_style: str


@dataclass(frozen=True)
class TransitionIntent:
    """A validated status change for the order store to persist."""

    order_id: str
    from_status: OrderStatus
    to_status: OrderStatus
    requested_at: datetime


def next_state(current: OrderStatus) -> OrderStatus | None:
    """Return the single legal successor, or None for terminal states."""
    return _FORWARD[OrderStatus(current)]


def is_terminal(status: OrderStatus) -> bool:
    return OrderStatus(status) in TERMINAL_STATUSES


def display_metadata(status: OrderStatus) -> StatusMeta:
    meta = ORDER_STATUS_META[OrderStatus(status).value]
    return StatusMeta(
        label=str(meta["label"]),
        urgency=int(meta["urgency"]),  # type: ignore[arg-type]
        action_label=str(meta["action_label"]) if meta["action_label"] is not None else None,
        badge_style=str(meta["badge_style"]),
    )


def label(status: OrderStatus) -> str:
    return display_metadata(status).label


def elapsed_since(created_at: datetime, now: datetime | None = None) -> timedelta:
    """Time since ``created_at``; never negative."""
    if now is None:
        now = datetime.now(timezone.utc)
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    delta = now - created_at
    if delta < timedelta(0):
        return timedelta(0)
    return delta


def format_elapsed(delta: timedelta) -> str:
    """Compact kitchen-card age: ``now``, ``12min`` or ``1h 5min``."""
    minutes = int(delta.total_seconds() // 60)
    if minutes < 1:
        return "now"
    if minutes < 60:
        return f"{minutes}min"
    hours, rest = divmod(minutes, 60)
    return f"{hours}h {rest}min"


def request_transition(
    order_id: str,
    current: OrderStatus,
    target: OrderStatus | None = None,
    now: datetime | None = None,
) -> TransitionIntent:
    """
    Validate a forward step and return the intent to persist.

    ``target`` defaults to the successor of ``current``. Any target other
    than that successor, and any request from a terminal state, raises
    IllegalTransition. Nothing is persisted here.
    """
    current = OrderStatus(current)
    successor = next_state(current)
    if target is not None:
        target = OrderStatus(target)
    if successor is None or (target is not None and target != successor):
        raise IllegalTransition(current.value, target.value if target is not None else None)
    return TransitionIntent(
        order_id=order_id,
        from_status=current,
        to_status=successor,
        requested_at=now or datetime.now(timezone.utc),
    )


def request_cancellation(order_id: str, current: OrderStatus, now: datetime | None = None) -> TransitionIntent:
    """Cancel an order that the kitchen has not finished yet."""
    current = OrderStatus(current)
    if current not in CANCELLABLE_STATUSES:
        raise IllegalTransition(current.value, OrderStatus.CANCELLED.value)
    return TransitionIntent(
        order_id=order_id,
        from_status=current,
        to_status=OrderStatus.CANCELLED,
        requested_at=now or datetime.now(timezone.utc),
    )


def kitchen_sort_key(order: Order) -> tuple[datetime, str]:
    """Oldest order first, ties broken by order number."""
    created = order.created_at
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return (created, order.order_number)


def urgency_sort_key(order: Order) -> tuple[int, datetime, str]:
    """Most urgent status first, then oldest first."""
    created, number = kitchen_sort_key(order)
    return (-display_metadata(order.status).urgency, created, number)
