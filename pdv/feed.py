"""Change notifications for store topics.

Subscribers receive no payload: every callback is expected to re-fetch the
state it renders. Local writes call ``notify`` directly; writes made by other
terminals against the same SQLite file are picked up by ``poll``.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from typing import Callable

logger = logging.getLogger(__name__)

TOPIC_ORDERS = "orders"
TOPIC_TABLES = "tables"
TOPIC_PRODUCTS = "products"
TOPIC_CASH = "cash_movements"

Unsubscribe = Callable[[], None]


class ChangeFeed:
    """In-process fan-out with cross-connection change detection."""

    def __init__(self, db_path: str | Path | None = None) -> None:
        self._subscribers: dict[str, list[Callable[[], None]]] = {}
        self._db_path = Path(db_path) if db_path is not None else None
        self._watch_conn: sqlite3.Connection | None = None
        self._last_version: int | None = None

    def subscribe(self, topic: str, on_change: Callable[[], None]) -> Unsubscribe:
        """Register ``on_change`` for ``topic`` and return a callable that removes it."""
        callbacks = self._subscribers.setdefault(topic, [])
        callbacks.append(on_change)

        def unsubscribe() -> None:
            if on_change in callbacks:
                callbacks.remove(on_change)

        return unsubscribe

    def notify(self, topic: str) -> None:
        for callback in list(self._subscribers.get(topic, [])):
            try:
                callback()
            except Exception:
                logger.exception("feed_callback_failed topic=%s", topic)

    def notify_all(self) -> None:
        for topic in list(self._subscribers):
            self.notify(topic)

    def poll(self) -> bool:
        """
        Check whether another connection committed to the store.

        Returns True (after notifying every topic) when a change was seen.
        The first poll only records the baseline version.
        """
        if self._db_path is None or not self._db_path.exists():
            return False
        try:
            if self._watch_conn is None:
                self._watch_conn = sqlite3.connect(self._db_path)
            version = int(self._watch_conn.execute("PRAGMA data_version").fetchone()[0])
        except sqlite3.Error as exc:
            logger.warning("feed_poll_failed error=%r", exc)
            self.close()
            return False

        previous = self._last_version
        self._last_version = version
        if previous is None or previous == version:
            return False
        logger.debug("feed_change_detected version=%d", version)
        self.notify_all()
        return True

    def close(self) -> None:
        if self._watch_conn is not None:
            self._watch_conn.close()
            self._watch_conn = None
        self._last_version = None
