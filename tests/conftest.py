from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from pdv import persistence
from pdv.models import Product


@pytest.fixture()
def store(tmp_path, monkeypatch):
    """
    Isolated SQLite file per test.
    Points the persistence module at it and creates the schema.
    """
    db_path = tmp_path / "pdv.db"
    monkeypatch.setattr(persistence, "DB_PATH", str(db_path))
    persistence.bootstrap_schema()
    return db_path


@pytest.fixture()
def pastel() -> Product:
    return Product(product_id="p-pastel", name="Meat Pastel", price=Decimal("25.90"), category="Pastels")


@pytest.fixture()
def juice() -> Product:
    return Product(product_id="p-juice", name="Sugarcane Juice", price=Decimal("6.90"), category="Drinks")


@pytest.fixture()
def fixed_now() -> datetime:
    return datetime(2026, 10, 19, 12, 30, 0, tzinfo=timezone.utc)
