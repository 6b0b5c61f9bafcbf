from __future__ import annotations

from decimal import Decimal

import pytest

from pdv.errors import ValidationError
from pdv.money import format_money, parse_amount, round_money, to_decimal


def test_to_decimal_avoids_float_noise() -> None:
    assert to_decimal(0.1) == Decimal("0.1")
    assert to_decimal("25.90") == Decimal("25.90")


@pytest.mark.parametrize("value", ["abc", "NaN", float("inf"), Decimal("sNaN"), None])
def test_to_decimal_rejects_non_numeric(value) -> None:
    with pytest.raises(ValidationError):
        to_decimal(value)


def test_round_money_half_up() -> None:
    assert round_money(Decimal("2.345")) == Decimal("2.35")
    assert round_money(Decimal("2.344")) == Decimal("2.34")


@pytest.mark.parametrize(
    ("text", "expected"),
    [("12.50", Decimal("12.50")), ("12,5", Decimal("12.50")), (" 7 ", Decimal("7.00"))],
)
def test_parse_amount(text, expected) -> None:
    assert parse_amount(text) == expected


@pytest.mark.parametrize("text", ["", "abc", "-1", "nan"])
def test_parse_amount_rejects_bad_input(text) -> None:
    with pytest.raises(ValidationError):
        parse_amount(text)


def test_format_money() -> None:
    assert format_money(Decimal("12.5")) == "R$ 12.50"
