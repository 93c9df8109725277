from decimal import Decimal

import pytest

from storefront.money import format_money, money, percent_of, round_money, sum_money


def test_float_amounts_keep_their_decimal_spelling() -> None:
    assert money(249.99) == Decimal("249.99")
    assert money("149.99") == Decimal("149.99")
    assert money(10) == Decimal("10")


@pytest.mark.parametrize("bad", [-1, "-0.01", "NaN", "Infinity"])
def test_rejects_negative_and_non_finite(bad: object) -> None:
    with pytest.raises(ValueError):
        money(bad)  # type: ignore[arg-type]


def test_repeated_additions_do_not_drift() -> None:
    assert sum_money(money(0.1) for _ in range(10)) == Decimal("1.0")


def test_percent_of_stays_unrounded() -> None:
    assert percent_of(Decimal("549.97"), 20) == Decimal("109.994")


@pytest.mark.parametrize(
    ("raw", "rounded"),
    [
        ("109.994", "109.99"),
        ("439.976", "439.98"),
        ("0.005", "0.01"),
        ("2.675", "2.68"),
        ("10", "10.00"),
    ],
)
def test_round_money_is_half_up_to_cents(raw: str, rounded: str) -> None:
    assert round_money(Decimal(raw)) == Decimal(rounded)
    assert str(round_money(Decimal(raw))) == rounded


def test_format_money() -> None:
    assert format_money(Decimal("1234.5")) == "$1,234.50"
    assert format_money(Decimal("50")) == "$50.00"
    assert format_money(Decimal("9.999"), "EUR") == "10.00 EUR"
