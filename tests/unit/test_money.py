"""
Unit tests for Money and Currency.

Verifies:
- Decimal construction and float conversion through str
- Same-currency arithmetic and comparison
- Explicit rounding to the currency's minor unit
"""

from decimal import ROUND_DOWN, Decimal

import pytest

from billing_kernel.domain.values import Currency, Money


class TestConstruction:

    def test_of_string(self):
        money = Money.of("10000", "JPY")

        assert money.amount == Decimal("10000")
        assert money.currency == Currency("JPY")

    def test_float_goes_through_str(self):
        assert Money(0.1, Currency("USD")).amount == Decimal("0.1")

    def test_string_currency_is_normalised(self):
        assert Money(Decimal("1"), "jpy").currency.code == "JPY"

    def test_invalid_amount(self):
        with pytest.raises(ValueError):
            Money("ten", Currency("JPY"))

    def test_invalid_currency_type(self):
        with pytest.raises(TypeError):
            Money(Decimal("1"), 392)

    def test_zero(self):
        zero = Money.zero("JPY")

        assert zero.is_zero
        assert not zero.is_positive
        assert not zero.is_negative


class TestArithmetic:

    def test_add_and_subtract(self):
        a = Money.of("7000", "JPY")
        b = Money.of("3000", "JPY")

        assert a + b == Money.of("10000", "JPY")
        assert b - a == Money.of("-4000", "JPY")

    def test_negate_and_abs(self):
        debt = Money.of("-15000", "JPY")

        assert -debt == Money.of("15000", "JPY")
        assert abs(debt) == Money.of("15000", "JPY")

    def test_mixed_currencies_rejected(self):
        with pytest.raises(ValueError, match="different currencies"):
            Money.of("1", "JPY") + Money.of("1", "USD")

    def test_mixed_currency_comparison_rejected(self):
        with pytest.raises(ValueError):
            Money.of("1", "JPY") < Money.of("1", "USD")

    def test_comparison(self):
        assert Money.of("1", "JPY") < Money.of("2", "JPY")
        assert not Money.of("2", "JPY") < Money.of("2", "JPY")

    def test_sorts_by_amount(self):
        amounts = [Money.of(v, "JPY") for v in ("5000", "-15000", "0")]

        assert sorted(amounts, key=lambda m: -abs(m)) == [
            Money.of("-15000", "JPY"), Money.of("5000", "JPY"), Money.of("0", "JPY"),
        ]

    def test_non_money_operand(self):
        with pytest.raises(TypeError):
            Money.of("1", "JPY") + Decimal("1")


class TestRounding:

    @pytest.mark.parametrize(
        "amount, code, expected",
        [
            ("636.36", "JPY", "636"),
            ("1090.5", "JPY", "1091"),
            ("12.345", "USD", "12.35"),
            ("0.0005", "KWD", "0.001"),
        ],
    )
    def test_half_up_to_minor_unit(self, amount, code, expected):
        assert Money.of(amount, code).round().amount == Decimal(expected)

    def test_explicit_rounding_mode(self):
        assert Money.of("1090.9", "JPY").round(ROUND_DOWN).amount == Decimal("1090")

    def test_no_auto_rounding(self):
        assert (Money.of("0.4", "JPY") + Money.of("0.4", "JPY")).amount == Decimal("0.8")
