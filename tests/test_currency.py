"""
Test suite for currency module

Tests the Money value, minor-unit rounding and Decimal input parsing.
All monetary calculations must use Decimal precision.
"""

import pytest
from decimal import Decimal

from credit_ledger.currency import Money, Currency, sum_money, parse_decimal


class TestMoney:
    """Test Money class operations"""

    def test_money_creation(self):
        """Amounts are rounded half-up to the currency's minor unit"""
        assert Money(Decimal('100.50'), Currency.USD).amount == Decimal('100.50')
        assert Money(Decimal('100.555'), Currency.USD).amount == Decimal('100.56')
        assert Money(Decimal('100.5'), Currency.JPY).amount == Decimal('101')

    def test_non_decimal_input(self):
        assert Money('19.99', Currency.USD).amount == Decimal('19.99')
        assert Money(5, Currency.USD).amount == Decimal('5.00')

    def test_arithmetic(self):
        a = Money(Decimal('100.50'), Currency.USD)
        b = Money(Decimal('50.25'), Currency.USD)

        assert a + b == Money(Decimal('150.75'), Currency.USD)
        assert a - b == Money(Decimal('50.25'), Currency.USD)
        assert a * Decimal('2') == Money(Decimal('201.00'), Currency.USD)
        assert -a == Money(Decimal('-100.50'), Currency.USD)

    def test_currency_mismatch(self):
        with pytest.raises(ValueError, match="Cannot add"):
            Money(Decimal('1'), Currency.USD) + Money(Decimal('1'), Currency.EUR)
        with pytest.raises(ValueError, match="Cannot compare"):
            Money(Decimal('1'), Currency.USD) < Money(Decimal('1'), Currency.EUR)

    def test_comparisons(self):
        small = Money(Decimal('10'), Currency.USD)
        large = Money(Decimal('20'), Currency.USD)

        assert small < large
        assert large >= small
        assert min(large, small) == small
        assert small != Money(Decimal('10'), Currency.EUR)
        assert small != Decimal('10')

    def test_sign_checks(self):
        assert Money.zero(Currency.USD).is_zero()
        assert Money(Decimal('0.01'), Currency.USD).is_positive()
        assert Money(Decimal('-0.01'), Currency.USD).is_negative()

    def test_to_string(self):
        assert Money(Decimal('2353.67'), Currency.USD).to_string() == "USD 2,353.67"
        assert Money(Decimal('1500000'), Currency.JPY).to_string() == "JPY 1,500,000"

    def test_hashable(self):
        assert len({Money(Decimal('1'), Currency.USD), Money(Decimal('1.00'), Currency.USD)}) == 1


class TestHelpers:
    """Test currency helpers"""

    def test_sum_money(self):
        values = [Money(Decimal('0.10'), Currency.USD)] * 3
        assert sum_money(values, Currency.USD) == Money(Decimal('0.30'), Currency.USD)
        assert sum_money([], Currency.USD) == Money.zero(Currency.USD)

    def test_from_code(self):
        assert Currency.from_code("usd") == Currency.USD
        with pytest.raises(ValueError):
            Currency.from_code("XYZ")

    @pytest.mark.parametrize("value,expected", [
        ("50000", Decimal('50000')),
        (" 12.5 ", Decimal('12.5')),
        (24, Decimal('24')),
        (0.1, Decimal('0.1')),
        (Decimal('3.14'), Decimal('3.14')),
    ])
    def test_parse_decimal(self, value, expected):
        assert parse_decimal(value) == expected

    @pytest.mark.parametrize("value", ["abc", "", None, "Infinity", "NaN"])
    def test_parse_decimal_rejects(self, value):
        with pytest.raises(ValueError, match="^amount"):
            parse_decimal(value, "amount")
