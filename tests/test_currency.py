"""Tests for currency display formatting."""

from decimal import Decimal

from subtracker.core.currency import CURRENCIES, format_amount, quantize_amount
from subtracker.models.schemas import Currency


class TestFormatAmount:
    def test_usd_default(self):
        assert format_amount(Decimal("1234.5")) == "$1,234.50"

    def test_jpy_has_no_decimals(self):
        assert format_amount(500000, Currency.JPY) == "¥500,000"

    def test_eur(self):
        assert format_amount(4000, Currency.EUR) == "€4,000.00"

    def test_other_symbols(self):
        assert format_amount(12, Currency.GBP) == "£12.00"
        assert format_amount(12, Currency.CAD) == "C$12.00"
        assert format_amount(12, Currency.INR) == "₹12.00"

    def test_negative(self):
        assert format_amount(Decimal("-500"), Currency.USD) == "-$500.00"

    def test_rounds_half_up(self):
        assert format_amount(Decimal("0.005")) == "$0.01"
        assert format_amount(Decimal("1499.5"), Currency.JPY) == "¥1,500"

    def test_accepts_float(self):
        assert format_amount(0.1 + 0.2) == "$0.30"

    def test_any_finite_amount(self):
        assert format_amount(Decimal("1e27")) == "$1" + ",000" * 9 + ".00"
        huge = format_amount(Decimal("-9e9999"), Currency.JPY)
        assert huge.startswith("-¥9,000,000")
        assert huge.endswith(",000")


class TestQuantizeAmount:
    def test_two_decimals(self):
        assert quantize_amount(Decimal("10.125"), Currency.USD) == Decimal("10.13")

    def test_zero_decimals(self):
        assert quantize_amount(Decimal("10.5"), Currency.JPY) == Decimal("11")

    def test_beyond_default_precision(self):
        assert quantize_amount(Decimal("1e30"), Currency.USD) == Decimal("1e30")
        assert quantize_amount(Decimal("123456789012345678901234567890.125"), Currency.USD) == Decimal(
            "123456789012345678901234567890.13"
        )


class TestCurrencyTable:
    def test_every_currency_has_display_rules(self):
        assert set(CURRENCIES) == set(Currency)

    def test_only_jpy_drops_decimals(self):
        assert [c for c, spec in CURRENCIES.items() if spec.decimals == 0] == [Currency.JPY]
