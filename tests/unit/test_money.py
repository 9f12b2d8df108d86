"""
Unit tests for Money, CryptoAmount and decimal handling.

Verifies:
- Float constructor prohibition
- Per-unit precision limits
- Currency and asset mixing refusal
- Rounding determinism
"""

from decimal import ROUND_DOWN, Decimal

import pytest

from capital_kernel.domain.values import (
    CryptoAmount,
    Currency,
    Money,
    amount_of,
    to_decimal,
    zero_of,
)
from capital_kernel.exceptions import (
    CurrencyMismatchError,
    InvalidAssetError,
    InvalidCurrencyError,
)


class TestToDecimal:
    """Tests for to_decimal coercion."""

    def test_string_input(self):
        """Strings are parsed exactly."""
        assert to_decimal("100.50") == Decimal("100.50")

    def test_int_input(self):
        """Integers are accepted."""
        assert to_decimal(7) == Decimal("7")

    def test_float_rejected(self):
        """Floats raise TypeError."""
        with pytest.raises(TypeError):
            to_decimal(0.1)

    def test_bool_rejected(self):
        """Booleans are not numbers here."""
        with pytest.raises(TypeError):
            to_decimal(True)

    def test_garbage_string_rejected(self):
        """Non-numeric strings raise ValueError."""
        with pytest.raises(ValueError):
            to_decimal("not a number")

    def test_non_finite_rejected(self):
        """NaN and Infinity are refused."""
        with pytest.raises(ValueError):
            to_decimal("NaN")
        with pytest.raises(ValueError):
            to_decimal(Decimal("Infinity"))


class TestMoney:
    """Tests for the fiat Money value object."""

    def test_of_normalizes_currency(self):
        """Currency codes are upper-cased."""
        m = Money.of("10.00", "usd")
        assert m.currency == Currency("USD")
        assert m.unit == "USD"

    def test_unknown_currency(self):
        """Unregistered codes raise InvalidCurrencyError."""
        with pytest.raises(InvalidCurrencyError):
            Money.of("1.00", "XYZ")

    def test_float_amount_rejected(self):
        """Money refuses float amounts."""
        with pytest.raises(TypeError):
            Money(amount=10.5, currency="USD")

    def test_excess_precision_rejected(self):
        """Three decimals in USD is an error, not a silent round."""
        with pytest.raises(ValueError):
            Money.of("10.555", "USD")

    def test_zero_decimal_currency(self):
        """JPY accepts whole amounts only."""
        assert Money.of("1000", "JPY").decimal_places == 0
        with pytest.raises(ValueError):
            Money.of("1000.5", "JPY")

    def test_three_decimal_currency(self):
        """KWD carries three decimals."""
        assert Money.of("1.234", "KWD").amount == Decimal("1.234")

    def test_rounded_half_up(self):
        """Money.rounded quantizes half-up by default."""
        assert Money.rounded("10.555", "USD").amount == Decimal("10.56")
        assert Money.rounded("10.554", "USD").amount == Decimal("10.55")

    def test_rounded_explicit_mode(self):
        """An explicit rounding mode is honored."""
        assert Money.rounded("10.559", "USD", ROUND_DOWN).amount == Decimal("10.55")

    def test_addition_and_subtraction(self):
        """Same-currency arithmetic."""
        a = Money.of("10.25", "USD")
        b = Money.of("4.75", "USD")
        assert (a + b).amount == Decimal("15.00")
        assert (a - b).amount == Decimal("5.50")
        assert (b - a).is_negative

    def test_mixed_currency_addition_rejected(self):
        """USD + HKD raises CurrencyMismatchError."""
        with pytest.raises(CurrencyMismatchError):
            Money.of("1.00", "USD") + Money.of("1.00", "HKD")

    def test_mixed_currency_comparison_rejected(self):
        """Ordering across currencies is refused."""
        with pytest.raises(CurrencyMismatchError):
            Money.of("1.00", "USD") < Money.of("2.00", "HKD")

    def test_negation_and_abs(self):
        """Unary operators keep the currency."""
        m = Money.of("3.50", "USD")
        assert (-m).amount == Decimal("-3.50")
        assert abs(-m) == m

    def test_scaled_rounds_to_precision(self):
        """Scaling by a ratio rounds half-up to the currency precision."""
        assert Money.of("10.00", "USD").scaled("0.333").amount == Decimal("3.33")
        assert Money.of("10.05", "USD").scaled("0.5").amount == Decimal("5.03")

    def test_compare(self):
        """compare returns -1, 0 or 1."""
        a, b = Money.of("1.00", "USD"), Money.of("2.00", "USD")
        assert a.compare(b) == -1
        assert b.compare(a) == 1
        assert a.compare(Money.of("1", "USD")) == 0

    def test_equal_regardless_of_exponent(self):
        """50 and 50.00 are the same amount."""
        assert Money.of("50", "USD") == Money.of("50.00", "USD")

    def test_zero(self):
        """Money.zero is zero in that currency."""
        z = Money.zero("HKD")
        assert z.is_zero
        assert z.unit == "HKD"


class TestCryptoAmount:
    """Tests for the CryptoAmount value object."""

    def test_asset_normalized(self):
        """Asset symbols are upper-cased."""
        assert CryptoAmount.of("0.5", "btc").asset == "BTC"

    def test_fiat_symbol_rejected(self):
        """A fiat code is not a crypto asset."""
        with pytest.raises(InvalidAssetError):
            CryptoAmount.of("1", "USD")

    def test_malformed_symbol_rejected(self):
        """Symbols must be 2-10 alphanumerics."""
        with pytest.raises(InvalidAssetError):
            CryptoAmount.of("1", "B")
        with pytest.raises(InvalidAssetError):
            CryptoAmount.of("1", "BTC-USD")

    def test_eight_decimal_places(self):
        """Satoshi precision is allowed, beyond is not."""
        assert CryptoAmount.of("0.00000001", "BTC").qty == Decimal("0.00000001")
        with pytest.raises(ValueError):
            CryptoAmount.of("0.000000001", "BTC")

    def test_mixed_assets_rejected(self):
        """BTC + ETH raises CurrencyMismatchError."""
        with pytest.raises(CurrencyMismatchError):
            CryptoAmount.of("1", "BTC") + CryptoAmount.of("1", "ETH")

    def test_arithmetic(self):
        """Same-asset arithmetic."""
        total = CryptoAmount.of("0.1", "ETH") + CryptoAmount.of("0.25", "ETH")
        assert total.qty == Decimal("0.35")


class TestAmountOf:
    """Tests for the unit-dispatching amount factory."""

    def test_fiat_unit_builds_money(self):
        """A registered fiat code yields Money."""
        assert isinstance(amount_of("usd", "1.00"), Money)

    def test_asset_unit_builds_crypto(self):
        """Anything else well-formed yields CryptoAmount."""
        assert isinstance(amount_of("SOL", "1.5"), CryptoAmount)

    def test_zero_of(self):
        """zero_of picks the right variant."""
        assert zero_of("BTC").is_zero
        assert isinstance(zero_of("EUR"), Money)
