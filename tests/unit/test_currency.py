"""
Unit tests for the currency registry and unit validation.
"""

import pytest

from capital_kernel.domain.currency import (
    CRYPTO_DECIMAL_PLACES,
    CurrencyRegistry,
    decimal_places_for,
    is_fiat,
    validate_asset,
    validate_unit,
)
from capital_kernel.exceptions import InvalidAssetError, InvalidCurrencyError


class TestCurrencyRegistry:
    """Tests for the closed fiat registry."""

    def test_known_codes(self):
        """USD and HKD are registered."""
        assert CurrencyRegistry.is_valid("USD")
        assert CurrencyRegistry.is_valid("hkd")

    def test_unknown_code(self):
        """BTC is not fiat."""
        assert not CurrencyRegistry.is_valid("BTC")

    def test_validate_normalizes(self):
        """validate upper-cases and strips."""
        assert CurrencyRegistry.validate(" eur ") == "EUR"

    def test_validate_rejects_unknown(self):
        """Unknown codes raise InvalidCurrencyError."""
        with pytest.raises(InvalidCurrencyError):
            CurrencyRegistry.validate("ZZZ")

    def test_decimal_places(self):
        """Minor units per currency."""
        assert CurrencyRegistry.get_decimal_places("USD") == 2
        assert CurrencyRegistry.get_decimal_places("JPY") == 0
        assert CurrencyRegistry.get_decimal_places("BHD") == 3


class TestUnits:
    """Tests for fiat-or-asset unit helpers."""

    def test_is_fiat(self):
        """Only registry codes are fiat."""
        assert is_fiat("USD")
        assert not is_fiat("ETH")

    def test_crypto_precision(self):
        """Every crypto asset uses the fixed crypto precision."""
        assert decimal_places_for("BTC") == CRYPTO_DECIMAL_PLACES
        assert decimal_places_for("USD") == 2

    def test_validate_unit_dispatch(self):
        """Fiat codes and asset symbols both validate."""
        assert validate_unit("usd") == "USD"
        assert validate_unit("usdc") == "USDC"

    def test_validate_asset_rejects_empty(self):
        """Empty symbols are invalid."""
        with pytest.raises(InvalidAssetError):
            validate_asset("")
