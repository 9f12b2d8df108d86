"""Currency -- fiat registry, crypto asset symbols and precision-derived rounding."""

import re
from dataclasses import dataclass
from decimal import Decimal
from typing import ClassVar

from capital_kernel.exceptions import InvalidAssetError, InvalidCurrencyError

# Maximum precision carried by crypto-denominated quantities.
CRYPTO_DECIMAL_PLACES = 8

_ASSET_PATTERN = re.compile(r"^[A-Z0-9]{2,10}$")


@dataclass(frozen=True)
class CurrencyInfo:
    """Information about a single fiat currency."""

    code: str
    decimal_places: int
    name: str

    @property
    def quantum(self) -> Decimal:
        """Smallest representable unit, e.g. Decimal("0.01") for 2 places."""
        return Decimal(1).scaleb(-self.decimal_places)


class CurrencyRegistry:
    """Closed registry of fiat currencies with their minor-unit precision."""

    # ISO 4217 codes the ledger accepts as fiat.
    _CURRENCIES: ClassVar[dict[str, CurrencyInfo]] = {
        "USD": CurrencyInfo("USD", 2, "US Dollar"),
        "HKD": CurrencyInfo("HKD", 2, "Hong Kong Dollar"),
        "EUR": CurrencyInfo("EUR", 2, "Euro"),
        "GBP": CurrencyInfo("GBP", 2, "Pound Sterling"),
        "CHF": CurrencyInfo("CHF", 2, "Swiss Franc"),
        "CAD": CurrencyInfo("CAD", 2, "Canadian Dollar"),
        "AUD": CurrencyInfo("AUD", 2, "Australian Dollar"),
        "NZD": CurrencyInfo("NZD", 2, "New Zealand Dollar"),
        "SGD": CurrencyInfo("SGD", 2, "Singapore Dollar"),
        "CNY": CurrencyInfo("CNY", 2, "Chinese Yuan"),
        "TWD": CurrencyInfo("TWD", 2, "New Taiwan Dollar"),
        "MXN": CurrencyInfo("MXN", 2, "Mexican Peso"),
        "INR": CurrencyInfo("INR", 2, "Indian Rupee"),
        # Zero decimal currencies
        "JPY": CurrencyInfo("JPY", 0, "Japanese Yen"),
        "KRW": CurrencyInfo("KRW", 0, "South Korean Won"),
        "VND": CurrencyInfo("VND", 0, "Vietnamese Dong"),
        # Three decimal currencies
        "BHD": CurrencyInfo("BHD", 3, "Bahraini Dinar"),
        "KWD": CurrencyInfo("KWD", 3, "Kuwaiti Dinar"),
    }

    @classmethod
    def is_valid(cls, code: str) -> bool:
        """Check if a code is a registered fiat currency."""
        if not code or not isinstance(code, str):
            return False
        return code.upper().strip() in cls._CURRENCIES

    @classmethod
    def get_info(cls, code: str) -> CurrencyInfo | None:
        """Get currency information by code."""
        if not code or not isinstance(code, str):
            return None
        return cls._CURRENCIES.get(code.upper().strip())

    @classmethod
    def get_decimal_places(cls, code: str) -> int:
        """Get decimal places for a fiat currency."""
        info = cls.get_info(code)
        if info is None:
            raise InvalidCurrencyError(code)
        return info.decimal_places

    @classmethod
    def validate(cls, code: str) -> str:
        """Validate and normalize a fiat currency code."""
        if not code or not isinstance(code, str):
            raise InvalidCurrencyError(repr(code))
        normalized = code.upper().strip()
        if normalized not in cls._CURRENCIES:
            raise InvalidCurrencyError(code)
        return normalized

    @classmethod
    def all_codes(cls) -> frozenset[str]:
        """Get all registered fiat codes."""
        return frozenset(cls._CURRENCIES.keys())


def validate_asset(symbol: str) -> str:
    """Validate and normalize a crypto asset symbol (well-formedness only)."""
    if not symbol or not isinstance(symbol, str):
        raise InvalidAssetError(repr(symbol))
    normalized = symbol.upper().strip()
    if not _ASSET_PATTERN.match(normalized):
        raise InvalidAssetError(symbol)
    return normalized


def is_fiat(unit: str) -> bool:
    """True when ``unit`` names a registered fiat currency."""
    return CurrencyRegistry.is_valid(unit)


def decimal_places_for(unit: str) -> int:
    """Precision of a unit: the fiat minor unit, else the crypto precision."""
    info = CurrencyRegistry.get_info(unit)
    if info is not None:
        return info.decimal_places
    validate_asset(unit)
    return CRYPTO_DECIMAL_PLACES


def validate_unit(unit: str) -> str:
    """Normalize a settlement unit: a fiat code or a crypto asset symbol."""
    if CurrencyRegistry.is_valid(unit):
        return CurrencyRegistry.validate(unit)
    return validate_asset(unit)
