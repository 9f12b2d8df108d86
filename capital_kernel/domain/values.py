"""
Values -- Immutable, self-validating amount types.

Responsibility:
    Provides the value types every ledger computation is expressed in:
    Currency, Money (fiat), CryptoAmount (crypto assets), the LegAmount
    union of the two, and FxConversion, the declared rate that translates
    one leg's amount into another unit.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by every other domain module.  Depends only on
    capital_kernel.domain.currency and capital_kernel.exceptions.

Invariants enforced:
    EXACT_DECIMAL -- amounts and rates are Decimal; floats raise TypeError.
    Precision -- a fiat amount never carries more decimal places than its
        currency's minor unit; a crypto quantity never more than 8.
    Unit safety -- arithmetic and comparison across different units raise
        CurrencyMismatchError.

Failure modes:
    - TypeError when a float (or other non-decimal) is supplied as an amount.
    - ValueError for non-finite amounts or excess precision.
    - InvalidCurrencyError / InvalidAssetError for bad unit codes.
    - CurrencyMismatchError when operands carry different units.

Audit relevance:
    No balance in the ledger is ever computed in binary floating point.
    Every number a user sees traces back to Decimal arithmetic over values
    that were validated at construction.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

from capital_kernel.domain.currency import (
    CRYPTO_DECIMAL_PLACES,
    CurrencyRegistry,
    decimal_places_for,
    is_fiat,
    validate_asset,
    validate_unit,
)
from capital_kernel.exceptions import CurrencyMismatchError, InvalidAssetError
from capital_kernel.utils.timestamps import to_utc


def to_decimal(value: Decimal | int | str, label: str = "amount") -> Decimal:
    """
    Coerce an int / str / Decimal to a finite Decimal.

    Floats are rejected outright: ``Decimal(0.1)`` silently carries the
    binary representation error into the ledger.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise TypeError(f"{label} must be Decimal, int or str, not {type(value).__name__}")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation as e:
            raise ValueError(f"Invalid {label}: {value!r}") from e
    else:
        raise TypeError(f"{label} must be Decimal, int or str, not {type(value).__name__}")
    if not result.is_finite():
        raise ValueError(f"{label} must be finite: {value!r}")
    return result


def _quantum(decimal_places: int) -> Decimal:
    return Decimal(1).scaleb(-decimal_places)


def _check_precision(value: Decimal, decimal_places: int, unit: str) -> None:
    try:
        exact = value.quantize(_quantum(decimal_places)) == value
    except InvalidOperation:
        exact = False
    if not exact:
        raise ValueError(
            f"{value} has more than {decimal_places} decimal places for {unit}"
        )


@dataclass(frozen=True, slots=True)
class Currency:
    """
    Fiat currency code value object.

    Contract:
        Wraps a code from the closed CurrencyRegistry.  Normalized to upper
        case on construction; unknown codes raise InvalidCurrencyError.

    Non-goals:
        - Crypto assets are not currencies; see CryptoAmount.
    """

    code: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "code", CurrencyRegistry.validate(self.code))

    @property
    def decimal_places(self) -> int:
        return CurrencyRegistry.get_decimal_places(self.code)

    def __str__(self) -> str:
        return self.code

    def __repr__(self) -> str:
        return f"Currency({self.code!r})"


@dataclass(frozen=True, slots=True)
class Money:
    """
    Fiat amount value object.

    Contract:
        Pairs a Decimal amount with its Currency.  The amount may be signed
        (balances and deltas are Money too); leg amounts are constrained to
        be non-negative by Leg, not here.

    Guarantees:
        - Immutable and hashable.
        - amount is a finite Decimal within the currency's precision.
        - Arithmetic and ordering refuse to mix currencies.

    Non-goals:
        - Does NOT convert currencies (use FxConversion.convert).
        - Does NOT format for display.
    """

    amount: Decimal
    currency: Currency

    def __post_init__(self) -> None:
        if isinstance(self.currency, str):
            object.__setattr__(self, "currency", Currency(self.currency))
        elif not isinstance(self.currency, Currency):
            raise TypeError(f"currency must be Currency or str, got {type(self.currency)}")
        amount = to_decimal(self.amount)
        _check_precision(amount, self.currency.decimal_places, self.currency.code)
        object.__setattr__(self, "amount", amount)

    @classmethod
    def of(cls, amount: Decimal | str | int, currency: str | Currency) -> Money:
        """Factory method for creating Money."""
        return cls(amount=amount, currency=currency)

    @classmethod
    def zero(cls, currency: str | Currency) -> Money:
        """Create a zero amount in the given currency."""
        return cls(amount=Decimal("0"), currency=currency)

    @classmethod
    def rounded(
        cls, amount: Decimal | str | int, currency: str | Currency, rounding: str = ROUND_HALF_UP
    ) -> Money:
        """Build Money from an arbitrary-precision value, quantizing first."""
        cur = currency if isinstance(currency, Currency) else Currency(currency)
        value = to_decimal(amount).quantize(_quantum(cur.decimal_places), rounding=rounding)
        return cls(amount=value, currency=cur)

    # Shared LegAmount interface

    @property
    def unit(self) -> str:
        return self.currency.code

    @property
    def value(self) -> Decimal:
        return self.amount

    @property
    def decimal_places(self) -> int:
        return self.currency.decimal_places

    @property
    def is_zero(self) -> bool:
        return self.amount == 0

    @property
    def is_negative(self) -> bool:
        return self.amount < 0

    def with_value(self, value: Decimal) -> Money:
        """Same currency, different amount."""
        return Money(amount=value, currency=self.currency)

    def round(self, rounding: str = ROUND_HALF_UP) -> Money:
        """Round to the currency's decimal places."""
        return Money.rounded(self.amount, self.currency, rounding)

    def scaled(self, factor: Decimal | int | str) -> Money:
        """Multiply by a scalar, rounding the product half-up to the currency precision."""
        return Money.rounded(self.amount * to_decimal(factor, "factor"), self.currency)

    def compare(self, other: Money) -> int:
        """-1, 0 or 1 as self is less than, equal to or greater than other."""
        self._require_same(other)
        if self.amount < other.amount:
            return -1
        if self.amount > other.amount:
            return 1
        return 0

    def _require_same(self, other: object) -> None:
        if not isinstance(other, Money):
            raise CurrencyMismatchError(self.unit, getattr(other, "unit", type(other).__name__))
        if self.currency != other.currency:
            raise CurrencyMismatchError(self.currency.code, other.currency.code)

    def __add__(self, other: Money) -> Money:
        if not isinstance(other, (Money, CryptoAmount)):
            return NotImplemented
        self._require_same(other)
        return Money(amount=self.amount + other.amount, currency=self.currency)

    def __sub__(self, other: Money) -> Money:
        if not isinstance(other, (Money, CryptoAmount)):
            return NotImplemented
        self._require_same(other)
        return Money(amount=self.amount - other.amount, currency=self.currency)

    def __neg__(self) -> Money:
        return Money(amount=-self.amount, currency=self.currency)

    def __abs__(self) -> Money:
        return Money(amount=abs(self.amount), currency=self.currency)

    def __lt__(self, other: Money) -> bool:
        return self.compare(other) < 0

    def __le__(self, other: Money) -> bool:
        return self.compare(other) <= 0

    def __gt__(self, other: Money) -> bool:
        return self.compare(other) > 0

    def __ge__(self, other: Money) -> bool:
        return self.compare(other) >= 0

    def __str__(self) -> str:
        return f"{self.amount} {self.currency.code}"

    def __repr__(self) -> str:
        return f"Money({self.amount!r}, {self.currency!r})"


@dataclass(frozen=True, slots=True)
class CryptoAmount:
    """
    Crypto asset quantity value object.

    Contract:
        Pairs a Decimal quantity with a free-form asset symbol.  The symbol is
        validated for well-formedness only (there is no closed asset list),
        but it may not collide with a registered fiat code.

    Guarantees:
        - Immutable and hashable.
        - qty is a finite Decimal with at most 8 decimal places.
        - Arithmetic and ordering refuse to mix assets.
    """

    qty: Decimal
    asset: str

    def __post_init__(self) -> None:
        asset = validate_asset(self.asset)
        if is_fiat(asset):
            raise InvalidAssetError(asset)
        qty = to_decimal(self.qty, "qty")
        _check_precision(qty, CRYPTO_DECIMAL_PLACES, asset)
        object.__setattr__(self, "asset", asset)
        object.__setattr__(self, "qty", qty)

    @classmethod
    def of(cls, qty: Decimal | str | int, asset: str) -> CryptoAmount:
        """Factory method for creating CryptoAmount."""
        return cls(qty=qty, asset=asset)

    @classmethod
    def zero(cls, asset: str) -> CryptoAmount:
        return cls(qty=Decimal("0"), asset=asset)

    @property
    def unit(self) -> str:
        return self.asset

    @property
    def value(self) -> Decimal:
        return self.qty

    @property
    def decimal_places(self) -> int:
        return CRYPTO_DECIMAL_PLACES

    @property
    def is_zero(self) -> bool:
        return self.qty == 0

    @property
    def is_negative(self) -> bool:
        return self.qty < 0

    def with_value(self, value: Decimal) -> CryptoAmount:
        """Same asset, different quantity."""
        return CryptoAmount(qty=value, asset=self.asset)

    def compare(self, other: CryptoAmount) -> int:
        """-1, 0 or 1 as self is less than, equal to or greater than other."""
        self._require_same(other)
        if self.qty < other.qty:
            return -1
        if self.qty > other.qty:
            return 1
        return 0

    def _require_same(self, other: object) -> None:
        if not isinstance(other, CryptoAmount):
            raise CurrencyMismatchError(self.unit, getattr(other, "unit", type(other).__name__))
        if self.asset != other.asset:
            raise CurrencyMismatchError(self.asset, other.asset)

    def __add__(self, other: CryptoAmount) -> CryptoAmount:
        if not isinstance(other, (Money, CryptoAmount)):
            return NotImplemented
        self._require_same(other)
        return CryptoAmount(qty=self.qty + other.qty, asset=self.asset)

    def __sub__(self, other: CryptoAmount) -> CryptoAmount:
        if not isinstance(other, (Money, CryptoAmount)):
            return NotImplemented
        self._require_same(other)
        return CryptoAmount(qty=self.qty - other.qty, asset=self.asset)

    def __neg__(self) -> CryptoAmount:
        return CryptoAmount(qty=-self.qty, asset=self.asset)

    def __abs__(self) -> CryptoAmount:
        return CryptoAmount(qty=abs(self.qty), asset=self.asset)

    def __lt__(self, other: CryptoAmount) -> bool:
        return self.compare(other) < 0

    def __le__(self, other: CryptoAmount) -> bool:
        return self.compare(other) <= 0

    def __gt__(self, other: CryptoAmount) -> bool:
        return self.compare(other) > 0

    def __ge__(self, other: CryptoAmount) -> bool:
        return self.compare(other) >= 0

    def __str__(self) -> str:
        return f"{self.qty} {self.asset}"

    def __repr__(self) -> str:
        return f"CryptoAmount({self.qty!r}, {self.asset!r})"


LegAmount = Union[Money, CryptoAmount]


def amount_of(unit: str, value: Decimal | str | int) -> LegAmount:
    """Build the LegAmount variant matching ``unit`` (fiat code or asset symbol)."""
    normalized = validate_unit(unit)
    if is_fiat(normalized):
        return Money(amount=value, currency=normalized)
    return CryptoAmount(qty=value, asset=normalized)


def zero_of(unit: str) -> LegAmount:
    return amount_of(unit, Decimal("0"))


@dataclass(frozen=True, slots=True)
class FxConversion:
    """
    Declared conversion rate attached to a leg.

    Contract:
        1 unit of ``from_unit`` = ``rate`` units of ``to_unit``.  The rate is
        supplied by the caller (bank statement, peg, exchange fill); the
        ledger never sources or invents one.

    Guarantees:
        - rate is a positive Decimal.
        - from_unit and to_unit are valid, normalized and different.
        - at is an aware UTC datetime.
        - convert() quantizes to the target unit's precision (half-up).

    Non-goals:
        - No triangulation or inverse lookups.
    """

    from_unit: str
    to_unit: str
    rate: Decimal
    source: str
    at: datetime

    def __post_init__(self) -> None:
        from_unit = validate_unit(self.from_unit)
        to_unit = validate_unit(self.to_unit)
        if from_unit == to_unit:
            raise ValueError(f"FX conversion must change units, got {from_unit} -> {to_unit}")
        rate = to_decimal(self.rate, "rate")
        if rate <= 0:
            raise ValueError(f"Exchange rate must be positive: {rate}")
        if not isinstance(self.source, str):
            raise TypeError(f"source must be str, got {type(self.source).__name__}")
        object.__setattr__(self, "from_unit", from_unit)
        object.__setattr__(self, "to_unit", to_unit)
        object.__setattr__(self, "rate", rate)
        object.__setattr__(self, "at", to_utc(self.at))

    def convert(self, amount: LegAmount) -> LegAmount:
        """
        Translate ``amount`` into ``to_unit``.

        Raises:
            CurrencyMismatchError: If amount is not denominated in from_unit.
        """
        if amount.unit != self.from_unit:
            raise CurrencyMismatchError(amount.unit, self.from_unit)
        places = decimal_places_for(self.to_unit)
        converted = (amount.value * self.rate).quantize(_quantum(places), rounding=ROUND_HALF_UP)
        return amount_of(self.to_unit, converted)

    def __str__(self) -> str:
        return f"1 {self.from_unit} = {self.rate} {self.to_unit} ({self.source})"
