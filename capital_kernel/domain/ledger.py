"""
Ledger -- Transaction and Leg records.

Responsibility:
    Defines the record of a financial event: a Transaction holding an
    ordered, non-empty tuple of Legs, each a signed line against one account
    (or the P&L pseudo-account) in one unit, optionally tagged with a budget
    envelope and an FX annotation.

Architecture position:
    Kernel > Domain -- immutable value objects, zero I/O.
    The Balance Engine (capital_engines.balance) is the only producer of
    ``balance_state`` values other than the UNKNOWN default.

Invariants enforced:
    NON_EMPTY_LEGS -- EmptyLegsError at construction.
    Leg amounts are non-negative; LegDirection carries the sign.
    fee_of_leg_idx references a different leg of the same transaction.
    An FX annotation converts from the leg's own unit.
    Timestamps are aware UTC datetimes.

Failure modes:
    - EmptyLegsError, InvalidLegReferenceError on bad structure.
    - CurrencyMismatchError when fx.from_unit differs from the leg unit.
    - ValueError / TypeError for malformed primitives.

Audit relevance:
    Transactions are immutable; every edit produces a new object.  Stores
    swap whole objects, so a reader sees a transaction either before or
    after a mutation, never half-applied.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum

from capital_kernel.domain.accounts import PNL_ACCOUNT_ID
from capital_kernel.domain.values import CryptoAmount, FxConversion, LegAmount, Money
from capital_kernel.exceptions import (
    CurrencyMismatchError,
    EmptyLegsError,
    InvalidLegReferenceError,
)
from capital_kernel.utils.timestamps import to_utc


class LegDirection(str, Enum):
    """DEBIT contributes +amount to its bucket, CREDIT contributes -amount."""

    DEBIT = "debit"
    CREDIT = "credit"

    @property
    def sign(self) -> int:
        return 1 if self is LegDirection.DEBIT else -1

    def opposite(self) -> LegDirection:
        return LegDirection.CREDIT if self is LegDirection.DEBIT else LegDirection.DEBIT


class TxType(str, Enum):
    SPENDING = "spending"
    INCOME = "income"
    FEE_ONLY = "fee_only"
    TRANSFER = "transfer"
    TRANSFER_FX = "transfer_fx"
    TRADE = "trade"
    ADJUSTMENT = "adjustment"
    REFUND = "refund"


class BalanceState(str, Enum):
    """The Balance Engine's diagnosis of a transaction's internal consistency."""

    BALANCED = "balanced"
    NEEDS_ENVELOPE_OFFSET = "needs_envelope_offset"
    AWAITING_TRANSFER_MATCH = "awaiting_transfer_match"
    UNKNOWN = "unknown"


@dataclass(frozen=True, slots=True)
class Leg:
    """
    One signed line of a transaction.

    Contract:
        ``amount`` is non-negative; the direction supplies the sign.  When
        ``fx`` is present it declares how this leg's amount translates into
        another unit for balancing; the leg itself stays in its native unit.

    Non-goals:
        - Does NOT validate that account_id or category_id exist; the
          registry collaborator owns referential integrity.
    """

    account_id: str
    direction: LegDirection
    amount: LegAmount
    category_id: str | None = None
    fx: FxConversion | None = None
    fee_of_leg_idx: int | None = None
    notes: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.account_id, str) or not self.account_id.strip():
            raise ValueError("Leg account_id is required")
        object.__setattr__(self, "direction", LegDirection(self.direction))
        if not isinstance(self.amount, (Money, CryptoAmount)):
            raise TypeError(f"Leg amount must be Money or CryptoAmount, got {type(self.amount).__name__}")
        if self.amount.is_negative:
            raise ValueError(f"Leg amount must be non-negative, got {self.amount}")
        if self.category_id is not None and (
            not isinstance(self.category_id, str) or not self.category_id.strip()
        ):
            raise ValueError("category_id must be a non-empty string or None")
        if self.fx is not None:
            if not isinstance(self.fx, FxConversion):
                raise TypeError(f"fx must be FxConversion, got {type(self.fx).__name__}")
            if self.fx.from_unit != self.amount.unit:
                raise CurrencyMismatchError(self.amount.unit, self.fx.from_unit)
        if self.fee_of_leg_idx is not None and (
            isinstance(self.fee_of_leg_idx, bool) or not isinstance(self.fee_of_leg_idx, int)
        ):
            raise TypeError("fee_of_leg_idx must be an int or None")

    @classmethod
    def debit(cls, account_id: str, amount: LegAmount, **kwargs) -> Leg:
        return cls(account_id=account_id, direction=LegDirection.DEBIT, amount=amount, **kwargs)

    @classmethod
    def credit(cls, account_id: str, amount: LegAmount, **kwargs) -> Leg:
        return cls(account_id=account_id, direction=LegDirection.CREDIT, amount=amount, **kwargs)

    @property
    def unit(self) -> str:
        return self.amount.unit

    @property
    def is_pnl(self) -> bool:
        return self.account_id == PNL_ACCOUNT_ID

    @property
    def signed_value(self) -> Decimal:
        """Native-unit contribution: +amount for DEBIT, -amount for CREDIT."""
        return self.amount.value * self.direction.sign

    def with_category(self, category_id: str | None) -> Leg:
        return replace(self, category_id=category_id)

    def with_amount(self, amount: LegAmount) -> Leg:
        return replace(self, amount=amount)


@dataclass(frozen=True, slots=True)
class Transaction:
    """
    The record of a financial event.

    Contract:
        ``legs`` is a non-empty tuple.  ``balance_state`` is derived from
        ``legs`` and ``tx_type`` by the Balance Engine; construct with the
        default and call ``BalanceEngine.refresh`` rather than supplying it.

    Guarantees:
        - Immutable: edits go through dataclasses.replace / engine methods
          and always yield a new Transaction.
        - ts and posted_ts are aware UTC datetimes.
        - external_refs is an ordered tuple of (key, value) string pairs.
    """

    id: str
    ts: datetime
    source: str
    legs: tuple[Leg, ...]
    posted_ts: datetime | None = None
    payee: str | None = None
    memo: str | None = None
    status: str | None = None
    reconciled: bool = False
    external_refs: tuple[tuple[str, str], ...] = ()
    tx_type: TxType | None = None
    balance_state: BalanceState = BalanceState.UNKNOWN

    def __post_init__(self) -> None:
        if not isinstance(self.id, str) or not self.id.strip():
            raise ValueError("Transaction id is required")
        if not isinstance(self.source, str):
            raise TypeError("Transaction source must be a string")

        legs = tuple(self.legs)
        if not legs:
            raise EmptyLegsError(self.id)
        for leg in legs:
            if not isinstance(leg, Leg):
                raise TypeError(f"Transaction legs must be Leg, got {type(leg).__name__}")
        for i, leg in enumerate(legs):
            target = leg.fee_of_leg_idx
            if target is not None and (target == i or not 0 <= target < len(legs)):
                raise InvalidLegReferenceError(self.id, i, target)
        object.__setattr__(self, "legs", legs)

        object.__setattr__(self, "ts", to_utc(self.ts))
        if self.posted_ts is not None:
            object.__setattr__(self, "posted_ts", to_utc(self.posted_ts))

        refs = tuple((str(k), str(v)) for k, v in self.external_refs)
        object.__setattr__(self, "external_refs", refs)

        if self.tx_type is not None:
            object.__setattr__(self, "tx_type", TxType(self.tx_type))
        object.__setattr__(self, "balance_state", BalanceState(self.balance_state))
        object.__setattr__(self, "reconciled", bool(self.reconciled))

    @property
    def effective_ts(self) -> datetime:
        """Settlement time when known, else event time."""
        return self.posted_ts if self.posted_ts is not None else self.ts

    @property
    def real_legs(self) -> tuple[Leg, ...]:
        """Legs against real accounts (everything but the P&L pseudo-account)."""
        return tuple(leg for leg in self.legs if not leg.is_pnl)

    @property
    def pnl_legs(self) -> tuple[Leg, ...]:
        return tuple(leg for leg in self.legs if leg.is_pnl)

    @property
    def account_ids(self) -> frozenset[str]:
        return frozenset(leg.account_id for leg in self.real_legs)

    @property
    def category_ids(self) -> frozenset[str]:
        return frozenset(leg.category_id for leg in self.legs if leg.category_id is not None)

    def ref(self, key: str) -> str | None:
        """First external reference value stored under ``key``."""
        for k, v in self.external_refs:
            if k == key:
                return v
        return None

    def with_ref(self, key: str, value: str) -> Transaction:
        return replace(self, external_refs=self.external_refs + ((key, value),))

    def with_legs(self, legs: Iterable[Leg]) -> Transaction:
        """New legs, state reset to UNKNOWN until the engine recomputes it."""
        return replace(self, legs=tuple(legs), balance_state=BalanceState.UNKNOWN)
