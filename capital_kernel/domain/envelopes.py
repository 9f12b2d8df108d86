"""
Envelopes -- Budget categories and their rollover policies.

Responsibility:
    Defines Envelope, the closed RolloverPolicy union and the pure
    ``effective_budget`` function that turns an envelope plus the previous
    cycle's outcome into this cycle's budget.

Architecture position:
    Kernel > Domain -- pure functions over value objects, zero I/O.
    Consumed by capital_engines.aggregation (envelope usage).

Invariants enforced:
    - Caps and funding are Money in the envelope's currency.
    - Decay keep_ratio lies in [0, 1].
    - Rollover evaluation is exhaustive over the policy union.

Failure modes:
    - InvalidRolloverPolicyError for a ratio outside [0, 1] or a negative cap.
    - CurrencyMismatchError when caps, funding or prior state use another currency.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Union, assert_never

from capital_kernel.domain.values import Currency, Money, to_decimal
from capital_kernel.exceptions import (
    CurrencyMismatchError,
    InvalidRolloverPolicyError,
)


class EnvelopeStatus(str, Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"


class EnvelopeKind(str, Enum):
    """Fixed envelopes hold bills of a known size; variable ones discretionary spend."""

    FIXED = "fixed"
    VARIABLE = "variable"


class LeftoverPolicy(str, Enum):
    """
    How a cycle's leftover is measured before it rolls forward.

    SIGNED: ``budget - spent``; overspending reduces the next budget.
    FLOORED: ``max(0, budget - spent)``; overspending is forgiven.
    """

    SIGNED = "signed"
    FLOORED = "floored"


# ---------------------------------------------------------------------------
# Rollover policies
# ---------------------------------------------------------------------------


def _check_cap(cap: Money | None) -> None:
    if cap is None:
        return
    if not isinstance(cap, Money):
        raise InvalidRolloverPolicyError(f"cap must be Money, got {type(cap).__name__}")
    if cap.is_negative:
        raise InvalidRolloverPolicyError(f"cap must not be negative: {cap}")


@dataclass(frozen=True, slots=True)
class ResetToZero:
    """Every cycle starts from the base funding; leftovers are discarded."""


@dataclass(frozen=True, slots=True)
class CarryOver:
    """Leftover (possibly negative) is added to the next cycle's base funding."""

    cap: Money | None = None

    def __post_init__(self) -> None:
        _check_cap(self.cap)


@dataclass(frozen=True, slots=True)
class SinkingFund:
    """Contributions accumulate across cycles and never reset."""

    cap: Money | None = None

    def __post_init__(self) -> None:
        _check_cap(self.cap)


@dataclass(frozen=True, slots=True)
class Decay:
    """A fraction ``keep_ratio`` of the leftover survives into the next cycle."""

    keep_ratio: Decimal
    cap: Money | None = None

    def __post_init__(self) -> None:
        try:
            ratio = to_decimal(self.keep_ratio, "keep_ratio")
        except ValueError as e:
            raise InvalidRolloverPolicyError(str(e)) from e
        if ratio < 0 or ratio > 1:
            raise InvalidRolloverPolicyError(f"keep_ratio must be within [0, 1], got {ratio}")
        object.__setattr__(self, "keep_ratio", ratio)
        _check_cap(self.cap)


RolloverPolicy = Union[ResetToZero, CarryOver, SinkingFund, Decay]


# ---------------------------------------------------------------------------
# Envelope
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Envelope:
    """
    A named budget category.

    Contract:
        ``funding`` is the base budget granted each cycle (zero when None).
        Legs reference an envelope through ``category_id``.

    Guarantees:
        - currency is a registered fiat code.
        - funding and any rollover cap are in that currency.
    """

    id: str
    name: str
    currency: str
    rollover: RolloverPolicy
    status: EnvelopeStatus = EnvelopeStatus.ACTIVE
    funding: Money | None = None
    kind: EnvelopeKind = EnvelopeKind.VARIABLE

    def __post_init__(self) -> None:
        if not isinstance(self.id, str) or not self.id.strip():
            raise ValueError("Envelope id is required")
        if not isinstance(self.name, str) or not self.name.strip():
            raise ValueError(f"Envelope {self.id} name is required")
        currency = Currency(self.currency).code
        object.__setattr__(self, "currency", currency)
        object.__setattr__(self, "status", EnvelopeStatus(self.status))
        object.__setattr__(self, "kind", EnvelopeKind(self.kind))

        if not isinstance(self.rollover, (ResetToZero, CarryOver, SinkingFund, Decay)):
            raise InvalidRolloverPolicyError(
                f"unknown rollover policy {type(self.rollover).__name__}"
            )
        if self.funding is not None and self.funding.unit != currency:
            raise CurrencyMismatchError(self.funding.unit, currency)
        cap = getattr(self.rollover, "cap", None)
        if cap is not None and cap.unit != currency:
            raise CurrencyMismatchError(cap.unit, currency)

    @property
    def base_budget(self) -> Money:
        return self.funding if self.funding is not None else Money.zero(self.currency)

    @property
    def is_active(self) -> bool:
        return self.status is EnvelopeStatus.ACTIVE


@dataclass(frozen=True, slots=True)
class PriorCycleState:
    """The previous cycle's effective budget and what was spent against it."""

    budget: Money
    spent: Money

    def __post_init__(self) -> None:
        if self.budget.unit != self.spent.unit:
            raise CurrencyMismatchError(self.budget.unit, self.spent.unit)

    def leftover(self, policy: LeftoverPolicy = LeftoverPolicy.SIGNED) -> Money:
        raw = self.budget - self.spent
        if policy is LeftoverPolicy.FLOORED and raw.is_negative:
            return Money.zero(raw.currency)
        return raw


def _clamp(amount: Money, cap: Money | None) -> Money:
    if cap is None:
        return amount
    return min(amount, cap)


def effective_budget(
    envelope: Envelope,
    prior: PriorCycleState | None = None,
    leftover_policy: LeftoverPolicy = LeftoverPolicy.SIGNED,
) -> Money:
    """
    This cycle's budget for ``envelope`` given the previous cycle's outcome.

    Without prior state the leftover is zero, so every policy yields the
    base funding (clamped to the cap when one is set).
    """
    base = envelope.base_budget
    if prior is not None and prior.budget.unit != envelope.currency:
        raise CurrencyMismatchError(prior.budget.unit, envelope.currency)

    policy = envelope.rollover
    if isinstance(policy, ResetToZero):
        return base
    if isinstance(policy, CarryOver):
        leftover = prior.leftover(leftover_policy) if prior else Money.zero(envelope.currency)
        return _clamp(base + leftover, policy.cap)
    if isinstance(policy, SinkingFund):
        # A fund never carries a deficit, whatever the leftover policy.
        accumulated = prior.leftover(LeftoverPolicy.FLOORED) if prior else Money.zero(envelope.currency)
        return _clamp(accumulated + base, policy.cap)
    if isinstance(policy, Decay):
        leftover = prior.leftover(leftover_policy) if prior else Money.zero(envelope.currency)
        return _clamp(base + leftover.scaled(policy.keep_ratio), policy.cap)
    assert_never(policy)
