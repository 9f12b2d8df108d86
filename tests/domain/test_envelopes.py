"""
Tests for envelopes and rollover policies.
"""

from decimal import Decimal

import pytest

from capital_kernel.domain.envelopes import (
    CarryOver,
    Decay,
    Envelope,
    EnvelopeStatus,
    LeftoverPolicy,
    PriorCycleState,
    ResetToZero,
    SinkingFund,
    effective_budget,
)
from capital_kernel.domain.values import Money
from capital_kernel.exceptions import CurrencyMismatchError, InvalidRolloverPolicyError


def usd(value: str) -> Money:
    return Money.of(value, "USD")


def envelope(rollover, funding="100.00") -> Envelope:
    return Envelope(id="env", name="Dining", currency="USD", rollover=rollover, funding=usd(funding))


class TestRolloverPolicies:
    """Tests for policy validation."""

    def test_decay_ratio_bounds(self):
        """keep_ratio outside [0, 1] is rejected."""
        with pytest.raises(InvalidRolloverPolicyError):
            Decay(keep_ratio=Decimal("1.5"))
        with pytest.raises(InvalidRolloverPolicyError):
            Decay(keep_ratio=Decimal("-0.1"))

    def test_decay_ratio_edges_allowed(self):
        assert Decay(keep_ratio=Decimal("0")).keep_ratio == 0
        assert Decay(keep_ratio="1").keep_ratio == 1

    def test_negative_cap_rejected(self):
        with pytest.raises(InvalidRolloverPolicyError):
            CarryOver(cap=usd("-1.00"))

    def test_cap_currency_must_match(self):
        """A cap in another currency is refused by the envelope."""
        with pytest.raises(CurrencyMismatchError):
            Envelope(
                id="env",
                name="Dining",
                currency="USD",
                rollover=CarryOver(cap=Money.of("10.00", "HKD")),
            )


class TestEnvelope:
    """Tests for the Envelope value object."""

    def test_defaults(self):
        env = Envelope(id="e", name="Misc", currency="usd", rollover=ResetToZero())
        assert env.currency == "USD"
        assert env.is_active
        assert env.base_budget == usd("0")

    def test_archived(self):
        env = Envelope(id="e", name="Misc", currency="USD", rollover=ResetToZero(), status="archived")
        assert env.status is EnvelopeStatus.ARCHIVED
        assert not env.is_active

    def test_unknown_policy(self):
        with pytest.raises(InvalidRolloverPolicyError):
            Envelope(id="e", name="Misc", currency="USD", rollover="carry")


class TestEffectiveBudget:
    """Tests for effective_budget across policies."""

    def test_no_prior_is_base(self):
        """Without prior state every policy yields the base funding."""
        for policy in (ResetToZero(), CarryOver(), SinkingFund(), Decay(keep_ratio=Decimal("0.5"))):
            assert effective_budget(envelope(policy)) == usd("100.00")

    def test_reset_ignores_leftover(self):
        prior = PriorCycleState(budget=usd("100.00"), spent=usd("40.00"))
        assert effective_budget(envelope(ResetToZero()), prior) == usd("100.00")

    def test_carry_over_adds_leftover(self):
        prior = PriorCycleState(budget=usd("100.00"), spent=usd("40.00"))
        assert effective_budget(envelope(CarryOver()), prior) == usd("160.00")

    def test_carry_over_signed_deficit(self):
        """An overspend reduces the next budget under SIGNED."""
        prior = PriorCycleState(budget=usd("100.00"), spent=usd("130.00"))
        assert effective_budget(envelope(CarryOver()), prior) == usd("70.00")

    def test_carry_over_floored_deficit(self):
        """FLOORED forgives the overspend."""
        prior = PriorCycleState(budget=usd("100.00"), spent=usd("130.00"))
        budget = effective_budget(envelope(CarryOver()), prior, LeftoverPolicy.FLOORED)
        assert budget == usd("100.00")

    def test_carry_over_cap(self):
        prior = PriorCycleState(budget=usd("100.00"), spent=usd("0.00"))
        assert effective_budget(envelope(CarryOver(cap=usd("150.00"))), prior) == usd("150.00")

    def test_sinking_fund_accumulates(self):
        prior = PriorCycleState(budget=usd("300.00"), spent=usd("50.00"))
        assert effective_budget(envelope(SinkingFund()), prior) == usd("350.00")

    def test_sinking_fund_never_negative_carry(self):
        """A sinking fund ignores SIGNED and floors a deficit."""
        prior = PriorCycleState(budget=usd("100.00"), spent=usd("250.00"))
        assert effective_budget(envelope(SinkingFund()), prior, LeftoverPolicy.SIGNED) == usd("100.00")

    def test_decay_keeps_fraction(self):
        prior = PriorCycleState(budget=usd("100.00"), spent=usd("20.00"))
        assert effective_budget(envelope(Decay(keep_ratio=Decimal("0.5"))), prior) == usd("140.00")

    def test_decay_rounds_half_up(self):
        prior = PriorCycleState(budget=usd("100.00"), spent=usd("99.99"))
        budget = effective_budget(envelope(Decay(keep_ratio=Decimal("0.5"))), prior)
        assert budget == usd("100.01")

    def test_prior_in_other_currency(self):
        prior = PriorCycleState(budget=Money.of("1.00", "HKD"), spent=Money.of("0.00", "HKD"))
        with pytest.raises(CurrencyMismatchError):
            effective_budget(envelope(CarryOver()), prior)


class TestPriorCycleState:
    """Tests for leftover computation."""

    def test_signed_leftover(self):
        assert PriorCycleState(usd("10.00"), usd("15.00")).leftover() == usd("-5.00")

    def test_floored_leftover(self):
        assert PriorCycleState(usd("10.00"), usd("15.00")).leftover(LeftoverPolicy.FLOORED) == usd("0")

    def test_mixed_currency(self):
        with pytest.raises(CurrencyMismatchError):
            PriorCycleState(usd("10.00"), Money.of("1.00", "HKD"))
