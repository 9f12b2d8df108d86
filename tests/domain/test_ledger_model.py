"""
Tests for legs and transactions.
"""

from datetime import UTC, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from capital_kernel.domain.accounts import PNL_ACCOUNT_ID
from capital_kernel.domain.ledger import BalanceState, Leg, LegDirection, Transaction, TxType
from capital_kernel.domain.values import CryptoAmount, FxConversion, Money
from capital_kernel.exceptions import (
    CurrencyMismatchError,
    EmptyLegsError,
    InvalidLegReferenceError,
)

TS = datetime(2025, 3, 12, 9, 30, tzinfo=UTC)


def usd(value: str) -> Money:
    return Money.of(value, "USD")


class TestLeg:
    """Tests for Leg construction."""

    def test_direction_sign(self):
        assert Leg.debit("chk", usd("5.00")).signed_value == Decimal("5.00")
        assert Leg.credit("chk", usd("5.00")).signed_value == Decimal("-5.00")

    def test_direction_from_string(self):
        assert Leg("chk", "credit", usd("1.00")).direction is LegDirection.CREDIT

    def test_opposite(self):
        assert LegDirection.DEBIT.opposite() is LegDirection.CREDIT

    def test_negative_amount_rejected(self):
        """The direction carries the sign, never the amount."""
        with pytest.raises(ValueError):
            Leg.debit("chk", usd("-5.00"))

    def test_amount_type_checked(self):
        with pytest.raises(TypeError):
            Leg.debit("chk", Decimal("5.00"))

    def test_fx_must_start_from_leg_unit(self):
        fx = FxConversion("HKD", "USD", Decimal("0.128"), "peg", TS)
        with pytest.raises(CurrencyMismatchError):
            Leg.credit("chk", usd("5.00"), fx=fx)

    def test_is_pnl(self):
        assert Leg.debit(PNL_ACCOUNT_ID, usd("1.00")).is_pnl
        assert not Leg.debit("chk", usd("1.00")).is_pnl

    def test_blank_category_rejected(self):
        with pytest.raises(ValueError):
            Leg.debit("chk", usd("1.00"), category_id="")

    def test_with_category_returns_copy(self):
        leg = Leg.debit(PNL_ACCOUNT_ID, usd("1.00"))
        categorized = leg.with_category("groceries")
        assert categorized.category_id == "groceries"
        assert leg.category_id is None


class TestTransaction:
    """Tests for Transaction construction."""

    def test_empty_legs(self):
        with pytest.raises(EmptyLegsError) as exc_info:
            Transaction(id="t", ts=TS, source="manual", legs=())
        assert exc_info.value.code == "EMPTY_LEGS"

    def test_fee_reference_self(self):
        legs = (Leg.credit("chk", usd("1.00"), fee_of_leg_idx=0),)
        with pytest.raises(InvalidLegReferenceError):
            Transaction(id="t", ts=TS, source="manual", legs=legs)

    def test_fee_reference_out_of_range(self):
        legs = (Leg.credit("chk", usd("1.00")), Leg.debit(PNL_ACCOUNT_ID, usd("1.00"), fee_of_leg_idx=5))
        with pytest.raises(InvalidLegReferenceError):
            Transaction(id="t", ts=TS, source="manual", legs=legs)

    def test_fee_reference_valid(self):
        legs = (Leg.credit("chk", usd("10.00")), Leg.debit(PNL_ACCOUNT_ID, usd("10.00"), fee_of_leg_idx=0))
        tx = Transaction(id="t", ts=TS, source="manual", legs=legs)
        assert tx.legs[1].fee_of_leg_idx == 0

    def test_timestamps_normalized_to_utc(self):
        hkt = timezone(timedelta(hours=8))
        tx = Transaction(
            id="t",
            ts=datetime(2025, 3, 12, 17, 30, tzinfo=hkt),
            source="manual",
            legs=[Leg.credit("chk", usd("1.00"))],
        )
        assert tx.ts == TS
        assert tx.ts.tzinfo is UTC

    def test_effective_ts_prefers_posted(self):
        posted = TS + timedelta(days=2)
        tx = Transaction(id="t", ts=TS, source="m", legs=[Leg.credit("chk", usd("1.00"))], posted_ts=posted)
        assert tx.effective_ts == posted

    def test_leg_views(self):
        legs = (
            Leg.credit("chk", usd("10.00")),
            Leg.debit(PNL_ACCOUNT_ID, usd("10.00"), category_id="food"),
        )
        tx = Transaction(id="t", ts=TS, source="m", legs=legs)
        assert tx.account_ids == frozenset({"chk"})
        assert tx.category_ids == frozenset({"food"})
        assert len(tx.real_legs) == 1
        assert len(tx.pnl_legs) == 1

    def test_external_refs(self):
        tx = Transaction(
            id="t", ts=TS, source="m", legs=[Leg.credit("chk", usd("1.00"))], external_refs=[("plaid", "abc")]
        )
        assert tx.ref("plaid") == "abc"
        assert tx.with_ref("bank", "42").ref("bank") == "42"
        assert tx.ref("missing") is None

    def test_with_legs_resets_state(self):
        tx = Transaction(
            id="t",
            ts=TS,
            source="m",
            legs=[Leg.credit("chk", usd("1.00"))],
            balance_state=BalanceState.BALANCED,
        )
        assert tx.with_legs([Leg.debit("chk", usd("1.00"))]).balance_state is BalanceState.UNKNOWN

    def test_enum_coercion(self):
        tx = Transaction(
            id="t", ts=TS, source="m", legs=[Leg.credit("chk", CryptoAmount.of("1", "BTC"))], tx_type="trade"
        )
        assert tx.tx_type is TxType.TRADE
