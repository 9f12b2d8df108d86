"""
Tests for the transfer counterpart search.
"""

from datetime import timedelta

import pytest

from capital_engines.transfer_matching import CandidateLeg, TransferMatcher
from capital_kernel.domain.ledger import TxType


@pytest.fixture
def matcher() -> TransferMatcher:
    return TransferMatcher()


@pytest.fixture
def outgoing(tx_factory, make_leg):
    return tx_factory("out", [make_leg("chk", "credit", "250.00")], tx_type=TxType.TRANSFER)


def _incoming(tx_factory, make_leg, tx_id, base, days=0, account="sav", value="250.00", direction="debit"):
    return tx_factory(
        tx_id,
        [make_leg(account, direction, value)],
        ts=base.ts + timedelta(days=days),
        tx_type=TxType.TRANSFER,
    )


class TestCandidateLeg:
    def test_from_transaction_skips_pnl(self, tx_factory, make_leg, make_pnl):
        tx = tx_factory(legs=[make_leg("chk", "credit", "5.00"), make_pnl("debit", "5.00")])
        candidates = CandidateLeg.from_transaction(tx)
        assert [(c.transaction_id, c.leg_index) for c in candidates] == [("tx-1", 0)]
        assert candidates[0].ts == tx.ts


class TestFindMatch:
    """Tests for TransferMatcher.find_match."""

    def test_exact_opposite_leg_matches(self, matcher, outgoing, tx_factory, make_leg):
        incoming = _incoming(tx_factory, make_leg, "in", outgoing, days=1)
        match = matcher.find_match(outgoing, CandidateLeg.from_transaction(incoming))
        assert match is not None
        assert match.transaction_id == "in"
        assert match.leg.account_id == "sav"

    def test_same_direction_rejected(self, matcher, outgoing, tx_factory, make_leg):
        incoming = _incoming(tx_factory, make_leg, "in", outgoing, direction="credit")
        assert matcher.find_match(outgoing, CandidateLeg.from_transaction(incoming)) is None

    def test_same_account_rejected(self, matcher, outgoing, tx_factory, make_leg):
        incoming = _incoming(tx_factory, make_leg, "in", outgoing, account="chk")
        assert matcher.find_match(outgoing, CandidateLeg.from_transaction(incoming)) is None

    def test_own_legs_never_match(self, matcher, tx_factory, make_leg):
        tx = tx_factory("self", [make_leg("chk", "credit", "10.00")], tx_type=TxType.TRANSFER)
        forged = [CandidateLeg("self", 0, make_leg("sav", "debit", "10.00"), tx.ts)]
        assert matcher.find_match(tx, forged) is None

    def test_different_unit_rejected(self, matcher, outgoing, tx_factory, make_leg):
        incoming = tx_factory("in", [make_leg("hk", "debit", "250.00", unit="HKD")], tx_type=TxType.TRANSFER)
        assert matcher.find_match(outgoing, CandidateLeg.from_transaction(incoming)) is None

    def test_window_boundary_inclusive(self, matcher, outgoing, tx_factory, make_leg):
        incoming = _incoming(tx_factory, make_leg, "in", outgoing, days=7)
        pool = CandidateLeg.from_transaction(incoming)
        assert matcher.find_match(outgoing, pool, window=timedelta(days=7)) is not None
        assert matcher.find_match(outgoing, pool, window=timedelta(days=6)) is None

    def test_closest_in_time_wins(self, matcher, outgoing, tx_factory, make_leg):
        far = _incoming(tx_factory, make_leg, "a-far", outgoing, days=3)
        near = _incoming(tx_factory, make_leg, "z-near", outgoing, days=-1)
        pool = CandidateLeg.from_transaction(far) + CandidateLeg.from_transaction(near)
        assert matcher.find_match(outgoing, pool).transaction_id == "z-near"

    def test_tie_broken_by_transaction_id(self, matcher, outgoing, tx_factory, make_leg):
        """Equidistant candidates resolve by (transaction_id, leg_index)."""
        later = _incoming(tx_factory, make_leg, "b", outgoing, days=2)
        earlier = _incoming(tx_factory, make_leg, "a", outgoing, days=-2)
        pool = CandidateLeg.from_transaction(later) + CandidateLeg.from_transaction(earlier)
        assert matcher.find_match(outgoing, pool).transaction_id == "a"
        assert matcher.find_match(outgoing, list(reversed(pool))).transaction_id == "a"

    def test_counterpart_account_filter(self, matcher, outgoing, tx_factory, make_leg):
        to_sav = _incoming(tx_factory, make_leg, "a", outgoing)
        to_broker = _incoming(tx_factory, make_leg, "b", outgoing, days=2, account="broker")
        pool = CandidateLeg.from_transaction(to_sav) + CandidateLeg.from_transaction(to_broker)
        match = matcher.find_match(outgoing, pool, counterpart_account_id="broker")
        assert match.transaction_id == "b"

    def test_not_applicable_with_two_real_legs(self, matcher, tx_factory, make_leg):
        tx = tx_factory(
            legs=[make_leg("chk", "credit", "10.00"), make_leg("sav", "debit", "10.00")],
            tx_type=TxType.TRANSFER,
        )
        pool = [CandidateLeg("other", 0, make_leg("brk", "debit", "10.00"), tx.ts)]
        assert matcher.find_match(tx, pool) is None

    def test_search_logged(self, matcher, outgoing, captured_logs):
        matcher.find_match(outgoing, [], window=timedelta(days=7))
        records = captured_logs()
        started = [r for r in records if r["message"] == "transfer_match_search_started"]
        assert started[0]["window_seconds"] == 7 * 86400
        assert any(r["message"] == "transfer_match_not_found" for r in records)
