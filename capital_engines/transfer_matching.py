"""
capital_engines.transfer_matching -- Counterpart search for one-sided transfers.

Responsibility:
    Given a transfer that so far records only one real-account leg, find the
    leg on another transaction that completes it: opposite direction, a
    different real account, and exactly the outstanding amount in the
    outstanding bucket's unit.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Consumed by capital_engines.balance; the candidate pool is supplied by
    the caller (capital_services.LedgerService.transfer_candidates).

Invariants enforced:
    - Exact amount matching; no tolerance.
    - The search window is a caller-supplied parameter, never an internal
      default (None means unbounded).
    - Deterministic choice: the candidate closest in time wins, ties broken
      by (transaction_id, leg_index).

Failure modes:
    - None returned when no candidate qualifies.  Not an error.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta

from capital_engines.buckets import bucket_sums, leg_contribution, value_in
from capital_engines.tracer import traced_engine
from capital_kernel.domain.ledger import Leg, Transaction
from capital_kernel.logging_config import get_logger

logger = get_logger("engines.transfer_matching")


@dataclass(frozen=True, slots=True)
class CandidateLeg:
    """
    An unmatched leg on another transaction, offered as a transfer counterpart.

    ``ts`` is the owning transaction's event time.  ``donor_legs`` and
    ``donor_refs`` are the owning transaction's full legs and external refs;
    a merge carries all of them over, not just ``leg``.
    """

    transaction_id: str
    leg_index: int
    leg: Leg
    ts: datetime
    donor_legs: tuple[Leg, ...] = ()
    donor_refs: tuple[tuple[str, str], ...] = ()

    @classmethod
    def from_transaction(cls, tx: Transaction) -> list[CandidateLeg]:
        """Every real-account leg of ``tx`` as a candidate."""
        return [
            cls(
                transaction_id=tx.id,
                leg_index=i,
                leg=leg,
                ts=tx.ts,
                donor_legs=tx.legs,
                donor_refs=tx.external_refs,
            )
            for i, leg in enumerate(tx.legs)
            if not leg.is_pnl
        ]


class TransferMatcher:
    """
    Finds the counterpart leg for a pending transfer.

    Contract:
        Pure -- reads the transaction and pool, returns a candidate or None.
    Guarantees:
        - Never returns a leg from the transaction being matched.
        - Never returns a P&L leg or a leg on the same account.
    Non-goals:
        - Does not merge legs; BalanceEngine does that.
        - Does not remove the donor transaction; the service layer does.
    """

    @traced_engine(
        "transfer_matching",
        "1.0",
        fingerprint_fields=("tx", "window", "counterpart_account_id"),
    )
    def find_match(
        self,
        tx: Transaction,
        pool: Iterable[CandidateLeg],
        *,
        window: timedelta | None = None,
        counterpart_account_id: str | None = None,
    ) -> CandidateLeg | None:
        real = tx.real_legs
        if len(real) != 1:
            logger.debug(
                "transfer_match_not_applicable",
                extra={"transaction_id": tx.id, "real_leg_count": len(real)},
            )
            return None
        target = real[0]
        unit, _ = leg_contribution(target)
        outstanding = bucket_sums(tx.legs).get(unit)
        if not outstanding:
            return None

        pool = tuple(pool)
        logger.info(
            "transfer_match_search_started",
            extra={
                "transaction_id": tx.id,
                "unit": unit,
                "outstanding": str(outstanding),
                "candidate_count": len(pool),
                "window_seconds": window.total_seconds() if window is not None else None,
            },
        )

        best: CandidateLeg | None = None
        best_key: tuple[timedelta, str, int] | None = None
        for candidate in pool:
            if not self._qualifies(tx, target, unit, outstanding, candidate, window, counterpart_account_id):
                continue
            key = (abs(candidate.ts - tx.ts), candidate.transaction_id, candidate.leg_index)
            if best_key is None or key < best_key:
                best, best_key = candidate, key

        if best is None:
            logger.info(
                "transfer_match_not_found",
                extra={"transaction_id": tx.id, "unit": unit, "outstanding": str(outstanding)},
            )
        else:
            logger.info(
                "transfer_match_found",
                extra={
                    "transaction_id": tx.id,
                    "donor_transaction_id": best.transaction_id,
                    "donor_leg_index": best.leg_index,
                    "counterpart_account_id": best.leg.account_id,
                },
            )
        return best

    @staticmethod
    def _qualifies(
        tx: Transaction,
        target: Leg,
        unit: str,
        outstanding,
        candidate: CandidateLeg,
        window: timedelta | None,
        counterpart_account_id: str | None,
    ) -> bool:
        leg = candidate.leg
        if candidate.transaction_id == tx.id or leg.is_pnl:
            return False
        if leg.account_id == target.account_id:
            return False
        if counterpart_account_id is not None and leg.account_id != counterpart_account_id:
            return False
        if leg.direction is target.direction:
            return False
        if window is not None and abs(candidate.ts - tx.ts) > window:
            return False
        contribution = value_in(leg, unit)
        return contribution is not None and contribution == -outstanding
