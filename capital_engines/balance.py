"""
capital_engines.balance -- The Balance Engine.

Responsibility:
    Classifies a transaction's internal consistency (its BalanceState) from
    its legs and tx_type alone, and performs automatic reconciliation:
    adding the P&L offset leg an uncategorized spend needs, or merging in
    the donor transaction that completes a one-sided transfer.  Also the only
    place a Transaction's balance_state is recomputed after an edit.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Imports kernel domain, capital_engines.buckets and
    capital_engines.transfer_matching.

Classification (evaluated in this order):
    1. tx_type in {transfer, transfer_fx} with exactly one real-account
       leg -> AWAITING_TRANSFER_MATCH.
    2. tx_type in {spending, refund}:
         every bucket zero and attributed   -> BALANCED
         at most one non-zero bucket        -> NEEDS_ENVELOPE_OFFSET
         otherwise                          -> UNKNOWN
    3. any other tx_type (or none):
         every bucket zero -> BALANCED, otherwise UNKNOWN.
    "Attributed" means some leg sits on the P&L pseudo-account or carries a
    category_id.

Invariants enforced:
    - DERIVED_BALANCE_STATE: every method that changes legs or tx_type
      returns a transaction whose state was recomputed here.
    - NO_INVENTED_RATES: an UNKNOWN transaction raises UnreconcilableError;
      no rate is ever fabricated to force a zero sum.
    - APPEND_ONLY_BALANCING: auto-balance only appends legs or adjusts the
      amount of an uncategorized P&L leg; user legs are never removed.
      A transfer merge carries over every donor leg, fee references
      shifted by the receiving transaction's leg count.
    - Idempotence: balance() on a BALANCED transaction returns it unchanged.

Failure modes:
    - UnreconcilableError from balance() when the state is UNKNOWN.
    - LegIndexOutOfRangeError from reclassify() for a bad leg index.
    - PENDING outcome (not an error) when no transfer counterpart exists.

Audit relevance:
    Every balance() call logs its outcome with the transaction id; merged
    transfers record the donor transaction in external_refs under
    ``transfer_match``.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, replace
from datetime import timedelta
from decimal import Decimal
from enum import Enum

from capital_engines.buckets import bucket_sums, is_attributed, nonzero_buckets
from capital_engines.tracer import traced_engine
from capital_engines.transfer_matching import CandidateLeg, TransferMatcher
from capital_kernel.domain.accounts import PNL_ACCOUNT_ID
from capital_kernel.domain.ledger import (
    BalanceState,
    Leg,
    LegDirection,
    Transaction,
    TxType,
)
from capital_kernel.domain.values import amount_of
from capital_kernel.exceptions import LegIndexOutOfRangeError, UnreconcilableError
from capital_kernel.logging_config import get_logger

logger = get_logger("engines.balance")

TRANSFER_TYPES = frozenset({TxType.TRANSFER, TxType.TRANSFER_FX})
ENVELOPE_TYPES = frozenset({TxType.SPENDING, TxType.REFUND})

# external_refs key recording which transaction donated a matched transfer leg.
TRANSFER_MATCH_REF = "transfer_match"


class BalanceOutcome(str, Enum):
    """What balance() did."""

    ALREADY_BALANCED = "already_balanced"
    OFFSET_ADDED = "offset_added"
    MATCHED = "matched"
    PENDING = "pending"


@dataclass(frozen=True)
class BalanceResult:
    """
    Result of an auto-balance attempt.

    ``matched`` is the merged counterpart for MATCHED outcomes; the caller
    uses its transaction_id to retire the donor transaction.
    """

    outcome: BalanceOutcome
    transaction: Transaction
    matched: CandidateLeg | None = None

    @property
    def changed(self) -> bool:
        return self.outcome in (BalanceOutcome.OFFSET_ADDED, BalanceOutcome.MATCHED)

    @property
    def is_pending(self) -> bool:
        return self.outcome is BalanceOutcome.PENDING


def classify_legs(legs: tuple[Leg, ...], tx_type: TxType | None) -> BalanceState:
    """Pure classification of a leg list under a transaction type."""
    real_leg_count = sum(1 for leg in legs if not leg.is_pnl)
    if tx_type in TRANSFER_TYPES and real_leg_count == 1:
        return BalanceState.AWAITING_TRANSFER_MATCH

    nonzero = nonzero_buckets(bucket_sums(legs))
    if tx_type in ENVELOPE_TYPES:
        if not nonzero and is_attributed(legs):
            return BalanceState.BALANCED
        if len(nonzero) <= 1:
            return BalanceState.NEEDS_ENVELOPE_OFFSET
        return BalanceState.UNKNOWN

    if not nonzero:
        return BalanceState.BALANCED
    return BalanceState.UNKNOWN


class BalanceEngine:
    """
    Classifies and auto-balances transactions.

    Contract:
        Pure -- no I/O, no clock.  Transactions are immutable; every method
        returns a (possibly identical) Transaction.
    Guarantees:
        - classify() depends only on legs and tx_type.
        - After balance() on a NEEDS_ENVELOPE_OFFSET transaction the state
          is BALANCED.
        - balance() on a BALANCED transaction returns it unchanged.
    Non-goals:
        - Never assigns a category; the offset leg's category_id stays None
          until reclassify().
        - Never retires a donor transaction; the caller does.
    """

    def __init__(self, matcher: TransferMatcher | None = None) -> None:
        self._matcher = matcher or TransferMatcher()

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    @traced_engine("balance", "1.0", fingerprint_fields=("tx",))
    def classify(self, tx: Transaction) -> BalanceState:
        state = classify_legs(tx.legs, tx.tx_type)
        logger.debug(
            "transaction_classified",
            extra={"transaction_id": tx.id, "balance_state": state.value},
        )
        return state

    def buckets(self, tx: Transaction) -> dict[str, Decimal]:
        """Signed sum per unit bucket."""
        return bucket_sums(tx.legs)

    def refresh(self, tx: Transaction) -> Transaction:
        """Transaction with balance_state recomputed (same object when already current)."""
        state = self.classify(tx)
        if tx.balance_state is state:
            return tx
        return replace(tx, balance_state=state)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def edit_legs(self, tx: Transaction, legs: Iterable[Leg]) -> Transaction:
        """Replace the legs and recompute state."""
        return self.refresh(tx.with_legs(legs))

    def set_tx_type(self, tx: Transaction, tx_type: TxType | None) -> Transaction:
        return self.refresh(replace(tx, tx_type=tx_type))

    @traced_engine("balance", "1.0", fingerprint_fields=("tx", "leg_index", "category_id"))
    def reclassify(self, tx: Transaction, leg_index: int, category_id: str | None) -> Transaction:
        """
        Set (or clear) the category of one leg and recompute state.

        Raises:
            LegIndexOutOfRangeError: If leg_index does not address a leg.
        """
        if isinstance(leg_index, bool) or not isinstance(leg_index, int) or not (
            0 <= leg_index < len(tx.legs)
        ):
            raise LegIndexOutOfRangeError(tx.id, leg_index, len(tx.legs))
        legs = list(tx.legs)
        legs[leg_index] = legs[leg_index].with_category(category_id)
        updated = self.refresh(replace(tx, legs=tuple(legs)))
        logger.info(
            "leg_reclassified",
            extra={
                "transaction_id": tx.id,
                "leg_index": leg_index,
                "category_id": category_id,
                "balance_state": updated.balance_state.value,
            },
        )
        return updated

    @traced_engine(
        "balance",
        "1.0",
        fingerprint_fields=("tx", "window", "counterpart_account_id"),
    )
    def balance(
        self,
        tx: Transaction,
        candidate_pool: Iterable[CandidateLeg] = (),
        *,
        window: timedelta | None = None,
        counterpart_account_id: str | None = None,
    ) -> BalanceResult:
        """
        Reconcile ``tx`` automatically where its state allows.

        Raises:
            UnreconcilableError: If the transaction classifies as UNKNOWN.
        """
        state = self.classify(tx)

        if state is BalanceState.BALANCED:
            return BalanceResult(BalanceOutcome.ALREADY_BALANCED, self.refresh(tx))

        if state is BalanceState.NEEDS_ENVELOPE_OFFSET:
            balanced = self._add_offset(tx)
            logger.info(
                "offset_leg_added",
                extra={
                    "transaction_id": tx.id,
                    "leg_count": len(balanced.legs),
                    "balance_state": balanced.balance_state.value,
                },
            )
            return BalanceResult(BalanceOutcome.OFFSET_ADDED, balanced)

        if state is BalanceState.AWAITING_TRANSFER_MATCH:
            match = self._matcher.find_match(
                tx,
                candidate_pool,
                window=window,
                counterpart_account_id=counterpart_account_id,
            )
            if match is None:
                logger.info("transfer_still_pending", extra={"transaction_id": tx.id})
                return BalanceResult(BalanceOutcome.PENDING, self.refresh(tx))
            merged = self.refresh(
                replace(
                    tx,
                    legs=tx.legs + self._donated_legs(match, offset=len(tx.legs)),
                    external_refs=tx.external_refs
                    + tuple(ref for ref in match.donor_refs if ref not in tx.external_refs)
                    + ((TRANSFER_MATCH_REF, match.transaction_id),),
                )
            )
            logger.debug(
                "transfer_legs_merged",
                extra={
                    "transaction_id": tx.id,
                    "donor_transaction_id": match.transaction_id,
                    "donated_leg_count": len(merged.legs) - len(tx.legs),
                    "balance_state": merged.balance_state.value,
                },
            )
            return BalanceResult(BalanceOutcome.MATCHED, merged, matched=match)

        buckets = nonzero_buckets(bucket_sums(tx.legs))
        logger.warning(
            "transaction_unreconcilable",
            extra={
                "transaction_id": tx.id,
                "tx_type": tx.tx_type.value if tx.tx_type is not None else None,
                "buckets": {unit: str(total) for unit, total in buckets.items()},
            },
        )
        raise UnreconcilableError(tx.id, buckets)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _donated_legs(match: CandidateLeg, offset: int) -> tuple[Leg, ...]:
        """Every leg of the donor, fee references shifted past the receiving legs."""
        if not match.donor_legs:
            return (match.leg,)
        return tuple(
            leg
            if leg.fee_of_leg_idx is None
            else replace(leg, fee_of_leg_idx=leg.fee_of_leg_idx + offset)
            for leg in match.donor_legs
        )

    def _add_offset(self, tx: Transaction) -> Transaction:
        sums = bucket_sums(tx.legs)
        nonzero = nonzero_buckets(sums)

        if not nonzero:
            # Cash-consistent but unattributed: a zero P&L leg carries attribution.
            unit = next(iter(sums))
            offset = Leg(
                account_id=PNL_ACCOUNT_ID,
                direction=LegDirection.DEBIT,
                amount=amount_of(unit, Decimal("0")),
            )
            return self.refresh(tx.with_legs(tx.legs + (offset,)))

        (unit, total), = nonzero.items()

        for i, leg in enumerate(tx.legs):
            if leg.is_pnl and leg.category_id is None and leg.fx is None and leg.unit == unit:
                adjusted = leg.signed_value - total
                direction = LegDirection.DEBIT if adjusted >= 0 else LegDirection.CREDIT
                legs = list(tx.legs)
                legs[i] = replace(leg, direction=direction, amount=amount_of(unit, abs(adjusted)))
                return self.refresh(tx.with_legs(legs))

        offset = Leg(
            account_id=PNL_ACCOUNT_ID,
            direction=LegDirection.CREDIT if total > 0 else LegDirection.DEBIT,
            amount=amount_of(unit, abs(total)),
        )
        return self.refresh(tx.with_legs(tx.legs + (offset,)))


_default_engine = BalanceEngine()


def classify(tx: Transaction) -> BalanceState:
    """Module-level convenience over a shared BalanceEngine."""
    return _default_engine.classify(tx)
