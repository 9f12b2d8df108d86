"""
capital_engines.fx -- Restating P&L legs into another currency at a peg.

Responsibility:
    Rewrites a transaction's P&L leg from a source currency into a target
    currency at a declared rate (e.g. HKD into USD at the 7.8 peg), so that
    budgets kept in the target currency see the spend.  The custody leg
    keeps its native amount and gains an FxConversion declaring the same
    rate, which keeps the transaction balanced in the target bucket.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The rate is an input
    (LedgerConfig.fx_pegs via the service layer); nothing is sourced here.

Invariants enforced:
    - Idempotent: a P&L leg whose notes already carry a restatement marker
      is left alone, as is one already in the target currency.
    - The restated amount is rounded half-up to the target precision, the
      same rounding FxConversion.convert applies to the custody leg.
    - State is recomputed by the Balance Engine after the rewrite.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal
from enum import Enum

from capital_engines.balance import BalanceEngine
from capital_engines.tracer import traced_engine
from capital_kernel.domain.ledger import Transaction
from capital_kernel.domain.values import FxConversion, Money
from capital_kernel.logging_config import get_logger

logger = get_logger("engines.fx")

# 1 HKD in USD under the 7.8 peg.
DEFAULT_HKD_TO_USD = Decimal("0.1282051282051282")

RESTATEMENT_MARKER = "restated_"


class RestatementSkip(str, Enum):
    NO_PNL_LEG = "no_pnl_leg"
    ALREADY_RESTATED = "already_restated"
    NOT_SOURCE_CURRENCY = "not_source_currency"
    ZERO_AMOUNT = "zero_amount"
    NO_CUSTODY_LEG = "no_custody_leg"


@dataclass(frozen=True)
class RestatementResult:
    transaction: Transaction
    restated: bool
    skipped: RestatementSkip | None = None


def restatement_note(peg: FxConversion) -> str:
    return f"{RESTATEMENT_MARKER}{peg.from_unit.lower()}_to_{peg.to_unit.lower()}@{peg.rate}"


@traced_engine("fx", "1.0", fingerprint_fields=("tx", "peg", "annotate_custody"))
def restate_pnl_leg(
    tx: Transaction,
    peg: FxConversion,
    annotate_custody: bool = True,
    engine: BalanceEngine | None = None,
) -> RestatementResult:
    """
    Restate the first P&L leg of ``tx`` from ``peg.from_unit`` into ``peg.to_unit``.

    Returns the transaction unchanged, with a skip reason, when there is
    nothing to do.
    """
    engine = engine or BalanceEngine()

    pnl_index = next((i for i, leg in enumerate(tx.legs) if leg.is_pnl), None)
    if pnl_index is None:
        return _skip(tx, RestatementSkip.NO_PNL_LEG)
    pnl = tx.legs[pnl_index]

    custody_index = next((i for i in range(len(tx.legs)) if i != pnl_index), None)
    if custody_index is None:
        return _skip(tx, RestatementSkip.NO_CUSTODY_LEG)
    if pnl.notes and RESTATEMENT_MARKER in pnl.notes:
        return _skip(tx, RestatementSkip.ALREADY_RESTATED)
    if not isinstance(pnl.amount, Money) or pnl.unit != peg.from_unit:
        return _skip(tx, RestatementSkip.NOT_SOURCE_CURRENCY)
    if pnl.amount.is_zero:
        return _skip(tx, RestatementSkip.ZERO_AMOUNT)

    note = restatement_note(peg)
    legs = list(tx.legs)
    legs[pnl_index] = replace(
        pnl,
        amount=peg.convert(pnl.amount),
        notes=f"{pnl.notes}; {note}" if pnl.notes else note,
    )
    custody = legs[custody_index]
    if annotate_custody and custody.fx is None and custody.unit == peg.from_unit:
        legs[custody_index] = replace(custody, fx=peg)

    restated = engine.edit_legs(tx, legs)
    logger.info(
        "pnl_leg_restated",
        extra={
            "transaction_id": tx.id,
            "from_unit": peg.from_unit,
            "to_unit": peg.to_unit,
            "rate": str(peg.rate),
            "original_amount": str(pnl.amount.amount),
            "restated_amount": str(legs[pnl_index].amount.value),
            "balance_state": restated.balance_state.value,
        },
    )
    return RestatementResult(transaction=restated, restated=True)


def _skip(tx: Transaction, reason: RestatementSkip) -> RestatementResult:
    logger.debug(
        "pnl_restatement_skipped",
        extra={"transaction_id": tx.id, "reason": reason.value},
    )
    return RestatementResult(transaction=tx, restated=False, skipped=reason)
