"""
capital_engines.tx_type -- Transaction-type inference from leg shape.

Responsibility:
    Derive a TxType for transactions imported without one, from the legs
    alone.  Used by the backfill maintenance script and by the service when
    a transaction is recorded without a type.

Rules (first match wins):
    P&L leg present (the first one decides):
        DEBIT  -> FEE_ONLY when the transaction has exactly two legs and the
                  P&L leg is fiat below the fee threshold, else SPENDING
        CREDIT -> INCOME
    No P&L leg:
        fewer than two legs                      -> ADJUSTMENT
        more than one fiat currency              -> TRANSFER_FX
        crypto with fiat, or more than two legs
          with crypto                            -> TRADE
        one fiat currency, or crypto only        -> TRANSFER
        otherwise                                -> ADJUSTMENT

Architecture position:
    Engines -- pure calculation layer, zero I/O.
"""

from __future__ import annotations

from decimal import Decimal

from capital_engines.tracer import traced_engine
from capital_kernel.domain.ledger import LegDirection, Transaction, TxType
from capital_kernel.domain.values import CryptoAmount, Money

DEFAULT_FEE_ONLY_THRESHOLD = Decimal("15")


@traced_engine("tx_type", "1.0", fingerprint_fields=("tx", "fee_only_threshold"))
def infer_tx_type(
    tx: Transaction,
    fee_only_threshold: Decimal = DEFAULT_FEE_ONLY_THRESHOLD,
) -> TxType:
    """Best-effort TxType for ``tx`` based on its legs."""
    pnl = next((leg for leg in tx.legs if leg.is_pnl), None)
    if pnl is not None:
        if pnl.direction is LegDirection.CREDIT:
            return TxType.INCOME
        if (
            len(tx.legs) == 2
            and isinstance(pnl.amount, Money)
            and abs(pnl.amount.amount) < fee_only_threshold
        ):
            return TxType.FEE_ONLY
        return TxType.SPENDING

    if len(tx.legs) < 2:
        return TxType.ADJUSTMENT

    fiat_currencies = {leg.unit for leg in tx.legs if isinstance(leg.amount, Money)}
    if len(fiat_currencies) > 1:
        return TxType.TRANSFER_FX

    has_crypto = any(isinstance(leg.amount, CryptoAmount) for leg in tx.legs)
    has_fiat = bool(fiat_currencies)
    if has_crypto and (has_fiat or len(tx.legs) > 2):
        return TxType.TRADE

    if len(fiat_currencies) == 1 or (has_crypto and not has_fiat):
        return TxType.TRANSFER
    return TxType.ADJUSTMENT
