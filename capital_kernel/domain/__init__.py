"""
Pure domain layer.

Value objects and pure functions for the ledger, with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- Wall-clock time (except SystemClock)
- I/O

All domain objects are immutable and deterministic.
"""

from capital_kernel.domain.accounts import (
    PNL_ACCOUNT_ID,
    Account,
    AccountGroup,
    AccountNetwork,
    AccountType,
    BankDetails,
    BitcoinNetwork,
    CexDetails,
    CreditCardDetails,
    CryptoWalletDetails,
    EvmNetwork,
    SolanaNetwork,
    TrustDetails,
    group_accounts,
    infer_group_key,
    settlement_currency,
)
from capital_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from capital_kernel.domain.currency import CurrencyInfo, CurrencyRegistry
from capital_kernel.domain.cycles import (
    Cycle,
    CycleList,
    cycle_bounds,
    cycle_for,
    cycle_labels,
    next_label,
    previous_label,
    recent_cycles,
)
from capital_kernel.domain.envelopes import (
    CarryOver,
    Decay,
    Envelope,
    EnvelopeKind,
    EnvelopeStatus,
    LeftoverPolicy,
    PriorCycleState,
    ResetToZero,
    RolloverPolicy,
    SinkingFund,
    effective_budget,
)
from capital_kernel.domain.ledger import (
    BalanceState,
    Leg,
    LegDirection,
    Transaction,
    TxType,
)
from capital_kernel.domain.values import (
    CryptoAmount,
    Currency,
    FxConversion,
    LegAmount,
    Money,
    amount_of,
)

__all__ = [
    # Values
    "Currency",
    "CurrencyInfo",
    "CurrencyRegistry",
    "Money",
    "CryptoAmount",
    "LegAmount",
    "FxConversion",
    "amount_of",
    # Accounts
    "PNL_ACCOUNT_ID",
    "Account",
    "AccountGroup",
    "AccountNetwork",
    "AccountType",
    "BankDetails",
    "CreditCardDetails",
    "CryptoWalletDetails",
    "CexDetails",
    "TrustDetails",
    "EvmNetwork",
    "SolanaNetwork",
    "BitcoinNetwork",
    "settlement_currency",
    "infer_group_key",
    "group_accounts",
    # Envelopes
    "Envelope",
    "EnvelopeKind",
    "EnvelopeStatus",
    "LeftoverPolicy",
    "PriorCycleState",
    "RolloverPolicy",
    "ResetToZero",
    "CarryOver",
    "SinkingFund",
    "Decay",
    "effective_budget",
    # Cycles
    "Cycle",
    "CycleList",
    "cycle_bounds",
    "cycle_for",
    "cycle_labels",
    "next_label",
    "previous_label",
    "recent_cycles",
    # Ledger
    "BalanceState",
    "Leg",
    "LegDirection",
    "Transaction",
    "TxType",
    # Clock
    "Clock",
    "SystemClock",
    "DeterministicClock",
]
