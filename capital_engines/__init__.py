"""
Module: capital_engines
Responsibility:
    Package entrypoint re-exporting the pure calculation engines: the
    Balance Engine, transfer matching, aggregation, transaction-type
    inference and FX restatement.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import capital_kernel (domain, exceptions, logging) and
    sibling engine modules.  MUST NOT import capital_services or
    capital_config.

Invariants enforced:
    - Purity: engines never read the clock; times arrive as parameters.
    - Decimal-only arithmetic.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Engine entry points are traced via ``@traced_engine`` (see
    ``capital_engines.tracer``), emitting CAPITAL_ENGINE_TRACE records with
    engine name, version, input fingerprint and duration.
"""

from capital_engines.aggregation import (
    PERCENT_UNBOUNDED,
    AccountBalance,
    BalanceTriple,
    UsageSummary,
    account_balance,
    aggregate_balances,
    envelope_usage,
    envelope_usage_series,
    first_envelope_label,
)
from capital_engines.balance import (
    TRANSFER_MATCH_REF,
    BalanceEngine,
    BalanceOutcome,
    BalanceResult,
    classify,
    classify_legs,
)
from capital_engines.buckets import bucket_sums, is_attributed
from capital_engines.fx import (
    DEFAULT_HKD_TO_USD,
    RestatementResult,
    RestatementSkip,
    restate_pnl_leg,
)
from capital_engines.tracer import traced_engine
from capital_engines.transfer_matching import CandidateLeg, TransferMatcher
from capital_engines.tx_type import DEFAULT_FEE_ONLY_THRESHOLD, infer_tx_type

__all__ = [
    # Balance
    "BalanceEngine",
    "BalanceOutcome",
    "BalanceResult",
    "TRANSFER_MATCH_REF",
    "classify",
    "classify_legs",
    "bucket_sums",
    "is_attributed",
    # Transfer matching
    "CandidateLeg",
    "TransferMatcher",
    # Aggregation
    "AccountBalance",
    "BalanceTriple",
    "UsageSummary",
    "PERCENT_UNBOUNDED",
    "account_balance",
    "aggregate_balances",
    "envelope_usage",
    "envelope_usage_series",
    "first_envelope_label",
    # Inference / FX
    "DEFAULT_FEE_ONLY_THRESHOLD",
    "infer_tx_type",
    "DEFAULT_HKD_TO_USD",
    "RestatementResult",
    "RestatementSkip",
    "restate_pnl_leg",
    # Tracer
    "traced_engine",
]
