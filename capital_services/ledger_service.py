"""
capital_services.ledger_service -- LedgerService, the embedding surface.

Responsibility:
    Composes the pure engines (balance, transfer matching, aggregation,
    tx-type inference, FX restatement) with a LedgerStore, a Registry, the
    active LedgerConfig and a Clock.  Every mutation of a stored
    transaction runs here, under that transaction's KeyedLock entry.

Architecture position:
    Services -- stateful orchestration over engines + kernel.
    The only layer that reads LedgerConfig; config values reach the engines
    as explicit arguments (window, threshold, leftover policy, peg).

Invariants enforced:
    - Per-id serialization: balance, reclassify, edit_legs, set_tx_type and
      delete of one transaction never interleave.
    - Stored transactions always carry an engine-computed balance_state.
    - Transfer donor absorption: a matched donor is removed in the same
      store commit that writes the merged transaction, with both ids held.
    - Reads (aggregation) work on a store snapshot, never on live objects.

Failure modes:
    - TransactionNotFoundError / TransactionAlreadyExistsError from the store.
    - UnreconcilableError from balance() on an UNKNOWN transaction.
    - LegIndexOutOfRangeError from reclassify().
    - ValueError when no FX peg is configured for a restatement.

Audit relevance:
    Mutations log with the transaction id, the service's actor_id and a
    per-call correlation_id bound into LogContext; merged
    transfers record their donor under external_refs["transfer_match"].
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from uuid import uuid4

from capital_config.schema import LedgerConfig
from capital_engines.aggregation import (
    AccountBalance,
    UsageSummary,
    account_balance,
    aggregate_balances,
    envelope_usage,
    envelope_usage_series,
    first_envelope_label,
)
from capital_engines.balance import BalanceEngine, BalanceOutcome, BalanceResult
from capital_engines.fx import RestatementResult, restate_pnl_leg
from capital_engines.transfer_matching import CandidateLeg
from capital_engines.tx_type import infer_tx_type
from capital_kernel.domain.accounts import AccountGroup
from capital_kernel.domain.clock import Clock, SystemClock
from capital_kernel.domain.cycles import (
    Cycle,
    CycleList,
    cycle_bounds,
    cycle_labels,
    parse_label,
    recent_cycles,
)
from capital_kernel.domain.envelopes import PriorCycleState
from capital_kernel.domain.ledger import BalanceState, Leg, Transaction, TxType
from capital_kernel.domain.values import FxConversion
from capital_kernel.exceptions import TransactionNotFoundError
from capital_kernel.logging_config import LogContext, get_logger
from capital_kernel.services.ledger_store import LedgerStore
from capital_services.locking import KeyedLock
from capital_services.registry import Registry

logger = get_logger("services.ledger")

# Attempts at locking a transfer and its donor before reporting PENDING.
_MATCH_ATTEMPTS = 3


@dataclass(frozen=True)
class GroupBalance:
    """Balances of one account group over a cycle."""

    group: AccountGroup
    balance: AccountBalance


class LedgerService:
    """
    Transaction lifecycle, balancing and reporting over a LedgerStore.

    Contract:
        Callers address transactions by id; the service reads the current
        version from the store, applies an engine, and commits the result.
    Guarantees:
        - balance() and reclassify() are idempotent.
        - A MATCHED balance leaves exactly one transaction holding both
          sides of the transfer.
    Non-goals:
        - No ingestion or statement parsing.
        - No rate sourcing; FX rates come from configuration or the caller.
    """

    def __init__(
        self,
        store: LedgerStore,
        config: LedgerConfig,
        *,
        engine: BalanceEngine | None = None,
        clock: Clock | None = None,
        registry: Registry | None = None,
        actor_id: str = "system",
    ):
        self._store = store
        self._config = config
        self._engine = engine or BalanceEngine()
        self._clock = clock or SystemClock()
        self._registry = registry or Registry(store)
        self._locks = KeyedLock()
        self._actor_id = actor_id

    @property
    def config(self) -> LedgerConfig:
        return self._config

    @property
    def registry(self) -> Registry:
        return self._registry

    @property
    def store(self) -> LedgerStore:
        return self._store

    def _operation(self, **fields: str | None):
        """
        LogContext for one service call: the actor, plus a fresh correlation
        id unless the caller already bound one.
        """
        if "correlation_id" not in LogContext.get_all():
            fields["correlation_id"] = str(uuid4())
        return LogContext.bind(actor_id=self._actor_id, **fields)

    # =========================================================================
    # Transaction lifecycle
    # =========================================================================

    def record_transaction(self, tx: Transaction) -> Transaction:
        """
        Store a new transaction.

        A missing tx_type is inferred from the legs; balance_state is
        always recomputed before the write.
        """
        with self._operation(transaction_id=tx.id, source=tx.source):
            if tx.tx_type is None:
                tx = self._engine.set_tx_type(
                    tx, infer_tx_type(tx, self._config.fee_only_threshold)
                )
            else:
                tx = self._engine.refresh(tx)
            with self._locks.hold(tx.id):
                self._store.add(tx)
            logger.info(
                "transaction_recorded",
                extra={
                    "transaction_id": tx.id,
                    "tx_type": tx.tx_type.value if tx.tx_type is not None else None,
                    "balance_state": tx.balance_state.value,
                    "leg_count": len(tx.legs),
                },
            )
            return tx

    def get_transaction(self, transaction_id: str) -> Transaction:
        return self._store.get(transaction_id)

    def transactions(self) -> tuple[Transaction, ...]:
        """Snapshot of every stored transaction, ordered by (ts, id)."""
        return self._store.snapshot()

    def delete_transaction(self, transaction_id: str) -> None:
        with self._operation(transaction_id=transaction_id), self._locks.hold(transaction_id):
            self._store.delete(transaction_id)
            logger.info("transaction_deleted", extra={"transaction_id": transaction_id})

    def edit_legs(self, transaction_id: str, legs: Iterable[Leg]) -> Transaction:
        legs = tuple(legs)
        with self._operation(transaction_id=transaction_id), self._locks.hold(transaction_id):
            updated = self._engine.edit_legs(self._store.get(transaction_id), legs)
            self._store.commit(updated)
            logger.info(
                "transaction_legs_edited",
                extra={
                    "transaction_id": transaction_id,
                    "leg_count": len(legs),
                    "balance_state": updated.balance_state.value,
                },
            )
            return updated

    def set_tx_type(self, transaction_id: str, tx_type: TxType | None) -> Transaction:
        with self._operation(transaction_id=transaction_id), self._locks.hold(transaction_id):
            updated = self._engine.set_tx_type(self._store.get(transaction_id), tx_type)
            self._store.commit(updated)
            logger.info(
                "transaction_type_set",
                extra={
                    "transaction_id": transaction_id,
                    "tx_type": tx_type.value if tx_type is not None else None,
                    "balance_state": updated.balance_state.value,
                },
            )
            return updated

    # =========================================================================
    # Balancing
    # =========================================================================

    def classify(self, transaction_id: str) -> BalanceState:
        return self._engine.classify(self._store.get(transaction_id))

    def reclassify(
        self, transaction_id: str, leg_index: int, category_id: str | None
    ) -> Transaction:
        with self._operation(transaction_id=transaction_id), self._locks.hold(transaction_id):
            current = self._store.get(transaction_id)
            updated = self._engine.reclassify(current, leg_index, category_id)
            if updated != current:
                self._store.commit(updated)
            return updated

    def transfer_candidates(self, tx: Transaction) -> list[CandidateLeg]:
        """
        Counterpart pool for ``tx``: the real legs of every other stored
        transaction still awaiting a transfer match.
        """
        pool: list[CandidateLeg] = []
        for other in self._store.snapshot():
            if other.id == tx.id:
                continue
            if other.balance_state is not BalanceState.AWAITING_TRANSFER_MATCH:
                continue
            pool.extend(CandidateLeg.from_transaction(other))
        return pool

    def balance(
        self, transaction_id: str, *, counterpart_account_id: str | None = None
    ) -> BalanceResult:
        """
        Auto-balance a stored transaction.

        A transfer match is confirmed with both the transaction and its
        donor locked (sorted order); if the donor changed in between, the
        search is repeated.

        Raises:
            UnreconcilableError: If the transaction classifies as UNKNOWN.
        """
        window = self._config.transfer_match_window
        donor_id: str | None = None
        with self._operation(transaction_id=transaction_id):
            for _ in range(_MATCH_ATTEMPTS):
                keys = [transaction_id] if donor_id is None else [transaction_id, donor_id]
                with self._locks.hold_many(keys):
                    tx = self._store.get(transaction_id)
                    if donor_id is None:
                        pool = self.transfer_candidates(tx)
                    else:
                        pool = self._donor_candidates(donor_id)
                    result = self._engine.balance(
                        tx,
                        pool,
                        window=window,
                        counterpart_account_id=counterpart_account_id,
                    )

                    if result.outcome is BalanceOutcome.MATCHED:
                        if donor_id is None:
                            # Re-run with the donor locked too.
                            donor_id = result.matched.transaction_id
                            continue
                        self._store.commit(result.transaction, removed=[donor_id])
                        logger.info(
                            "transfer_donor_absorbed",
                            extra={
                                "transaction_id": transaction_id,
                                "donor_transaction_id": donor_id,
                            },
                        )
                        return result

                    if result.outcome is BalanceOutcome.PENDING and donor_id is not None:
                        donor_id = None
                        continue

                    if result.transaction != tx:
                        self._store.commit(result.transaction)
                    return result

            logger.warning(
                "transfer_match_contended",
                extra={"transaction_id": transaction_id, "attempts": _MATCH_ATTEMPTS},
            )
            tx = self._store.get(transaction_id)
            return BalanceResult(BalanceOutcome.PENDING, self._engine.refresh(tx))

    def _donor_candidates(self, donor_id: str) -> list[CandidateLeg]:
        try:
            donor = self._store.get(donor_id)
        except TransactionNotFoundError:
            return []
        if donor.balance_state is not BalanceState.AWAITING_TRANSFER_MATCH:
            return []
        return CandidateLeg.from_transaction(donor)

    # =========================================================================
    # Maintenance
    # =========================================================================

    def infer_tx_type(self, transaction_id: str) -> TxType:
        return infer_tx_type(self._store.get(transaction_id), self._config.fee_only_threshold)

    def peg(self, from_unit: str, to_unit: str | None = None, rate: Decimal | None = None) -> FxConversion:
        """
        The FxConversion used for a restatement at the current clock time.

        An explicit ``rate`` overrides the configured peg.
        """
        to_unit = to_unit or self._config.reporting_currency
        at = self._clock.now()
        if rate is not None:
            return FxConversion(from_unit=from_unit, to_unit=to_unit, rate=rate, source="manual", at=at)
        configured = self._config.peg_for(from_unit.upper(), to_unit.upper())
        if configured is None:
            raise ValueError(f"No FX peg configured for {from_unit} -> {to_unit}")
        return configured.as_conversion(at)

    def restate_pnl(
        self,
        transaction_id: str,
        peg: FxConversion,
        *,
        annotate_custody: bool = True,
    ) -> RestatementResult:
        """Restate the P&L leg of a stored transaction at ``peg``."""
        with self._operation(transaction_id=transaction_id), self._locks.hold(transaction_id):
            result = restate_pnl_leg(
                self._store.get(transaction_id),
                peg,
                annotate_custody=annotate_custody,
                engine=self._engine,
            )
            if result.restated:
                self._store.commit(result.transaction)
            return result

    # =========================================================================
    # Cycles and reporting
    # =========================================================================

    def cycle_bounds(self, label: str) -> Cycle:
        return cycle_bounds(label)

    def recent_cycles(self, count: int | None = None) -> CycleList:
        return recent_cycles(self._clock, count or self._config.recent_cycle_count)

    def account_balance(self, account_id: str, label: str) -> AccountBalance:
        cycle = cycle_bounds(label)
        with LogContext.bind(cycle_label=label):
            return account_balance(account_id, cycle, self._store.snapshot())

    def group_balances(self, label: str) -> list[GroupBalance]:
        """Same-unit balances per account group (see Registry.groups)."""
        cycle = cycle_bounds(label)
        snapshot = self._store.snapshot()
        with LogContext.bind(cycle_label=label):
            return [
                GroupBalance(
                    group=group,
                    balance=aggregate_balances(group.account_ids, cycle, snapshot),
                )
                for group in self._registry.groups()
            ]

    def envelope_usage(
        self,
        envelope_id: str,
        label: str,
        *,
        prior: PriorCycleState | None = None,
        since: str | None = None,
    ) -> UsageSummary:
        """
        Usage for one cycle with rollover applied.

        With ``prior`` the cycle is evaluated against that previous outcome
        alone.  Otherwise the rollover chain runs from ``since``, or from the
        first cycle holding a leg tagged with the envelope, up to ``label``.
        """
        parse_label(label)
        if prior is not None:
            envelope = self._registry.get_envelope(envelope_id)
            with LogContext.bind(cycle_label=label):
                return envelope_usage(
                    envelope,
                    cycle_bounds(label),
                    self._store.snapshot(),
                    prior=prior,
                    leftover_policy=self._config.leftover_policy,
                    percent_places=self._config.percent_places,
                )
        first = since or first_envelope_label(envelope_id, self._store.snapshot())
        if first is None or parse_label(first) > parse_label(label):
            first = label
        return self.envelope_usage_series(envelope_id, first, label)[-1]

    def envelope_usage_series(
        self, envelope_id: str, first_label: str, last_label: str
    ) -> list[UsageSummary]:
        envelope = self._registry.get_envelope(envelope_id)
        labels = cycle_labels(first_label, last_label)
        with LogContext.bind(cycle_label=last_label):
            return envelope_usage_series(
                envelope,
                labels,
                self._store.snapshot(),
                leftover_policy=self._config.leftover_policy,
                percent_places=self._config.percent_places,
            )
