"""
LedgerStore -- Working-set storage for transactions, accounts and envelopes.

Responsibility:
    Defines the LedgerStore protocol the service layer depends on and two
    implementations: InMemoryLedgerStore (the default working set) and
    SqlLedgerStore (SQLAlchemy, via the codec documents in
    capital_kernel.models).

Architecture position:
    Kernel > Services -- the only kernel module that touches a database
    session.  Stores objects; never classifies, balances or aggregates.

Invariants enforced:
    - Whole-object swaps: a stored transaction is replaced atomically, so
      ``snapshot()`` returns every transaction either before or after a
      mutation, never a partially applied leg list.
    - ``commit`` writes an updated transaction and removes absorbed ones in
      one atomic step.

Failure modes:
    - TransactionAlreadyExistsError on add() of an existing id.
    - TransactionNotFoundError / AccountNotFoundError / EnvelopeNotFoundError
      for unknown ids.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from typing import Protocol

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session, sessionmaker

from capital_kernel.db.engine import session_scope
from capital_kernel.domain.accounts import Account
from capital_kernel.domain.envelopes import Envelope
from capital_kernel.domain.ledger import Transaction
from capital_kernel.exceptions import (
    AccountNotFoundError,
    EnvelopeNotFoundError,
    TransactionAlreadyExistsError,
    TransactionNotFoundError,
)
from capital_kernel.logging_config import get_logger
from capital_kernel.models.account import AccountRecord
from capital_kernel.models.envelope import EnvelopeRecord
from capital_kernel.models.transaction import LegRefRecord, TransactionRecord

logger = get_logger("services.ledger_store")


class LedgerStore(Protocol):
    """Storage seam between the service layer and whatever holds the ledger."""

    def add(self, tx: Transaction) -> None: ...

    def get(self, transaction_id: str) -> Transaction: ...

    def commit(self, tx: Transaction, removed: Iterable[str] = ()) -> None: ...

    def delete(self, transaction_id: str) -> None: ...

    def snapshot(self) -> tuple[Transaction, ...]: ...

    def count_references(
        self, *, account_id: str | None = None, category_id: str | None = None
    ) -> int: ...

    def put_account(self, account: Account) -> None: ...

    def get_account(self, account_id: str) -> Account: ...

    def remove_account(self, account_id: str) -> None: ...

    def accounts(self) -> tuple[Account, ...]: ...

    def put_envelope(self, envelope: Envelope) -> None: ...

    def get_envelope(self, envelope_id: str) -> Envelope: ...

    def remove_envelope(self, envelope_id: str) -> None: ...

    def envelopes(self) -> tuple[Envelope, ...]: ...


def _ordered(transactions: Iterable[Transaction]) -> tuple[Transaction, ...]:
    return tuple(sorted(transactions, key=lambda t: (t.ts, t.id)))


class InMemoryLedgerStore:
    """
    Dict-backed store guarded by one re-entrant lock.

    Contract:
        Every public method holds the lock for its whole duration, so
        readers observe either the state before or after any write.
    """

    def __init__(
        self,
        transactions: Iterable[Transaction] = (),
        accounts: Iterable[Account] = (),
        envelopes: Iterable[Envelope] = (),
    ):
        self._lock = threading.RLock()
        self._transactions: dict[str, Transaction] = {}
        self._accounts: dict[str, Account] = {a.id: a for a in accounts}
        self._envelopes: dict[str, Envelope] = {e.id: e for e in envelopes}
        for tx in transactions:
            self.add(tx)

    # Transactions

    def add(self, tx: Transaction) -> None:
        with self._lock:
            if tx.id in self._transactions:
                raise TransactionAlreadyExistsError(tx.id)
            self._transactions[tx.id] = tx

    def get(self, transaction_id: str) -> Transaction:
        with self._lock:
            try:
                return self._transactions[transaction_id]
            except KeyError:
                raise TransactionNotFoundError(transaction_id) from None

    def commit(self, tx: Transaction, removed: Iterable[str] = ()) -> None:
        removed = tuple(removed)
        with self._lock:
            for transaction_id in (tx.id, *removed):
                if transaction_id not in self._transactions:
                    raise TransactionNotFoundError(transaction_id)
            self._transactions[tx.id] = tx
            for transaction_id in removed:
                del self._transactions[transaction_id]

    def delete(self, transaction_id: str) -> None:
        with self._lock:
            if self._transactions.pop(transaction_id, None) is None:
                raise TransactionNotFoundError(transaction_id)

    def snapshot(self) -> tuple[Transaction, ...]:
        with self._lock:
            return _ordered(self._transactions.values())

    def count_references(
        self, *, account_id: str | None = None, category_id: str | None = None
    ) -> int:
        with self._lock:
            return sum(
                1
                for tx in self._transactions.values()
                if any(
                    (account_id is not None and leg.account_id == account_id)
                    or (category_id is not None and leg.category_id == category_id)
                    for leg in tx.legs
                )
            )

    # Accounts

    def put_account(self, account: Account) -> None:
        with self._lock:
            self._accounts[account.id] = account

    def get_account(self, account_id: str) -> Account:
        with self._lock:
            try:
                return self._accounts[account_id]
            except KeyError:
                raise AccountNotFoundError(account_id) from None

    def remove_account(self, account_id: str) -> None:
        with self._lock:
            if self._accounts.pop(account_id, None) is None:
                raise AccountNotFoundError(account_id)

    def accounts(self) -> tuple[Account, ...]:
        with self._lock:
            return tuple(sorted(self._accounts.values(), key=lambda a: a.id))

    # Envelopes

    def put_envelope(self, envelope: Envelope) -> None:
        with self._lock:
            self._envelopes[envelope.id] = envelope

    def get_envelope(self, envelope_id: str) -> Envelope:
        with self._lock:
            try:
                return self._envelopes[envelope_id]
            except KeyError:
                raise EnvelopeNotFoundError(envelope_id) from None

    def remove_envelope(self, envelope_id: str) -> None:
        with self._lock:
            if self._envelopes.pop(envelope_id, None) is None:
                raise EnvelopeNotFoundError(envelope_id)

    def envelopes(self) -> tuple[Envelope, ...]:
        with self._lock:
            return tuple(sorted(self._envelopes.values(), key=lambda e: e.id))


class SqlLedgerStore:
    """
    SQLAlchemy-backed store.

    Contract:
        Each method runs in its own session_scope (commit on success,
        rollback on error).  Domain objects cross the boundary through the
        codec; ORM rows never leak out.

    Non-goals:
        - No row-level locking.  Per-transaction serialization is the
          service layer's KeyedLock.
    """

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    def _scope(self):
        return session_scope(self._session_factory)

    # Transactions

    def add(self, tx: Transaction) -> None:
        with self._scope() as session:
            if session.get(TransactionRecord, tx.id) is not None:
                raise TransactionAlreadyExistsError(tx.id)
            session.add(TransactionRecord.from_domain(tx))
        logger.debug("transaction_stored", extra={"transaction_id": tx.id})

    def get(self, transaction_id: str) -> Transaction:
        with self._scope() as session:
            record = session.get(TransactionRecord, transaction_id)
            if record is None:
                raise TransactionNotFoundError(transaction_id)
            return record.to_domain()

    def commit(self, tx: Transaction, removed: Iterable[str] = ()) -> None:
        removed = tuple(removed)
        with self._scope() as session:
            record = session.get(TransactionRecord, tx.id)
            if record is None:
                raise TransactionNotFoundError(tx.id)
            for transaction_id in removed:
                absorbed = session.get(TransactionRecord, transaction_id)
                if absorbed is None:
                    raise TransactionNotFoundError(transaction_id)
                session.delete(absorbed)
            record.apply(tx)

    def delete(self, transaction_id: str) -> None:
        with self._scope() as session:
            record = session.get(TransactionRecord, transaction_id)
            if record is None:
                raise TransactionNotFoundError(transaction_id)
            session.delete(record)

    def snapshot(self) -> tuple[Transaction, ...]:
        with self._scope() as session:
            records = session.scalars(
                select(TransactionRecord).order_by(TransactionRecord.ts, TransactionRecord.id)
            ).all()
            return _ordered(r.to_domain() for r in records)

    def count_references(
        self, *, account_id: str | None = None, category_id: str | None = None
    ) -> int:
        if account_id is None and category_id is None:
            return 0
        stmt = select(func.count(func.distinct(LegRefRecord.transaction_id)))
        if account_id is not None and category_id is not None:
            stmt = stmt.where(
                (LegRefRecord.account_id == account_id) | (LegRefRecord.category_id == category_id)
            )
        elif account_id is not None:
            stmt = stmt.where(LegRefRecord.account_id == account_id)
        else:
            stmt = stmt.where(LegRefRecord.category_id == category_id)
        with self._scope() as session:
            return int(session.scalar(stmt) or 0)

    # Accounts

    def put_account(self, account: Account) -> None:
        with self._scope() as session:
            record = session.get(AccountRecord, account.id)
            if record is None:
                session.add(AccountRecord.from_domain(account))
            else:
                record.apply(account)

    def get_account(self, account_id: str) -> Account:
        with self._scope() as session:
            record = session.get(AccountRecord, account_id)
            if record is None:
                raise AccountNotFoundError(account_id)
            return record.to_domain()

    def remove_account(self, account_id: str) -> None:
        with self._scope() as session:
            result = session.execute(delete(AccountRecord).where(AccountRecord.id == account_id))
            if result.rowcount == 0:
                raise AccountNotFoundError(account_id)

    def accounts(self) -> tuple[Account, ...]:
        with self._scope() as session:
            records = session.scalars(select(AccountRecord).order_by(AccountRecord.id)).all()
            return tuple(r.to_domain() for r in records)

    # Envelopes

    def put_envelope(self, envelope: Envelope) -> None:
        with self._scope() as session:
            record = session.get(EnvelopeRecord, envelope.id)
            if record is None:
                session.add(EnvelopeRecord.from_domain(envelope))
            else:
                record.apply(envelope)

    def get_envelope(self, envelope_id: str) -> Envelope:
        with self._scope() as session:
            record = session.get(EnvelopeRecord, envelope_id)
            if record is None:
                raise EnvelopeNotFoundError(envelope_id)
            return record.to_domain()

    def remove_envelope(self, envelope_id: str) -> None:
        with self._scope() as session:
            result = session.execute(delete(EnvelopeRecord).where(EnvelopeRecord.id == envelope_id))
            if result.rowcount == 0:
                raise EnvelopeNotFoundError(envelope_id)

    def envelopes(self) -> tuple[Envelope, ...]:
        with self._scope() as session:
            records = session.scalars(select(EnvelopeRecord).order_by(EnvelopeRecord.id)).all()
            return tuple(r.to_domain() for r in records)
