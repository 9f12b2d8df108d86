"""
Module: capital_kernel.models.transaction
Responsibility: ORM persistence for ledger transactions.  The full record
    lives in ``document`` (the codec's dict form); scalar columns duplicate
    the fields queries filter on, and ``ledger_leg_refs`` indexes which
    accounts and envelopes each transaction references.
Architecture position: Kernel > Models.  Imports db/base.py and the domain
    codec only.

Invariants enforced:
    - ``document`` is the single source of truth; scalar columns and leg
      refs are rewritten from it on every save.
    - Leg refs are deleted with their transaction (cascade).
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from capital_kernel.db.base import TrackedBase
from capital_kernel.domain.codec import decode_transaction, encode_transaction
from capital_kernel.domain.ledger import Transaction


class TransactionRecord(TrackedBase):
    """One ledger transaction."""

    __tablename__ = "ledger_transactions"

    __table_args__ = (
        Index("idx_tx_ts", "ts"),
        Index("idx_tx_posted_ts", "posted_ts"),
        Index("idx_tx_source", "source"),
        Index("idx_tx_type", "tx_type"),
        Index("idx_tx_balance_state", "balance_state"),
    )

    id: Mapped[str] = mapped_column(String(128), primary_key=True)

    ts: Mapped[datetime] = mapped_column(nullable=False)

    posted_ts: Mapped[datetime | None] = mapped_column(nullable=True)

    source: Mapped[str] = mapped_column(String(100), nullable=False)

    tx_type: Mapped[str | None] = mapped_column(String(20), nullable=True)

    balance_state: Mapped[str] = mapped_column(String(30), nullable=False)

    document: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)

    leg_refs: Mapped[list[LegRefRecord]] = relationship(
        back_populates="transaction",
        cascade="all, delete-orphan",
        order_by="LegRefRecord.leg_index",
    )

    def __repr__(self) -> str:
        return f"<TransactionRecord {self.id} {self.balance_state}>"

    @classmethod
    def from_domain(cls, tx: Transaction) -> TransactionRecord:
        record = cls(id=tx.id)
        record.apply(tx)
        return record

    def apply(self, tx: Transaction) -> None:
        """Overwrite this row (and its leg refs) from a domain transaction."""
        self.ts = tx.ts
        self.posted_ts = tx.posted_ts
        self.source = tx.source
        self.tx_type = tx.tx_type.value if tx.tx_type is not None else None
        self.balance_state = tx.balance_state.value
        self.document = encode_transaction(tx)
        self.leg_refs = [
            LegRefRecord(
                leg_index=i,
                account_id=leg.account_id,
                category_id=leg.category_id,
                unit=leg.unit,
            )
            for i, leg in enumerate(tx.legs)
        ]

    def to_domain(self) -> Transaction:
        return decode_transaction(self.document)


class LegRefRecord(TrackedBase):
    """Which account, envelope and unit one leg touches."""

    __tablename__ = "ledger_leg_refs"

    __table_args__ = (
        Index("idx_leg_account", "account_id"),
        Index("idx_leg_category", "category_id"),
    )

    transaction_id: Mapped[str] = mapped_column(
        String(128),
        ForeignKey("ledger_transactions.id", ondelete="CASCADE"),
        primary_key=True,
    )

    leg_index: Mapped[int] = mapped_column(Integer, primary_key=True)

    account_id: Mapped[str] = mapped_column(String(128), nullable=False)

    category_id: Mapped[str | None] = mapped_column(String(128), nullable=True)

    unit: Mapped[str] = mapped_column(String(10), nullable=False)

    transaction: Mapped[TransactionRecord] = relationship(back_populates="leg_refs")

    def __repr__(self) -> str:
        return f"<LegRefRecord {self.transaction_id}[{self.leg_index}] {self.account_id}>"
