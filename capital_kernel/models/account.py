"""
Module: capital_kernel.models.account
Responsibility: ORM persistence for accounts (document column plus the
    scalar fields used for listing and grouping).
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import JSON, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from capital_kernel.db.base import TrackedBase
from capital_kernel.domain.accounts import Account
from capital_kernel.domain.codec import decode_account, encode_account


class AccountRecord(TrackedBase):
    __tablename__ = "ledger_accounts"

    __table_args__ = (
        Index("idx_account_type", "account_type"),
        Index("idx_account_group", "group_id"),
    )

    id: Mapped[str] = mapped_column(String(128), primary_key=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Fiat code or crypto asset symbol
    currency: Mapped[str] = mapped_column(String(10), nullable=False)

    account_type: Mapped[str] = mapped_column(String(20), nullable=False)

    group_id: Mapped[str | None] = mapped_column(String(128), nullable=True)

    document: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)

    def __repr__(self) -> str:
        return f"<AccountRecord {self.id}: {self.name}>"

    @classmethod
    def from_domain(cls, account: Account) -> AccountRecord:
        record = cls(id=account.id)
        record.apply(account)
        return record

    def apply(self, account: Account) -> None:
        self.name = account.name
        self.currency = account.currency
        self.account_type = account.account_type.value
        self.group_id = account.group_id
        self.document = encode_account(account)

    def to_domain(self) -> Account:
        return decode_account(self.document)
