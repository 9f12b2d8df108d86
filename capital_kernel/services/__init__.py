"""Kernel storage services."""

from capital_kernel.services.ledger_store import (
    InMemoryLedgerStore,
    LedgerStore,
    SqlLedgerStore,
)

__all__ = ["LedgerStore", "InMemoryLedgerStore", "SqlLedgerStore"]
