"""
capital_services -- Orchestration over the ledger engines.

Composes the pure engines with a LedgerStore, the active LedgerConfig and
a Clock.  ``LedgerService`` is the embedding surface; ``Registry`` holds
accounts and envelopes; ``KeyedLock`` serializes per-transaction mutations.
"""

from capital_services.ledger_service import GroupBalance, LedgerService
from capital_services.locking import KeyedLock
from capital_services.maintenance import (
    MaintenanceReport,
    backfill_tx_types,
    restate_pnl_currency,
)
from capital_services.registry import Registry

__all__ = [
    "GroupBalance",
    "KeyedLock",
    "LedgerService",
    "MaintenanceReport",
    "Registry",
    "backfill_tx_types",
    "restate_pnl_currency",
]
