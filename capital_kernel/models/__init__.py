"""ORM models for the ledger persistence adapter."""

from capital_kernel.models.account import AccountRecord
from capital_kernel.models.envelope import EnvelopeRecord
from capital_kernel.models.transaction import LegRefRecord, TransactionRecord

__all__ = [
    "AccountRecord",
    "EnvelopeRecord",
    "LegRefRecord",
    "TransactionRecord",
]
