"""
Typed Exception Hierarchy for the Capital Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

A ledger that silently coerces bad input produces wrong balances.  Every
failure the kernel can report has its own exception class so callers catch
by type, never by message:

    try:
        engine.balance(tx, pool)
    except UnreconcilableError as e:
        show_blocking_message(code=e.code, buckets=e.buckets)

Every class carries:
  1. a ``code`` class attribute (machine-readable, API-safe)
  2. structured attributes holding the offending values

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    CapitalKernelError (base)
    |
    +-- CurrencyError
    |   +-- InvalidCurrencyError
    |   +-- InvalidAssetError
    |   +-- CurrencyMismatchError
    |
    +-- TransactionError
    |   +-- EmptyLegsError
    |   +-- InvalidLegReferenceError
    |   +-- LegIndexOutOfRangeError
    |   +-- TransactionNotFoundError
    |   +-- TransactionAlreadyExistsError
    |
    +-- BalanceError
    |   +-- UnreconcilableError
    |
    +-- AccountError
    |   +-- InvalidAccountMetadataError
    |   +-- AccountNotFoundError
    |   +-- AccountReferencedError
    |
    +-- EnvelopeError
    |   +-- InvalidRolloverPolicyError
    |   +-- EnvelopeNotFoundError
    |   +-- EnvelopeReferencedError
    |
    +-- CycleError
    |   +-- InvalidCycleLabelError
    |
    +-- CodecError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                        | When Raised
-------------|-----------------------------|------------------------------------------
Currency     | INVALID_CURRENCY            | Code not in the fiat registry
             | INVALID_ASSET               | Malformed crypto asset symbol
             | CURRENCY_MISMATCH           | Arithmetic across different units
-------------|-----------------------------|------------------------------------------
Transaction  | EMPTY_LEGS                  | Transaction built with zero legs
             | INVALID_LEG_REFERENCE       | fee_of_leg_idx points at itself / nowhere
             | INDEX_OUT_OF_RANGE          | reclassify() with a bad leg index
             | TRANSACTION_NOT_FOUND       | Unknown transaction id
             | TRANSACTION_ALREADY_EXISTS  | Duplicate transaction id
-------------|-----------------------------|------------------------------------------
Balance      | UNRECONCILABLE              | balance() on an UNKNOWN transaction
-------------|-----------------------------|------------------------------------------
Account      | INVALID_ACCOUNT_METADATA    | Metadata does not match account type
             | ACCOUNT_NOT_FOUND           | Unknown account id
             | ACCOUNT_REFERENCED          | Removal of an account used by a leg
-------------|-----------------------------|------------------------------------------
Envelope     | INVALID_ROLLOVER_POLICY     | Cap / ratio outside its domain
             | ENVELOPE_NOT_FOUND          | Unknown envelope id
             | ENVELOPE_REFERENCED         | Removal of an envelope used by a leg
-------------|-----------------------------|------------------------------------------
Cycle        | INVALID_LABEL               | Cycle label is not YYYY-MM, month 1-12
-------------|-----------------------------|------------------------------------------
Codec        | CODEC_ERROR                 | Malformed stored document

All of these are local, recoverable errors.  A transfer that is still waiting
for its counterpart is NOT an error; the Balance Engine reports it as a
pending outcome.
"""

from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal


class CapitalKernelError(Exception):
    """
    Base exception for all capital kernel errors.

    All subclasses define a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "CAPITAL_KERNEL_ERROR"


# Currency-related exceptions


class CurrencyError(CapitalKernelError):
    """Base exception for currency and asset errors."""

    code: str = "CURRENCY_ERROR"


class InvalidCurrencyError(CurrencyError):
    """Currency code is not in the fiat registry."""

    code: str = "INVALID_CURRENCY"

    def __init__(self, currency: str):
        self.currency = currency
        super().__init__(f"Invalid currency code: '{currency}'")


class InvalidAssetError(CurrencyError):
    """Crypto asset symbol is not well-formed."""

    code: str = "INVALID_ASSET"

    def __init__(self, asset: str):
        self.asset = asset
        super().__init__(f"Invalid asset symbol: '{asset}'")


class CurrencyMismatchError(CurrencyError):
    """Attempted operation on mismatched currencies or assets."""

    code: str = "CURRENCY_MISMATCH"

    def __init__(self, currency1: str, currency2: str):
        self.currency1 = currency1
        self.currency2 = currency2
        super().__init__(f"Currency mismatch: {currency1} vs {currency2}")


# Transaction-related exceptions


class TransactionError(CapitalKernelError):
    """Base exception for transaction structure errors."""

    code: str = "TRANSACTION_ERROR"


class EmptyLegsError(TransactionError):
    """Transaction constructed without any legs."""

    code: str = "EMPTY_LEGS"

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__(f"Transaction {transaction_id} must have at least one leg")


class InvalidLegReferenceError(TransactionError):
    """A leg's fee_of_leg_idx does not reference another leg of the transaction."""

    code: str = "INVALID_LEG_REFERENCE"

    def __init__(self, transaction_id: str, leg_index: int, referenced_index: int):
        self.transaction_id = transaction_id
        self.leg_index = leg_index
        self.referenced_index = referenced_index
        super().__init__(
            f"Leg {leg_index} of transaction {transaction_id} references "
            f"invalid fee target {referenced_index}"
        )


class LegIndexOutOfRangeError(TransactionError):
    """Leg index outside the transaction's legs."""

    code: str = "INDEX_OUT_OF_RANGE"

    def __init__(self, transaction_id: str, leg_index: int, leg_count: int):
        self.transaction_id = transaction_id
        self.leg_index = leg_index
        self.leg_count = leg_count
        super().__init__(
            f"Leg index {leg_index} out of range for transaction "
            f"{transaction_id} with {leg_count} legs"
        )


class TransactionNotFoundError(TransactionError):
    """Transaction with given ID was not found."""

    code: str = "TRANSACTION_NOT_FOUND"

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__(f"Transaction not found: {transaction_id}")


class TransactionAlreadyExistsError(TransactionError):
    """Transaction with given ID already exists."""

    code: str = "TRANSACTION_ALREADY_EXISTS"

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__(f"Transaction already exists: {transaction_id}")


# Balance-related exceptions


class BalanceError(CapitalKernelError):
    """Base exception for balance engine errors."""

    code: str = "BALANCE_ERROR"


class UnreconcilableError(BalanceError):
    """
    Transaction cannot be balanced automatically.

    Raised when auto-balance is attempted on a transaction classified as
    UNKNOWN.  ``buckets`` maps each offending unit to its non-zero signed sum.
    """

    code: str = "UNRECONCILABLE"

    def __init__(self, transaction_id: str, buckets: Mapping[str, Decimal]):
        self.transaction_id = transaction_id
        self.buckets = dict(buckets)
        listed = ", ".join(f"{unit}={total}" for unit, total in sorted(self.buckets.items()))
        super().__init__(
            f"Transaction {transaction_id} cannot be balanced automatically; "
            f"unreconciled buckets: {listed or 'none'}"
        )


# Account-related exceptions


class AccountError(CapitalKernelError):
    """Base exception for account-related errors."""

    code: str = "ACCOUNT_ERROR"


class InvalidAccountMetadataError(AccountError):
    """Account type and metadata payload disagree, or a required field is missing."""

    code: str = "INVALID_ACCOUNT_METADATA"

    def __init__(self, account_id: str, reason: str):
        self.account_id = account_id
        self.reason = reason
        super().__init__(f"Invalid metadata for account {account_id!r}: {reason}")


class AccountNotFoundError(AccountError):
    """Account with given ID was not found."""

    code: str = "ACCOUNT_NOT_FOUND"

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"Account not found: {account_id}")


class AccountReferencedError(AccountError):
    """Account cannot be removed because transaction legs reference it."""

    code: str = "ACCOUNT_REFERENCED"

    def __init__(self, account_id: str, transaction_count: int):
        self.account_id = account_id
        self.transaction_count = transaction_count
        super().__init__(
            f"Account {account_id} is referenced by {transaction_count} transaction(s)"
        )


# Envelope-related exceptions


class EnvelopeError(CapitalKernelError):
    """Base exception for envelope-related errors."""

    code: str = "ENVELOPE_ERROR"


class InvalidRolloverPolicyError(EnvelopeError):
    """Rollover policy parameters are outside their domain."""

    code: str = "INVALID_ROLLOVER_POLICY"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid rollover policy: {reason}")


class EnvelopeNotFoundError(EnvelopeError):
    """Envelope with given ID was not found."""

    code: str = "ENVELOPE_NOT_FOUND"

    def __init__(self, envelope_id: str):
        self.envelope_id = envelope_id
        super().__init__(f"Envelope not found: {envelope_id}")


class EnvelopeReferencedError(EnvelopeError):
    """Envelope cannot be removed because transaction legs reference it."""

    code: str = "ENVELOPE_REFERENCED"

    def __init__(self, envelope_id: str, transaction_count: int):
        self.envelope_id = envelope_id
        self.transaction_count = transaction_count
        super().__init__(
            f"Envelope {envelope_id} is referenced by {transaction_count} transaction(s)"
        )


# Cycle-related exceptions


class CycleError(CapitalKernelError):
    """Base exception for accounting-cycle errors."""

    code: str = "CYCLE_ERROR"


class InvalidCycleLabelError(CycleError):
    """Cycle label is not a YYYY-MM string with a month in 1-12."""

    code: str = "INVALID_LABEL"

    def __init__(self, label: object):
        self.label = label
        super().__init__(f"Invalid cycle label: {label!r} (expected YYYY-MM)")


# Codec exceptions


class CodecError(CapitalKernelError):
    """Stored document cannot be decoded into a domain object."""

    code: str = "CODEC_ERROR"

    def __init__(self, kind: str, reason: str):
        self.kind = kind
        self.reason = reason
        super().__init__(f"Cannot decode {kind}: {reason}")
