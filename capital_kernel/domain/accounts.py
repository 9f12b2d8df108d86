"""
Accounts -- Named holdings with a settlement unit and typed metadata.

Responsibility:
    Defines Account, its closed AccountType set and the type-specific
    metadata payloads (bank, card, wallet, exchange, trust).  Also owns the
    reserved P&L pseudo-account identifier and the display grouping used
    to roll accounts up by institution or network.

Architecture position:
    Kernel > Domain -- pure data with validation, zero I/O.
    Legs reference accounts by id; accounts are never embedded.

Invariants enforced:
    - account_type is one of the closed AccountType members.
    - metadata is the payload class declared for account_type.
    - A CryptoWallet always carries a network descriptor.
    - No real account may claim the P&L pseudo-account id.

Failure modes:
    - InvalidAccountMetadataError for any of the above.
    - InvalidCurrencyError / InvalidAssetError for a bad settlement unit.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, fields
from enum import Enum
from typing import Union

from capital_kernel.domain.currency import validate_unit
from capital_kernel.exceptions import InvalidAccountMetadataError

# Reserved pseudo-account carrying budget attribution.  Never an Account row,
# never has a balance of its own.
PNL_ACCOUNT_ID = "__pnl__"


class AccountType(str, Enum):
    """Closed set of account kinds."""

    CHECKING = "checking"
    SAVINGS = "savings"
    CREDIT = "credit"
    CRYPTO_WALLET = "crypto_wallet"
    CEX = "cex"
    TRUST = "trust"


# ---------------------------------------------------------------------------
# Networks
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class EvmNetwork:
    chain_name: str
    chain_id: int


@dataclass(frozen=True, slots=True)
class SolanaNetwork:
    pass


@dataclass(frozen=True, slots=True)
class BitcoinNetwork:
    pass


AccountNetwork = Union[EvmNetwork, SolanaNetwork, BitcoinNetwork]


def network_name(network: AccountNetwork) -> str:
    """Human-readable chain name used for grouping wallets."""
    if isinstance(network, EvmNetwork):
        return network.chain_name
    if isinstance(network, SolanaNetwork):
        return "Solana"
    if isinstance(network, BitcoinNetwork):
        return "Bitcoin"
    return "Unknown"


# ---------------------------------------------------------------------------
# Type-specific metadata
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class BankDetails:
    """Checking and savings accounts."""

    bank_name: str
    owner_name: str
    account_number: str
    routing_number: str | None = None


@dataclass(frozen=True, slots=True)
class CreditCardDetails:
    credit_card_name: str
    owner_name: str
    account_number: str
    routing_number: str | None = None


@dataclass(frozen=True, slots=True)
class CryptoWalletDetails:
    address: str
    network: AccountNetwork | None
    is_ledger: bool = False


@dataclass(frozen=True, slots=True)
class CexDetails:
    """Sub-account on a centralized exchange."""

    cex_name: str
    account_ref: str


@dataclass(frozen=True, slots=True)
class TrustDetails:
    trustee: str
    jurisdiction: str


AccountMetadata = Union[
    BankDetails, CreditCardDetails, CryptoWalletDetails, CexDetails, TrustDetails
]

METADATA_FOR_TYPE: dict[AccountType, type] = {
    AccountType.CHECKING: BankDetails,
    AccountType.SAVINGS: BankDetails,
    AccountType.CREDIT: CreditCardDetails,
    AccountType.CRYPTO_WALLET: CryptoWalletDetails,
    AccountType.CEX: CexDetails,
    AccountType.TRUST: TrustDetails,
}

# Optional string fields that may be None or blank.
_OPTIONAL_FIELDS = frozenset({"routing_number"})


@dataclass(frozen=True, slots=True)
class Account:
    """
    A named holding: bank account, card, wallet, exchange sub-account or trust.

    Contract:
        Validated on construction; an Account that exists is internally
        consistent.  ``currency`` is the settlement unit (fiat code or
        crypto asset symbol), normalized to upper case.

    Non-goals:
        - Does NOT hold a balance; balances are aggregated from legs.
        - Does NOT enforce referential integrity; the registry does.
    """

    id: str
    name: str
    currency: str
    account_type: AccountType
    metadata: AccountMetadata
    group_id: str | None = None
    group_order: int | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.id, str) or not self.id.strip():
            raise InvalidAccountMetadataError(repr(self.id), "account id is required")
        if self.id == PNL_ACCOUNT_ID:
            raise InvalidAccountMetadataError(self.id, "id is reserved for the P&L pseudo-account")
        if not isinstance(self.name, str) or not self.name.strip():
            raise InvalidAccountMetadataError(self.id, "account name is required")

        try:
            account_type = AccountType(self.account_type)
        except ValueError:
            raise InvalidAccountMetadataError(
                self.id, f"unknown account type {self.account_type!r}"
            ) from None
        object.__setattr__(self, "account_type", account_type)
        object.__setattr__(self, "currency", validate_unit(self.currency))

        expected = METADATA_FOR_TYPE[account_type]
        if not isinstance(self.metadata, expected):
            raise InvalidAccountMetadataError(
                self.id,
                f"{account_type.value} account requires {expected.__name__}, "
                f"got {type(self.metadata).__name__}",
            )
        self._check_required_fields()

        if isinstance(self.metadata, CryptoWalletDetails) and not isinstance(
            self.metadata.network, (EvmNetwork, SolanaNetwork, BitcoinNetwork)
        ):
            raise InvalidAccountMetadataError(self.id, "crypto wallet requires a network descriptor")

        if self.group_order is not None and (
            isinstance(self.group_order, bool) or not isinstance(self.group_order, int)
        ):
            raise InvalidAccountMetadataError(self.id, "group_order must be an integer")

    def _check_required_fields(self) -> None:
        for f in fields(self.metadata):
            if f.name in _OPTIONAL_FIELDS:
                continue
            val = getattr(self.metadata, f.name)
            if isinstance(val, str) and not val.strip():
                raise InvalidAccountMetadataError(self.id, f"{f.name} is required")


def settlement_currency(account: Account) -> str:
    """The unit the account settles in."""
    return account.currency


# ---------------------------------------------------------------------------
# Grouping
# ---------------------------------------------------------------------------


def infer_group_key(account: Account) -> str:
    """
    Group key for display roll-ups.

    An explicit group_id wins; otherwise banks and cards group by
    institution and owner, exchanges by exchange name, wallets by network,
    and everything else stands alone under its own name.
    """
    if account.group_id:
        return account.group_id
    meta = account.metadata
    if isinstance(meta, BankDetails):
        return f"{meta.bank_name} / {meta.owner_name}"
    if isinstance(meta, CreditCardDetails):
        return f"{meta.credit_card_name} / {meta.owner_name}"
    if isinstance(meta, CexDetails):
        return meta.cex_name
    if isinstance(meta, CryptoWalletDetails) and meta.network is not None:
        return network_name(meta.network)
    return account.name


@dataclass(frozen=True, slots=True)
class AccountGroup:
    key: str
    accounts: tuple[Account, ...]

    @property
    def account_ids(self) -> tuple[str, ...]:
        return tuple(a.id for a in self.accounts)


def _order_key(account: Account) -> tuple[int, int, str, str]:
    # Accounts with an explicit order come first, in that order.
    if account.group_order is None:
        return (1, 0, account.name, account.id)
    return (0, account.group_order, account.name, account.id)


def group_accounts(accounts: Iterable[Account]) -> list[AccountGroup]:
    """Bucket accounts by group key; groups sorted by key, members by group_order then name."""
    buckets: dict[str, list[Account]] = {}
    for account in accounts:
        buckets.setdefault(infer_group_key(account), []).append(account)
    return [
        AccountGroup(key=key, accounts=tuple(sorted(members, key=_order_key)))
        for key, members in sorted(buckets.items())
    ]
