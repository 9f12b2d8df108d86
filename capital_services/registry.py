"""
capital_services.registry -- Accounts and envelopes with referential checks.

Responsibility:
    Registers, looks up, lists and removes accounts and envelopes through
    the LedgerStore, refusing to remove one that transaction legs still
    reference.  Also groups accounts for the group balance views.

Architecture position:
    Services -- thin orchestration over capital_kernel.services.LedgerStore.

Failure modes:
    - AccountReferencedError / EnvelopeReferencedError on remove of an id
      still used by a leg's account_id / category_id.
    - AccountNotFoundError / EnvelopeNotFoundError for unknown ids.
"""

from __future__ import annotations

from capital_kernel.domain.accounts import Account, AccountGroup, group_accounts
from capital_kernel.domain.envelopes import Envelope
from capital_kernel.exceptions import AccountReferencedError, EnvelopeReferencedError
from capital_kernel.logging_config import get_logger
from capital_kernel.services.ledger_store import LedgerStore

logger = get_logger("services.registry")


class Registry:
    """
    Account and envelope catalogue.

    Contract:
        Every write goes through the store; the registry holds no state of
        its own.
    Guarantees:
        - A removed account or envelope is referenced by no leg.
    """

    def __init__(self, store: LedgerStore):
        self._store = store

    # Accounts

    def register_account(self, account: Account) -> Account:
        self._store.put_account(account)
        logger.info(
            "account_registered",
            extra={"account_id": account.id, "account_type": account.account_type.value},
        )
        return account

    def get_account(self, account_id: str) -> Account:
        return self._store.get_account(account_id)

    def accounts(self) -> tuple[Account, ...]:
        return self._store.accounts()

    def remove_account(self, account_id: str) -> None:
        self._store.get_account(account_id)
        count = self._store.count_references(account_id=account_id)
        if count:
            logger.warning(
                "account_removal_refused",
                extra={"account_id": account_id, "transaction_count": count},
            )
            raise AccountReferencedError(account_id, count)
        self._store.remove_account(account_id)
        logger.info("account_removed", extra={"account_id": account_id})

    def groups(self) -> list[AccountGroup]:
        return group_accounts(self._store.accounts())

    # Envelopes

    def register_envelope(self, envelope: Envelope) -> Envelope:
        self._store.put_envelope(envelope)
        logger.info(
            "envelope_registered",
            extra={
                "envelope_id": envelope.id,
                "currency": envelope.currency,
                "rollover": type(envelope.rollover).__name__,
            },
        )
        return envelope

    def get_envelope(self, envelope_id: str) -> Envelope:
        return self._store.get_envelope(envelope_id)

    def envelopes(self, *, active_only: bool = False) -> tuple[Envelope, ...]:
        envelopes = self._store.envelopes()
        if active_only:
            return tuple(e for e in envelopes if e.is_active)
        return envelopes

    def remove_envelope(self, envelope_id: str) -> None:
        self._store.get_envelope(envelope_id)
        count = self._store.count_references(category_id=envelope_id)
        if count:
            logger.warning(
                "envelope_removal_refused",
                extra={"envelope_id": envelope_id, "transaction_count": count},
            )
            raise EnvelopeReferencedError(envelope_id, count)
        self._store.remove_envelope(envelope_id)
        logger.info("envelope_removed", extra={"envelope_id": envelope_id})
