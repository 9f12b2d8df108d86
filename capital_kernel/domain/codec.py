"""
Codec -- Plain-dict documents for ledger records.

Responsibility:
    Converts Transactions, Accounts and Envelopes to and from JSON-ready
    dict documents.  Decimals travel as strings, timestamps as ISO 8601,
    and every closed union as a tagged object so decoding is exhaustive.

Document shapes:
    amount    {"kind": "Fiat", "data": {"amount": "50.00", "ccy": "USD"}}
              {"kind": "Crypto", "data": {"asset": "BTC", "qty": "0.1"}}
    network   {"EVM": {"chain_name": "Base", "chain_id": 8453}} | {"Solana": null} | {"Bitcoin": null}
    rollover  {"ResetToZero": null} | {"CarryOver": {"cap": <money|null>}}
              | {"SinkingFund": {"cap": ...}} | {"Decay": {"keep_ratio": "0.5", "cap": ...}}

Architecture position:
    Kernel > Domain -- pure functions, zero I/O.  Used by the SQLAlchemy
    models (JSON column) and by tests for the round-trip property.

Failure modes:
    - CodecError for any malformed or invalid document.  The underlying
      cause is chained.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, assert_never

from capital_kernel.domain.accounts import (
    Account,
    AccountNetwork,
    AccountType,
    BankDetails,
    BitcoinNetwork,
    CexDetails,
    CreditCardDetails,
    CryptoWalletDetails,
    EvmNetwork,
    SolanaNetwork,
    TrustDetails,
)
from capital_kernel.domain.envelopes import (
    CarryOver,
    Decay,
    Envelope,
    ResetToZero,
    RolloverPolicy,
    SinkingFund,
)
from capital_kernel.domain.ledger import Leg, Transaction
from capital_kernel.domain.values import CryptoAmount, FxConversion, LegAmount, Money
from capital_kernel.exceptions import CapitalKernelError, CodecError

Document = dict[str, Any]

_DECODE_ERRORS = (KeyError, TypeError, ValueError, AttributeError, CapitalKernelError)


def _ts(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_ts(value: str | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromisoformat(value)


# ---------------------------------------------------------------------------
# Amounts
# ---------------------------------------------------------------------------


def encode_amount(amount: LegAmount) -> Document:
    if isinstance(amount, Money):
        return {"kind": "Fiat", "data": {"amount": str(amount.amount), "ccy": amount.currency.code}}
    if isinstance(amount, CryptoAmount):
        return {"kind": "Crypto", "data": {"asset": amount.asset, "qty": str(amount.qty)}}
    assert_never(amount)


def _decode_amount(doc: Document) -> LegAmount:
    kind = doc["kind"]
    data = doc["data"]
    if kind == "Fiat":
        return Money.of(data["amount"], data["ccy"])
    if kind == "Crypto":
        return CryptoAmount.of(data["qty"], data["asset"])
    raise ValueError(f"unknown amount kind {kind!r}")


def _encode_money(money: Money | None) -> Document | None:
    return encode_amount(money) if money is not None else None


def _decode_money(doc: Document | None) -> Money | None:
    if doc is None:
        return None
    amount = _decode_amount(doc)
    if not isinstance(amount, Money):
        raise ValueError("expected a fiat amount")
    return amount


def decode_amount(doc: Document) -> LegAmount:
    try:
        return _decode_amount(doc)
    except _DECODE_ERRORS as e:
        raise CodecError("amount", str(e)) from e


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------


def _encode_fx(fx: FxConversion | None) -> Document | None:
    if fx is None:
        return None
    return {
        "from": fx.from_unit,
        "to": fx.to_unit,
        "rate": str(fx.rate),
        "source": fx.source,
        "at": _ts(fx.at),
    }


def _decode_fx(doc: Document | None) -> FxConversion | None:
    if doc is None:
        return None
    return FxConversion(
        from_unit=doc["from"],
        to_unit=doc["to"],
        rate=doc["rate"],
        source=doc["source"],
        at=_parse_ts(doc["at"]),
    )


def encode_leg(leg: Leg) -> Document:
    return {
        "account_id": leg.account_id,
        "direction": leg.direction.value,
        "amount": encode_amount(leg.amount),
        "category_id": leg.category_id,
        "fx": _encode_fx(leg.fx),
        "fee_of_leg_idx": leg.fee_of_leg_idx,
        "notes": leg.notes,
    }


def _decode_leg(doc: Document) -> Leg:
    return Leg(
        account_id=doc["account_id"],
        direction=doc["direction"],
        amount=_decode_amount(doc["amount"]),
        category_id=doc.get("category_id"),
        fx=_decode_fx(doc.get("fx")),
        fee_of_leg_idx=doc.get("fee_of_leg_idx"),
        notes=doc.get("notes"),
    )


def encode_transaction(tx: Transaction) -> Document:
    return {
        "id": tx.id,
        "ts": _ts(tx.ts),
        "posted_ts": _ts(tx.posted_ts),
        "source": tx.source,
        "payee": tx.payee,
        "memo": tx.memo,
        "status": tx.status,
        "reconciled": tx.reconciled,
        "external_refs": [[k, v] for k, v in tx.external_refs],
        "legs": [encode_leg(leg) for leg in tx.legs],
        "tx_type": tx.tx_type.value if tx.tx_type is not None else None,
        "balance_state": tx.balance_state.value,
    }


def decode_transaction(doc: Document) -> Transaction:
    try:
        return Transaction(
            id=doc["id"],
            ts=_parse_ts(doc["ts"]),
            posted_ts=_parse_ts(doc.get("posted_ts")),
            source=doc["source"],
            payee=doc.get("payee"),
            memo=doc.get("memo"),
            status=doc.get("status"),
            reconciled=doc.get("reconciled", False),
            external_refs=tuple((k, v) for k, v in doc.get("external_refs", [])),
            legs=tuple(_decode_leg(leg) for leg in doc["legs"]),
            tx_type=doc.get("tx_type"),
            balance_state=doc.get("balance_state", "unknown"),
        )
    except _DECODE_ERRORS as e:
        raise CodecError("transaction", str(e)) from e


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------


def _encode_network(network: AccountNetwork | None) -> Document | None:
    if network is None:
        return None
    if isinstance(network, EvmNetwork):
        return {"EVM": {"chain_name": network.chain_name, "chain_id": network.chain_id}}
    if isinstance(network, SolanaNetwork):
        return {"Solana": None}
    if isinstance(network, BitcoinNetwork):
        return {"Bitcoin": None}
    assert_never(network)


def _decode_network(doc: Document | None) -> AccountNetwork | None:
    if doc is None:
        return None
    if "EVM" in doc:
        evm = doc["EVM"]
        return EvmNetwork(chain_name=evm["chain_name"], chain_id=int(evm["chain_id"]))
    if "Solana" in doc:
        return SolanaNetwork()
    if "Bitcoin" in doc:
        return BitcoinNetwork()
    raise ValueError(f"unknown network {sorted(doc)!r}")


def _encode_metadata(account: Account) -> Document:
    meta = account.metadata
    if isinstance(meta, CryptoWalletDetails):
        data: Document = {
            "address": meta.address,
            "network": _encode_network(meta.network),
            "is_ledger": meta.is_ledger,
        }
    elif isinstance(meta, CexDetails):
        data = {"cex_name": meta.cex_name, "account_id": meta.account_ref}
    elif isinstance(meta, (BankDetails, CreditCardDetails, TrustDetails)):
        data = {name: getattr(meta, name) for name in meta.__dataclass_fields__}
    else:
        assert_never(meta)
    return {"type": account.account_type.value, "data": data}


def _decode_metadata(doc: Document) -> tuple[AccountType, Any]:
    account_type = AccountType(doc["type"])
    data = doc["data"]
    if account_type in (AccountType.CHECKING, AccountType.SAVINGS):
        meta: Any = BankDetails(**data)
    elif account_type is AccountType.CREDIT:
        meta = CreditCardDetails(**data)
    elif account_type is AccountType.CRYPTO_WALLET:
        meta = CryptoWalletDetails(
            address=data["address"],
            network=_decode_network(data.get("network")),
            is_ledger=bool(data.get("is_ledger", False)),
        )
    elif account_type is AccountType.CEX:
        meta = CexDetails(cex_name=data["cex_name"], account_ref=data["account_id"])
    elif account_type is AccountType.TRUST:
        meta = TrustDetails(**data)
    else:
        assert_never(account_type)
    return account_type, meta


def encode_account(account: Account) -> Document:
    return {
        "id": account.id,
        "name": account.name,
        "currency": account.currency,
        "metadata": _encode_metadata(account),
        "group_id": account.group_id,
        "group_order": account.group_order,
    }


def decode_account(doc: Document) -> Account:
    try:
        account_type, meta = _decode_metadata(doc["metadata"])
        return Account(
            id=doc["id"],
            name=doc["name"],
            currency=doc["currency"],
            account_type=account_type,
            metadata=meta,
            group_id=doc.get("group_id"),
            group_order=doc.get("group_order"),
        )
    except _DECODE_ERRORS as e:
        raise CodecError("account", str(e)) from e


# ---------------------------------------------------------------------------
# Envelopes
# ---------------------------------------------------------------------------


def _encode_rollover(policy: RolloverPolicy) -> Document:
    if isinstance(policy, ResetToZero):
        return {"ResetToZero": None}
    if isinstance(policy, CarryOver):
        return {"CarryOver": {"cap": _encode_money(policy.cap)}}
    if isinstance(policy, SinkingFund):
        return {"SinkingFund": {"cap": _encode_money(policy.cap)}}
    if isinstance(policy, Decay):
        return {"Decay": {"keep_ratio": str(policy.keep_ratio), "cap": _encode_money(policy.cap)}}
    assert_never(policy)


def _decode_rollover(doc: Document) -> RolloverPolicy:
    if len(doc) != 1:
        raise ValueError(f"rollover must have exactly one tag, got {sorted(doc)!r}")
    (tag, body), = doc.items()
    if tag == "ResetToZero":
        return ResetToZero()
    if tag == "CarryOver":
        return CarryOver(cap=_decode_money(body.get("cap")))
    if tag == "SinkingFund":
        return SinkingFund(cap=_decode_money(body.get("cap")))
    if tag == "Decay":
        return Decay(keep_ratio=body["keep_ratio"], cap=_decode_money(body.get("cap")))
    raise ValueError(f"unknown rollover policy {tag!r}")


def encode_envelope(envelope: Envelope) -> Document:
    return {
        "id": envelope.id,
        "name": envelope.name,
        "currency": envelope.currency,
        "status": envelope.status.value,
        "kind": envelope.kind.value,
        "funding": _encode_money(envelope.funding),
        "rollover": _encode_rollover(envelope.rollover),
    }


def decode_envelope(doc: Document) -> Envelope:
    try:
        return Envelope(
            id=doc["id"],
            name=doc["name"],
            currency=doc["currency"],
            status=doc.get("status", "active"),
            kind=doc.get("kind", "variable"),
            funding=_decode_money(doc.get("funding")),
            rollover=_decode_rollover(doc["rollover"]),
        )
    except _DECODE_ERRORS as e:
        raise CodecError("envelope", str(e)) from e
