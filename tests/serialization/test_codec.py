"""
Tests for the document codec.
"""

import json
from datetime import UTC, datetime
from decimal import Decimal

import pytest

from capital_kernel.domain.accounts import (
    Account,
    AccountType,
    BitcoinNetwork,
    CryptoWalletDetails,
    EvmNetwork,
    SolanaNetwork,
    TrustDetails,
)
from capital_kernel.domain.codec import (
    decode_account,
    decode_amount,
    decode_envelope,
    decode_transaction,
    encode_account,
    encode_amount,
    encode_envelope,
    encode_transaction,
)
from capital_kernel.domain.envelopes import CarryOver, Decay, Envelope, SinkingFund
from capital_kernel.domain.ledger import BalanceState, TxType
from capital_kernel.domain.values import CryptoAmount, FxConversion, Money
from capital_kernel.exceptions import CodecError


class TestAmounts:
    def test_fiat_shape(self):
        assert encode_amount(Money.of("50.00", "USD")) == {
            "kind": "Fiat",
            "data": {"amount": "50.00", "ccy": "USD"},
        }

    def test_crypto_shape(self):
        assert encode_amount(CryptoAmount.of("0.1", "BTC")) == {
            "kind": "Crypto",
            "data": {"asset": "BTC", "qty": "0.1"},
        }

    def test_precision_survives(self):
        amount = CryptoAmount.of("0.12345678", "ETH")
        assert decode_amount(encode_amount(amount)).qty == Decimal("0.12345678")

    @pytest.mark.parametrize(
        "doc",
        [
            {"kind": "Gold", "data": {}},
            {"kind": "Fiat", "data": {"amount": "1.00", "ccy": "XYZ"}},
            {"kind": "Fiat", "data": {"amount": "1.001", "ccy": "USD"}},
            {"kind": "Fiat"},
        ],
    )
    def test_bad_amount(self, doc):
        with pytest.raises(CodecError) as exc_info:
            decode_amount(doc)
        assert exc_info.value.kind == "amount"


class TestTransactions:
    def test_full_round_trip(self, tx_factory, make_leg, make_pnl):
        fx = FxConversion("HKD", "USD", Decimal("0.1282051282051282"), "peg", datetime(2025, 3, 1, tzinfo=UTC))
        tx = tx_factory(
            legs=[
                make_leg("za-bank", "credit", "780.00", unit="HKD", fx=fx, notes="card"),
                make_pnl("debit", "100.00", category_id="groceries"),
                make_leg("za-bank", "credit", "1.50", unit="HKD", fee_of_leg_idx=0),
            ],
            posted_ts=datetime(2025, 3, 13, tzinfo=UTC),
            payee="Wellcome",
            memo="weekly shop",
            status="posted",
            reconciled=True,
            external_refs=(("fitid", "A1"), ("fitid", "A2")),
            balance_state=BalanceState.UNKNOWN,
        )
        assert decode_transaction(encode_transaction(tx)) == tx

    def test_document_is_json(self, tx_factory, make_leg):
        tx = tx_factory(legs=[make_leg("chk", "credit", "5.00")], tx_type=TxType.TRANSFER_FX)
        doc = json.loads(json.dumps(encode_transaction(tx)))
        assert doc["tx_type"] == "transfer_fx"
        assert decode_transaction(doc) == tx

    def test_missing_legs(self, tx_factory, make_leg):
        doc = encode_transaction(tx_factory(legs=[make_leg("chk", "credit", "5.00")]))
        doc["legs"] = []
        with pytest.raises(CodecError):
            decode_transaction(doc)

    def test_bad_direction(self, tx_factory, make_leg):
        doc = encode_transaction(tx_factory(legs=[make_leg("chk", "credit", "5.00")]))
        doc["legs"][0]["direction"] = "sideways"
        with pytest.raises(CodecError):
            decode_transaction(doc)

    def test_bad_timestamp(self, tx_factory, make_leg):
        doc = encode_transaction(tx_factory(legs=[make_leg("chk", "credit", "5.00")]))
        doc["ts"] = "yesterday"
        with pytest.raises(CodecError):
            decode_transaction(doc)


class TestAccounts:
    @pytest.mark.parametrize(
        "network",
        [EvmNetwork("Base", 8453), SolanaNetwork(), BitcoinNetwork()],
    )
    def test_wallet_networks(self, network):
        account = Account(
            id="w",
            name="Wallet",
            currency="ETH",
            account_type=AccountType.CRYPTO_WALLET,
            metadata=CryptoWalletDetails(address="0xabc", network=network),
        )
        assert decode_account(encode_account(account)) == account

    def test_bank_round_trip(self, checking):
        assert decode_account(encode_account(checking)) == checking

    def test_trust_round_trip(self):
        account = Account(
            id="t",
            name="Family trust",
            currency="USD",
            account_type=AccountType.TRUST,
            metadata=TrustDetails(trustee="First Trust Co", jurisdiction="NV"),
            group_id="family",
            group_order=2,
        )
        assert decode_account(encode_account(account)) == account

    def test_unknown_type(self, checking):
        doc = encode_account(checking)
        doc["metadata"]["type"] = "piggy_bank"
        with pytest.raises(CodecError):
            decode_account(doc)


class TestEnvelopes:
    @pytest.mark.parametrize(
        "rollover",
        [
            CarryOver(),
            CarryOver(cap=Money.of("500.00", "USD")),
            SinkingFund(cap=Money.of("2000.00", "USD")),
            Decay(keep_ratio=Decimal("0.5")),
        ],
    )
    def test_rollover_round_trip(self, rollover):
        envelope = Envelope(id="e", name="E", currency="USD", rollover=rollover, funding=Money.of("100.00", "USD"))
        assert decode_envelope(encode_envelope(envelope)) == envelope

    def test_reset_shape(self, groceries):
        assert encode_envelope(groceries)["rollover"] == {"ResetToZero": None}

    def test_two_tags_rejected(self, groceries):
        doc = encode_envelope(groceries)
        doc["rollover"] = {"ResetToZero": None, "CarryOver": {"cap": None}}
        with pytest.raises(CodecError):
            decode_envelope(doc)

    def test_decay_ratio_out_of_range(self, groceries):
        doc = encode_envelope(groceries)
        doc["rollover"] = {"Decay": {"keep_ratio": "1.5", "cap": None}}
        with pytest.raises(CodecError):
            decode_envelope(doc)
