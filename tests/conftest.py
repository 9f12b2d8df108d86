"""
Pytest fixtures for the capital ledger test suite.

Provides:
- Structured logging configuration and a ``captured_logs`` fixture
- Builders for legs and transactions
- Deterministic clock, default config, in-memory and SQLite stores
- A LedgerService wired over the in-memory store
"""

import json
import logging
from datetime import UTC, datetime
from decimal import Decimal
from io import StringIO

import pytest

from capital_config import get_active_config
from capital_config.schema import FxPeg, LedgerConfig
from capital_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from capital_kernel.domain.accounts import (
    PNL_ACCOUNT_ID,
    Account,
    AccountType,
    BankDetails,
    CryptoWalletDetails,
    EvmNetwork,
)
from capital_kernel.domain.clock import DeterministicClock
from capital_kernel.domain.envelopes import Envelope, ResetToZero
from capital_kernel.domain.ledger import Leg, LegDirection, Transaction, TxType
from capital_kernel.domain.values import Money, amount_of
from capital_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from capital_kernel.services.ledger_store import InMemoryLedgerStore, SqlLedgerStore
from capital_services import LedgerService

T0 = datetime(2025, 3, 12, 9, 30, tzinfo=UTC)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture capital_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, service):
            service.balance("tx-1")
            logs = captured_logs()
            assert any(r["message"] == "offset_leg_added" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("capital_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Builders
# =============================================================================


def leg(account_id, direction, value, unit="USD", **kwargs) -> Leg:
    """Build a leg from plain values: leg("chk", "credit", "50.00")."""
    return Leg(
        account_id=account_id,
        direction=LegDirection(direction),
        amount=amount_of(unit, Decimal(str(value))),
        **kwargs,
    )


def pnl(direction, value, unit="USD", **kwargs) -> Leg:
    return leg(PNL_ACCOUNT_ID, direction, value, unit, **kwargs)


def make_tx(tx_id="tx-1", legs=(), ts=T0, tx_type=TxType.SPENDING, source="test", **kwargs) -> Transaction:
    return Transaction(
        id=tx_id,
        ts=ts,
        source=source,
        legs=tuple(legs),
        tx_type=tx_type,
        **kwargs,
    )


@pytest.fixture
def make_leg():
    return leg


@pytest.fixture
def make_pnl():
    return pnl


@pytest.fixture
def tx_factory():
    return make_tx


# =============================================================================
# Collaborators
# =============================================================================


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    return DeterministicClock(datetime(2025, 3, 15, 12, 0, tzinfo=UTC))


@pytest.fixture
def ledger_config() -> LedgerConfig:
    return LedgerConfig(
        config_id="test",
        version=1,
        reporting_currency="USD",
        transfer_match_window_days=7,
        fx_pegs=(FxPeg("HKD", "USD", Decimal("0.1282051282051282"), "hkd_usd_peg"),),
    )


@pytest.fixture
def default_config() -> LedgerConfig:
    return get_active_config()


@pytest.fixture
def store() -> InMemoryLedgerStore:
    return InMemoryLedgerStore()


@pytest.fixture
def sqlite_session_factory():
    """Fresh in-memory SQLite database with all ledger tables."""
    engine = init_engine_from_url("sqlite://")
    create_tables(engine)
    yield get_session_factory()
    reset_engine()


@pytest.fixture
def sql_store(sqlite_session_factory) -> SqlLedgerStore:
    return SqlLedgerStore(sqlite_session_factory)


@pytest.fixture
def checking() -> Account:
    return Account(
        id="chk",
        name="Everyday Checking",
        currency="USD",
        account_type=AccountType.CHECKING,
        metadata=BankDetails(bank_name="Chase", owner_name="Sam", account_number="1234"),
    )


@pytest.fixture
def savings() -> Account:
    return Account(
        id="sav",
        name="Savings",
        currency="USD",
        account_type=AccountType.SAVINGS,
        metadata=BankDetails(bank_name="Chase", owner_name="Sam", account_number="5678"),
    )


@pytest.fixture
def wallet() -> Account:
    return Account(
        id="eth-wallet",
        name="Hot wallet",
        currency="ETH",
        account_type=AccountType.CRYPTO_WALLET,
        metadata=CryptoWalletDetails(address="0xabc", network=EvmNetwork("ethereum", 1)),
    )


@pytest.fixture
def groceries() -> Envelope:
    return Envelope(
        id="groceries",
        name="Groceries",
        currency="USD",
        rollover=ResetToZero(),
        funding=Money.of("400.00", "USD"),
    )


@pytest.fixture
def service(store, ledger_config, deterministic_clock, checking, savings, groceries) -> LedgerService:
    svc = LedgerService(store, ledger_config, clock=deterministic_clock)
    svc.registry.register_account(checking)
    svc.registry.register_account(savings)
    svc.registry.register_envelope(groceries)
    return svc
