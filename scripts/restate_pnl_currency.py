#!/usr/bin/env python3
"""
Restate P&L legs recorded in one currency into another at a fixed rate.

Typical use: card spends imported in HKD whose budgets are kept in USD.
The P&L leg is rewritten at the peg, the custody leg keeps its native
amount and gains an FX annotation, and the transaction stays balanced.
Already-restated legs are skipped, so the script can be re-run.

Usage:
    python3 scripts/restate_pnl_currency.py --source SOURCE
        [--from HKD] [--to USD] [--rate RATE] [--limit N] [--dry-run]
        [--no-custody-fx] [--db-url URL]

Without --rate the configured peg for the currency pair is used.
"""

from __future__ import annotations

import argparse
import sys
from decimal import Decimal, InvalidOperation
from pathlib import Path

# Project root on sys.path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

DB_URL = "sqlite:///capital_ledger.db"
SCRIPT_ACTOR = "restate_pnl_currency"


def _decimal(value: str) -> Decimal:
    try:
        return Decimal(value)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"not a decimal: {value!r}") from None


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Restate P&L legs from one currency into another at a peg.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--db-url", default=DB_URL, help=f"Database URL (default: {DB_URL!r}).")
    parser.add_argument("--source", default=None, help="Only process transactions from this source.")
    parser.add_argument("--from", dest="from_unit", default="HKD", help="Source currency (default: HKD).")
    parser.add_argument(
        "--to",
        dest="to_unit",
        default=None,
        help="Target currency (default: the configured reporting currency).",
    )
    parser.add_argument("--rate", type=_decimal, default=None, help="Override the configured peg rate.")
    parser.add_argument("--limit", type=int, default=None, help="Maximum number of transactions to scan.")
    parser.add_argument("--dry-run", action="store_true", help="Report changes without writing them.")
    parser.add_argument(
        "--no-custody-fx",
        dest="annotate_custody",
        action="store_false",
        help="Do not attach the FX annotation to the custody leg.",
    )
    parser.add_argument("--config", type=Path, default=None, help="Configuration file.")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    from capital_config import get_active_config
    from capital_kernel.db.engine import (
        create_tables,
        get_session_factory,
        init_engine_from_url,
    )
    from capital_kernel.logging_config import configure_logging
    from capital_kernel.services.ledger_store import SqlLedgerStore
    from capital_services import LedgerService, restate_pnl_currency

    configure_logging()
    config = get_active_config(args.config)
    engine = init_engine_from_url(args.db_url)
    create_tables(engine)
    service = LedgerService(SqlLedgerStore(get_session_factory()), config, actor_id=SCRIPT_ACTOR)

    try:
        peg = service.peg(args.from_unit, args.to_unit, args.rate)
    except ValueError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    print(f"Restating {peg.from_unit} -> {peg.to_unit} at {peg.rate}")
    report = restate_pnl_currency(
        service,
        peg,
        source=args.source,
        limit=args.limit,
        dry_run=args.dry_run,
        annotate_custody=args.annotate_custody,
    )

    for transaction_id, _, _ in report.changes:
        prefix = "[dry-run] " if args.dry_run else ""
        print(f"{prefix}restated {transaction_id}")
    print()
    print("=== Summary ===")
    print(f"Scanned:   {report.scanned}")
    print(f"Restated:  {report.updated}")
    print(f"Skipped:   {report.unchanged}")
    if args.dry_run:
        print()
        print("This was a dry run. No changes were written to the database.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
