#!/usr/bin/env python3
"""
Re-infer the tx_type of stored transactions and update those that differ.

Usage:
    python3 scripts/backfill_tx_type.py [--db-url URL] [--source SOURCE]
                                        [--limit N] [--dry-run]

Examples:
    # Show what would change for one import source
    python3 scripts/backfill_tx_type.py --source za_bank_csv --dry-run

    # Backfill everything
    python3 scripts/backfill_tx_type.py --db-url sqlite:///capital_ledger.db
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Project root on sys.path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

DB_URL = "sqlite:///capital_ledger.db"
SCRIPT_ACTOR = "backfill_tx_type"


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Backfill transaction types from leg structure.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--db-url",
        default=DB_URL,
        help=f"Database URL (default: {DB_URL!r}).",
    )
    parser.add_argument(
        "--source",
        default=None,
        help="Only process transactions from this source.",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Maximum number of transactions to scan.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report changes without writing them.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Configuration file (default: the packaged default set).",
    )
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
    from capital_services import LedgerService, backfill_tx_types

    configure_logging()
    config = get_active_config(args.config)
    engine = init_engine_from_url(args.db_url)
    create_tables(engine)
    service = LedgerService(SqlLedgerStore(get_session_factory()), config, actor_id=SCRIPT_ACTOR)

    report = backfill_tx_types(
        service, source=args.source, limit=args.limit, dry_run=args.dry_run
    )

    for transaction_id, old, new in report.changes:
        print(f"ID: {transaction_id} | {old or 'None'} -> {new}")
    print()
    print("=== Summary ===")
    print(f"Scanned:   {report.scanned}")
    print(f"Updated:   {report.updated}")
    print(f"Unchanged: {report.unchanged}")
    if args.dry_run:
        print()
        print("This was a dry run. No changes were written to the database.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
