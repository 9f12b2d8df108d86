"""
capital_services.maintenance -- Bulk repairs over stored transactions.

Backs the maintenance scripts: re-inferring tx_type across the ledger and
restating P&L legs recorded in a pegged currency.  Both honor a source
filter, a limit on scanned transactions and a dry-run mode that computes
changes without writing them.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from capital_engines.fx import restate_pnl_leg
from capital_engines.tx_type import infer_tx_type
from capital_kernel.domain.ledger import TxType
from capital_kernel.domain.values import FxConversion
from capital_kernel.logging_config import get_logger
from capital_services.ledger_service import LedgerService

logger = get_logger("services.maintenance")


@dataclass
class MaintenanceReport:
    scanned: int = 0
    updated: int = 0
    unchanged: int = 0
    dry_run: bool = False
    changes: list[tuple[str, str | None, str]] = field(default_factory=list)


def backfill_tx_types(
    service: LedgerService,
    *,
    source: str | None = None,
    limit: int | None = None,
    dry_run: bool = False,
) -> MaintenanceReport:
    """Re-infer tx_type for every transaction; update those that differ."""
    report = MaintenanceReport(dry_run=dry_run)
    threshold = service.config.fee_only_threshold
    for tx in service.transactions():
        if source is not None and tx.source != source:
            continue
        if limit is not None and report.scanned >= limit:
            break
        report.scanned += 1

        new_type: TxType = infer_tx_type(tx, threshold)
        if tx.tx_type is new_type:
            report.unchanged += 1
            continue
        old = tx.tx_type.value if tx.tx_type is not None else None
        report.changes.append((tx.id, old, new_type.value))
        report.updated += 1
        if not dry_run:
            service.set_tx_type(tx.id, new_type)

    logger.info(
        "tx_type_backfill_completed",
        extra={
            "scanned": report.scanned,
            "updated": report.updated,
            "unchanged": report.unchanged,
            "dry_run": dry_run,
        },
    )
    return report


def restate_pnl_currency(
    service: LedgerService,
    peg: FxConversion,
    *,
    source: str | None = None,
    limit: int | None = None,
    dry_run: bool = False,
    annotate_custody: bool = True,
) -> MaintenanceReport:
    """Restate the P&L leg of every matching transaction at ``peg``."""
    report = MaintenanceReport(dry_run=dry_run)
    for tx in service.transactions():
        if source is not None and tx.source != source:
            continue
        if limit is not None and report.scanned >= limit:
            break
        report.scanned += 1

        if dry_run:
            result = restate_pnl_leg(tx, peg, annotate_custody=annotate_custody)
        else:
            result = service.restate_pnl(tx.id, peg, annotate_custody=annotate_custody)
        if not result.restated:
            report.unchanged += 1
            continue
        report.updated += 1
        report.changes.append((tx.id, peg.from_unit, peg.to_unit))

    logger.info(
        "pnl_restatement_completed",
        extra={
            "scanned": report.scanned,
            "updated": report.updated,
            "unchanged": report.unchanged,
            "from_unit": peg.from_unit,
            "to_unit": peg.to_unit,
            "dry_run": dry_run,
        },
    )
    return report
