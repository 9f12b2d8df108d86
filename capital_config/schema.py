"""
LedgerConfig schema.

The frozen, typed form of a configuration set.  YAML is parsed into these
types by the loader; nothing else in the system reads configuration files.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal

from capital_kernel.domain.envelopes import LeftoverPolicy
from capital_kernel.domain.values import FxConversion


@dataclass(frozen=True)
class FxPeg:
    """A fixed rate: 1 ``from_unit`` = ``rate`` ``to_unit``."""

    from_unit: str
    to_unit: str
    rate: Decimal
    source: str = "peg"

    def as_conversion(self, at: datetime) -> FxConversion:
        """The kernel FxConversion declaring this peg at instant ``at``."""
        return FxConversion(
            from_unit=self.from_unit,
            to_unit=self.to_unit,
            rate=self.rate,
            source=self.source,
            at=at,
        )


@dataclass(frozen=True)
class LedgerConfig:
    """Runtime configuration for the ledger service and maintenance scripts."""

    config_id: str
    version: int
    reporting_currency: str
    leftover_policy: LeftoverPolicy = LeftoverPolicy.SIGNED
    transfer_match_window_days: int | None = None  # None = unbounded
    fee_only_threshold: Decimal = Decimal("15")
    percent_places: int = 4
    recent_cycle_count: int = 12
    fx_pegs: tuple[FxPeg, ...] = ()
    checksum: str = ""

    @property
    def transfer_match_window(self) -> timedelta | None:
        if self.transfer_match_window_days is None:
            return None
        return timedelta(days=self.transfer_match_window_days)

    def peg_for(self, from_unit: str, to_unit: str) -> FxPeg | None:
        for peg in self.fx_pegs:
            if peg.from_unit == from_unit and peg.to_unit == to_unit:
                return peg
        return None
