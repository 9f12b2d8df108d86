"""
Cycles -- Deterministic accounting-period calculator.

Responsibility:
    Maps a ``YYYY-MM`` label to its UTC bounds.  Cycle ``Y-M`` runs from the
    10th of month M at 00:00:00Z through the 9th of the following month at
    23:59:59Z inclusive, to the second.

Architecture position:
    Kernel > Domain -- pure functions, zero I/O.  Cycles are derived, never
    stored.

Invariants enforced:
    - Bounds depend on the label alone (no locale, no local time zone).
    - Consecutive cycles tile the timeline: the end of one is exactly one
      second before the start of the next.

Failure modes:
    - InvalidCycleLabelError for a malformed label or a month outside 1-12.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import UTC, datetime

from capital_kernel.domain.clock import Clock
from capital_kernel.exceptions import InvalidCycleLabelError
from capital_kernel.utils.timestamps import truncate_to_second

CYCLE_START_DAY = 10
CYCLE_END_DAY = 9

_LABEL_PATTERN = re.compile(r"^(\d{4})-(\d{2})$")


@dataclass(frozen=True, slots=True)
class Cycle:
    """One accounting period; ``start`` and ``end`` are both inclusive."""

    label: str
    start: datetime
    end: datetime

    def contains(self, instant: datetime) -> bool:
        """Inclusive membership test at whole-second precision."""
        moment = truncate_to_second(instant)
        return self.start <= moment <= self.end


def parse_label(label: str) -> tuple[int, int]:
    """Split a label into (year, month)."""
    if not isinstance(label, str):
        raise InvalidCycleLabelError(label)
    match = _LABEL_PATTERN.match(label)
    if match is None:
        raise InvalidCycleLabelError(label)
    year, month = int(match.group(1)), int(match.group(2))
    # Year 9999 has no following month to end in.
    if not 1 <= month <= 12 or not 1 <= year <= 9998:
        raise InvalidCycleLabelError(label)
    return year, month


def _format_label(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def _shift(year: int, month: int, months: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + months
    return index // 12, index % 12 + 1


def cycle_bounds(label: str) -> Cycle:
    """
    Compute the UTC bounds of the cycle named ``label``.

    >>> cycle_bounds("2025-12").end.isoformat()
    '2026-01-09T23:59:59+00:00'
    """
    year, month = parse_label(label)
    end_year, end_month = _shift(year, month, 1)
    return Cycle(
        label=_format_label(year, month),
        start=datetime(year, month, CYCLE_START_DAY, 0, 0, 0, tzinfo=UTC),
        end=datetime(end_year, end_month, CYCLE_END_DAY, 23, 59, 59, tzinfo=UTC),
    )


def cycle_for(instant: datetime) -> Cycle:
    """The cycle containing ``instant``."""
    moment = truncate_to_second(instant)
    year, month = moment.year, moment.month
    if moment.day < CYCLE_START_DAY:
        year, month = _shift(year, month, -1)
    return cycle_bounds(_format_label(year, month))


def next_label(label: str) -> str:
    return _format_label(*_shift(*parse_label(label), 1))


def previous_label(label: str) -> str:
    return _format_label(*_shift(*parse_label(label), -1))


def cycle_labels(first: str, last: str) -> list[str]:
    """Every label from ``first`` through ``last`` inclusive, oldest first."""
    year, month = parse_label(first)
    last_year, last_month = parse_label(last)
    labels: list[str] = []
    while (year, month) <= (last_year, last_month):
        labels.append(_format_label(year, month))
        year, month = _shift(year, month, 1)
    return labels


@dataclass(frozen=True, slots=True)
class CycleList:
    """Navigable window of cycles ending at the active one (oldest first)."""

    labels: tuple[str, ...]
    active: str


def recent_cycles(clock: Clock, count: int = 12) -> CycleList:
    """The ``count`` most recent cycle labels, ending with the one containing now."""
    if count < 1:
        raise ValueError(f"count must be at least 1, got {count}")
    active = cycle_for(clock.now()).label
    year, month = parse_label(active)
    first = _format_label(*_shift(year, month, -(count - 1)))
    return CycleList(labels=tuple(cycle_labels(first, active)), active=active)
