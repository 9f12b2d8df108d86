"""
Tests for the cycle calculator.

Cycle Y-M runs from the 10th of M at 00:00:00Z through the 9th of M+1 at
23:59:59Z, both inclusive.
"""

from datetime import UTC, datetime, timedelta

import pytest

from capital_kernel.domain.clock import DeterministicClock
from capital_kernel.domain.cycles import (
    cycle_bounds,
    cycle_for,
    cycle_labels,
    next_label,
    parse_label,
    previous_label,
    recent_cycles,
)
from capital_kernel.exceptions import InvalidCycleLabelError


class TestCycleBounds:
    """Tests for label -> bounds."""

    def test_regular_month(self):
        """2025-03 runs 10 March through 9 April."""
        cycle = cycle_bounds("2025-03")
        assert cycle.start == datetime(2025, 3, 10, 0, 0, 0, tzinfo=UTC)
        assert cycle.end == datetime(2025, 4, 9, 23, 59, 59, tzinfo=UTC)

    def test_december_rolls_into_next_year(self):
        """2025-12 ends on 9 January 2026."""
        cycle = cycle_bounds("2025-12")
        assert cycle.start == datetime(2025, 12, 10, tzinfo=UTC)
        assert cycle.end == datetime(2026, 1, 9, 23, 59, 59, tzinfo=UTC)

    def test_consecutive_cycles_tile(self):
        """One cycle ends exactly one second before the next begins."""
        for label in ("2024-01", "2024-02", "2024-11", "2024-12"):
            current = cycle_bounds(label)
            following = cycle_bounds(next_label(label))
            assert following.start - current.end == timedelta(seconds=1)

    @pytest.mark.parametrize("label", ["2025-13", "2025-00", "25-03", "2025-3", "abcd-ef", "", "9999-01"])
    def test_invalid_labels(self, label):
        """Malformed labels raise InvalidCycleLabelError."""
        with pytest.raises(InvalidCycleLabelError):
            cycle_bounds(label)

    def test_non_string_label(self):
        """A non-string label is invalid, not a TypeError."""
        with pytest.raises(InvalidCycleLabelError) as exc_info:
            parse_label(202503)
        assert exc_info.value.code == "INVALID_LABEL"


class TestCycleMembership:
    """Tests for inclusive, second-precision membership."""

    def test_start_and_end_included(self):
        """Both bounds belong to the cycle."""
        cycle = cycle_bounds("2025-03")
        assert cycle.contains(cycle.start)
        assert cycle.contains(cycle.end)

    def test_subsecond_after_end_still_included(self):
        """23:59:59.999 on the 9th truncates to the end second."""
        cycle = cycle_bounds("2025-03")
        assert cycle.contains(datetime(2025, 4, 9, 23, 59, 59, 999999, tzinfo=UTC))

    def test_next_day_excluded(self):
        """Midnight on the 10th belongs to the next cycle."""
        cycle = cycle_bounds("2025-03")
        assert not cycle.contains(datetime(2025, 4, 10, tzinfo=UTC))

    def test_cycle_for_before_tenth(self):
        """The 9th belongs to the previous month's cycle."""
        assert cycle_for(datetime(2025, 1, 9, 12, tzinfo=UTC)).label == "2024-12"

    def test_cycle_for_on_tenth(self):
        """The 10th opens the month's cycle."""
        assert cycle_for(datetime(2025, 1, 10, tzinfo=UTC)).label == "2025-01"


class TestLabelNavigation:
    """Tests for label arithmetic."""

    def test_next_and_previous(self):
        assert next_label("2024-12") == "2025-01"
        assert previous_label("2025-01") == "2024-12"

    def test_cycle_labels_inclusive(self):
        """cycle_labels includes both ends, oldest first."""
        assert cycle_labels("2024-11", "2025-02") == ["2024-11", "2024-12", "2025-01", "2025-02"]

    def test_cycle_labels_empty_when_reversed(self):
        assert cycle_labels("2025-02", "2025-01") == []

    def test_recent_cycles_ends_at_active(self):
        """The active cycle is the last label."""
        clock = DeterministicClock(datetime(2025, 3, 5, tzinfo=UTC))
        cycles = recent_cycles(clock, count=3)
        assert cycles.active == "2025-02"
        assert cycles.labels == ("2024-12", "2025-01", "2025-02")

    def test_recent_cycles_count_validated(self):
        with pytest.raises(ValueError):
            recent_cycles(DeterministicClock(), count=0)
