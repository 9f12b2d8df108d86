"""
Unit tests for hashing and timestamp helpers.
"""

from datetime import UTC, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from capital_kernel.utils import canonicalize_json, hash_payload, to_utc, truncate_to_second


class TestCanonicalJson:
    """Tests for deterministic serialization."""

    def test_key_order_irrelevant(self):
        """Dicts with the same items canonicalize identically."""
        assert canonicalize_json({"b": 1, "a": 2}) == canonicalize_json({"a": 2, "b": 1})

    def test_decimal_normalized(self):
        """1.50 and 1.5 hash the same."""
        assert hash_payload({"x": Decimal("1.50")}) == hash_payload({"x": Decimal("1.5")})

    def test_unsupported_type(self):
        """Unknown objects raise TypeError."""
        with pytest.raises(TypeError):
            canonicalize_json({"x": object()})

    def test_hash_is_sha256_hex(self):
        """Digest is 64 hex characters."""
        digest = hash_payload({"a": 1})
        assert len(digest) == 64
        int(digest, 16)


class TestTimestamps:
    """Tests for UTC normalization."""

    def test_naive_taken_as_utc(self):
        """A naive datetime is labeled UTC, not shifted."""
        assert to_utc(datetime(2025, 1, 1, 12, 0)) == datetime(2025, 1, 1, 12, 0, tzinfo=UTC)

    def test_aware_converted(self):
        """An aware datetime is converted to UTC."""
        hkt = timezone(timedelta(hours=8))
        assert to_utc(datetime(2025, 1, 1, 8, 0, tzinfo=hkt)) == datetime(2025, 1, 1, 0, 0, tzinfo=UTC)

    def test_non_datetime_rejected(self):
        """Strings are not datetimes."""
        with pytest.raises(TypeError):
            to_utc("2025-01-01")

    def test_truncate_to_second(self):
        """Sub-second precision is dropped."""
        moment = datetime(2025, 1, 9, 23, 59, 59, 999999, tzinfo=UTC)
        assert truncate_to_second(moment) == datetime(2025, 1, 9, 23, 59, 59, tzinfo=UTC)
