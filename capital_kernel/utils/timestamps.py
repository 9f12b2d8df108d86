"""UTC normalization helpers shared by the ledger model and cycle calculator."""

from datetime import UTC, datetime


def to_utc(value: datetime) -> datetime:
    """
    Normalize a datetime to an aware UTC instant.

    Naive values are taken to already be UTC; aware values are converted.
    """
    if not isinstance(value, datetime):
        raise TypeError(f"Expected datetime, got {type(value).__name__}")
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def truncate_to_second(value: datetime) -> datetime:
    """UTC instant with microseconds dropped (cycle bounds are whole seconds)."""
    return to_utc(value).replace(microsecond=0)
