"""
Module: capital_kernel.db.base
Responsibility: Declarative base classes for the ledger's SQLAlchemy models,
    the UTC timestamp column type and the TrackedBase audit-timestamp mixin.
Architecture position: Kernel > DB.  Lowest-level import target of the
    persistence adapter; MUST NOT import from models/, services/ or domain/.

Invariants enforced:
    - Timestamps are stored as naive UTC and always loaded as aware UTC, so
      range queries behave the same on SQLite and PostgreSQL.
    - Decimal maps to Numeric(38, 9); no float columns.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import ClassVar

from sqlalchemy import DateTime, Numeric, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UTCDateTime(TypeDecorator):
    """
    Timezone-normalizing datetime column.

    Contract:
        Binds aware datetimes as naive UTC; loads naive values as aware UTC.
        Naive input is taken to already be UTC.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is not None:
            return value.astimezone(UTC).replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value


class Base(DeclarativeBase):
    """
    Declarative base for all ledger models.

    Records are keyed by their domain ids (strings), so unlike a surrogate
    key scheme there is no default primary key column here.
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        datetime: UTCDateTime(),
    }


class TrackedBase(Base):
    """Abstract base adding created_at / updated_at audit timestamps."""

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
