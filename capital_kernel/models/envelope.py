"""
Module: capital_kernel.models.envelope
Responsibility: ORM persistence for budget envelopes.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import JSON, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from capital_kernel.db.base import TrackedBase
from capital_kernel.domain.codec import decode_envelope, encode_envelope
from capital_kernel.domain.envelopes import Envelope


class EnvelopeRecord(TrackedBase):
    __tablename__ = "ledger_envelopes"

    __table_args__ = (Index("idx_envelope_status", "status"),)

    id: Mapped[str] = mapped_column(String(128), primary_key=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    status: Mapped[str] = mapped_column(String(20), nullable=False)

    document: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)

    def __repr__(self) -> str:
        return f"<EnvelopeRecord {self.id}: {self.name}>"

    @classmethod
    def from_domain(cls, envelope: Envelope) -> EnvelopeRecord:
        record = cls(id=envelope.id)
        record.apply(envelope)
        return record

    def apply(self, envelope: Envelope) -> None:
        self.name = envelope.name
        self.currency = envelope.currency
        self.status = envelope.status.value
        self.document = encode_envelope(envelope)

    def to_domain(self) -> Envelope:
        return decode_envelope(self.document)
