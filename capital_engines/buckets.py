"""
capital_engines.buckets -- Per-unit signed sums over a transaction's legs.

Responsibility:
    The shared arithmetic behind classification and transfer matching: each
    leg contributes ``+amount`` (DEBIT) or ``-amount`` (CREDIT) to the
    bucket of its unit, or, when it carries an FX annotation, to the bucket
    of the annotation's target unit at the declared rate.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Imports kernel domain only.

Invariants enforced:
    - NO_INVENTED_RATES: only a leg's own declared FxConversion moves it
      between buckets.
    - Decimal arithmetic throughout; converted values are quantized to the
      target unit's precision by FxConversion.convert.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from decimal import Decimal

from capital_kernel.domain.ledger import Leg


def leg_contribution(leg: Leg) -> tuple[str, Decimal]:
    """(bucket unit, signed value) for one leg."""
    if leg.fx is not None:
        converted = leg.fx.convert(leg.amount)
        return converted.unit, converted.value * leg.direction.sign
    return leg.unit, leg.signed_value


def value_in(leg: Leg, unit: str) -> Decimal | None:
    """Signed contribution of ``leg`` to ``unit``'s bucket, or None if it lands elsewhere."""
    bucket, value = leg_contribution(leg)
    return value if bucket == unit else None


def bucket_sums(legs: Iterable[Leg]) -> dict[str, Decimal]:
    """Signed sum per bucket, in order of first appearance."""
    sums: dict[str, Decimal] = {}
    for leg in legs:
        unit, value = leg_contribution(leg)
        sums[unit] = sums.get(unit, Decimal("0")) + value
    return sums


def nonzero_buckets(sums: Mapping[str, Decimal]) -> dict[str, Decimal]:
    return {unit: total for unit, total in sums.items() if total != 0}


def is_attributed(legs: Iterable[Leg]) -> bool:
    """True when any leg sits on the P&L pseudo-account or carries a category."""
    return any(leg.is_pnl or leg.category_id is not None for leg in legs)
