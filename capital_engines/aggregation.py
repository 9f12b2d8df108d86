"""
capital_engines.aggregation -- Account balances and envelope usage per cycle.

Responsibility:
    Read-only reporting over a snapshot of transactions:
    - opening / closing / delta per unit for one account or a set of accounts;
    - spent vs. effective budget per envelope, optionally chained across a
      series of cycles so each cycle's outcome feeds the next one's rollover.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Never mutates a
    transaction; callers pass a snapshot (LedgerStore.snapshot()).

Invariants enforced:
    - NO_CROSS_CURRENCY_SUMS: account balances are per native unit and are
      never summed across units.  FX annotations are ignored here.
    - Opening counts legs whose effective time (posted_ts, else ts) is
      strictly before cycle.start; closing counts those at or before
      cycle.end.  Both compare at whole-second precision.
    - Envelope spend counts legs by their transaction's event time (ts).

Failure modes:
    - ValueError when asked for the balance of the P&L pseudo-account.
    - A zero or negative budget yields percent == PERCENT_UNBOUNDED, not
      an error.
    - Envelope legs in a unit that cannot be converted into the envelope
      currency are skipped, counted in ``unconverted_legs`` and logged.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from capital_engines.tracer import traced_engine
from capital_kernel.domain.accounts import PNL_ACCOUNT_ID
from capital_kernel.domain.cycles import Cycle, cycle_bounds, cycle_for
from capital_kernel.domain.envelopes import (
    Envelope,
    LeftoverPolicy,
    PriorCycleState,
    effective_budget,
)
from capital_kernel.domain.ledger import Transaction
from capital_kernel.domain.values import LegAmount, Money, amount_of
from capital_kernel.logging_config import get_logger
from capital_kernel.utils.timestamps import truncate_to_second

logger = get_logger("engines.aggregation")

# Sentinel percent for an envelope whose budget is zero or negative.
PERCENT_UNBOUNDED = Decimal("Infinity")

DEFAULT_PERCENT_PLACES = 4


@dataclass(frozen=True, slots=True)
class BalanceTriple:
    """Opening, closing and delta for one unit; all three share that unit."""

    opening: LegAmount
    closing: LegAmount
    delta: LegAmount

    @property
    def unit(self) -> str:
        return self.closing.unit


@dataclass(frozen=True)
class AccountBalance:
    """
    Per-unit balances of one account (or a set of accounts) over a cycle.

    ``balances`` is sorted by unit.  Units never merge.
    """

    account_ids: tuple[str, ...]
    cycle_label: str
    balances: tuple[BalanceTriple, ...]

    @property
    def units(self) -> tuple[str, ...]:
        return tuple(b.unit for b in self.balances)

    def by_unit(self) -> dict[str, BalanceTriple]:
        return {b.unit: b for b in self.balances}

    def __getitem__(self, unit: str) -> BalanceTriple:
        for triple in self.balances:
            if triple.unit == unit:
                return triple
        raise KeyError(unit)


@dataclass(frozen=True, slots=True)
class UsageSummary:
    """Spend against an envelope's effective budget for one cycle."""

    envelope_id: str
    cycle_label: str
    spent: Money
    budget: Money
    percent: Decimal
    unconverted_legs: int = 0

    @property
    def is_unbounded(self) -> bool:
        return self.percent == PERCENT_UNBOUNDED

    @property
    def remaining(self) -> Money:
        return self.budget - self.spent

    def as_prior(self) -> PriorCycleState:
        return PriorCycleState(budget=self.budget, spent=self.spent)


# ---------------------------------------------------------------------------
# Account balances
# ---------------------------------------------------------------------------


def _sums_for(
    account_ids: frozenset[str], cycle: Cycle, transactions: Iterable[Transaction]
) -> tuple[dict[str, Decimal], dict[str, Decimal]]:
    opening: dict[str, Decimal] = {}
    closing: dict[str, Decimal] = {}
    for tx in transactions:
        moment = truncate_to_second(tx.effective_ts)
        if moment > cycle.end:
            continue
        before_start = moment < cycle.start
        for leg in tx.legs:
            if leg.account_id not in account_ids:
                continue
            unit = leg.unit
            closing[unit] = closing.get(unit, Decimal("0")) + leg.signed_value
            opening.setdefault(unit, Decimal("0"))
            if before_start:
                opening[unit] += leg.signed_value
    return opening, closing


def _triples(opening: dict[str, Decimal], closing: dict[str, Decimal]) -> tuple[BalanceTriple, ...]:
    triples = []
    for unit in sorted(closing):
        triples.append(
            BalanceTriple(
                opening=amount_of(unit, opening[unit]),
                closing=amount_of(unit, closing[unit]),
                delta=amount_of(unit, closing[unit] - opening[unit]),
            )
        )
    return tuple(triples)


@traced_engine("aggregation", "1.0", fingerprint_fields=("account_id", "cycle"))
def account_balance(
    account_id: str, cycle: Cycle, transactions: Iterable[Transaction]
) -> AccountBalance:
    """Opening / closing / delta per unit for one account over ``cycle``."""
    if account_id == PNL_ACCOUNT_ID:
        raise ValueError("The P&L pseudo-account has no balance")
    opening, closing = _sums_for(frozenset({account_id}), cycle, transactions)
    result = AccountBalance(
        account_ids=(account_id,),
        cycle_label=cycle.label,
        balances=_triples(opening, closing),
    )
    logger.debug(
        "account_balance_computed",
        extra={"account_id": account_id, "cycle_label": cycle.label, "units": list(result.units)},
    )
    return result


@traced_engine("aggregation", "1.0", fingerprint_fields=("account_ids", "cycle"))
def aggregate_balances(
    account_ids: Iterable[str], cycle: Cycle, transactions: Iterable[Transaction]
) -> AccountBalance:
    """
    Same-unit sums across several accounts.

    Different units are reported side by side, never converted or summed.
    A transfer between two accounts of the set nets to zero.
    """
    ids = tuple(sorted(set(account_ids)))
    if PNL_ACCOUNT_ID in ids:
        raise ValueError("The P&L pseudo-account has no balance")
    opening, closing = _sums_for(frozenset(ids), cycle, transactions)
    return AccountBalance(account_ids=ids, cycle_label=cycle.label, balances=_triples(opening, closing))


# ---------------------------------------------------------------------------
# Envelope usage
# ---------------------------------------------------------------------------


def _percent(spent: Money, budget: Money, places: int) -> Decimal:
    if budget.amount <= 0:
        return PERCENT_UNBOUNDED
    return (spent.amount / budget.amount).quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


@traced_engine(
    "aggregation",
    "1.0",
    fingerprint_fields=("envelope", "cycle", "prior", "leftover_policy"),
)
def envelope_usage(
    envelope: Envelope,
    cycle: Cycle,
    transactions: Iterable[Transaction],
    prior: PriorCycleState | None = None,
    leftover_policy: LeftoverPolicy = LeftoverPolicy.SIGNED,
    percent_places: int = DEFAULT_PERCENT_PLACES,
) -> UsageSummary:
    """
    Spend vs. effective budget for ``envelope`` in ``cycle``.

    ``spent`` is the sum of the magnitudes of every leg whose category_id
    names the envelope and whose transaction's event time falls in the
    cycle.  A leg in another unit counts through its FX annotation when
    that targets the envelope currency.
    """
    currency = envelope.currency
    spent = Decimal("0")
    unconverted = 0
    for tx in transactions:
        if not cycle.contains(tx.ts):
            continue
        for index, leg in enumerate(tx.legs):
            if leg.category_id != envelope.id:
                continue
            if leg.unit == currency:
                spent += leg.amount.value
            elif leg.fx is not None and leg.fx.to_unit == currency:
                spent += leg.fx.convert(leg.amount).value
            else:
                unconverted += 1
                logger.warning(
                    "envelope_leg_unconverted",
                    extra={
                        "envelope_id": envelope.id,
                        "transaction_id": tx.id,
                        "leg_index": index,
                        "unit": leg.unit,
                        "envelope_currency": currency,
                    },
                )

    spent_money = Money(amount=spent, currency=currency)
    budget = effective_budget(envelope, prior, leftover_policy)
    summary = UsageSummary(
        envelope_id=envelope.id,
        cycle_label=cycle.label,
        spent=spent_money,
        budget=budget,
        percent=_percent(spent_money, budget, percent_places),
        unconverted_legs=unconverted,
    )
    logger.info(
        "envelope_usage_computed",
        extra={
            "envelope_id": envelope.id,
            "cycle_label": cycle.label,
            "spent": str(summary.spent.amount),
            "budget": str(summary.budget.amount),
            "percent": str(summary.percent),
        },
    )
    return summary


def first_envelope_label(envelope_id: str, transactions: Iterable[Transaction]) -> str | None:
    """Label of the earliest cycle holding a leg tagged with ``envelope_id``."""
    earliest = min(
        (tx.ts for tx in transactions if any(leg.category_id == envelope_id for leg in tx.legs)),
        default=None,
    )
    return cycle_for(earliest).label if earliest is not None else None


def envelope_usage_series(
    envelope: Envelope,
    labels: Sequence[str],
    transactions: Iterable[Transaction],
    leftover_policy: LeftoverPolicy = LeftoverPolicy.SIGNED,
    initial_prior: PriorCycleState | None = None,
    percent_places: int = DEFAULT_PERCENT_PLACES,
) -> list[UsageSummary]:
    """
    Usage for consecutive cycles, each cycle's outcome rolling into the next.

    ``labels`` should be consecutive and oldest first (see cycle_labels).
    """
    snapshot = tuple(transactions)
    prior = initial_prior
    series: list[UsageSummary] = []
    for label in labels:
        summary = envelope_usage(
            envelope,
            cycle_bounds(label),
            snapshot,
            prior=prior,
            leftover_policy=leftover_policy,
            percent_places=percent_places,
        )
        series.append(summary)
        prior = summary.as_prior()
    return series
