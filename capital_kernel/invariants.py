"""
Kernel Invariants Contract.

These invariants are structural law for the ledger core.  No configuration
value may switch them off.

This module exists solely to declare them explicitly.  Enforcement is
distributed across the domain value objects, the Balance Engine and the
service layer's keyed locks.
"""

from enum import Enum, unique


@unique
class KernelInvariant(str, Enum):
    """Non-configurable invariants enforced by the kernel.

    Each value names one structural guarantee that the kernel provides
    unconditionally. Configuration may influence *how* budgets roll over or
    how far back transfer matching looks, but never *whether* these rules
    apply.
    """

    EXACT_DECIMAL = "exact_decimal"
    """Amounts and rates are Decimal, never float.  Enforced by Money,
    CryptoAmount and FxConversion construction."""

    NON_EMPTY_LEGS = "non_empty_legs"
    """Every transaction has at least one leg.  Enforced by Transaction
    construction (EmptyLegsError)."""

    DERIVED_BALANCE_STATE = "derived_balance_state"
    """balance_state is computed from legs and tx_type by the Balance
    Engine after every change; callers never set it."""

    NO_INVENTED_RATES = "no_invented_rates"
    """The Balance Engine never fabricates an FX rate to force a zero sum.
    Unreconciled multi-currency transactions raise UnreconcilableError."""

    APPEND_ONLY_BALANCING = "append_only_balancing"
    """Auto-balance adds or links legs; it never removes a user leg."""

    NO_CROSS_CURRENCY_SUMS = "no_cross_currency_sums"
    """Aggregation reports different units side by side and never sums
    them."""

    SERIALIZED_MUTATION = "serialized_mutation"
    """Mutations of one transaction id are serialized by the service
    layer's KeyedLock."""


# All invariants as a frozenset for programmatic checks.
ALL_KERNEL_INVARIANTS: frozenset[KernelInvariant] = frozenset(KernelInvariant)

# The kernel package may not import from these packages.
# This is enforced by tests/architecture/test_layer_boundaries.py.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = (
    "capital_engines",
    "capital_services",
    "capital_config",
)
