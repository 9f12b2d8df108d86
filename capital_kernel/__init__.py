"""
Capital Kernel

The invariant-carrying core of a personal-finance ledger:
- Exact-decimal money and crypto amounts (no floats)
- Multi-leg, multi-currency transactions with FX annotations
- Accounts, budget envelopes and their rollover policies
- Deterministic accounting cycles (10th through the 9th, UTC)
- A JSON codec and an optional SQLAlchemy persistence adapter
"""

__version__ = "0.1.0"
