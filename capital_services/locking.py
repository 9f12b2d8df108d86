"""
capital_services.locking -- Per-key mutual exclusion.

Responsibility:
    Serializes mutations of one transaction id (balance, reclassify,
    edit_legs, set_tx_type, delete) while letting different ids proceed in
    parallel.

Invariants enforced:
    - One ``threading.Lock`` per key while any holder or waiter exists;
      the entry is dropped when its reference count returns to zero, so
      the table does not grow with the number of ids ever touched.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field


@dataclass
class _Entry:
    lock: threading.Lock = field(default_factory=threading.Lock)
    refs: int = 0


class KeyedLock:
    """Reference-counted table of locks keyed by string."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._entries: dict[str, _Entry] = {}

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = _Entry()
            entry.refs += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._guard:
                entry.refs -= 1
                if entry.refs == 0:
                    del self._entries[key]

    @contextmanager
    def hold_many(self, keys) -> Iterator[None]:
        """Hold several keys at once, acquired in sorted order."""
        ordered = sorted(set(keys))
        with _stacked(self, ordered):
            yield

    def active_keys(self) -> frozenset[str]:
        with self._guard:
            return frozenset(self._entries)


@contextmanager
def _stacked(locks: KeyedLock, keys: list[str]) -> Iterator[None]:
    if not keys:
        yield
        return
    with locks.hold(keys[0]):
        with _stacked(locks, keys[1:]):
            yield
