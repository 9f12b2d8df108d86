"""
Tests for per-key mutual exclusion.
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from threading import Barrier

import pytest

from capital_services.locking import KeyedLock


class TestKeyedLock:
    def test_same_key_serializes(self):
        locks = KeyedLock()
        active = 0
        peak = 0
        guard = threading.Lock()

        def worker():
            nonlocal active, peak
            with locks.hold("tx-1"):
                with guard:
                    active += 1
                    peak = max(peak, active)
                time.sleep(0.005)
                with guard:
                    active -= 1

        with ThreadPoolExecutor(max_workers=8) as pool:
            for future in [pool.submit(worker) for _ in range(16)]:
                future.result()
        assert peak == 1

    def test_different_keys_run_in_parallel(self):
        """Two holders of different keys meet at a barrier; serialization would time out."""
        locks = KeyedLock()
        barrier = Barrier(2, timeout=5)

        def worker(key):
            with locks.hold(key):
                barrier.wait()
            return key

        with ThreadPoolExecutor(max_workers=2) as pool:
            results = list(pool.map(worker, ["a", "b"]))
        assert results == ["a", "b"]

    def test_entries_released(self):
        locks = KeyedLock()
        with locks.hold("a"):
            assert locks.active_keys() == frozenset({"a"})
        assert locks.active_keys() == frozenset()

    def test_entries_released_on_error(self):
        locks = KeyedLock()
        with pytest.raises(RuntimeError):
            with locks.hold("a"):
                raise RuntimeError("boom")
        assert locks.active_keys() == frozenset()

    def test_hold_many_dedupes(self):
        locks = KeyedLock()
        with locks.hold_many(["b", "a", "b"]):
            assert locks.active_keys() == frozenset({"a", "b"})
        assert locks.active_keys() == frozenset()

    def test_hold_many_opposite_orders_do_not_deadlock(self):
        locks = KeyedLock()
        barrier = Barrier(2, timeout=5)

        def worker(keys):
            barrier.wait()
            for _ in range(200):
                with locks.hold_many(keys):
                    pass
            return True

        with ThreadPoolExecutor(max_workers=2) as pool:
            futures = [pool.submit(worker, ["a", "b"]), pool.submit(worker, ["b", "a"])]
            assert all(f.result(timeout=10) for f in futures)
        assert locks.active_keys() == frozenset()
