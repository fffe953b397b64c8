"""Tests for the variant cache"""

import threading
import time

import pytest

from ddebug.oracle import Verdict
from ddebug.reduction import VariantCache


class TestVariantCache:
    """Test verdict memoization"""

    def test_miss_then_hit(self):
        """Second lookup is served without computing"""
        cache = VariantCache()
        calls = []

        def compute():
            calls.append(1)
            return Verdict.REPRODUCES

        assert cache.get_or_compute("fp", compute) == (Verdict.REPRODUCES, False)
        assert cache.get_or_compute("fp", compute) == (Verdict.REPRODUCES, True)
        assert len(calls) == 1
        assert cache.stats.hits == 1
        assert cache.stats.misses == 1

    def test_seed(self):
        """Seeded verdicts are hits"""
        cache = VariantCache()
        cache.seed("baseline", Verdict.REPRODUCES)

        verdict, hit = cache.get_or_compute("baseline", lambda: Verdict.NO_ERROR)
        assert verdict is Verdict.REPRODUCES
        assert hit
        assert cache.stats.seeded == 1

    def test_failure_not_stored(self):
        """A failing computation leaves no entry behind"""
        cache = VariantCache()

        def fail():
            raise RuntimeError("tool crashed")

        with pytest.raises(RuntimeError):
            cache.get_or_compute("fp", fail)
        assert "fp" not in cache
        assert cache.get_or_compute("fp", lambda: Verdict.OTHER_ERROR) == (Verdict.OTHER_ERROR, False)

    def test_concurrent_requests_compute_once(self):
        """Callers racing on one fingerprint share a single computation"""
        cache = VariantCache()
        started = threading.Event()
        results = []

        def slow():
            started.set()
            time.sleep(0.2)
            return Verdict.REPRODUCES

        def worker():
            results.append(cache.get_or_compute("fp", slow))

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert started.is_set()
        assert cache.computed["fp"] == 1
        assert sorted(hit for _, hit in results) == [False, True, True, True]
        assert all(verdict is Verdict.REPRODUCES for verdict, _ in results)

    def test_clear(self):
        """Clearing drops entries and counters"""
        cache = VariantCache()
        cache.put("fp", Verdict.NO_ERROR)
        cache.clear()

        assert len(cache) == 0
        assert cache.get("fp") is None
