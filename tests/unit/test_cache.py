#!/usr/bin/env python3
"""
Unit tests for the memoizing cache
Compute-once semantics, failure retry, recursion, per-key locking
"""

import threading
import time

import pytest

from memo.cache import CacheStats, MemoizingCache, memoized
from memo.exceptions import CyclicComputationError


class CountingFn:
    """Callable that records every key it is asked to compute."""

    def __init__(self, fn=lambda k: k * 2):
        self.fn = fn
        self.calls = []

    def __call__(self, key):
        self.calls.append(key)
        return self.fn(key)


class TestMemoizingCache:
    """Test get_or_compute and read-only views."""

    @pytest.fixture(params=[True, False], ids=["thread_safe", "unlocked"])
    def cache(self, request):
        return MemoizingCache(thread_safe=request.param)

    def test_absent_key_computed_once(self, cache):
        """Test: first lookup invokes compute_fn exactly once and returns its result."""
        fn = CountingFn()

        assert cache.get_or_compute(21, fn) == 42
        assert fn.calls == [21]
        assert 21 in cache

    def test_present_key_ignores_new_function(self, cache):
        """Test: later lookups return the stored value without calling a different fn."""
        cache.get_or_compute("k", lambda k: "first")
        other = CountingFn(lambda k: "second")

        assert cache.get_or_compute("k", other) == "first"
        assert other.calls == []

    def test_none_is_a_stored_value(self, cache):
        """Test: a None result counts as present."""
        fn = CountingFn(lambda k: None)

        assert cache.get_or_compute("x", fn) is None
        assert cache.get_or_compute("x", fn) is None
        assert fn.calls == ["x"]
        assert "x" in cache

    def test_failed_computation_not_stored(self, cache):
        """Test: an exception propagates, nothing is stored, next call retries."""
        attempts = []

        def flaky(key):
            attempts.append(key)
            if len(attempts) == 1:
                raise RuntimeError("boom")
            return "ok"

        with pytest.raises(RuntimeError, match="boom"):
            cache.get_or_compute("k", flaky)
        assert "k" not in cache

        assert cache.get_or_compute("k", flaky) == "ok"
        assert attempts == ["k", "k"]
        assert cache.stats().failures == 1

    def test_default_compute_fn(self):
        """Test: compute_fn given at construction is used when none is passed."""
        fn = CountingFn()
        cache = MemoizingCache(fn)

        assert cache.get_or_compute(5) == 10
        assert cache.get_or_compute(5) == 10
        assert fn.calls == [5]

    def test_missing_compute_fn_raises(self, cache):
        with pytest.raises(TypeError):
            cache.get_or_compute("nothing")

    def test_falsy_callable_is_used(self):
        """Test: a callable that is falsy still overrides the default compute_fn."""
        class EmptyLookup:
            def __len__(self):
                return 0

            def __call__(self, key):
                return "explicit"

        cache = MemoizingCache(lambda k: "default")

        assert cache.get_or_compute("k", EmptyLookup()) == "explicit"

    def test_seeded_entries_are_hits(self):
        """Test: pre-seeded keys are returned without computing."""
        fn = CountingFn()
        cache = MemoizingCache(seed={1: "one"})

        assert cache.get_or_compute(1, fn) == "one"
        assert fn.calls == []
        assert len(cache) == 1

    def test_get_does_not_compute_or_count(self, cache):
        assert cache.get("absent") is None
        assert cache.get("absent", "fallback") == "fallback"

        cache.get_or_compute("present", lambda k: 1)
        assert cache.get("present") == 1

        stats = cache.stats()
        assert stats.hits == 0
        assert stats.misses == 1

    def test_keys_snapshot(self, cache):
        for key in ("a", "b", "c"):
            cache.get_or_compute(key, str.upper)

        assert sorted(cache.keys()) == ["a", "b", "c"]

    def test_recursive_lookup_of_other_keys(self, cache):
        """Test: compute_fn may query the same cache for other keys."""
        fn = CountingFn(lambda k: 0 if k == 0 else cache.get_or_compute(k - 1, fn) + k)

        assert cache.get_or_compute(10, fn) == 55
        assert sorted(fn.calls) == list(range(11))

        # Everything below is now a hit
        assert cache.get_or_compute(7, fn) == 28
        assert len(fn.calls) == 11

    def test_same_key_reentry_raises(self, cache):
        """Test: asking for the key being computed raises instead of deadlocking."""
        def cyclic(key):
            return cache.get_or_compute(key, cyclic)

        with pytest.raises(CyclicComputationError) as exc_info:
            cache.get_or_compute("loop", cyclic)

        assert exc_info.value.key == "loop"
        assert "loop" not in cache

        # The key is usable again afterwards
        assert cache.get_or_compute("loop", lambda k: "fine") == "fine"

    def test_stats_accuracy(self, cache):
        """Test: stats reflect hits, misses and computations."""
        cache.get_or_compute(1, str)    # Miss
        cache.get_or_compute(1, str)    # Hit
        cache.get_or_compute(1, str)    # Hit
        cache.get_or_compute(2, str)    # Miss

        stats = cache.stats()
        assert isinstance(stats, CacheStats)
        assert stats.hits == 2
        assert stats.misses == 2
        assert stats.computations == 2
        assert stats.entries == 2
        assert stats.hit_rate_percent == 50.0

        data = stats.to_dict()
        assert data["total_requests"] == 4
        assert data["failures"] == 0

    def test_empty_stats(self, cache):
        stats = cache.stats()
        assert stats.total_requests == 0
        assert stats.hit_rate_percent == 0.0


class TestConcurrency:
    """Test per-key serialization with thread_safe=True."""

    def test_concurrent_same_key_computes_once(self):
        cache = MemoizingCache()
        started = threading.Event()
        release = threading.Event()
        fn = CountingFn(lambda k: release.wait(5) and "value")

        def slow(key):
            started.set()
            return fn(key)

        results = []
        first = threading.Thread(target=lambda: results.append(cache.get_or_compute("k", slow)))
        first.start()
        assert started.wait(5)

        second = threading.Thread(target=lambda: results.append(cache.get_or_compute("k", slow)))
        second.start()
        time.sleep(0.05)
        release.set()

        first.join(5)
        second.join(5)

        assert results == ["value", "value"]
        assert fn.calls == ["k"]

    def test_different_keys_compute_concurrently(self):
        cache = MemoizingCache()
        barrier = threading.Barrier(2, timeout=5)

        def meet(key):
            # Deadlocks (BrokenBarrierError) if keys were serialized together
            barrier.wait()
            return key

        results = []
        threads = [
            threading.Thread(target=lambda k=k: results.append(cache.get_or_compute(k, meet)))
            for k in ("a", "b")
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join(5)

        assert sorted(results) == ["a", "b"]
        assert cache.stats().failures == 0

    def test_cross_thread_cycle_raises_instead_of_hanging(self):
        """Test: "a" needs "b" on one thread while "b" needs "a" on another."""
        cache = MemoizingCache()
        both_computing = threading.Barrier(2, timeout=5)
        entered = []

        def needs_other(key):
            entered.append(key)
            if len(entered) <= 2:
                both_computing.wait()
            other = "b" if key == "a" else "a"
            return cache.get_or_compute(other, needs_other)

        errors = []

        def run(key):
            try:
                cache.get_or_compute(key, needs_other)
            except CyclicComputationError as e:
                errors.append(e)

        threads = [threading.Thread(target=run, args=(k,)) for k in ("a", "b")]
        for t in threads:
            t.start()
        for t in threads:
            t.join(5)

        assert not any(t.is_alive() for t in threads)
        assert len(errors) == 2
        assert "a" not in cache
        assert "b" not in cache

        # Locks were released; both keys are computable afterwards
        assert cache.get_or_compute("a", str.upper) == "A"
        assert cache.get_or_compute("b", str.upper) == "B"


class TestMemoizedDecorator:

    def test_wraps_function(self):
        calls = []

        @memoized
        def square(n):
            """Square a number."""
            calls.append(n)
            return n * n

        assert square(4) == 16
        assert square(4) == 16
        assert calls == [4]
        assert square.__name__ == "square"
        assert square.__doc__ == "Square a number."
        assert 4 in square.cache

    def test_recursive_decorated_function(self):
        @memoized
        def fib(n):
            return n if n < 2 else fib(n - 1) + fib(n - 2)

        assert fib(30) == 832040
        assert fib.cache.stats().computations == 31
