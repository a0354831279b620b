"""
Memoizing Cache

Implements:
- get_or_compute(key, compute_fn) → stored value, computing it on first lookup
- get(key) → stored value | default (never computes)
- stats() → {hits, misses, computations, failures, entries}
- memoized(fn) → one-argument function routed through its own cache

Entries are never evicted or overwritten. A computation that raises is not
stored, so the next lookup retries it.
"""

from __future__ import annotations

import functools
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, asdict
from typing import Any, Callable, Dict, Generic, Hashable, Iterator, Mapping, Optional, TypeVar

from .exceptions import CyclicComputationError

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

_MISSING = object()


@dataclass(frozen=True)
class CacheStats:
    hits: int = 0
    misses: int = 0
    computations: int = 0
    failures: int = 0
    entries: int = 0

    @property
    def total_requests(self) -> int:
        return self.hits + self.misses

    @property
    def hit_rate_percent(self) -> float:
        total = self.total_requests
        return round(self.hits / total * 100, 1) if total > 0 else 0.0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["total_requests"] = self.total_requests
        data["hit_rate_percent"] = self.hit_rate_percent
        return data


class _NullLock:
    def __enter__(self) -> None:
        return None

    def __exit__(self, *exc_info) -> None:
        return None


class MemoizingCache(Generic[K, V]):
    """
    Associative cache that lazily computes and stores a value per key.

    Design:
    - compute_fn runs at most once per key over the cache's lifetime
    - compute_fn may query the same cache for other keys (recursive use)
    - thread_safe=True serializes callers per key; different keys compute
      concurrently
    - Re-entry for the key being computed raises CyclicComputationError
      instead of deadlocking, whether on one thread or across threads
      waiting on each other's keys
    """

    def __init__(
        self,
        compute_fn: Optional[Callable[[K], V]] = None,
        seed: Optional[Mapping[K, V]] = None,
        thread_safe: bool = True,
    ) -> None:
        self._compute_fn = compute_fn
        self._store: Dict[K, V] = dict(seed or {})
        self.thread_safe = thread_safe
        self._lock = threading.Lock() if thread_safe else _NullLock()
        self._key_locks: Dict[K, threading.Lock] = {}
        self._owners: Dict[K, int] = {}
        self._waiting: Dict[int, K] = {}
        self._local = threading.local()
        self._counters = {
            "hits": 0,
            "misses": 0,
            "computations": 0,
            "failures": 0,
        }

        logger.info(f"MemoizingCache created (seeded={len(self._store)}, thread_safe={thread_safe})")

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._store

    def __repr__(self) -> str:
        return f"{type(self).__name__}(entries={len(self)}, thread_safe={self.thread_safe})"

    def keys(self) -> Iterator[K]:
        with self._lock:
            return iter(list(self._store))

    def get(self, key: K, default: Optional[V] = None) -> Optional[V]:
        """Return the stored value for key without computing or counting."""
        with self._lock:
            return self._store.get(key, default)

    def get_or_compute(self, key: K, compute_fn: Optional[Callable[[K], V]] = None) -> V:
        """
        Return the stored value for key, computing and storing it if absent.

        Args:
            key: Hashable lookup token
            compute_fn: Computation for this lookup; falls back to the
                cache's default compute_fn

        Returns:
            The stored value (possibly None)

        Raises:
            TypeError: no computation available for an absent key
            CyclicComputationError: compute_fn asked for this same key, on
                this thread or through a chain of threads waiting on each other
            Any exception compute_fn raises (the key stays absent)
        """
        value = self._lookup(key)
        if value is not _MISSING:
            return value

        fn = compute_fn if compute_fn is not None else self._compute_fn
        if fn is None:
            raise TypeError(f"no compute function for absent key {key!r}")

        in_progress = self._in_progress()
        if key in in_progress:
            raise CyclicComputationError(key)

        if not self.thread_safe:
            return self._compute(key, fn, in_progress)

        with self._claim(key):
            # Another thread may have stored it while we waited
            value = self._lookup(key)
            if value is not _MISSING:
                return value
            return self._compute(key, fn, in_progress)

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(entries=len(self._store), **self._counters)

    def _lookup(self, key: K) -> Any:
        with self._lock:
            value = self._store.get(key, _MISSING)
            if value is not _MISSING:
                self._counters["hits"] += 1
        if value is not _MISSING:
            logger.debug(f"Cache hit for {key!r}")
        return value

    def _compute(self, key: K, fn: Callable[[K], V], in_progress: set) -> V:
        with self._lock:
            self._counters["misses"] += 1
        logger.debug(f"Cache miss for {key!r}, computing")

        in_progress.add(key)
        try:
            value = fn(key)
        except Exception as e:
            with self._lock:
                self._counters["failures"] += 1
            logger.warning(f"Computation for {key!r} failed, not cached: {e}")
            raise
        finally:
            in_progress.discard(key)

        with self._lock:
            self._store[key] = value
            self._counters["computations"] += 1
            self._key_locks.pop(key, None)
        logger.debug(f"Stored {key!r}")
        return value

    @contextmanager
    def _claim(self, key: K) -> Iterator[None]:
        """
        Hold the per-key lock for key while the body runs.

        The owner of each held key and the key each blocked thread waits on
        form a wait-for graph. Joining a chain that leads back to the calling
        thread raises CyclicComputationError instead of blocking forever.
        """
        me = threading.get_ident()
        with self._lock:
            self._check_wait_cycle(key, me)
            lock = self._key_locks.get(key)
            if lock is None:
                lock = self._key_locks[key] = threading.Lock()
            self._waiting[me] = key

        try:
            lock.acquire()
        finally:
            with self._lock:
                self._waiting.pop(me, None)

        with self._lock:
            self._owners[key] = me
        try:
            yield
        finally:
            with self._lock:
                self._owners.pop(key, None)
            lock.release()

    def _check_wait_cycle(self, key: K, me: int) -> None:
        # Caller holds self._lock
        visited = set()
        owner = self._owners.get(key)
        while owner is not None and owner not in visited:
            if owner == me:
                logger.warning(f"Cross-thread cycle detected waiting for {key!r}")
                raise CyclicComputationError(key)
            visited.add(owner)
            blocked_on = self._waiting.get(owner, _MISSING)
            if blocked_on is _MISSING:
                return
            owner = self._owners.get(blocked_on)

    def _in_progress(self) -> set:
        keys = getattr(self._local, "keys", None)
        if keys is None:
            keys = self._local.keys = set()
        return keys


def memoized(fn: Callable[[K], V]) -> Callable[[K], V]:
    """Route calls of a one-argument function through a dedicated cache."""
    cache: MemoizingCache = MemoizingCache(fn)

    @functools.wraps(fn)
    def wrapper(key):
        return cache.get_or_compute(key)

    wrapper.cache = cache
    return wrapper
