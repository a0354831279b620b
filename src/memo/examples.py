"""
Memoized Computations

- fibonacci(n) → nth Fibonacci number, each subproblem computed once
- prime_with_digits(d) → smallest prime with exactly d decimal digits
- is_prime(n) → deterministic Miller-Rabin test

Run the demo with `python -m memo.examples`.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from .cache import MemoizingCache
from .config import MemoConfig, configure_logging, load_config

logger = logging.getLogger(__name__)

# Bases that make Miller-Rabin exact below 3.3e24 (covers 24-digit inputs)
_WITNESSES = (2, 3, 5, 7, 11, 13, 17, 19, 23, 29, 31, 37)


def fibonacci_cache(thread_safe: bool = True) -> MemoizingCache:
    return MemoizingCache(seed={0: 0, 1: 1}, thread_safe=thread_safe)


_fib_cache = fibonacci_cache()
_prime_cache: MemoizingCache = MemoizingCache()


def fibonacci(n: int, cache: Optional[MemoizingCache] = None) -> int:
    """
    Recursive Fibonacci through a memoizing cache.

    Each fib(k) for k in 0..n is computed at most once per cache, so the
    recursion is linear in n. Any cache works; fibonacci_cache seeds 0 and 1
    so the base cases are hits.
    """
    if n < 0:
        raise ValueError(f"fibonacci undefined for negative n: {n}")
    if cache is None:
        cache = _fib_cache

    def compute(k: int) -> int:
        if k < 2:
            return k
        return fibonacci(k - 1, cache) + fibonacci(k - 2, cache)

    return cache.get_or_compute(n, compute)


def is_prime(n: int) -> bool:
    if n < 2:
        return False
    for p in _WITNESSES:
        if n % p == 0:
            return n == p

    d, s = n - 1, 0
    while d % 2 == 0:
        d //= 2
        s += 1

    for a in _WITNESSES:
        x = pow(a, d, n)
        if x in (1, n - 1):
            continue
        for _ in range(s - 1):
            x = pow(x, 2, n)
            if x == n - 1:
                break
        else:
            return False
    return True


def _smallest_prime_with_digits(digits: int) -> int:
    candidate = 2 if digits == 1 else 10 ** (digits - 1) + 1
    while not is_prime(candidate):
        candidate += 2
    logger.debug(f"Smallest {digits}-digit prime: {candidate}")
    return candidate


def prime_with_digits(
    digits: int,
    cache: Optional[MemoizingCache] = None,
    config: Optional[MemoConfig] = None,
) -> int:
    """
    Smallest prime with exactly `digits` decimal digits, memoized per digit count.

    Args:
        digits: Decimal length, at least 1
        cache: Cache to memoize in (module cache by default)
        config: Caps digits at config.max_prime_digits when given

    Raises:
        ValueError: digits < 1 or above the configured maximum
    """
    if digits < 1:
        raise ValueError(f"digit count must be at least 1, got {digits}")
    if config is not None and digits > config.max_prime_digits:
        raise ValueError(f"digit count {digits} exceeds max_prime_digits={config.max_prime_digits}")
    if cache is None:
        cache = _prime_cache
    return cache.get_or_compute(digits, _smallest_prime_with_digits)


if __name__ == "__main__":
    config = load_config() if Path("config/memo.yml").exists() else MemoConfig()
    configure_logging(config)

    for n in (0, 1, 10, 45, 90):
        print(f"fib({n}) = {fibonacci(n)}")
    print(f"Fibonacci cache: {_fib_cache.stats().to_dict()}")

    for d in (1, 2, 5, 12, 5):
        print(f"{d}-digit prime: {prime_with_digits(d)}")
    print(f"Prime cache: {_prime_cache.stats().to_dict()}")
