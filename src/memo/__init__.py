"""
Memo
Lazily computed, never-evicted caches plus the functional helpers built on them
"""

from .cache import CacheStats, MemoizingCache, memoized
from .exceptions import ConfigError, CyclicComputationError, MemoError
from .search import first_match

__all__ = [
    'CacheStats',
    'MemoizingCache',
    'memoized',
    'first_match',
    'MemoError',
    'CyclicComputationError',
    'ConfigError',
]
