"""Convenience operations on lists and mappings that take behavior as functions."""

from __future__ import annotations

import logging
from typing import Any, Callable, Hashable, Iterable, List, MutableMapping, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


def for_each(items: Iterable[T], consumer: Callable[[T], Any]) -> None:
    for item in items:
        consumer(item)


def remove_if(items: List[T], predicate: Callable[[T], bool]) -> bool:
    """Remove every element matching predicate in place. Returns True if any were removed."""
    kept = [item for item in items if not predicate(item)]
    removed = len(items) - len(kept)
    items[:] = kept
    if removed:
        logger.debug(f"remove_if dropped {removed} element(s)")
    return removed > 0


def replace_all(items: List[T], operator: Callable[[T], T]) -> None:
    items[:] = [operator(item) for item in items]


def sort_list(items: List[T], key: Optional[Callable[[T], Any]] = None, reverse: bool = False) -> None:
    items.sort(key=key, reverse=reverse)


def merge(
    mapping: MutableMapping[K, V],
    key: K,
    value: V,
    remapping: Callable[[V, V], Optional[V]],
) -> Optional[V]:
    """
    Combine value into mapping[key].

    Absent key: store value. Present key: store remapping(old, value).
    A None result removes the key.

    Returns:
        The value now stored, or None if the key was removed
    """
    if value is None:
        raise ValueError("merge value must not be None")

    if key not in mapping:
        mapping[key] = value
        return value

    new_value = remapping(mapping[key], value)
    if new_value is None:
        del mapping[key]
        return None
    mapping[key] = new_value
    return new_value


def compute_if_absent(mapping: MutableMapping[K, V], key: K, fn: Callable[[K], V]) -> V:
    """Return mapping[key], storing fn(key) first if the key is absent."""
    if key in mapping:
        return mapping[key]
    value = fn(key)
    mapping[key] = value
    return value
