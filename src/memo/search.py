"""First-match search over iterables."""

from __future__ import annotations

from typing import Callable, Iterable, Optional, TypeVar

T = TypeVar("T")


def first_match(items: Iterable[T], predicate: Callable[[T], bool]) -> Optional[T]:
    """Return the first element satisfying predicate, or None if none does.

    Stops consuming items at the first match.
    """
    for item in items:
        if predicate(item):
            return item
    return None
