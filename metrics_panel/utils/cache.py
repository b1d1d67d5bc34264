"""Basic LRU cache utility.

This module provides a thin, typed wrapper over :class:`cachetools.LRUCache`
used by the HTTP service to hold panel sessions. The wrapper isolates the
dependency and keeps the session store bounded.
"""

from __future__ import annotations

from collections.abc import Hashable
from typing import Generic, List, Optional, TypeVar

from cachetools import LRUCache  # type: ignore[import-untyped]

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class Cache(Generic[K, V]):
    """Simple LRU cache.

    Parameters
    ----------
    maxsize: int
        Maximum number of entries to retain.
        When the cache is full, the least-recently-used entry is discarded.
    """

    def __init__(self, maxsize: int = 1024) -> None:
        self._cache: LRUCache[K, V] = LRUCache(maxsize=maxsize)

    def get(self, key: K) -> Optional[V]:
        """Return value for `key` or None if missing."""
        return self._cache.get(key)

    def set(self, key: K, value: V) -> None:
        """Insert or update `key` with `value`."""
        self._cache[key] = value

    def pop(self, key: K) -> Optional[V]:
        """Remove `key` and return its value, or None if missing."""
        return self._cache.pop(key, None)

    def keys(self) -> List[K]:
        """Return the keys currently held, least recently used first."""
        return list(self._cache.keys())

    def __len__(self) -> int:
        return len(self._cache)
