"""Small in-process cache with per-entry expiry.

Every enrichment fetcher keeps its own :class:`TtlCache` instance.  Eviction
is lazy: an expired entry is dropped when it is read, or when :meth:`size`
sweeps the store.  There is no background thread.
"""

from __future__ import annotations

import time
from typing import Callable, Dict, Generic, Hashable, Optional, TypeVar

__all__ = ["TtlCache"]

V = TypeVar("V")


class _CacheEntry(Generic[V]):
    __slots__ = ("value", "expires_at")

    def __init__(self, value: V, expires_at: float) -> None:
        self.value = value
        self.expires_at = expires_at


class TtlCache(Generic[V]):
    """Key/value store whose entries expire ``ttl_seconds`` after being set."""

    def __init__(self, ttl_seconds: float, *, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_seconds = float(ttl_seconds)
        self._clock = clock
        self._entries: Dict[Hashable, _CacheEntry[V]] = {}

    def get(self, key: Hashable) -> Optional[V]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() > entry.expires_at:
            del self._entries[key]
            return None
        return entry.value

    def set(self, key: Hashable, value: V) -> None:
        self._entries[key] = _CacheEntry(value, self._clock() + self.ttl_seconds)

    def has(self, key: Hashable) -> bool:
        return self.get(key) is not None

    def clear(self) -> None:
        self._entries.clear()

    def size(self) -> int:
        self._evict_expired()
        return len(self._entries)

    def _evict_expired(self) -> None:
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if now > entry.expires_at]
        for key in expired:
            del self._entries[key]
