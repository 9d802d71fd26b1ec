"""
Read Cache

DESIGN DECISION: The ledger components never cache; every call reads
fresh rows and recomputes. Caching is an explicit layer on top:
- results are stored under tuple keys, e.g. ("bills", card_id)
- entries expire after a TTL
- whoever mutates the store calls `invalidate` with the affected
  key prefixes afterwards

Keys are tuples so a prefix like ("bills",) drops every card's bills.
"""

import time
from typing import Any, Awaitable, Callable, Hashable, Optional


CacheKey = tuple[Hashable, ...]


class ReadCache:
    """Key -> value store with TTL expiry and prefix invalidation."""

    def __init__(
        self,
        ttl_seconds: float = 300,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[CacheKey, tuple[float, Any]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: CacheKey) -> Optional[Any]:
        """Return a live cached value, or None."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, value = entry
        if self._clock() - stored_at >= self._ttl:
            del self._entries[key]
            return None
        return value

    def set(self, key: CacheKey, value: Any) -> None:
        if self._ttl <= 0:
            return
        self._entries[key] = (self._clock(), value)

    async def get_or_load(
        self,
        key: CacheKey,
        loader: Callable[[], Awaitable[Any]],
    ) -> Any:
        """
        Return the cached value for `key`, loading it on a miss.

        Loader failures propagate and nothing is cached.
        """
        cached = self.get(key)
        if cached is not None:
            return cached
        value = await loader()
        self.set(key, value)
        return value

    def invalidate(self, *prefixes: CacheKey) -> int:
        """
        Drop every entry whose key starts with one of `prefixes`.

        With no prefixes, the whole cache is cleared.
        Returns the number of entries removed.
        """
        if not prefixes:
            removed = len(self._entries)
            self._entries.clear()
            return removed

        doomed = [
            key for key in self._entries
            if any(key[:len(prefix)] == prefix for prefix in prefixes)
        ]
        for key in doomed:
            del self._entries[key]
        return len(doomed)
