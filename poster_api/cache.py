"""Simple TTL cache and the read-through helper built on it."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class CacheEntry:
    value: Any
    expires_at: float


class TTLCache:
    """In-memory TTL cache for API responses.

    Entries expire lazily: an expired entry stays in memory until the next
    ``get`` for its key (or an explicit ``clear``) removes it. The cache is
    not locked and must only be used from one event loop.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._store: Dict[str, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._store)

    def get(self, key: str) -> Any | None:
        entry = self._store.get(key)
        if entry is None:
            return None
        if self._clock() >= entry.expires_at:
            del self._store[key]
            return None
        return entry.value

    def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        self._store[key] = CacheEntry(value=value, expires_at=self._clock() + ttl_seconds)

    def clear(self, key: str) -> None:
        self._store.pop(key, None)


class ReadThroughCache:
    """Serve cached responses, falling back to a live fetch on a miss.

    Concurrent misses for the same key are not coalesced: each caller runs
    its own fetch and the last one to finish wins the cache slot.
    """

    def __init__(
        self,
        cache: TTLCache,
        *,
        enabled: bool = True,
        default_ttl_seconds: float = 60.0,
    ) -> None:
        self.cache = cache
        self.enabled = enabled
        self.default_ttl_seconds = default_ttl_seconds

    async def cached_request(
        self,
        key: str,
        fetch: Callable[[], Awaitable[T]],
        ttl_seconds: Optional[float] = None,
    ) -> T:
        """Return the live cached value for ``key`` or fetch and store it."""

        if not self.enabled:
            return await fetch()

        cached = self.cache.get(key)
        if cached is not None:
            LOGGER.debug("cache hit", extra={"cache_key": key})
            return cached

        LOGGER.debug("cache miss", extra={"cache_key": key})
        result = await fetch()
        ttl = ttl_seconds if ttl_seconds is not None else self.default_ttl_seconds
        self.cache.set(key, result, ttl)
        return result
