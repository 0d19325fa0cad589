"""Base cache interface and in-memory implementation."""

import asyncio
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

K = TypeVar("K")
V = TypeVar("V")


@dataclass
class CacheEntry(Generic[V]):
    """Cache entry with value and expiry metadata."""

    value: V
    created_at: float
    ttl_seconds: float

    def is_expired(self, now: float) -> bool:
        return now >= self.created_at + self.ttl_seconds


class BaseCache(ABC, Generic[K, V]):
    """Base cache interface."""

    @abstractmethod
    async def get(self, key: K) -> V | None:
        """Cached value if present and not expired, else None."""
        pass

    @abstractmethod
    async def set(self, key: K, value: V, ttl_seconds: float | None = None) -> None:
        pass

    @abstractmethod
    async def delete(self, key: K) -> bool:
        """True if the key was present."""
        pass

    @abstractmethod
    async def clear(self) -> None:
        pass


# Listen up future me, this is per-INSTANCE state, not a module-level dict. Whoever builds the
# cache owns it (the app container builds one LabelCache at startup), and tests build their own.
# The clock is injectable so TTL tests don't have to sleep. Always take self._lock before
# touching self._entries; coroutines interleave at every await.
class InMemoryCache(BaseCache[K, V]):
    """Dictionary-backed cache with per-entry TTL."""

    def __init__(
        self,
        default_ttl_seconds: float = 300,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.default_ttl_seconds = default_ttl_seconds
        self._clock = clock
        self._entries: dict[K, CacheEntry[V]] = {}
        self._lock = asyncio.Lock()

    # Expired entries are evicted on read, so get() mutates the cache.
    async def get(self, key: K) -> V | None:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.is_expired(self._clock()):
                del self._entries[key]
                return None
            return entry.value

    async def set(self, key: K, value: V, ttl_seconds: float | None = None) -> None:
        async with self._lock:
            self._entries[key] = CacheEntry(
                value=value,
                created_at=self._clock(),
                ttl_seconds=self.default_ttl_seconds if ttl_seconds is None else ttl_seconds,
            )

    async def delete(self, key: K) -> bool:
        async with self._lock:
            return self._entries.pop(key, None) is not None

    async def clear(self) -> None:
        async with self._lock:
            self._entries.clear()

    async def cleanup_expired(self) -> int:
        """Drop every expired entry; returns how many were removed."""
        async with self._lock:
            now = self._clock()
            expired = [k for k, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired:
                del self._entries[key]
            return len(expired)

    def get_stats(self) -> dict[str, Any]:
        """Entry counts for monitoring (unlocked, approximate)."""
        now = self._clock()
        total = len(self._entries)
        expired = sum(1 for entry in self._entries.values() if entry.is_expired(now))
        return {
            "total_entries": total,
            "active_entries": total - expired,
            "expired_entries": expired,
        }
