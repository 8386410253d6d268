"""
bluecarbon/registry/cache.py

Per-session TTL cache used by RegistryClient.

FEATURES:
- TTL (Time To Live) for cache entries
- LRU eviction once max_size is reached
- Thread-safe operations
- Hit/miss statistics
- Prefix invalidation (e.g. every "projects:" key after a project write)

CACHE KEY FORMAT:
collection:qualifier
Example: projects:page=1:limit=10, project:4f1c..., registry_statistics

Each client owns one cache instance; nothing is shared across sessions.
"""

import time
from collections import OrderedDict
from threading import RLock
from typing import Any, Callable, Dict, Generic, Optional, TypeVar

T = TypeVar("T")


class CacheEntry:
    """
    Represents a single cache entry with TTL tracking.
    """

    def __init__(self, value: Any, ttl_seconds: float, now: float):
        self.value = value
        self.created_at = now
        self.ttl_seconds = ttl_seconds
        self.access_count = 0

    def is_expired(self, now: float) -> bool:
        """Check if cache entry has expired."""
        return (now - self.created_at) > self.ttl_seconds

    def access(self) -> Any:
        self.access_count += 1
        return self.value


class TTLCache(Generic[T]):
    """
    LRU cache with TTL for API responses.

    Features:
    - TTL-based expiration (default 5 minutes)
    - LRU eviction when max_size reached
    - Thread-safe operations
    - Hit/miss statistics
    """

    def __init__(
        self,
        ttl_seconds: float = 300,
        max_size: int = 256,
        clock: Optional[Callable[[], float]] = None,
    ):
        """
        Initialize the cache.

        Args:
            ttl_seconds: Time to live in seconds (default: 5 minutes)
            max_size: Maximum number of entries (default: 256)
            clock: Monotonic time source, overridable in tests
        """
        self.ttl_seconds = ttl_seconds
        self.max_size = max_size
        self._clock = clock or time.monotonic

        self._cache: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = RLock()

        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._expirations = 0

    def get(self, key: str) -> Optional[T]:
        """
        Get a value from the cache.

        Returns:
            Cached value or None if not found/expired
        """
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                self._misses += 1
                return None

            if entry.is_expired(self._clock()):
                del self._cache[key]
                self._expirations += 1
                self._misses += 1
                return None

            self._cache.move_to_end(key)
            self._hits += 1
            return entry.access()

    def set(self, key: str, value: T, ttl_seconds: Optional[float] = None) -> None:
        """
        Put a value into the cache.

        Args:
            key: Cache key
            value: Value to cache
            ttl_seconds: Override default TTL (optional)
        """
        ttl = ttl_seconds if ttl_seconds is not None else self.ttl_seconds

        with self._lock:
            if key not in self._cache and len(self._cache) >= self.max_size:
                self._cache.popitem(last=False)
                self._evictions += 1

            self._cache[key] = CacheEntry(value, ttl, self._clock())
            self._cache.move_to_end(key)

    def invalidate(self, key: str) -> bool:
        """
        Drop one key.

        Returns:
            True if the key was cached
        """
        with self._lock:
            return self._cache.pop(key, None) is not None

    def invalidate_prefix(self, prefix: str) -> int:
        """
        Drop every key starting with ``prefix``.

        Returns:
            Number of entries invalidated
        """
        with self._lock:
            keys_to_remove = [k for k in self._cache if k.startswith(prefix)]
            for key in keys_to_remove:
                del self._cache[key]
            return len(keys_to_remove)

    def clear(self) -> None:
        """Clear all cache entries and statistics."""
        with self._lock:
            self._cache.clear()
            self._hits = 0
            self._misses = 0
            self._evictions = 0
            self._expirations = 0

    def stats(self) -> Dict[str, Any]:
        """
        Get cache statistics.

        Returns:
            Dict with hits, misses, hit_rate, size, etc.
        """
        with self._lock:
            total_requests = self._hits + self._misses
            hit_rate = (self._hits / total_requests * 100) if total_requests > 0 else 0.0

            return {
                "hits": self._hits,
                "misses": self._misses,
                "total_requests": total_requests,
                "hit_rate_pct": hit_rate,
                "size": len(self._cache),
                "max_size": self.max_size,
                "evictions": self._evictions,
                "expirations": self._expirations,
            }

    def __len__(self) -> int:
        return len(self._cache)

    def __contains__(self, key: str) -> bool:
        """Check if key is cached (doesn't update LRU order or stats)."""
        with self._lock:
            entry = self._cache.get(key)
            return entry is not None and not entry.is_expired(self._clock())


__all__ = ["CacheEntry", "TTLCache"]
