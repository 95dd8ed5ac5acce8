"""
ResultCache - In-memory cache with TTL expiry and LRU eviction.

Features:
- TTL (Time To Live) per entry, with optional per-call override
- Strict least-recently-accessed eviction when full
- Negative results ("not found") are cacheable; callers check presence,
  not truthiness
- Periodic sweep of expired entries, stopped by destroy()
"""

from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Generic, TypeVar

from loguru import logger

from platebot.services.sweeper import PeriodicSweep

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    """A single cache entry with metadata."""

    value: T
    created_at: datetime
    expires_at: datetime
    access_count: int = 0
    last_access: datetime = field(default_factory=datetime.now)

    def is_expired(self, now: datetime) -> bool:
        """Check if entry is past its TTL."""
        return now > self.expires_at


@dataclass
class CacheResult(Generic[T]):
    """Result from cache lookup. `data` may be None for a cached negative."""

    data: T
    access_count: int


class ResultCache:
    """
    TTL + LRU cache for expensive lookup results.

    Usage:
        cache = ResultCache(max_size=500, default_ttl=timedelta(minutes=5))

        key = ResultCache.make_key("vehicle", plate)
        cached = cache.get(key)
        if cached is not None:
            return cached.data          # may be None: "known not found"

        data = await fetch_data()
        cache.set(key, data)
    """

    def __init__(
        self,
        max_size: int = 1000,
        default_ttl: timedelta = timedelta(minutes=5),
        cleanup_interval: timedelta = timedelta(minutes=1),
        clock: Callable[[], datetime] = datetime.now,
        autostart: bool = True,
        debug: bool = False,
    ):
        self._entries: OrderedDict[str, CacheEntry[Any]] = OrderedDict()
        self._max_size = max_size
        self._default_ttl = default_ttl
        self._clock = clock
        self._debug = debug
        self._stats = CacheStats()
        self._sweep = PeriodicSweep("cache", cleanup_interval, self.cleanup_expired)
        if autostart:
            self._sweep.start()

    @staticmethod
    def make_key(namespace: str, query: str) -> str:
        """Build a cache key: '<namespace>:<normalizedQuery>'."""
        return f"{namespace}:{query}"

    def get(self, key: str) -> CacheResult[Any] | None:
        """
        Get value from cache.

        Returns CacheResult if found and not expired, None otherwise.
        Expired entries are deleted on read.
        """
        entry = self._entries.get(key)
        if entry is None:
            self._stats.misses += 1
            self._log(f"MISS: {key[:50]}")
            return None

        now = self._clock()
        if entry.is_expired(now):
            self._remove(key)
            self._stats.misses += 1
            self._log(f"EXPIRED: {key[:50]}")
            return None

        entry.access_count += 1
        entry.last_access = now
        self._entries.move_to_end(key)
        self._stats.hits += 1
        self._log(f"HIT: {key[:50]}")

        return CacheResult(data=entry.value, access_count=entry.access_count)

    def set(self, key: str, value: Any, ttl: timedelta | None = None) -> None:
        """
        Set value in cache.

        Args:
            key: Cache key
            value: Data to cache (None is a valid negative result)
            ttl: Time to live (uses default if not specified)
        """
        ttl = self._default_ttl if ttl is None else ttl
        now = self._clock()

        if key not in self._entries and len(self._entries) >= self._max_size:
            self._evict_lru()

        self._entries[key] = CacheEntry(
            value=value,
            created_at=now,
            expires_at=now + ttl,
            last_access=now,
        )
        self._entries.move_to_end(key)
        self._stats.sets += 1
        self._log(f"SET: {key[:50]} (TTL: {ttl.total_seconds()}s)")

    def has(self, key: str) -> bool:
        """Check presence without touching recency. Expired entries are removed."""
        entry = self._entries.get(key)
        if entry is None:
            return False
        if entry.is_expired(self._clock()):
            self._remove(key)
            return False
        return True

    def delete(self, key: str) -> bool:
        """Delete a specific key from cache."""
        if key in self._entries:
            self._remove(key)
            self._log(f"DELETE: {key[:50]}")
            return True
        return False

    def invalidate(self, pattern: str) -> int:
        """
        Invalidate all keys containing a substring.

        Returns:
            Number of entries invalidated
        """
        keys_to_delete = [k for k in self._entries if pattern in k]
        for key in keys_to_delete:
            self._remove(key)

        if keys_to_delete:
            self._log(f"INVALIDATE: {len(keys_to_delete)} entries matching '{pattern}'")

        return len(keys_to_delete)

    def clear(self) -> None:
        """Clear all cache entries."""
        count = len(self._entries)
        self._entries.clear()
        self._stats.deletes += count
        self._log(f"CLEAR: {count} entries removed")

    def cleanup_expired(self) -> int:
        """Remove all expired entries. Returns count of removed entries."""
        now = self._clock()
        expired_keys = [k for k, v in self._entries.items() if v.is_expired(now)]
        for key in expired_keys:
            self._remove(key)

        if expired_keys:
            self._stats.cleanups += 1
            logger.debug(f"Cache cleanup: removed {len(expired_keys)} expired entries")

        return len(expired_keys)

    def keys(self) -> list[str]:
        return list(self._entries.keys())

    def __len__(self) -> int:
        return len(self._entries)

    def get_info(self, key: str) -> dict[str, Any] | None:
        """Metadata for a key, without counting as an access."""
        entry = self._entries.get(key)
        if entry is None:
            return None

        now = self._clock()
        return {
            "key": key,
            "created_at": entry.created_at,
            "expires_at": entry.expires_at,
            "ttl_remaining": (entry.expires_at - now).total_seconds(),
            "access_count": entry.access_count,
            "last_access": entry.last_access,
            "is_expired": entry.is_expired(now),
        }

    def start(self) -> bool:
        """Start the expiry sweep (needs a running event loop)."""
        return self._sweep.start()

    def destroy(self) -> None:
        """Stop the sweep and drop all state."""
        self._sweep.stop()
        self.clear()

    def get_stats(self) -> "CacheStats":
        """Get cache statistics."""
        self._stats.size = len(self._entries)
        self._stats.max_size = self._max_size
        return self._stats

    def reset_stats(self) -> None:
        self._stats = CacheStats()

    def _remove(self, key: str) -> None:
        del self._entries[key]
        self._stats.deletes += 1

    def _evict_lru(self) -> None:
        """Evict the least recently accessed entry."""
        if not self._entries:
            return

        lru_key = next(iter(self._entries))
        self._remove(lru_key)
        self._stats.evictions += 1
        logger.debug(f"Cache evicted LRU entry: {lru_key[:50]}")

    def _log(self, message: str) -> None:
        """Log debug message if debug mode is enabled."""
        if self._debug:
            logger.debug(f"[ResultCache] {message}")


@dataclass
class CacheStats:
    """Cache statistics."""

    hits: int = 0
    misses: int = 0
    sets: int = 0
    deletes: int = 0
    evictions: int = 0
    cleanups: int = 0
    size: int = 0
    max_size: int = 0

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate."""
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return self.hits / total

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "sets": self.sets,
            "deletes": self.deletes,
            "evictions": self.evictions,
            "cleanups": self.cleanups,
            "size": self.size,
            "max_size": self.max_size,
            "hit_rate": f"{self.hit_rate:.2%}",
        }
