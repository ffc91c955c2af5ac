"""
ResponseCache - in-process response cache with a fixed TTL.

Features:
- One TTL shared by every entry, checked lazily on read
- Substring invalidation and full clear
- Optional size bound with oldest-entry eviction
- Never raises: internal faults become a miss / no-op and a warning
"""

import threading
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Callable

from loguru import logger

DEFAULT_TTL = timedelta(minutes=5)


@dataclass
class CacheEntry:
    """A single cache entry."""

    key: str
    value: Any
    timestamp: float

    def is_expired(self, now: float, ttl: timedelta) -> bool:
        return now - self.timestamp >= ttl.total_seconds()


def generate_cache_key(prefix: str, *params: Any) -> str:
    """
    Build a fingerprint from a prefix and an ordered parameter list.

    None params are skipped, everything else is stringified and joined
    with ':'. generate_cache_key("profile", "42", "full") -> "profile:42:full"
    """
    parts = [str(p) for p in params if p is not None]
    return ":".join([prefix, *parts])


class ResponseCache:
    """
    Process-local cache mapping request fingerprints to responses.

    Usage:
        cache = ResponseCache(ttl=timedelta(minutes=5))

        key = cache.generate_key("profile", user_id, "enhanced")
        cached = cache.get(key)
        if cached is None:
            cached = await fetch_profile()
            cache.set(key, cached)

        # After an update
        cache.invalidate(f"profile:{user_id}:")
    """

    def __init__(
        self,
        ttl: timedelta = DEFAULT_TTL,
        max_size: int | None = None,
        clock: Callable[[], float] = time.monotonic,
        debug: bool = False,
    ):
        self._entries: dict[str, CacheEntry] = {}
        self._ttl = ttl
        self._max_size = max_size
        self._clock = clock
        self._debug = debug
        self._lock = threading.RLock()
        self._stats = CacheStats()

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    def generate_key(self, prefix: str, *params: Any) -> str:
        return generate_cache_key(prefix, *params)

    def get(self, key: str) -> Any | None:
        """Return the cached value, or None when absent or expired."""
        try:
            with self._lock:
                entry = self._entries.get(key)
                if entry is None:
                    self._stats.misses += 1
                    self._log(f"miss {key[:60]}")
                    return None

                if entry.is_expired(self._clock(), self._ttl):
                    # Left in place; the next set() overwrites it
                    self._stats.expired += 1
                    self._stats.misses += 1
                    self._log(f"expired {key[:60]}")
                    return None

                self._stats.hits += 1
                self._log(f"hit {key[:60]}")
                return entry.value
        except Exception as e:
            logger.warning(f"Cache get error for key {key}: {e}")
            return None

    def set(self, key: str, value: Any) -> None:
        """Store or overwrite a value."""
        try:
            with self._lock:
                if (
                    self._max_size is not None
                    and key not in self._entries
                    and len(self._entries) >= self._max_size
                ):
                    self._evict_oldest()

                self._entries[key] = CacheEntry(
                    key=key, value=value, timestamp=self._clock()
                )
                self._log(f"set {key[:60]}")
        except Exception as e:
            logger.warning(f"Cache set error for key {key}: {e}")

    def delete(self, key: str) -> bool:
        """Delete a specific key."""
        try:
            with self._lock:
                if self._entries.pop(key, None) is not None:
                    self._log(f"delete {key[:60]}")
                    return True
                return False
        except Exception as e:
            logger.warning(f"Cache delete error for key {key}: {e}")
            return False

    def invalidate(self, pattern: str) -> int:
        """
        Remove every key containing `pattern`.

        Returns:
            Number of entries removed
        """
        try:
            with self._lock:
                doomed = [k for k in self._entries if pattern in k]
                for key in doomed:
                    del self._entries[key]

                if doomed:
                    self._log(
                        f"invalidated {len(doomed)} entries matching {pattern!r}"
                    )
                return len(doomed)
        except Exception as e:
            logger.warning(f"Cache invalidation error for pattern {pattern}: {e}")
            return 0

    def clear(self) -> None:
        """Remove all entries."""
        try:
            with self._lock:
                count = len(self._entries)
                self._entries.clear()
                self._log(f"cleared {count} entries")
        except Exception as e:
            logger.warning(f"Cache clear error: {e}")

    def cleanup_expired(self) -> int:
        """Drop expired entries. Returns count of removed entries."""
        try:
            with self._lock:
                now = self._clock()
                expired_keys = [
                    k for k, v in self._entries.items() if v.is_expired(now, self._ttl)
                ]
                for key in expired_keys:
                    del self._entries[key]

                if expired_keys:
                    self._log(f"dropped {len(expired_keys)} expired entries")
                return len(expired_keys)
        except Exception as e:
            logger.warning(f"Cache cleanup error: {e}")
            return 0

    def _evict_oldest(self) -> None:
        if not self._entries:
            return

        oldest_key = min(self._entries, key=lambda k: self._entries[k].timestamp)
        del self._entries[oldest_key]
        self._stats.evictions += 1
        self._log(f"evict {oldest_key[:60]}")

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def get_stats(self) -> "CacheStats":
        """Counters since construction, plus current size."""
        self._stats.size = len(self._entries)
        self._stats.max_size = self._max_size
        return self._stats

    def _log(self, message: str) -> None:
        if self._debug:
            logger.debug(f"[ResponseCache] {message}")


@dataclass
class CacheStats:
    """Hit/miss counters for one ResponseCache."""

    hits: int = 0
    misses: int = 0
    expired: int = 0
    evictions: int = 0
    size: int = 0
    max_size: int | None = None

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return self.hits / total

    def to_dict(self) -> dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "expired": self.expired,
            "evictions": self.evictions,
            "size": self.size,
            "max_size": self.max_size,
            "hit_rate": f"{self.hit_rate:.2%}",
        }
