from __future__ import annotations

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Hashable, Optional

from ..core.constants import DEFAULT_CACHE_MAX_SIZE, DEFAULT_CACHE_TTL_SECONDS
from .app_logger import get_logger


@dataclass
class CacheConfig:
    max_size: int = DEFAULT_CACHE_MAX_SIZE
    ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS


@dataclass
class CacheEntry:
    value: Any
    created_at: float

    def is_expired(self, now: float, ttl_seconds: float) -> bool:
        return now - self.created_at > ttl_seconds


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    expired_evictions: int = 0
    size_evictions: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0


class ResultCache:
    """LRU cache with TTL expiry and a hard size bound.

    Built once per process by the container and injected into the services
    that use it. All operations are thread-safe.
    """

    def __init__(self, config: Optional[CacheConfig] = None, *, clock: Callable[[], float] = time.monotonic):
        self.config = config or CacheConfig()
        if self.config.max_size <= 0:
            raise ValueError("max_size must be positive")
        self._clock = clock
        self._entries: OrderedDict[Hashable, CacheEntry] = OrderedDict()
        self._lock = threading.RLock()
        self._stats = CacheStats()
        self._generation = 0
        self._logger = get_logger(__name__)

    def get(self, key: Hashable) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._stats.misses += 1
                return None

            if entry.is_expired(self._clock(), self.config.ttl_seconds):
                del self._entries[key]
                self._stats.misses += 1
                self._stats.expired_evictions += 1
                return None

            self._entries.move_to_end(key)
            self._stats.hits += 1
            return entry.value

    def set(self, key: Hashable, value: Any) -> None:
        with self._lock:
            self._entries[key] = CacheEntry(value=value, created_at=self._clock())
            self._entries.move_to_end(key)
            while len(self._entries) > self.config.max_size:
                evicted, _ = self._entries.popitem(last=False)
                self._stats.size_evictions += 1
                self._logger.debug("Evicted cache entry %r (size bound)", evicted)

    def get_or_compute(self, key: Hashable, compute: Callable[[], Any]) -> Any:
        cached = self.get(key)
        if cached is not None:
            return cached
        with self._lock:
            generation = self._generation
        # Computed outside the lock. A clear() meanwhile means the value may predate
        # a committed write, so it is returned but not stored.
        value = compute()
        with self._lock:
            if generation == self._generation:
                self.set(key, value)
            else:
                self._logger.debug("Dropped stale result for %r (cleared during compute)", key)
        return value

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._generation += 1

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    @property
    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                hits=self._stats.hits,
                misses=self._stats.misses,
                expired_evictions=self._stats.expired_evictions,
                size_evictions=self._stats.size_evictions,
            )
