"""
Cache -- injectable read-through cache abstraction.

Responsibility:
    A small key -> (value, expiry) store used by the chart-of-accounts service
    for read-mostly data.  The Ledger receives a Cache instance at
    construction; nothing reads a global cache.

Architecture position:
    Kernel > Domain.  Depends only on the Clock abstraction.

Invariants enforced:
    - The cache is never a source of truth: a miss always falls back to the
      database, and NullCache (which stores nothing) yields identical results.
    - Expired entries are evicted on read.
    - TTLCache is safe to share between threads.
    - Every key carries a version that only grows; ``invalidate`` and
      ``clear`` bump it.  A ``set`` stamped with an older version is dropped,
      so a value loaded before an invalidation is never written back.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import Any

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.logging_config import get_logger

logger = get_logger("domain.cache")


class Cache(ABC):
    """
    Contract:
        ``get`` returns the stored value or None when absent or expired.
        ``set`` stores a value for ``ttl_seconds``.
        ``invalidate`` removes a key; ``clear`` removes everything.
        ``version`` is read before loading a value; passing it to ``set``
        makes the write a no-op if the key was invalidated in between.
    """

    @abstractmethod
    def get(self, key: str) -> Any | None:
        ...

    @abstractmethod
    def set(self, key: str, value: Any, ttl_seconds: float, version: int | None = None) -> None:
        ...

    @abstractmethod
    def version(self, key: str) -> int:
        ...

    @abstractmethod
    def invalidate(self, key: str) -> None:
        ...

    @abstractmethod
    def clear(self) -> None:
        ...


class TTLCache(Cache):
    """In-process cache with per-entry expiry measured on the injected clock."""

    def __init__(self, clock: Clock | None = None, max_entries: int = 1024):
        self._clock = clock or SystemClock()
        self._max_entries = max_entries
        self._entries: dict[str, tuple[float, Any]] = {}
        self._versions: dict[str, int] = {}
        self._generation = 0
        self._lock = threading.Lock()

    def get(self, key: str) -> Any | None:
        now = self._clock.monotonic()
        with self._lock:
            item = self._entries.get(key)
            if item is None:
                return None
            expires_at, value = item
            if now >= expires_at:
                del self._entries[key]
                logger.debug("cache_entry_expired", extra={"cache_key": key})
                return None
            return value

    def version(self, key: str) -> int:
        with self._lock:
            return self._version_locked(key)

    def _version_locked(self, key: str) -> int:
        # Both counters only grow, so their sum changes on every invalidation
        return self._generation + self._versions.get(key, 0)

    def set(self, key: str, value: Any, ttl_seconds: float, version: int | None = None) -> None:
        if ttl_seconds <= 0:
            return
        expires_at = self._clock.monotonic() + ttl_seconds
        with self._lock:
            if version is not None and version != self._version_locked(key):
                logger.debug("cache_stale_write_skipped", extra={"cache_key": key})
                return
            if key not in self._entries and len(self._entries) >= self._max_entries:
                # Evict the entry closest to expiry
                oldest = min(self._entries, key=lambda k: self._entries[k][0])
                del self._entries[oldest]
            self._entries[key] = (expires_at, value)

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._versions[key] = self._versions.get(key, 0) + 1
            if self._entries.pop(key, None) is not None:
                logger.debug("cache_entry_invalidated", extra={"cache_key": key})

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._generation += 1
        logger.debug("cache_cleared")

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class NullCache(Cache):
    """Cache that never stores anything."""

    def get(self, key: str) -> Any | None:
        return None

    def set(self, key: str, value: Any, ttl_seconds: float, version: int | None = None) -> None:
        pass

    def version(self, key: str) -> int:
        return 0

    def invalidate(self, key: str) -> None:
        pass

    def clear(self) -> None:
        pass
