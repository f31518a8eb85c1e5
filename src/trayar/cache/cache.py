"""In-memory response cache for GET requests.

Stores successful :class:`~trayar.models.ApiResponse` envelopes keyed by
request path plus canonicalised query parameters, each with its own
time-to-live.

Two rules govern the contents:

- **Lazy expiry** -- TTLs are checked on lookup. An expired entry is deleted
  by the read that discovers it; nothing sweeps the cache in the background.
- **FIFO bound** -- once an insert pushes the size past ``max_entries``, the
  oldest-inserted entry is evicted. Reads do not reorder entries, so this is
  not an LRU.

All operations take an internal lock, so one cache can be shared by many
concurrent requests (and threads). Duplicate writes for the same key are
harmless: the last write wins and the TTL bounds staleness.

See Also:
    :class:`~trayar.models.CacheConfig` -- the Pydantic model that
    controls ``enabled``, ``ttl_seconds`` and ``max_entries``.
"""

from __future__ import annotations

import json
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from trayar.models import ApiResponse, CacheConfig


@dataclass
class CacheEntry:
    """A cached envelope plus its bookkeeping.

    Attributes:
        key: The cache key the entry is stored under.
        value: The cached success envelope.
        created_at: Clock reading (seconds) at insertion.
        ttl: Lifetime in seconds.
        hits: Number of reads served from this entry.
    """

    key: str
    value: ApiResponse
    created_at: float
    ttl: float
    hits: int = 0

    def is_expired(self, now: float) -> bool:
        return now - self.created_at >= self.ttl


class ResponseCache:
    """Bounded, TTL-aware cache of GET response envelopes.

    Args:
        config: Cache configuration (``enabled``, ``ttl_seconds``,
            ``max_entries``).
        clock: Monotonic time source in seconds. Tests inject a fake clock.

    Example::

        from trayar.cache import ResponseCache
        from trayar.models import ApiResponse, CacheConfig

        cache = ResponseCache(CacheConfig(ttl_seconds=300, max_entries=100))
        key = cache.make_key("/sessions", {"page": 1})
        cache.set(key, ApiResponse.ok([{"id": "s1"}]))
        hit = cache.get(key)
    """

    def __init__(
        self,
        config: Optional[CacheConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config or CacheConfig()
        self._clock = clock
        # dicts keep insertion order, which is the eviction order.
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._evictions = 0

    @property
    def enabled(self) -> bool:
        return self._config.enabled

    @property
    def default_ttl(self) -> float:
        """TTL applied when :meth:`set` is called without one, in seconds."""
        return self._config.ttl_seconds

    @property
    def max_entries(self) -> int:
        return self._config.max_entries

    def get(self, key: str) -> Optional[ApiResponse]:
        """Look up a cached envelope.

        An entry found expired is removed before returning ``None``.

        Returns:
            A private copy of the cached :class:`~trayar.models.ApiResponse`
            on a hit, or ``None`` on a miss, on expiry, or when caching is
            disabled.
        """
        if not self._config.enabled:
            return None
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.is_expired(self._clock()):
                del self._entries[key]
                return None
            entry.hits += 1
            return entry.value.model_copy(deep=True)

    def set(self, key: str, value: ApiResponse, ttl: Optional[float] = None) -> None:
        """Store an envelope, evicting the oldest entry if the bound is exceeded.

        Only success envelopes are stored; failures are silently ignored.
        Storing an existing key replaces it and restarts its TTL, and the
        entry counts as newly inserted for eviction purposes.

        Args:
            key: Cache key, normally from :meth:`make_key`.
            value: The envelope to cache.
            ttl: Lifetime in seconds. ``None`` uses the configured default.
        """
        if not self._config.enabled or not value.success:
            return
        entry = CacheEntry(
            key=key,
            value=value.model_copy(deep=True),
            created_at=self._clock(),
            ttl=self._config.ttl_seconds if ttl is None else ttl,
        )
        with self._lock:
            self._entries.pop(key, None)
            self._entries[key] = entry
            while len(self._entries) > self._config.max_entries:
                oldest = next(iter(self._entries))
                del self._entries[oldest]
                self._evictions += 1

    def invalidate(self, key: str) -> None:
        """Remove a single entry. Missing keys are ignored."""
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        """Remove all entries from the cache."""
        with self._lock:
            self._entries.clear()

    def keys(self) -> list[str]:
        """Return the stored keys, oldest first. Expired entries are included."""
        with self._lock:
            return list(self._entries)

    def stats(self) -> dict[str, Any]:
        """Return cache statistics.

        Returns:
            A ``dict`` with ``enabled``, ``size``, ``max_entries``,
            ``ttl_seconds``, ``hits`` (summed over live entries) and
            ``evictions`` (capacity evictions since creation).
        """
        with self._lock:
            return {
                "enabled": self._config.enabled,
                "size": len(self._entries),
                "max_entries": self._config.max_entries,
                "ttl_seconds": self._config.ttl_seconds,
                "hits": sum(e.hits for e in self._entries.values()),
                "evictions": self._evictions,
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    @staticmethod
    def make_key(path: str, params: Optional[dict[str, Any]] = None) -> str:
        """Build a cache key from a path and its query parameters.

        Parameters are serialised with sorted keys so that the same query
        always maps to the same entry regardless of argument order. Empty or
        missing parameters add nothing to the key.
        """
        if not params:
            return path
        return path + json.dumps(params, sort_keys=True, separators=(",", ":"), default=str)
