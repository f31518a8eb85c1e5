"""In-memory response caching for trayar.

This package provides :class:`ResponseCache`, a bounded cache that holds
successful GET response envelopes in process memory with a per-entry TTL.
Entries are keyed by request path and canonicalised query parameters.

The cache is consumed by :class:`~trayar.client.async_client.ApiClient`
and is controlled by the ``cache`` section of the client configuration
(:class:`~trayar.models.CacheConfig`).
"""

from trayar.cache.cache import CacheEntry, ResponseCache

__all__ = ["CacheEntry", "ResponseCache"]
