"""HTTP client module for trayar.

Provides the asynchronous request pipeline that wraps :mod:`httpx` with
bearer-token injection, single-flight token refresh, retry with linear
backoff, request hooks, and GET response caching.

Classes:
    :class:`ApiClient` -- non-blocking client backed by :class:`httpx.AsyncClient`.
    :class:`RetryPolicy` -- decides whether and when a failed attempt is retried.

Example::

    from trayar.client import ApiClient

    async with ApiClient(config) as client:
        resp = await client.get("/sessions")
"""

from trayar.client.async_client import ApiClient
from trayar.client.retry import RetryDecision, RetryPolicy

__all__ = ["ApiClient", "RetryDecision", "RetryPolicy"]
