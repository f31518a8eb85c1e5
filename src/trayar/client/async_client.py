"""Asynchronous request pipeline with token refresh, retry, and caching.

This module provides :class:`ApiClient`, the single entry point for talking
to the Trayar API. It wraps :class:`httpx.AsyncClient` and layers on:

- **Response caching** -- GET responses are answered from, and stored in, a
  bounded in-memory :class:`~trayar.cache.ResponseCache` (5 minute default TTL).
- **Auth injection** -- the current bearer token is read from the
  :class:`~trayar.auth.TokenStore` before *every* attempt, so a retry picks
  up a token refreshed by another request in the meantime.
- **Refresh and replay** -- a ``401`` hands off to the shared
  :class:`~trayar.auth.RefreshCoordinator`; on success the original request
  is replayed exactly once with the new token.
- **Retry with backoff** -- transport errors, 5xx and 429 are retried per
  :class:`~trayar.client.retry.RetryPolicy` (3 retries, linear 1 s steps).
- **Hooks** -- per-attempt pre-request/post-response/error hooks via
  :class:`~trayar.hooks.HookRunner`.

:meth:`ApiClient.execute` never raises: every outcome, including transport
failures and unexpected local errors, comes back as an
:class:`~trayar.models.ApiResponse` envelope.

Construct one client at application start and pass it to whoever needs it;
the cache and the refresh coordinator are only shared through that instance.
"""

from __future__ import annotations

import asyncio
import json
import time
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, Union

import httpx
from pydantic import ValidationError

from trayar.auth.credential_store import MemoryTokenStore, TokenStore
from trayar.auth.refresh import AuthFailureHook, RefreshCoordinator
from trayar.cache import ResponseCache
from trayar.client.progress import UploadProgressStream
from trayar.client.response import (
    auth_error,
    envelope_from_response,
    error_from_exception,
    extract_response_data,
)
from trayar.client.retry import RetryPolicy, parse_retry_after
from trayar.exceptions import AuthError
from trayar.hooks import HookContext, HookRunner, RequestHook
from trayar.models import (
    ApiErrorInfo,
    ApiResponse,
    AuthTokens,
    ClientConfig,
    ErrorCode,
    HTTPMethod,
    RequestDescriptor,
    UploadFile,
)
from trayar.output import get_output

REFRESH_PATH = "/auth/refresh"
HEALTH_PATH = "/health"


class ApiClient:
    """Authenticated HTTP client for the Trayar API.

    Can be used as an async context manager, or closed explicitly with
    :meth:`aclose`. The underlying :class:`httpx.AsyncClient` is created on
    first use.

    Args:
        config: Base URL, request/retry and cache settings. Defaults to
            :class:`~trayar.models.ClientConfig` defaults.
        store: Token storage. Defaults to an empty
            :class:`~trayar.auth.MemoryTokenStore`.
        cache: Response cache. Defaults to one built from ``config.cache``.
        retry_policy: Retry policy. Defaults to one built from
            ``config.request``.
        hooks: Request hooks, run in order on every attempt.
        on_auth_failure: Called when a refresh fails and the stored tokens
            have been cleared, so the application can force a new sign-in.
        transport: Custom :mod:`httpx` transport (e.g.
            :class:`httpx.MockTransport` in tests).
        sleep: Coroutine used to wait between retries.

    Example::

        async with ApiClient(config, store=FileTokenStore()) as client:
            resp = await client.get("/sessions", params={"page": 1})
            if resp.success:
                ...
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        store: Optional[TokenStore] = None,
        cache: Optional[ResponseCache] = None,
        retry_policy: Optional[RetryPolicy] = None,
        hooks: Optional[list[RequestHook]] = None,
        on_auth_failure: Optional[AuthFailureHook] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._config = config or ClientConfig()
        self._store = store if store is not None else MemoryTokenStore()
        self._cache = cache if cache is not None else ResponseCache(self._config.cache)
        self._retry_policy = retry_policy or RetryPolicy.from_config(self._config.request)
        self._hooks = HookRunner(hooks)
        self._transport = transport
        self._sleep = sleep
        self._refresh = RefreshCoordinator(self._store, self._refresh_tokens, on_auth_failure)
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_config(
        cls,
        config: Optional[ClientConfig] = None,
        store: Optional[TokenStore] = None,
        **kwargs: Any,
    ) -> ApiClient:
        """Build a client from resolved configuration and the on-disk token store.

        Args:
            config: Configuration to use. Defaults to
                :func:`~trayar.config.resolve_config`.
            store: Token store. Defaults to :class:`~trayar.auth.FileTokenStore`.
            **kwargs: Forwarded to the constructor.
        """
        from trayar.auth.credential_store import FileTokenStore
        from trayar.config import resolve_config

        return cls(
            config=config if config is not None else resolve_config(),
            store=store if store is not None else FileTokenStore(),
            **kwargs,
        )

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> ApiClient:
        self._http()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP connection pool."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            request = self._config.request
            self._client = httpx.AsyncClient(
                base_url=self._config.base_url,
                timeout=request.timeout,
                verify=request.verify_ssl,
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    # ------------------------------------------------------------------ #
    # Accessors
    # ------------------------------------------------------------------ #

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def store(self) -> TokenStore:
        return self._store

    @property
    def cache(self) -> ResponseCache:
        return self._cache

    @property
    def refresh_coordinator(self) -> RefreshCoordinator:
        return self._refresh

    def clear_cache(self) -> None:
        """Drop every cached response."""
        self._cache.clear()

    # ------------------------------------------------------------------ #
    # Public request methods
    # ------------------------------------------------------------------ #

    async def get(
        self, path: str, params: Optional[dict[str, Any]] = None, **kwargs: Any
    ) -> ApiResponse:
        """Send a GET request. Served from the cache when possible.

        Args:
            path: URL path appended to the base URL.
            params: Query parameters.
            **kwargs: Other :class:`~trayar.models.RequestDescriptor` fields
                (``headers``, ``timeout``, ``bypass_cache``, ``cache_ttl``).
        """
        return await self._call(method=HTTPMethod.GET, path=path, params=params, **kwargs)

    async def post(self, path: str, body: Any = None, **kwargs: Any) -> ApiResponse:
        """Send a POST request with an optional JSON *body*."""
        return await self._call(method=HTTPMethod.POST, path=path, body=body, **kwargs)

    async def put(self, path: str, body: Any = None, **kwargs: Any) -> ApiResponse:
        """Send a PUT request with an optional JSON *body*."""
        return await self._call(method=HTTPMethod.PUT, path=path, body=body, **kwargs)

    async def patch(self, path: str, body: Any = None, **kwargs: Any) -> ApiResponse:
        """Send a PATCH request with an optional JSON *body*."""
        return await self._call(method=HTTPMethod.PATCH, path=path, body=body, **kwargs)

    async def delete(self, path: str, **kwargs: Any) -> ApiResponse:
        """Send a DELETE request."""
        return await self._call(method=HTTPMethod.DELETE, path=path, **kwargs)

    async def upload(
        self,
        path: str,
        file: Union[UploadFile, str, Path],
        metadata: Optional[dict[str, Any]] = None,
        on_progress: Optional[Callable[[int], None]] = None,
        field: str = "file",
        **kwargs: Any,
    ) -> ApiResponse:
        """Upload a file as ``multipart/form-data``.

        Args:
            path: URL path appended to the base URL.
            file: An :class:`~trayar.models.UploadFile` or a path on disk.
            metadata: Extra form fields. Non-string values are JSON-encoded.
            on_progress: Called with the integer percentage (0-100) of the
                body sent so far, on every attempt.
            field: Form field name of the file part.
            **kwargs: Other :class:`~trayar.models.RequestDescriptor` fields.
        """
        try:
            if not isinstance(file, UploadFile):
                file = UploadFile.from_path(file)
        except OSError as exc:
            return ApiResponse.fail(
                ApiErrorInfo(
                    code=ErrorCode.INVALID_REQUEST.value,
                    message=f"Cannot read upload file: {exc}",
                    status_code=0,
                )
            )
        form = None
        if metadata:
            form = {
                key: value if isinstance(value, str) else json.dumps(value)
                for key, value in metadata.items()
            }
        return await self._call(
            method=HTTPMethod.POST,
            path=path,
            files={field: file},
            form=form,
            on_progress=on_progress,
            **kwargs,
        )

    async def health_check(self) -> ApiResponse:
        """Query the API health endpoint."""
        return await self.get(HEALTH_PATH)

    async def execute(self, descriptor: RequestDescriptor) -> ApiResponse:
        """Run a request through the full pipeline.

        Never raises: any failure, including unexpected local errors, is
        returned as a failed :class:`~trayar.models.ApiResponse`.
        """
        try:
            return await self._execute(descriptor)
        except Exception as exc:
            get_output().debug(f"Unexpected error on {descriptor.method.value} {descriptor.path}: {exc!r}")
            return ApiResponse.fail(error_from_exception(exc))

    # ------------------------------------------------------------------ #
    # Pipeline
    # ------------------------------------------------------------------ #

    async def _call(self, **fields: Any) -> ApiResponse:
        try:
            descriptor = RequestDescriptor(**fields)
        except ValidationError as exc:
            return ApiResponse.fail(
                ApiErrorInfo(
                    code=ErrorCode.INVALID_REQUEST.value,
                    message="Invalid request",
                    details=exc.errors(include_url=False),
                    status_code=0,
                )
            )
        return await self.execute(descriptor)

    async def _execute(self, descriptor: RequestDescriptor) -> ApiResponse:
        output = get_output()
        method = descriptor.method.value

        # 1. Cache lookup (GET only)
        cache_key: Optional[str] = None
        if descriptor.is_cacheable and self._cache.enabled:
            cache_key = self._cache.make_key(descriptor.path, descriptor.params)
            cached = self._cache.get(cache_key)
            if cached is not None:
                output.debug(f"Cache hit: {method} {descriptor.path}")
                return cached

        # 2. Dispatch with retry
        envelope, sent_token = await self._dispatch_with_retry(descriptor)

        # 3. Refresh and replay once on 401
        if envelope.status_code == 401 and not envelope.success and descriptor.refresh_on_401:
            if sent_token is None and not self._store.get_refresh_token():
                # Nothing to recover: the caller was never signed in.
                return envelope
            token = await self._refresh.refresh(stale_token=sent_token)
            if token is None:
                return ApiResponse.fail(auth_error())
            output.debug(f"Replaying {method} {descriptor.path} with refreshed token")
            envelope, _ = await self._dispatch_with_retry(descriptor)

        # 4. Cache store (GET success only)
        if cache_key is not None and envelope.success:
            self._cache.set(cache_key, envelope, ttl=descriptor.cache_ttl)

        return envelope

    async def _dispatch_with_retry(
        self, descriptor: RequestDescriptor
    ) -> tuple[ApiResponse, Optional[str]]:
        """Send *descriptor* until it succeeds, hits a 401, or the retry policy gives up.

        Returns:
            The final envelope and the bearer token its attempt carried.
        """
        output = get_output()
        attempt = 0
        while True:
            attempt += 1
            token = self._store.get_token()
            envelope, retry_after_ms = await self._send_once(descriptor, token, attempt)
            if envelope.success or envelope.status_code == 401:
                return envelope, token

            assert envelope.error is not None
            decision = self._retry_policy.should_retry(attempt, envelope.error, retry_after_ms)
            if not decision.retry:
                return envelope, token

            output.debug(
                f"{envelope.error.code} ({envelope.status_code}) on "
                f"{descriptor.method.value} {descriptor.path}, retrying in "
                f"{decision.delay_ms}ms (attempt {attempt}/{self._retry_policy.max_retries})"
            )
            await self._sleep(decision.delay_ms / 1000)

    async def _send_once(
        self,
        descriptor: RequestDescriptor,
        token: Optional[str],
        attempt: int,
    ) -> tuple[ApiResponse, Optional[int]]:
        """Make a single attempt and normalise its outcome.

        Returns:
            The envelope and, for a 429, the server-requested delay in ms.
        """
        ctx = HookContext(
            method=descriptor.method.value,
            url=descriptor.path,
            headers=self._build_headers(descriptor, token),
            params=dict(descriptor.params or {}),
            attempt=attempt,
        )
        self._hooks.run_pre_request(ctx)
        request = self._build_request(descriptor, ctx.headers, ctx.params)

        ctx.started_at = time.monotonic()
        try:
            response = await self._http().send(request)
        except httpx.RequestError as exc:
            ctx.error = exc
            self._hooks.run_error(ctx)
            return ApiResponse.fail(error_from_exception(exc)), None

        envelope = envelope_from_response(response)
        ctx.status_code = response.status_code
        ctx.response_body = envelope.data if envelope.success else envelope.error
        self._hooks.run_post_response(ctx)
        if not envelope.success:
            self._hooks.run_error(ctx)

        retry_after_ms = None
        if response.status_code == 429:
            retry_after_ms = parse_retry_after(response.headers.get("Retry-After"))
        return envelope, retry_after_ms

    def _build_headers(self, descriptor: RequestDescriptor, token: Optional[str]) -> dict[str, str]:
        headers: dict[str, str] = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        # Caller-supplied headers win over the defaults and the token.
        headers.update(descriptor.headers or {})
        return headers

    def _build_request(
        self,
        descriptor: RequestDescriptor,
        headers: dict[str, str],
        params: dict[str, Any],
    ) -> httpx.Request:
        kwargs: dict[str, Any] = {
            "method": descriptor.method.value,
            "url": descriptor.path,
            "headers": headers,
            "timeout": descriptor.timeout or self._config.request.timeout,
        }
        if params:
            kwargs["params"] = params
        if descriptor.files:
            kwargs["files"] = {
                name: (part.name, part.content, part.content_type)
                for name, part in descriptor.files.items()
            }
            if descriptor.form:
                kwargs["data"] = descriptor.form
        elif descriptor.body is not None:
            kwargs["json"] = descriptor.body

        request = self._http().build_request(**kwargs)
        if descriptor.files and descriptor.on_progress is not None:
            total = int(request.headers.get("Content-Length", "0"))
            request.stream = UploadProgressStream(request.stream, total, descriptor.on_progress)
        return request

    # ------------------------------------------------------------------ #
    # Token refresh
    # ------------------------------------------------------------------ #

    async def _refresh_tokens(self) -> AuthTokens:
        """Exchange the stored refresh token for new tokens.

        Sent on the raw HTTP client, outside the pipeline, so a failing
        refresh can never trigger another refresh.

        Raises:
            AuthError: If no refresh token is stored or the server rejects it.
            httpx.RequestError: On transport failure.
        """
        refresh_token = self._store.get_refresh_token()
        if not refresh_token:
            raise AuthError("No refresh token available")

        response = await self._http().post(
            REFRESH_PATH,
            json={"refreshToken": refresh_token},
            headers={"Accept": "application/json"},
        )
        if response.status_code >= 400:
            raise AuthError(f"Token refresh rejected with HTTP {response.status_code}")

        body = extract_response_data(response)
        token = body.get("token") if isinstance(body, dict) else None
        if not isinstance(token, str) or not token:
            raise AuthError("Token refresh response did not contain a token")
        rotated = body.get("refreshToken")
        return AuthTokens(token=token, refresh_token=rotated if isinstance(rotated, str) else None)
