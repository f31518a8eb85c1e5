"""Single-flight bearer-token refresh.

When many concurrent requests hit ``401 Unauthorized`` at once, each of them
wants a new token. Firing one refresh call per request would race to persist
tokens, and with rotating refresh tokens the later calls would invalidate the
earlier ones. :class:`RefreshCoordinator` makes sure only one refresh runs at
a time:

* ``IDLE`` -- the first caller of :meth:`RefreshCoordinator.refresh` moves the
  coordinator to ``REFRESHING`` and performs the refresh itself.
* ``REFRESHING`` -- every other caller parks a future on the waiter list.
* When the refresh settles, the waiter list is swapped out and every waiter
  is resolved with the new token, or with ``None`` if the refresh failed, and
  the state returns to ``IDLE``. If the caller performing the refresh is
  cancelled, the waiters are woken to retry and one of them takes over.

The coordinator relies on the asyncio event loop for mutual exclusion: the
state check and the state change happen without an ``await`` in between, so
no lock is needed. It must therefore be used from a single event loop.
"""

from __future__ import annotations

import asyncio
import enum
import inspect
import logging
from typing import Awaitable, Callable, Optional, Union

from trayar.auth.credential_store import TokenStore
from trayar.models import AuthTokens

logger = logging.getLogger(__name__)

RefreshFunction = Callable[[], Awaitable[AuthTokens]]
AuthFailureHook = Callable[[], Union[None, Awaitable[None]]]

# Handed to waiters when the leading caller was cancelled mid-refresh.
_RESTART = object()


class RefreshState(str, enum.Enum):
    """States of the :class:`RefreshCoordinator`."""

    IDLE = "idle"
    REFRESHING = "refreshing"


class RefreshCoordinator:
    """Ensures at most one in-flight token refresh across concurrent callers.

    Args:
        store: Where the current tokens live. A successful refresh persists
            the new token (and a rotated refresh token, if any) here; a failed
            one clears it.
        refresh_fn: Coroutine function that exchanges the refresh token for
            new :class:`~trayar.models.AuthTokens`. Any exception it raises
            counts as a failed refresh.
        on_auth_failure: Called once per failed refresh, after the tokens have
            been cleared, so the application can force a sign-in. May be a
            plain function or a coroutine function.

    Example::

        coordinator = RefreshCoordinator(store, refresh_fn, on_auth_failure=show_login)
        token = await coordinator.refresh(stale_token=sent_token)
        if token is None:
            ...  # session is gone
    """

    def __init__(
        self,
        store: TokenStore,
        refresh_fn: RefreshFunction,
        on_auth_failure: Optional[AuthFailureHook] = None,
    ) -> None:
        self._store = store
        self._refresh_fn = refresh_fn
        self._on_auth_failure = on_auth_failure
        self._state = RefreshState.IDLE
        self._waiters: list[asyncio.Future[object]] = []
        self._refresh_count = 0

    @property
    def state(self) -> RefreshState:
        return self._state

    @property
    def waiting(self) -> int:
        """Number of callers currently parked behind the in-flight refresh."""
        return len(self._waiters)

    @property
    def refresh_count(self) -> int:
        """How many refresh calls have been started so far."""
        return self._refresh_count

    async def refresh(self, stale_token: Optional[str] = None) -> Optional[str]:
        """Obtain a fresh bearer token, sharing any refresh already in flight.

        If the caller leading a refresh is cancelled, its waiters wake up and
        the first of them starts the refresh again; the rest wait on it.

        Args:
            stale_token: The token the caller's rejected request was sent
                with. If the store already holds a different token, another
                caller refreshed in the meantime and that token is returned
                without starting a new refresh. If the store holds no token
                at all, the session already ended and ``None`` is returned.

        Returns:
            The new bearer token, or ``None`` if the refresh failed.
        """
        while self._state is RefreshState.REFRESHING:
            waiter: asyncio.Future[object] = asyncio.get_running_loop().create_future()
            self._waiters.append(waiter)
            result = await waiter
            if result is not _RESTART:
                return result  # type: ignore[return-value]
            logger.debug("Refresh leader was cancelled; retrying the refresh")

        if stale_token is not None:
            current = self._store.get_token()
            if not current:
                logger.debug("Session ended while the request was in flight")
                return None
            if current != stale_token:
                logger.debug("Token was refreshed by another request; reusing it")
                return current

        self._state = RefreshState.REFRESHING
        self._refresh_count += 1
        outcome: object = _RESTART
        try:
            tokens = await self._refresh_fn()
            self._store.set_token(tokens.token)
            if tokens.refresh_token:
                self._store.set_refresh_token(tokens.refresh_token)
            outcome = tokens.token
        except Exception as exc:
            logger.warning("Token refresh failed: %s", exc)
            outcome = None
        finally:
            # Still _RESTART here only when the leader was cancelled.
            self._settle(outcome)

        if outcome is None:
            await self._handle_auth_failure()
            return None
        logger.debug("Token refreshed")
        return outcome  # type: ignore[return-value]

    def _settle(self, outcome: object) -> None:
        waiters, self._waiters = self._waiters, []
        self._state = RefreshState.IDLE
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(outcome)

    async def _handle_auth_failure(self) -> None:
        self._store.clear_tokens()
        if self._on_auth_failure is None:
            return
        try:
            result = self._on_auth_failure()
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Auth-failure hook raised")
