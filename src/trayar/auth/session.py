"""Sign-in, sign-out and profile calls on top of :class:`~trayar.client.ApiClient`.

:class:`AuthSession` owns the account endpoints of the Trayar API and keeps
the :class:`~trayar.auth.credential_store.TokenStore` in step with them:

* ``login`` / ``register`` persist the issued ``token`` and, when present,
  ``refreshToken``.
* ``logout`` tells the server (best effort) and always forgets the tokens.
* ``profile`` / ``update_profile`` read and write ``/auth/profile``.

All methods return the :class:`~trayar.models.ApiResponse` envelope of the
underlying call.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from trayar.auth.credential_store import TokenStore
from trayar.models import ApiErrorInfo, ApiResponse, ErrorCode

logger = logging.getLogger(__name__)

LOGIN_PATH = "/auth/login"
REGISTER_PATH = "/auth/register"
LOGOUT_PATH = "/auth/logout"
PROFILE_PATH = "/auth/profile"


class AuthSession:
    """Account operations bound to one client and its token store.

    Args:
        client: The :class:`~trayar.client.ApiClient` used for every call.
        store: Token store to update. Defaults to ``client.store``.

    Example::

        session = AuthSession(client)
        resp = await session.login("dr@example.com", "s3cret")
        if resp.success:
            profile = await session.profile()
    """

    def __init__(self, client: Any, store: Optional[TokenStore] = None) -> None:
        self._client = client
        self._store = store if store is not None else client.store

    @property
    def is_authenticated(self) -> bool:
        """Whether a bearer token is currently stored."""
        return bool(self._store.get_token())

    async def login(self, email: str, password: str) -> ApiResponse:
        """Sign in with email and password and store the issued tokens."""
        resp = await self._client.post(LOGIN_PATH, body={"email": email, "password": password})
        return self._accept_tokens(resp)

    async def register(
        self,
        name: str,
        email: str,
        password: str,
        specialization: Optional[str] = None,
    ) -> ApiResponse:
        """Create an account and store the issued tokens."""
        body: dict[str, Any] = {"name": name, "email": email, "password": password}
        if specialization:
            body["specialization"] = specialization
        resp = await self._client.post(REGISTER_PATH, body=body)
        return self._accept_tokens(resp)

    async def logout(self) -> ApiResponse:
        """Sign out.

        The server is notified only when a token is held. Local tokens and
        the response cache are cleared whatever the server answers.
        """
        resp = ApiResponse.ok({})
        if self.is_authenticated:
            resp = await self._client.post(LOGOUT_PATH, refresh_on_401=False)
            if not resp.success:
                assert resp.error is not None
                logger.info("Server logout failed (%s); signing out locally", resp.error.code)
        self._store.clear_tokens()
        self._client.clear_cache()
        return resp

    async def profile(self, refresh: bool = False) -> ApiResponse:
        """Fetch the signed-in user's profile and stats."""
        return await self._client.get(PROFILE_PATH, bypass_cache=refresh)

    async def update_profile(self, data: dict[str, Any]) -> ApiResponse:
        """Update the signed-in user's profile.

        On success the cached profile is dropped so the next
        :meth:`profile` call sees the change.
        """
        resp = await self._client.put(PROFILE_PATH, body=data)
        if resp.success:
            self._client.cache.invalidate(self._client.cache.make_key(PROFILE_PATH, None))
        return resp

    def _accept_tokens(self, resp: ApiResponse) -> ApiResponse:
        if not resp.success:
            return resp
        data = resp.data if isinstance(resp.data, dict) else {}
        token = data.get("token")
        if not isinstance(token, str) or not token:
            return ApiResponse.fail(
                ApiErrorInfo(
                    code=ErrorCode.AUTH_ERROR.value,
                    message="Authentication response did not contain a token",
                    status_code=resp.status_code,
                )
            )
        self._store.set_token(token)
        refresh_token = data.get("refreshToken")
        if isinstance(refresh_token, str) and refresh_token:
            self._store.set_refresh_token(refresh_token)
        # A different account must not see the previous one's cached responses.
        self._client.clear_cache()
        return resp
