"""Bearer-token authentication for trayar.

The main entry points are:

- :class:`TokenStore` -- abstract storage for the bearer and refresh tokens,
  with :class:`MemoryTokenStore` and :class:`FileTokenStore` implementations.
- :class:`RefreshCoordinator` -- single-flight token refresh shared by all
  concurrent requests of one client.
- :class:`AuthSession` -- login, registration, logout and profile calls.

Typical usage::

    from trayar.auth import AuthSession, FileTokenStore

    client = ApiClient(config, store=FileTokenStore())
    await AuthSession(client).login(email, password)
"""

from trayar.auth.credential_store import (
    FileTokenStore,
    MemoryTokenStore,
    StoredTokens,
    TokenStore,
)
from trayar.auth.refresh import RefreshCoordinator, RefreshState
from trayar.auth.session import AuthSession

__all__ = [
    "AuthSession",
    "FileTokenStore",
    "MemoryTokenStore",
    "RefreshCoordinator",
    "RefreshState",
    "StoredTokens",
    "TokenStore",
]
