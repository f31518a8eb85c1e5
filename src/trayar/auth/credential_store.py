"""Token storage for the bearer credential and its refresh token.

The request pipeline only needs a tiny key-value capability: read the current
bearer token, read the refresh token, store new ones, and wipe both when the
session ends. :class:`TokenStore` captures that contract; two
implementations ship with trayar:

- :class:`MemoryTokenStore` -- process-local, for tests and embedding.
- :class:`FileTokenStore` -- persists to
  ``~/.local/share/trayar/credentials/tokens.json`` (XDG) or the platform
  equivalent. Files are written atomically with ``0o600`` permissions so that
  secrets are never world-readable, even momentarily.

Applications with a platform keychain implement :class:`TokenStore` on top of
it and hand that to :class:`~trayar.client.async_client.ApiClient`.
"""

from __future__ import annotations

import json
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

from trayar.config import atomic_write, get_data_dir


class TokenStore(ABC):
    """Abstract storage for the current bearer and refresh tokens."""

    @abstractmethod
    def get_token(self) -> Optional[str]:
        """Return the bearer token, or ``None`` when signed out."""
        ...

    @abstractmethod
    def set_token(self, token: str) -> None:
        """Replace the bearer token."""
        ...

    @abstractmethod
    def get_refresh_token(self) -> Optional[str]:
        """Return the refresh token, or ``None`` if none was issued."""
        ...

    @abstractmethod
    def set_refresh_token(self, token: str) -> None:
        """Replace the refresh token."""
        ...

    @abstractmethod
    def clear_tokens(self) -> None:
        """Forget both tokens."""
        ...


class MemoryTokenStore(TokenStore):
    """Keeps tokens in memory for the lifetime of the process.

    Example::

        store = MemoryTokenStore(token="tok", refresh_token="ref")
        assert store.get_token() == "tok"
    """

    def __init__(self, token: Optional[str] = None, refresh_token: Optional[str] = None) -> None:
        self._token = token
        self._refresh_token = refresh_token

    def get_token(self) -> Optional[str]:
        return self._token

    def set_token(self, token: str) -> None:
        self._token = token

    def get_refresh_token(self) -> Optional[str]:
        return self._refresh_token

    def set_refresh_token(self, token: str) -> None:
        self._refresh_token = token

    def clear_tokens(self) -> None:
        self._token = None
        self._refresh_token = None


class StoredTokens(BaseModel):
    """On-disk representation used by :class:`FileTokenStore`.

    Attributes:
        token: The bearer token.
        refresh_token: The refresh token, if the server issued one.
        updated_at: UTC time of the last write.
    """

    token: Optional[str] = Field(default=None, description="Bearer token")
    refresh_token: Optional[str] = Field(default=None, description="Refresh token")
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


def _credentials_dir() -> Path:
    """Return the credentials directory, creating it if needed."""
    path = get_data_dir() / "credentials"
    path.mkdir(parents=True, exist_ok=True)
    return path


class FileTokenStore(TokenStore):
    """Persist tokens to a JSON file with owner-only permissions.

    Every write goes through :func:`~trayar.config.atomic_write`, so a crash
    mid-write leaves the previous tokens intact. Reads of a missing or
    corrupt file behave as "signed out".

    Args:
        path: File location. Defaults to ``<data_dir>/credentials/tokens.json``.

    Example::

        store = FileTokenStore()
        store.set_token("tok123")
        assert FileTokenStore().get_token() == "tok123"
    """

    def __init__(self, path: Optional[Path] = None) -> None:
        self._path = path if path is not None else _credentials_dir() / "tokens.json"
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        """The filesystem path of the token file."""
        return self._path

    def load(self) -> Optional[StoredTokens]:
        """Load the stored tokens.

        Returns:
            The deserialised :class:`StoredTokens`, or ``None`` if the file
            does not exist or cannot be parsed.
        """
        if not self._path.is_file():
            return None
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
            return StoredTokens.model_validate(data)
        except (json.JSONDecodeError, ValueError, OSError):
            return None

    def get_token(self) -> Optional[str]:
        stored = self.load()
        return stored.token if stored else None

    def set_token(self, token: str) -> None:
        self._update(token=token)

    def get_refresh_token(self) -> Optional[str]:
        stored = self.load()
        return stored.refresh_token if stored else None

    def set_refresh_token(self, token: str) -> None:
        self._update(refresh_token=token)

    def clear_tokens(self) -> None:
        """Delete the token file if it exists."""
        with self._lock:
            if self._path.is_file():
                self._path.unlink()

    def _update(self, **fields: str) -> None:
        with self._lock:
            current = self.load() or StoredTokens()
            updated = current.model_copy(
                update={**fields, "updated_at": datetime.now(timezone.utc)}
            )
            text = json.dumps(updated.model_dump(mode="json"), indent=2) + "\n"
            atomic_write(self._path, text, mode=0o600)
