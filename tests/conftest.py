"""Shared test fixtures for trayar.

Provides reusable fixtures for isolated config environments, output state,
mock transports, and running CLI commands. These fixtures are automatically
discovered by pytest and available to all test modules without explicit
imports.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable

import httpx
import pytest

from trayar.auth.credential_store import MemoryTokenStore
from trayar.client import ApiClient
from trayar.models import ClientConfig, RequestConfig
from trayar.output import OutputFormat, OutputManager, reset_output, set_output


BASE_URL = "https://api.test.trayar.dental/v1"


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale.
    Resetting forces a fresh manager to be created on next use.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME, XDG_CACHE_HOME, and XDG_DATA_HOME to
    subdirectories of tmp_path so that tests never touch real user
    config. Clears all TRAYAR_* environment variables and changes
    the working directory to tmp_path.
    """
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.setattr("trayar.config._is_xdg_platform", lambda: True)

    for var in ["TRAYAR_API_URL", "TRAYAR_TIMEOUT", "TRAYAR_MAX_RETRIES"]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a quiet PLAIN-format output manager for the test."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# Client fixtures
# ---------------------------------------------------------------------------


class SleepRecorder:
    """Stand-in for :func:`asyncio.sleep` that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def sleeps() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def store() -> MemoryTokenStore:
    return MemoryTokenStore()


@pytest.fixture
def make_client(
    store: MemoryTokenStore, sleeps: SleepRecorder
) -> Callable[..., ApiClient]:
    """Factory for an :class:`ApiClient` wired to a mock transport handler.

    The client uses the shared ``store`` and ``sleeps`` fixtures, so tests
    can inspect stored tokens and retry delays afterwards.
    """

    def _make(
        handler: Callable[[httpx.Request], Any],
        config: ClientConfig | None = None,
        **kwargs: Any,
    ) -> ApiClient:
        return ApiClient(
            config or ClientConfig(base_url=BASE_URL, request=RequestConfig()),
            store=kwargs.pop("store", store),
            transport=httpx.MockTransport(handler),
            sleep=kwargs.pop("sleep", sleeps),
            **kwargs,
        )

    return _make


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
