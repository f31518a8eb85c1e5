"""Helpers shared by the CLI commands.

Commands are synchronous Typer callbacks; the client is asynchronous. Each
command builds one :class:`~trayar.client.ApiClient` from the resolved
configuration, runs its coroutine with :func:`asyncio.run`, and reports the
resulting envelope through :func:`emit`.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Optional, TypeVar

import typer

from trayar.models import ApiResponse
from trayar.output import debug, error, format_response, suggest

T = TypeVar("T")


def build_client(ctx: typer.Context) -> Any:
    """Create an :class:`~trayar.client.ApiClient` for the current invocation.

    Honours ``--base-url`` and ``--verbose`` from the root callback. A
    ``transport`` entry in ``ctx.obj`` is passed through to :mod:`httpx`.
    """
    from trayar.auth.credential_store import FileTokenStore
    from trayar.client import ApiClient
    from trayar.config import resolve_config
    from trayar.hooks import TimingHook

    obj = ctx.obj or {}
    config = resolve_config(cli_base_url=obj.get("base_url"))
    hooks = [TimingHook()] if obj.get("verbose") else []
    debug(f"Using API at {config.base_url}")
    return ApiClient(
        config,
        store=FileTokenStore(),
        hooks=hooks,
        on_auth_failure=_session_expired,
        transport=obj.get("transport"),
    )


def run_with_client(ctx: typer.Context, action: Callable[[Any], Awaitable[T]]) -> T:
    """Run *action* with a fresh client and close it afterwards."""

    async def _runner() -> T:
        async with build_client(ctx) as client:
            return await action(client)

    return asyncio.run(_runner())


def emit(resp: ApiResponse, data: Optional[Any] = None) -> None:
    """Print a successful envelope's data, or fail with the mapped exit code.

    Args:
        resp: The envelope to report.
        data: What to print on success instead of ``resp.data``.

    Raises:
        typer.Exit: With the exit code of the matching
            :class:`~trayar.exceptions.TrayarError` when *resp* failed.
    """
    from trayar.exceptions import error_for_envelope

    if resp.success:
        format_response(resp.data if data is None else data)
        return

    assert resp.error is not None
    exc = error_for_envelope(resp.error)
    error(str(exc))
    raise typer.Exit(code=exc.exit_code)


def parse_pairs(pairs: Optional[list[str]], option: str) -> dict[str, str]:
    """Parse repeated ``key=value`` options into a dict.

    Raises:
        typer.Exit: With code 2 when an item has no ``=``.
    """
    from trayar.exit_codes import EXIT_INVALID_USAGE

    result: dict[str, str] = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            error(f"Expected key=value for {option}, got: {pair}")
            raise typer.Exit(code=EXIT_INVALID_USAGE)
        result[key] = value
    return result


def _session_expired() -> None:
    error("Your session has expired.")
    suggest("Sign in again: trayar auth login")
