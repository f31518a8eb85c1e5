"""Request hooks: context dataclass, hook base class, and runner.

Hooks let applications observe or adjust traffic without subclassing the
client:

* :class:`HookContext` -- a mutable dataclass that carries request and
  response state through the hook chain. Fields are populated progressively
  as an attempt advances.
* :class:`RequestHook` -- base class with no-op ``on_pre_request``,
  ``on_post_response`` and ``on_error`` methods; override what you need.
* :class:`HookRunner` -- runs the hooks in registration order.
* :class:`TimingHook` -- records how long each attempt took and reports it
  on the debug channel.

Hooks run once per *attempt*, so a request that is retried twice passes
through ``on_pre_request`` three times.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Optional

from trayar.output import get_output

logger = logging.getLogger(__name__)


@dataclass
class HookContext:
    """Mutable context object threaded through the hook chain.

    * **Pre-request stage**: ``method``, ``url``, ``headers``, ``params``,
      ``attempt`` are set. Hooks may change ``headers`` and ``params``.
    * **Post-response stage**: ``status_code`` and ``response_body`` are
      set.
    * **Error stage**: ``error`` holds the transport exception, or ``None``
      when the server answered with an error status.

    Attributes:
        method: HTTP method (e.g. ``"GET"``).
        url: The request path relative to the client's base URL.
        headers: Request headers (mutable).
        params: Query parameters (mutable).
        attempt: 1-based attempt number.
        status_code: HTTP response status code, ``0`` if none was received.
        response_body: Parsed response body.
        error: Transport exception, if one occurred.
        started_at: Monotonic timestamp taken just before dispatch.
        extras: Scratch space for hooks to share state between stages.
    """

    method: str = ""
    url: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    params: dict[str, Any] = field(default_factory=dict)
    attempt: int = 1
    status_code: int = 0
    response_body: Any = None
    error: Optional[Exception] = None
    started_at: float = 0.0
    extras: dict[str, Any] = field(default_factory=dict)


class RequestHook:
    """Base class for request hooks. All methods are no-ops by default."""

    def on_pre_request(self, ctx: HookContext) -> None:
        """Called before each attempt is dispatched."""

    def on_post_response(self, ctx: HookContext) -> None:
        """Called after each attempt that received a response (any status)."""

    def on_error(self, ctx: HookContext) -> None:
        """Called after each attempt that failed (transport error or status >= 400)."""


class HookRunner:
    """Executes hooks in registration order.

    Exceptions raised from ``on_pre_request`` and ``on_post_response``
    propagate to the pipeline, which reports them as an ``UNKNOWN_ERROR``
    envelope. Exceptions from ``on_error`` are logged and dropped so that a
    faulty hook cannot mask the original failure.
    """

    def __init__(self, hooks: Optional[list[RequestHook]] = None) -> None:
        self._hooks = list(hooks or [])

    def add(self, hook: RequestHook) -> None:
        self._hooks.append(hook)

    def __len__(self) -> int:
        return len(self._hooks)

    def run_pre_request(self, ctx: HookContext) -> HookContext:
        for hook in self._hooks:
            hook.on_pre_request(ctx)
        return ctx

    def run_post_response(self, ctx: HookContext) -> HookContext:
        for hook in self._hooks:
            hook.on_post_response(ctx)
        return ctx

    def run_error(self, ctx: HookContext) -> None:
        for hook in self._hooks:
            try:
                hook.on_error(ctx)
            except Exception:
                logger.exception("Error hook %r raised", hook)


class TimingHook(RequestHook):
    """Report the duration of every attempt.

    Durations (in milliseconds) are appended to :attr:`durations` as
    ``(method, url, status_code, elapsed_ms)`` tuples and echoed through the
    debug channel, which is visible with ``trayar --verbose``.
    """

    def __init__(self) -> None:
        self.durations: list[tuple[str, str, int, float]] = []

    def on_post_response(self, ctx: HookContext) -> None:
        self._record(ctx)

    def on_error(self, ctx: HookContext) -> None:
        # Responses with an error status were already recorded post-response.
        if ctx.error is not None:
            self._record(ctx)

    def _record(self, ctx: HookContext) -> None:
        elapsed_ms = (time.monotonic() - ctx.started_at) * 1000 if ctx.started_at else 0.0
        self.durations.append((ctx.method, ctx.url, ctx.status_code, elapsed_ms))
        get_output().debug(f"{ctx.method} {ctx.url} -> {ctx.status_code} in {elapsed_ms:.0f}ms")
