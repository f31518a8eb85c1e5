"""trayar -- authenticated HTTP client for the Trayar coaching API.

This package talks to the Trayar dental-communication coaching backend. It
wraps :mod:`httpx` with bearer-token injection, single-flight token refresh,
retry with linear backoff, and a bounded in-memory cache for GET requests.
Every call returns an :class:`~trayar.models.ApiResponse` envelope instead of
raising.

Typical usage::

    from trayar import ApiClient
    from trayar.auth import FileTokenStore

    async with ApiClient.from_config(store=FileTokenStore()) as client:
        health = await client.health_check()

Modules:
    app: Typer application and ``trayar`` console entry point.
    models: Pydantic models shared across the package.
    config: XDG-aware configuration loading and precedence resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    hooks: Request/response hook chain.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.1.0"

from trayar.client import ApiClient  # noqa: E402
from trayar.models import ApiErrorInfo, ApiResponse, RequestDescriptor  # noqa: E402

__all__ = ["ApiClient", "ApiErrorInfo", "ApiResponse", "RequestDescriptor", "__version__"]
