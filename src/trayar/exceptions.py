"""Exception hierarchy for trayar.

All exceptions inherit from :class:`TrayarError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`trayar.exit_codes`.

The request pipeline itself never raises these across its public boundary --
every call returns an :class:`~trayar.models.ApiResponse`. The exceptions are
used internally (token refresh, configuration loading) and by callers that
prefer exceptions, via :func:`error_for_envelope` or
:meth:`~trayar.models.ApiResponse.raise_for_error`. The ``trayar`` CLI catches
``TrayarError`` and exits with the matching code.

Subclass hierarchy::

    TrayarError (exit 1)
    +-- InvalidUsageError   (exit 2)
    +-- AuthError           (exit 3)
    +-- NotFoundError       (exit 4)
    +-- ServerError         (exit 5)
    +-- ConnectionError_    (exit 6)
    +-- ConfigError         (exit 1)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from trayar.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    EXIT_SERVER_ERROR,
)

if TYPE_CHECKING:
    from trayar.models import ApiErrorInfo


class TrayarError(Exception):
    """Base exception for all trayar errors.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
        info: The normalised error this exception was built from, when it
            originates from an API response envelope.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(
        self,
        message: str,
        exit_code: int | None = None,
        info: ApiErrorInfo | None = None,
    ):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code
        self.info = info


class InvalidUsageError(TrayarError):
    """Raised for invalid CLI arguments or requests rejected by the API (4xx)."""

    exit_code = EXIT_INVALID_USAGE


class AuthError(TrayarError):
    """Raised when authentication fails or the session cannot be refreshed."""

    exit_code = EXIT_AUTH_FAILURE


class NotFoundError(TrayarError):
    """Raised when the API returns HTTP 404 (resource not found)."""

    exit_code = EXIT_NOT_FOUND


class ServerError(TrayarError):
    """Raised when the API returns an HTTP 5xx server error."""

    exit_code = EXIT_SERVER_ERROR


class ConnectionError_(TrayarError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused).

    Named with a trailing underscore to avoid shadowing the built-in
    ``ConnectionError``.
    """

    exit_code = EXIT_CONNECTION_ERROR


class ConfigError(TrayarError):
    """Raised for configuration problems (invalid JSON, bad values, unreadable files)."""

    exit_code = EXIT_GENERIC_FAILURE


def error_for_envelope(info: ApiErrorInfo) -> TrayarError:
    """Map a normalised API error to the matching :class:`TrayarError` subclass.

    Args:
        info: The ``error`` member of a failed
            :class:`~trayar.models.ApiResponse`.

    Returns:
        An exception instance (not raised) whose type reflects the error
        category and whose ``info`` attribute carries *info*.
    """
    from trayar.models import ErrorCode

    message = f"{info.code}: {info.message}"
    if info.status_code:
        message = f"HTTP {info.status_code} {message}"

    if info.code == ErrorCode.AUTH_ERROR or info.status_code in (401, 403):
        return AuthError(message, info=info)
    if info.status_code == 0:
        if info.code in (ErrorCode.NETWORK_ERROR, ErrorCode.TIMEOUT_ERROR):
            return ConnectionError_(message, info=info)
        return TrayarError(message, info=info)
    if info.status_code == 404:
        return NotFoundError(message, info=info)
    if info.status_code >= 500:
        return ServerError(message, info=info)
    return InvalidUsageError(message, info=info)
