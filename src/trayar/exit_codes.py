"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~trayar.exceptions.TrayarError` subclass. Shell
wrappers can inspect the exit code of ``trayar`` to tell an expired session
apart from an unreachable server without parsing stderr.

Example::

    $ trayar auth profile
    $ echo $?
    3   # EXIT_AUTH_FAILURE -- the session could not be refreshed
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or the API rejected the request (4xx)."""

EXIT_AUTH_FAILURE = 3
"""Authentication failed or the session could not be refreshed."""

EXIT_NOT_FOUND = 4
"""The requested resource was not found (HTTP 404)."""

EXIT_SERVER_ERROR = 5
"""The remote API returned an HTTP 5xx server error."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""
