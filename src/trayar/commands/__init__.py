"""Built-in CLI sub-commands for trayar.

This package groups the Typer sub-command modules that form the CLI's
top-level command tree:

* :mod:`~trayar.commands.api` -- ``health``, ``request`` and ``upload``.
* :mod:`~trayar.commands.auth` -- sign in, sign out, inspect the session.
* :mod:`~trayar.commands.config` -- view and modify the client configuration.

Each module either exports a :class:`typer.Typer` sub-application (for
multi-command groups like ``auth`` and ``config``) or plain callback
functions registered directly on the root app (for single commands like
``health``).
"""
