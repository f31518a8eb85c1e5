"""Config commands -- view and modify the client configuration.

Provides the ``trayar config`` sub-command group for reading, updating, and
resetting the persisted :class:`~trayar.models.ClientConfig`. Settings are
stored in the trayar config directory and control the API base URL, request
timeout, retry behaviour, and the response cache.
"""

from __future__ import annotations

from typing import Any

import typer

from trayar.exit_codes import EXIT_INVALID_USAGE
from trayar.output import error, format_response, info, success


config_app = typer.Typer(no_args_is_help=True)


@config_app.command("show")
def config_show(
    effective: bool = typer.Option(
        False, "--effective", help="Apply environment overrides before showing."
    ),
) -> None:
    """Show the current configuration.

    Example::

        trayar config show
        trayar --json config show --effective
    """
    from trayar.config import config_path, load_config, resolve_config

    config = resolve_config() if effective else load_config()
    info(f"Config file: {config_path()}")
    format_response(config.model_dump(mode="json"))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(help="Config key (dot notation, e.g. 'request.timeout')."),
    value: str = typer.Argument(help="Value to set."),
) -> None:
    """Set a configuration value.

    The value is coerced to the type of the existing field and the result
    is validated before it is saved.

    Example::

        trayar config set base_url https://staging.trayar.dental/v1
        trayar config set request.max_retries 5
        trayar config set cache.enabled false
    """
    from trayar.config import load_config, save_config
    from trayar.models import ClientConfig

    config = load_config()
    data = config.model_dump(mode="json")

    keys = key.split(".")
    target = data
    for k in keys[:-1]:
        if k not in target or not isinstance(target[k], dict):
            error(f"Invalid config key: {key}")
            raise typer.Exit(code=EXIT_INVALID_USAGE)
        target = target[k]

    final_key = keys[-1]
    if final_key not in target or isinstance(target[final_key], dict):
        error(f"Unknown config key: {key}")
        raise typer.Exit(code=EXIT_INVALID_USAGE)

    coerced = _coerce(key, target[final_key], value)
    target[final_key] = coerced

    try:
        new_config = ClientConfig.model_validate(data)
    except Exception as exc:
        error(f"Validation error: {exc}")
        raise typer.Exit(code=EXIT_INVALID_USAGE) from None

    save_config(new_config)
    success(f"Set {key} = {coerced}")


@config_app.command("reset")
def config_reset(
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation."),
) -> None:
    """Reset the configuration to defaults."""
    from trayar.config import save_config
    from trayar.models import ClientConfig

    if not force:
        confirmed = typer.confirm("Reset all config to defaults?")
        if not confirmed:
            info("Cancelled.")
            raise typer.Exit()

    save_config(ClientConfig())
    success("Configuration reset to defaults.")


def _coerce(key: str, current: Any, value: str) -> Any:
    if isinstance(current, bool):
        return value.lower() in ("true", "1", "yes")
    if isinstance(current, (int, float)):
        for number in (int, float):
            try:
                return number(value)
            except ValueError:
                continue
        error(f"Expected a number for {key}, got: {value}")
        raise typer.Exit(code=EXIT_INVALID_USAGE)
    return value
