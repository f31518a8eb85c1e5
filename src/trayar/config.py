"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for trayar:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.trayar/`` on macOS and Windows. See :func:`get_config_dir` and
  :func:`get_data_dir`.
* **Client config** -- A single :class:`~trayar.models.ClientConfig` JSON
  file storing the base URL, request/retry settings and cache settings.
* **Precedence resolution** -- :func:`resolve_config` merges CLI flags,
  environment variables and the config file into the effective
  configuration.

All file writes use an atomic temp-file-then-rename strategy
(:func:`atomic_write`) to prevent data loss on crash or power failure.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from trayar.exceptions import ConfigError
from trayar.models import ClientConfig

_APP_NAME = "trayar"
_CONFIG_FILENAME = "config.json"

ENV_BASE_URL = "TRAYAR_API_URL"
ENV_TIMEOUT = "TRAYAR_TIMEOUT"
ENV_MAX_RETRIES = "TRAYAR_MAX_RETRIES"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Fallback base directory for non-XDG platforms (macOS, Windows)."""
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/trayar/`` (default ``~/.config/trayar/``).
    On macOS/Windows: ``~/.trayar/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (stored tokens, crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/trayar/`` (default ``~/.local/share/trayar/``).
    On macOS/Windows: ``~/.trayar/data/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "data"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def atomic_write(path: Path, data: str, mode: Optional[int] = None) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems. When *mode* is given
    the permissions are applied to the temp file before any content is
    written, so secrets are never readable by others, even momentarily.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        if mode is not None:
            os.chmod(tmp_path, mode)
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None  # prevent double-close below
        os.replace(tmp_path, path)
    except BaseException:
        # Clean up the temp file on any error (including KeyboardInterrupt).
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Client config ---


def config_path() -> Path:
    """Path to the client config file."""
    return get_config_dir() / _CONFIG_FILENAME


def load_config() -> ClientConfig:
    """Load the client configuration from the config directory.

    Returns:
        The deserialised :class:`~trayar.models.ClientConfig`. If the file
        does not exist, a default instance is returned.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            Pydantic validation.
    """
    path = config_path()
    if not path.is_file():
        return ClientConfig()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return ClientConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid config at {path}: {exc}") from exc


def save_config(config: ClientConfig) -> None:
    """Persist the client configuration atomically to disk."""
    data = config.model_dump(mode="json")
    atomic_write(config_path(), json.dumps(data, indent=2) + "\n")


# --- Precedence resolution ---


def resolve_config(cli_base_url: Optional[str] = None) -> ClientConfig:
    """Resolve the effective configuration.

    Precedence (high to low):
        1. CLI flags (``cli_base_url``)
        2. Environment variables (``TRAYAR_API_URL``, ``TRAYAR_TIMEOUT``,
           ``TRAYAR_MAX_RETRIES``)
        3. User config (``~/.config/trayar/config.json``)
        4. Defaults

    Raises:
        ConfigError: If the config file or an environment override is invalid.
    """
    config = load_config()
    data = config.model_dump()

    env_base_url = os.environ.get(ENV_BASE_URL)
    if env_base_url:
        data["base_url"] = env_base_url

    env_timeout = os.environ.get(ENV_TIMEOUT)
    if env_timeout:
        data["request"]["timeout"] = env_timeout

    env_retries = os.environ.get(ENV_MAX_RETRIES)
    if env_retries:
        data["request"]["max_retries"] = env_retries

    if cli_base_url is not None:
        data["base_url"] = cli_base_url

    try:
        return ClientConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration override: {exc}") from exc
