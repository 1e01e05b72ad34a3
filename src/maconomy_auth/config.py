"""Settings management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for maconomy_auth:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.maconomy-auth/`` on macOS and Windows. See :func:`get_config_dir`
  and :func:`get_data_dir`.
* **Settings** -- :func:`load_settings` merges CLI overrides, environment
  variables, an explicit config file, project-local config, and user config
  into one validated :class:`~maconomy_auth.models.AuthSettings`.
* **Atomic writes** -- :func:`atomic_write` is shared with the credential
  sink so a crash never leaves a half-written handoff file behind.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from maconomy_auth.exceptions import ConfigError
from maconomy_auth.models import AuthSettings

_APP_NAME = "maconomy-auth"
_CONFIG_FILENAME = "config.json"
_PROJECT_CONFIG_FILENAME = "maconomy-auth.json"
ENV_PREFIX = "MACONOMY_AUTH_"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


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

    On Linux/BSD: ``$XDG_CONFIG_HOME/maconomy-auth/`` (default
    ``~/.config/maconomy-auth/``). On macOS/Windows: ``~/.maconomy-auth/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = Path.home() / f".{_APP_NAME}"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/maconomy-auth/`` (default
    ``~/.local/share/maconomy-auth/``). On macOS/Windows:
    ``~/.maconomy-auth/logs/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = Path.home() / f".{_APP_NAME}" / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def atomic_write(path: Path, data: str, mode: Optional[int] = None) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems. When *mode* is
    given, permissions are applied before any content is written.

    Raises:
        OSError: If the directory cannot be created or the file written.
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


# --- Settings sources ---


def _read_json_config(path: Path) -> dict[str, Any]:
    """Load a JSON object from *path*.

    Raises:
        ConfigError: If the file is unreadable, not JSON, or not an object.
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Invalid config at {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid config at {path}: expected a JSON object")
    return data


def _env_overrides() -> dict[str, str]:
    """Collect ``MACONOMY_AUTH_<FIELD>`` variables for known settings fields."""
    overrides: dict[str, str] = {}
    for name in AuthSettings.model_fields:
        value = os.environ.get(f"{ENV_PREFIX}{name.upper()}")
        if value is not None and value != "":
            overrides[name] = value
    return overrides


def load_settings(
    config_file: Optional[Path] = None,
    overrides: Optional[dict[str, Any]] = None,
) -> AuthSettings:
    """Resolve settings with full precedence chain.

    Precedence (high to low):
        1. *overrides* (CLI flags; ``None`` values are ignored)
        2. Environment variables (``MACONOMY_AUTH_CLIENT_ID``, ...)
        3. *config_file* (``--config``)
        4. Project config (``./maconomy-auth.json``)
        5. User config (``~/.config/maconomy-auth/config.json``)
        6. Defaults

    Raises:
        ConfigError: If a config file is invalid, *config_file* does not
            exist, or the merged values fail validation.
    """
    merged: dict[str, Any] = {}

    user_config = get_config_dir() / _CONFIG_FILENAME
    if user_config.is_file():
        merged.update(_read_json_config(user_config))

    project_config = Path.cwd() / _PROJECT_CONFIG_FILENAME
    if project_config.is_file():
        merged.update(_read_json_config(project_config))

    if config_file is not None:
        if not config_file.is_file():
            raise ConfigError(f"Config file not found: {config_file}")
        merged.update(_read_json_config(config_file))

    merged.update(_env_overrides())

    if overrides:
        merged.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return AuthSettings.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(f"Invalid settings: {exc}") from exc
