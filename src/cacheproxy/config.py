"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for cacheproxy:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.cacheproxy/`` on macOS and Windows.  See :func:`get_config_dir` and
  :func:`get_data_dir`.
* **Settings file** -- a single :class:`~cacheproxy.models.Settings` JSON
  file storing defaults (cache TTL, request timeout, server binding).
* **Precedence resolution** -- :func:`resolve_settings` merges CLI flags,
  environment variables, and the settings file into the effective
  configuration.

All file writes use an atomic temp-file-then-rename strategy
(:func:`_atomic_write`) to prevent data loss on crash or power failure.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Callable, Optional, TypeVar

from pydantic import ValidationError

from cacheproxy.exceptions import ConfigError
from cacheproxy.models import Settings

_APP_NAME = "cacheproxy"
_CONFIG_FILENAME = "config.json"

ENV_HOST = "CACHEPROXY_HOST"
ENV_PORT = "CACHEPROXY_PORT"
ENV_PORT_FALLBACK = "PORT"
ENV_CACHE_TTL = "CACHEPROXY_CACHE_TTL"
ENV_TIMEOUT = "CACHEPROXY_TIMEOUT"
ENV_API_URL = "API_URL"

_T = TypeVar("_T")


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

    On Linux/BSD: ``$XDG_CONFIG_HOME/cacheproxy/`` (default ``~/.config/cacheproxy/``).
    On macOS/Windows: ``~/.cacheproxy/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/cacheproxy/`` (default ``~/.local/share/cacheproxy/``).
    On macOS/Windows: ``~/.cacheproxy/logs/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems.  On any failure the
    temp file is cleaned up.
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
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Settings file ---


def settings_path() -> Path:
    """Path to the settings file."""
    return get_config_dir() / _CONFIG_FILENAME


def load_settings() -> Settings:
    """Load settings from the config directory.

    Returns:
        The deserialised :class:`~cacheproxy.models.Settings`, or a default
        instance if the file does not exist.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            Pydantic validation.
    """
    path = settings_path()
    if not path.is_file():
        return Settings()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return Settings.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid config at {path}: {exc}") from exc


def save_settings(settings: Settings) -> None:
    """Persist *settings* atomically to disk."""
    data = settings.model_dump(mode="json")
    _atomic_write(settings_path(), json.dumps(data, indent=2) + "\n")


# --- Precedence resolution ---


def _env_value(name: str, convert: Callable[[str], _T]) -> Optional[_T]:
    raw = os.environ.get(name, "")
    if not raw:
        return None
    try:
        return convert(raw)
    except ValueError as exc:
        raise ConfigError(f"Invalid value for {name}: {raw!r}") from exc


def _parse_ttl(raw: str) -> Optional[float]:
    """``inf``/``never`` mean no expiry (stored as ``None``)."""
    if raw.strip().lower() in ("inf", "infinity", "never"):
        return None
    return float(raw)


def resolve_settings(
    cli_host: Optional[str] = None,
    cli_port: Optional[int] = None,
    cli_ttl: Optional[str] = None,
    cli_api_url: Optional[str] = None,
    cli_timeout: Optional[float] = None,
) -> Settings:
    """Resolve settings with the full precedence chain.

    Precedence (high to low):
        1. CLI flags
        2. Environment variables (``CACHEPROXY_HOST``, ``CACHEPROXY_PORT``
           or ``PORT``, ``CACHEPROXY_CACHE_TTL``, ``CACHEPROXY_TIMEOUT``,
           ``API_URL``)
        3. Settings file (``~/.config/cacheproxy/config.json``)
        4. Defaults

    Returns:
        The effective :class:`~cacheproxy.models.Settings`.

    Raises:
        ConfigError: If an environment variable or flag holds an invalid value.
    """
    settings = load_settings()
    data = settings.model_dump()

    env_port = _env_value(ENV_PORT, int)
    if env_port is None:
        env_port = _env_value(ENV_PORT_FALLBACK, int)

    overrides = [
        (("server", "host"), os.environ.get(ENV_HOST) or None),
        (("server", "port"), env_port),
        (("server", "api_url"), os.environ.get(ENV_API_URL) or None),
        (("request", "timeout"), _env_value(ENV_TIMEOUT, float)),
        (("server", "host"), cli_host),
        (("server", "port"), cli_port),
        (("server", "api_url"), cli_api_url),
        (("request", "timeout"), cli_timeout),
    ]
    for (section, field), value in overrides:
        if value is not None:
            data[section][field] = value

    # A TTL of "inf" resolves to None, so it cannot share the loop above.
    env_ttl = os.environ.get(ENV_CACHE_TTL, "")
    for source, raw in ((ENV_CACHE_TTL, env_ttl), ("--ttl", cli_ttl or "")):
        if raw:
            try:
                data["cache"]["ttl_seconds"] = _parse_ttl(raw)
            except ValueError as exc:
                raise ConfigError(f"Invalid value for {source}: {raw!r}") from exc

    try:
        return Settings.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc
