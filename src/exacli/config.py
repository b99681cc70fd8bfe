"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for exacli:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD
  (``~/.config/exa/``), ``~/.exa/`` on macOS and Windows. The rotation
  state file, the response cache, and the request log all live under it.
  See :func:`get_config_dir`, :func:`get_cache_dir`, :func:`get_state_path`.
* **Global config** -- A single :class:`~exacli.models.GlobalConfig`
  JSON file storing defaults (cache TTL, request timeouts, rotation policy).
* **Precedence resolution** -- :func:`resolve_config` merges CLI flags,
  environment variables, and the config file into the effective config.
* **API keys** -- :func:`load_api_keys` reads the ordered key list from
  ``EXA_API_KEYS`` with a fallback to ``EXA_API_KEY``.

All file writes use an atomic temp-file-then-rename strategy
(:func:`_atomic_write`) so that concurrent invocations never observe a
partially written file.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Optional

from exacli.exceptions import ConfigError
from exacli.models import GlobalConfig

_APP_NAME = "exa"
_CONFIG_FILENAME = "config.json"
_STATE_FILENAME = "state.json"
_LOG_FILENAME = "requests.log"

KEYS_ENV_VAR = "EXA_API_KEYS"
KEY_ENV_VAR = "EXA_API_KEY"

_TRUTHY = ("1", "true", "yes", "on")


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

    On Linux/BSD: ``$XDG_CONFIG_HOME/exa/`` (default ``~/.config/exa/``).
    On macOS/Windows: ``~/.exa/``.

    Returns:
        Absolute path to the configuration directory (guaranteed to exist).
    """
    if _is_xdg_platform():
        base = _xdg_base("XDG_CONFIG_HOME", (".config",))
        path = base / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_cache_dir() -> Path:
    """Return the response cache directory (``<config_dir>/cache/``), creating it if necessary.

    Cached responses can be safely deleted at any time.
    """
    path = get_config_dir() / "cache"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/exa/`` (default ``~/.local/share/exa/``).
    On macOS/Windows: ``~/.exa/logs/``.
    """
    if _is_xdg_platform():
        base = _xdg_base("XDG_DATA_HOME", (".local", "share"))
        path = base / _APP_NAME
    else:
        path = _fallback_base_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_state_path() -> Path:
    """Path to the rotation state file (``<config_dir>/state.json``)."""
    return get_config_dir() / _STATE_FILENAME


def get_log_path() -> Path:
    """Path to the request log (``<config_dir>/requests.log``)."""
    return get_config_dir() / _LOG_FILENAME


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is guaranteed to be an atomic rename on POSIX systems.
    On success the temp file is renamed over *path*; on any failure the temp
    file is cleaned up.
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
        fd = None  # prevent double-close in finally
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


# --- Global config ---


def _global_config_path() -> Path:
    """Path to the global config file."""
    return get_config_dir() / _CONFIG_FILENAME


def load_global_config() -> GlobalConfig:
    """Load the global configuration from the config directory.

    Returns:
        The deserialised :class:`~exacli.models.GlobalConfig`. If the
        file does not exist, a default instance is returned.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            Pydantic validation.
    """
    path = _global_config_path()
    if not path.is_file():
        return GlobalConfig()
    try:
        text = path.read_text(encoding="utf-8")
        data = json.loads(text)
        return GlobalConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    """Persist the global configuration atomically to disk.

    Args:
        config: The configuration to save.
    """
    data = config.model_dump(mode="json")
    _atomic_write(_global_config_path(), json.dumps(data, indent=2) + "\n")


# --- Precedence resolution ---


def _env_flag(name: str) -> Optional[bool]:
    value = os.environ.get(name)
    if value is None or value == "":
        return None
    return value.strip().lower() in _TRUTHY


def resolve_config(
    cli_no_cache: bool = False,
    cli_cache_ttl: Optional[int] = None,
) -> GlobalConfig:
    """Resolve config with the full precedence chain.

    Precedence (high to low):
        1. CLI flags (``--no-cache``, ``--cache-ttl``)
        2. Environment variables (``EXA_BASE_URL``, ``EXA_CACHE_TTL``,
           ``EXA_NO_CACHE``, ``EXA_LOG_REQUESTS``)
        3. User config (``~/.config/exa/config.json``)
        4. Defaults

    Returns:
        The effective :class:`~exacli.models.GlobalConfig`.

    Raises:
        ConfigError: If the config file is invalid or ``EXA_CACHE_TTL`` is
            not an integer.
    """
    # 4 + 3. Defaults overlaid with the config file
    config = load_global_config()

    # 2. Environment
    env_base_url = os.environ.get("EXA_BASE_URL")
    if env_base_url:
        config.request.base_url = env_base_url

    env_ttl = os.environ.get("EXA_CACHE_TTL")
    if env_ttl:
        try:
            config.cache.ttl_minutes = int(env_ttl)
        except ValueError as exc:
            raise ConfigError(f"EXA_CACHE_TTL must be an integer, got: {env_ttl}") from exc

    if _env_flag("EXA_NO_CACHE"):
        config.cache.enabled = False

    log_flag = _env_flag("EXA_LOG_REQUESTS")
    if log_flag is not None:
        config.log_requests = log_flag

    # 1. CLI flags
    if cli_no_cache:
        config.cache.enabled = False
    if cli_cache_ttl is not None:
        config.cache.ttl_minutes = cli_cache_ttl

    return config


# --- API keys ---


def load_api_keys() -> list[str]:
    """Return the ordered list of configured API keys.

    ``EXA_API_KEYS`` (comma-separated) wins when it yields at least one
    non-blank key; otherwise a non-blank ``EXA_API_KEY`` gives a
    single-key pool. Whitespace around keys is stripped.

    Returns:
        The key list, empty when nothing is configured.
    """
    multi = os.environ.get(KEYS_ENV_VAR, "")
    keys = [part.strip() for part in multi.split(",") if part.strip()]
    if keys:
        return keys

    single = os.environ.get(KEY_ENV_VAR, "").strip()
    if single:
        return [single]
    return []
