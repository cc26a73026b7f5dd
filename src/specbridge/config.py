"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for specbridge:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.specbridge/`` on macOS and Windows. See :func:`get_config_dir`,
  :func:`get_cache_dir` and :func:`get_data_dir`.
* **Global config** -- A single :class:`~specbridge.models.GlobalConfig`
  JSON file storing defaults (schema format, cache settings, import
  defaults, fetch timeout).
* **Project config** -- ``./specbridge.json`` deserialised into a
  :class:`~specbridge.models.ProjectConfig` (output directory, directory
  conventions, prefix, owners).
* **Precedence resolution** -- :func:`resolve_config` merges CLI flags,
  environment variables, project-local config, and global config into a
  :class:`~specbridge.models.ResolvedConfig`.

All file writes use an atomic temp-file-then-rename strategy
(:func:`_atomic_write`) to prevent data loss on crash or power failure.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from specbridge.exceptions import ConfigError
from specbridge.models import (
    GlobalConfig,
    ImportDefaults,
    ProjectConfig,
    ResolvedConfig,
    SchemaFormat,
)

_APP_NAME = "specbridge"
_CONFIG_FILENAME = "config.json"
_PROJECT_CONFIG_FILENAME = "specbridge.json"

DEFAULT_OUTPUT_DIR = "./src/contracts"

ENV_SCHEMA_FORMAT = "SPECBRIDGE_SCHEMA_FORMAT"
ENV_OUTPUT_DIR = "SPECBRIDGE_OUTPUT_DIR"
ENV_TIMEOUT = "SPECBRIDGE_TIMEOUT"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
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

    On Linux/BSD: ``$XDG_CONFIG_HOME/specbridge/`` (default
    ``~/.config/specbridge/``). On macOS/Windows: ``~/.specbridge/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_cache_dir() -> Path:
    """Return the cache directory, creating it if necessary.

    Used to store fetched OpenAPI documents. Cached data can be safely
    deleted at any time.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CACHE_HOME", (".cache",)) / _APP_NAME
    else:
        path = _fallback_base_dir() / "cache"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary."""
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
    ``os.replace`` is an atomic rename on POSIX systems. On any failure the
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
        fd = None  # prevent double-close in finally
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


def write_text_atomic(path: str | Path, data: str) -> None:
    """Public wrapper around :func:`_atomic_write` used for generated files."""
    _atomic_write(Path(path), data)


# --- Global config ---


def _global_config_path() -> Path:
    return get_config_dir() / _CONFIG_FILENAME


def load_global_config() -> GlobalConfig:
    """Load the global configuration from the XDG config directory.

    Returns:
        The deserialised :class:`~specbridge.models.GlobalConfig`. If the
        file does not exist, a default instance is returned.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            Pydantic validation.
    """
    path = _global_config_path()
    if not path.is_file():
        return GlobalConfig()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return GlobalConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid global config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    """Persist the global configuration atomically to disk."""
    data = config.model_dump(mode="json")
    _atomic_write(_global_config_path(), json.dumps(data, indent=2) + "\n")


def set_global_config_value(key: str, value: str) -> GlobalConfig:
    """Set a dotted key (``cache.enabled``, ``request.timeout``) and save.

    The value is parsed as JSON when possible so that ``true`` and ``30``
    keep their types; otherwise it is stored as a string.

    Raises:
        ConfigError: If the key does not exist or the value fails validation.
    """
    data: dict[str, Any] = load_global_config().model_dump(mode="json")
    parts = key.split(".")
    target = data
    for part in parts[:-1]:
        if not isinstance(target.get(part), dict):
            raise ConfigError(f"Unknown config key: {key}")
        target = target[part]
    if parts[-1] not in target:
        raise ConfigError(f"Unknown config key: {key}")

    try:
        target[parts[-1]] = json.loads(value)
    except json.JSONDecodeError:
        target[parts[-1]] = value

    try:
        config = GlobalConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid value for {key}: {exc}") from exc
    save_global_config(config)
    return config


# --- Project-local config ---


def project_config_path(directory: Optional[Path] = None) -> Path:
    return (directory or Path.cwd()) / _PROJECT_CONFIG_FILENAME


def load_project_config(directory: Optional[Path] = None) -> Optional[ProjectConfig]:
    """Load project-local configuration from ``./specbridge.json``.

    Project-local config sits between global config and environment
    variables in the precedence chain.

    Returns:
        The parsed :class:`~specbridge.models.ProjectConfig`, or ``None`` if
        the file does not exist.

    Raises:
        ConfigError: If the file exists but is invalid.
    """
    path = project_config_path(directory)
    if not path.is_file():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return ProjectConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid project config at {path}: {exc}") from exc


def save_project_config(config: ProjectConfig, directory: Optional[Path] = None) -> Path:
    path = project_config_path(directory)
    data = config.model_dump(mode="json", exclude_none=True)
    _atomic_write(path, json.dumps(data, indent=2) + "\n")
    return path


# --- Precedence resolution ---


def resolve_config(
    cli_schema_format: Optional[str] = None,
    cli_output_dir: Optional[str] = None,
    cli_timeout: Optional[float] = None,
) -> ResolvedConfig:
    """Resolve config with full precedence chain.

    Precedence (high to low):
        1. CLI flags
        2. Environment variables (``SPECBRIDGE_SCHEMA_FORMAT``,
           ``SPECBRIDGE_OUTPUT_DIR``, ``SPECBRIDGE_TIMEOUT``)
        3. Project config (``./specbridge.json``)
        4. User config (``~/.config/specbridge/config.json``)
        5. Defaults

    Raises:
        ConfigError: If any layer holds an invalid value.
    """
    global_cfg = load_global_config()
    project = load_project_config()

    schema_format: SchemaFormat = global_cfg.schema_format
    output_dir = DEFAULT_OUTPUT_DIR
    timeout = global_cfg.request.timeout
    defaults = global_cfg.import_defaults.model_copy()

    # 3. Project-local config
    if project is not None:
        if project.schema_format is not None:
            schema_format = project.schema_format
        if project.output_dir is not None:
            output_dir = project.output_dir
        overrides = {
            field: getattr(project, field)
            for field in ("prefix", "default_owners", "default_stability", "default_auth")
            if getattr(project, field) is not None
        }
        defaults = defaults.model_copy(update=overrides)

    # 2. Environment variables
    env_format = os.environ.get(ENV_SCHEMA_FORMAT)
    if env_format:
        schema_format = _parse_format(env_format, ENV_SCHEMA_FORMAT)
    env_output = os.environ.get(ENV_OUTPUT_DIR)
    if env_output:
        output_dir = env_output
    env_timeout = os.environ.get(ENV_TIMEOUT)
    if env_timeout:
        try:
            timeout = float(env_timeout)
        except ValueError as exc:
            raise ConfigError(f"{ENV_TIMEOUT} must be a number, got {env_timeout!r}") from exc

    # 1. CLI flags
    if cli_schema_format is not None:
        schema_format = _parse_format(cli_schema_format, "--format")
    if cli_output_dir is not None:
        output_dir = cli_output_dir
    if cli_timeout is not None:
        timeout = cli_timeout

    return ResolvedConfig(
        schema_format=schema_format,
        output_dir=output_dir,
        conventions=project.conventions if project is not None else ProjectConfig().conventions,
        timeout=timeout,
        cache=global_cfg.cache,
        import_defaults=ImportDefaults.model_validate(defaults.model_dump()),
    )


def _parse_format(value: str, origin: str) -> SchemaFormat:
    try:
        return SchemaFormat(value)
    except ValueError as exc:
        choices = ", ".join(f.value for f in SchemaFormat)
        raise ConfigError(f"Unknown schema format {value!r} from {origin} (choose: {choices})") from exc
