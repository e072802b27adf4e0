"""Where rtxspec keeps its settings, and how they are layered.

Directories follow the XDG base directory layout on Linux and the BSDs and
fall back to a single ``~/.rtxspec/`` elsewhere:

=========  ===============================  =====================
purpose    XDG                              fallback
=========  ===============================  =====================
config     ``$XDG_CONFIG_HOME/rtxspec``     ``~/.rtxspec``
cache      ``$XDG_CACHE_HOME/rtxspec``      ``~/.rtxspec/cache``
data       ``$XDG_DATA_HOME/rtxspec``       ``~/.rtxspec/data``
=========  ===============================  =====================

Settings come from, highest first: command-line flags, ``RTXSPEC_CATALOG`` /
``RTXSPEC_MODELS``, ``./rtxspec.json`` in the working directory, the user's
``config.json``, and the :class:`~rtxspec.models.GlobalConfig` defaults.
Nested sections (``output``, ``cache``) merge key by key, so a project file
can override ``cache.ttl_seconds`` alone.

The capability catalog is not a setting: it is a separate YAML or JSON file
whose path is a setting, read by :func:`load_catalog`.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError

from rtxspec.exceptions import ConfigError
from rtxspec.models import CapabilityCatalog, GlobalConfig

_APP_NAME = "rtxspec"
_CONFIG_FILENAME = "config.json"
PROJECT_CONFIG_FILENAME = "rtxspec.json"

ENV_CATALOG = "RTXSPEC_CATALOG"
ENV_MODELS = "RTXSPEC_MODELS"

# purpose -> (XDG variable, default under $HOME, sub-directory of the fallback)
_DIRECTORIES: dict[str, tuple[str, tuple[str, ...], Optional[str]]] = {
    "config": ("XDG_CONFIG_HOME", (".config",), None),
    "cache": ("XDG_CACHE_HOME", (".cache",), "cache"),
    "data": ("XDG_DATA_HOME", (".local", "share"), "data"),
}


def _is_xdg_platform() -> bool:
    system = platform.system()
    return system == "Linux" or system.endswith("BSD")


def _app_dir(purpose: str) -> Path:
    env_var, home_segments, fallback_sub = _DIRECTORIES[purpose]
    if _is_xdg_platform():
        base = os.environ.get(env_var) or str(Path.home().joinpath(*home_segments))
        path = Path(base) / _APP_NAME
    else:
        path = Path.home() / f".{_APP_NAME}"
        if fallback_sub:
            path = path / fallback_sub
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_config_dir() -> Path:
    """Directory holding ``config.json``; created on first use."""
    return _app_dir("config")


def get_cache_dir() -> Path:
    """Directory holding the artifact cache; safe to delete at any time."""
    return _app_dir("cache")


def get_data_dir() -> Path:
    """Directory holding crash logs."""
    return _app_dir("data")


def _atomic_write(path: Path, data: str) -> None:
    """Replace *path* with *data* so readers never see a half-written file.

    The temporary file is created beside *path*, which keeps ``os.replace``
    a same-filesystem rename, and is removed if anything fails.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    handle = tempfile.NamedTemporaryFile(
        "w",
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".tmp",
        delete=False,
        encoding="utf-8",
    )
    try:
        with handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(handle.name, path)
    except BaseException:
        Path(handle.name).unlink(missing_ok=True)
        raise


def _read_json_object(path: Path, label: str) -> Optional[dict[str, Any]]:
    if not path.is_file():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise ConfigError(f"Invalid {label} at {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"{label.capitalize()} at {path} must be a JSON object")
    return data


def load_global_config() -> GlobalConfig:
    """Read the user's ``config.json``; defaults when it does not exist.

    Raises:
        ConfigError: If the file is not valid JSON or does not validate.
    """
    path = get_config_dir() / _CONFIG_FILENAME
    data = _read_json_object(path, "global config")
    if data is None:
        return GlobalConfig()
    try:
        return GlobalConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid global config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    payload = json.dumps(config.model_dump(mode="json"), indent=2)
    _atomic_write(get_config_dir() / _CONFIG_FILENAME, payload + "\n")


def load_project_config() -> Optional[dict[str, Any]]:
    """Read ``./rtxspec.json``, the settings a spec repository pins for itself.

    Returns the raw mapping (validated when layered by :func:`resolve_config`)
    or ``None`` when the file is absent.
    """
    return _read_json_object(Path.cwd() / PROJECT_CONFIG_FILENAME, "project config")


def _overlay(config: GlobalConfig, layer: dict[str, Any], label: str) -> GlobalConfig:
    merged = config.model_dump()
    for key, value in layer.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = {**merged[key], **value}
        else:
            merged[key] = value
    try:
        return GlobalConfig.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(f"Invalid {label}: {exc}") from exc


def _environment_layer() -> dict[str, Any]:
    layer: dict[str, Any] = {}
    if os.environ.get(ENV_CATALOG):
        layer["catalog"] = os.environ[ENV_CATALOG]
    models = [m.strip() for m in os.environ.get(ENV_MODELS, "").split(",") if m.strip()]
    if models:
        layer["default_models"] = models
    return layer


def resolve_config(
    cli_catalog: Optional[str] = None,
    cli_models: Optional[list[str]] = None,
    cli_format: Optional[str] = None,
) -> GlobalConfig:
    """Build the effective configuration for one run.

    Raises:
        ConfigError: If any layer is malformed.
    """
    config = load_global_config()
    project = load_project_config()
    if project:
        config = _overlay(config, project, "project config")

    env = _environment_layer()
    if env:
        config = _overlay(config, env, f"{ENV_CATALOG}/{ENV_MODELS} setting")

    cli: dict[str, Any] = {}
    if cli_catalog is not None:
        cli["catalog"] = cli_catalog
    if cli_models:
        cli["default_models"] = list(cli_models)
    if cli_format is not None:
        cli["output"] = {"format": cli_format}
    if cli:
        config = _overlay(config, cli, "command-line option")
    return config


def load_catalog(path: Optional[str]) -> CapabilityCatalog:
    """Load the model capability catalog from a YAML or JSON file.

    The file may hold the models directly or under a top-level ``models``
    key::

        models:
          RTX1210:
            firmware: "14.01.42"
            capabilities: {ipsec_tunnels: 100}
            licenses:
              ipsec_tunnels: {YSL-VPN-EX1: [200, 300]}

    Args:
        path: Catalog file; ``None`` returns an empty catalog.

    Raises:
        ConfigError: If the file is missing or malformed.
    """
    if path is None:
        return CapabilityCatalog()
    file_path = Path(path).expanduser()
    if not file_path.is_file():
        raise ConfigError(f"Capability catalog not found: {file_path}")
    try:
        data = yaml.safe_load(file_path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Cannot read capability catalog {file_path}: {exc}") from exc
    if data is None:
        return CapabilityCatalog()
    if not isinstance(data, dict):
        raise ConfigError(f"Capability catalog {file_path} must be a mapping")
    if "models" not in data:
        data = {"models": data}
    try:
        return CapabilityCatalog.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid capability catalog {file_path}: {exc}") from exc
