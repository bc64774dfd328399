"""
Configuration loader — reads provision.yml and the environment into
a ProvisionConfig.

Precedence (highest first):
    explicit overrides (CLI)  >  environment variables  >  YAML file  >  defaults

Environment variables use the flat names the deployment templates
already set (``download_vace=true``, ``NETWORK_VOLUME=/workspace``…).
They are read here, once; nothing downstream touches ``os.environ``.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from provisioner.core.models.config import ProvisionConfig

logger = logging.getLogger(__name__)

# Default config filename
PROVISION_CONFIG_FILE = "provision.yml"

# Env var naming an explicit config file
CONFIG_PATH_ENV = "PROVISION_CONFIG"

# Non-boolean env vars → config fields
ENV_ALIASES: dict[str, str] = {
    "NETWORK_VOLUME": "network_volume",
    "RUNPOD_POD_ID": "pod_id",
    "COMFYUI_URL": "service_url",
}

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


class ConfigError(Exception):
    """Raised when provisioning configuration is invalid or missing."""


def _bool_fields() -> list[str]:
    return [
        name for name, field in ProvisionConfig.model_fields.items()
        if field.annotation is bool
    ]


def parse_bool(name: str, raw: str) -> bool:
    """Parse a flag value the way shell templates write them."""
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ConfigError(f"Invalid boolean for {name}: {raw!r}")


def env_overrides(environ: Mapping[str, str]) -> dict[str, Any]:
    """Extract config values from environment variables."""
    data: dict[str, Any] = {}
    for name in _bool_fields():
        if name in environ:
            data[name] = parse_bool(name, environ[name])

    # change_preview_method=false disables the manager config patch
    if "change_preview_method" in environ:
        data["skip_preview_method_patch"] = not parse_bool(
            "change_preview_method", environ["change_preview_method"],
        )

    for env_name, field in ENV_ALIASES.items():
        if environ.get(env_name):
            data[field] = environ[env_name]
    return data


def find_config_file(
    start_dir: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> Path | None:
    """Locate provision.yml: ``$PROVISION_CONFIG``, then upward from cwd.

    Args:
        start_dir: Directory to start searching from (default: cwd).
        environ: Environment mapping (default: ``os.environ``).

    Returns:
        Path to the config file, or None if not found.
    """
    environ = os.environ if environ is None else environ
    explicit = environ.get(CONFIG_PATH_ENV)
    if explicit:
        return Path(explicit)

    current = (start_dir or Path.cwd()).resolve()
    for _ in range(20):  # safety limit
        candidate = current / PROVISION_CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def read_yaml(path: Path) -> dict[str, Any]:
    """Read a YAML mapping, optionally wrapped under a ``provision:`` key.

    Raises:
        ConfigError: If the file is missing, unreadable, or not a mapping.
    """
    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading provisioning config from %s", path)
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    section = data.get("provision", data)
    if not isinstance(section, dict):
        raise ConfigError(f"'provision' in {path} must be a mapping")
    return dict(section)


def load_config(
    path: Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
    search: bool = True,
) -> ProvisionConfig:
    """Load and validate the provisioning configuration.

    Args:
        path: Explicit YAML file. If None and ``search`` is set, looks
            for one via ``find_config_file``. No file is fine.
        environ: Environment mapping (default: ``os.environ``).
        overrides: Highest-precedence values, e.g. from CLI options.
        search: Whether to look for a config file when ``path`` is None.

    Returns:
        Frozen ProvisionConfig.

    Raises:
        ConfigError: If the file or any value is invalid.
    """
    environ = os.environ if environ is None else environ

    if path is None and search:
        path = find_config_file(environ=environ)

    data: dict[str, Any] = read_yaml(path) if path is not None else {}
    data.update(env_overrides(environ))
    data.update({k: v for k, v in (overrides or {}).items() if v is not None})

    try:
        config = ProvisionConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid provisioning configuration: {e}") from e

    logger.debug("Loaded config%s", f" from {path}" if path else " (no file)")
    return config
