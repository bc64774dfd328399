"""
Service manager config — the small INI file read by ComfyUI-Manager.

Created with fixed defaults when absent; otherwise exactly one key is
rewritten. Writes are atomic (temp file in the same directory, then
rename) and a rewrite that would not change the value is skipped.
"""

from __future__ import annotations

import configparser
import logging
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_SECTION = "default"


class ManagerConfigError(Exception):
    """Raised when an existing config file cannot be parsed."""


def _write_atomic(parser: configparser.ConfigParser, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    _fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=".config_", suffix=".tmp")
    tmp = Path(tmp_path)
    try:
        with open(_fd, "w", encoding="utf-8") as f:
            parser.write(f)
        tmp.replace(path)
    except Exception:
        tmp.unlink(missing_ok=True)
        raise


def read_manager_config(path: Path, section: str = DEFAULT_SECTION) -> dict[str, str]:
    """Return one section as a dict, or an empty dict if absent."""
    if not path.is_file():
        return {}
    parser = configparser.ConfigParser(interpolation=None)
    try:
        parser.read(path, encoding="utf-8")
    except configparser.Error as e:
        raise ManagerConfigError(f"Cannot parse {path}: {e}") from e
    if not parser.has_section(section):
        return {}
    return dict(parser[section])


def set_manager_option(
    path: Path,
    key: str,
    value: str,
    *,
    defaults: dict[str, str] | None = None,
    section: str = DEFAULT_SECTION,
) -> str:
    """Ensure ``key = value`` in the manager config.

    Args:
        path: The config.ini path.
        key: Option to set.
        value: Desired value.
        defaults: Content for a new file.
        section: INI section holding the option.

    Returns:
        ``"created"``, ``"updated"`` or ``"unchanged"``.
    """
    parser = configparser.ConfigParser(interpolation=None)

    if not path.is_file():
        logger.info("Creating %s...", path)
        parser[section] = dict(defaults or {})
        parser[section][key] = value
        _write_atomic(parser, path)
        return "created"

    try:
        parser.read(path, encoding="utf-8")
    except configparser.Error as e:
        raise ManagerConfigError(f"Cannot parse {path}: {e}") from e

    if not parser.has_section(section):
        parser.add_section(section)
    options = parser[section]
    if options.get(key) == value:
        logger.debug("%s already has %s = %s", path.name, key, value)
        return "unchanged"

    options[key] = value
    _write_atomic(parser, path)
    logger.info("Updated %s = %s in %s", key, value, path)
    return "updated"
