"""
Logging configuration — console progress output and the per-run log file.

Called once at startup by main.py. Every module that does
``logger = logging.getLogger(__name__)`` inherits this config.

Levels are resolved in precedence order:
    CLI flag  >  PROVISION_LOG_LEVEL env var  >  INFO (default)

The console shows timestamped progress lines: the periodic
"still downloading" lines printed while waiting on the barriers are
how an operator tells a slow run from a hung one. Warnings and errors
carry their level; debug output adds the emitting module.

``run`` additionally keeps a full-detail copy of its output under the
volume's log directory (see ``attach_run_log``), so the history of a
provisioning run survives the container.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import TextIO

RUN_LOG_NAME = "provision.log"

_TIME_FMT = "%H:%M:%S"
_FILE_FMT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"
_FILE_DATEFMT = "%Y-%m-%d %H:%M:%S"


class ProgressFormatter(logging.Formatter):
    """``12:00:01 message`` for progress, level-tagged for anything else."""

    def __init__(self) -> None:
        super().__init__(datefmt=_TIME_FMT)

    def format(self, record: logging.LogRecord) -> str:
        stamp = self.formatTime(record, self.datefmt)
        message = record.getMessage()
        if record.levelno == logging.INFO:
            line = f"{stamp} {message}"
        elif record.levelno < logging.INFO:
            line = f"{stamp} DEBUG {record.name}:{record.lineno} {message}"
        else:
            line = f"{stamp} {record.levelname} {message}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


class _RunLogHandler(logging.FileHandler):
    """Marker type so a second attach replaces the first."""


def setup_logging(level: str = "INFO", stream: TextIO | None = None) -> None:
    """Configure the root logger with a single console handler.

    Args:
        level: Level name (DEBUG, INFO, WARNING, ERROR). Unknown names
            fall back to INFO.
        stream: Console stream (default: stderr).
    """
    numeric_level = _parse_level(level)

    console = logging.StreamHandler(stream or sys.stderr)
    console.setLevel(numeric_level)
    console.setFormatter(ProgressFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(console)
    root.setLevel(numeric_level)


def attach_run_log(log_dir: Path) -> Path:
    """Append everything, down to DEBUG, to ``<log_dir>/provision.log``.

    The console keeps its own level. Calling again moves the run log.

    Returns:
        Path of the log file.
    """
    log_dir.mkdir(parents=True, exist_ok=True)
    path = log_dir / RUN_LOG_NAME

    root = logging.getLogger()
    for handler in [h for h in root.handlers if isinstance(h, _RunLogHandler)]:
        root.removeHandler(handler)
        handler.close()

    handler = _RunLogHandler(path, encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(_FILE_FMT, datefmt=_FILE_DATEFMT))
    root.addHandler(handler)
    root.setLevel(logging.DEBUG)
    return path


def _parse_level(level: str | None) -> int:
    """Convert a level name string to its numeric constant (INFO if unknown)."""
    if not level:
        return logging.INFO
    numeric = getattr(logging, level.upper(), None)
    if not isinstance(numeric, int):
        return logging.INFO
    return numeric
