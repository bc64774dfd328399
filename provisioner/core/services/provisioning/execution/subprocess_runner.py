"""
L4 Execution — Core subprocess runner.

The single place where processes are started for provisioning:
``_run_subprocess`` for short foreground commands, ``_spawn`` for
background jobs. Logging and error capture are centralised here.
"""

from __future__ import annotations

import logging
import os
import subprocess
import time
from pathlib import Path
from typing import IO, Any

logger = logging.getLogger(__name__)


def _sudo_prefix(needs_sudo: bool) -> list[str]:
    """``sudo -n`` when root is needed and we are not root.

    Provisioning runs unattended, so sudo must never prompt.
    """
    if needs_sudo and os.geteuid() != 0:
        return ["sudo", "-n"]
    return []


def _run_subprocess(
    cmd: list[str],
    *,
    needs_sudo: bool = False,
    timeout: int | None = 600,
    env_overrides: dict[str, str] | None = None,
    cwd: str | None = None,
) -> dict[str, Any]:
    """Run a foreground command and capture its output.

    Args:
        cmd: Command list for ``subprocess.run()``.
        needs_sudo: Whether the command requires root.
        timeout: Seconds before ``TimeoutExpired`` (None = no limit).
        env_overrides: Extra env vars.
        cwd: Working directory for the command.

    Returns:
        ``{"ok": True, "stdout": "...", "elapsed_ms": N}`` on success,
        ``{"ok": False, "error": "...", ...}`` on failure.
    """
    cmd = _sudo_prefix(needs_sudo) + cmd

    env = os.environ.copy()
    if env_overrides:
        for key, value in env_overrides.items():
            env[key] = os.path.expandvars(value)

    logger.debug("Running: %s (cwd=%s)", cmd, cwd)
    start = time.monotonic()
    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=timeout,
            env=env,
            cwd=cwd,
        )
        elapsed_ms = int((time.monotonic() - start) * 1000)

        if result.returncode == 0:
            return {
                "ok": True,
                "stdout": result.stdout[-2000:] if result.stdout else "",
                "elapsed_ms": elapsed_ms,
            }

        return {
            "ok": False,
            "error": f"Command failed (exit {result.returncode})",
            "exit_code": result.returncode,
            "stderr": result.stderr[-2000:] if result.stderr else "",
            "stdout": result.stdout[-2000:] if result.stdout else "",
            "elapsed_ms": elapsed_ms,
        }

    except subprocess.TimeoutExpired:
        return {"ok": False, "error": f"Command timed out ({timeout}s)"}
    except OSError as e:
        logger.error("Cannot run %s: %s", cmd, e)
        return {"ok": False, "error": str(e)}


def _open_log(log_path: str | None) -> IO[bytes] | int:
    """Open a job log for appending, or discard output when none is set."""
    if not log_path:
        return subprocess.DEVNULL
    path = Path(log_path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        return path.open("ab")
    except OSError as e:
        logger.warning("Cannot open log %s (%s) — discarding output", path, e)
        return subprocess.DEVNULL


def _spawn(
    cmd: list[str],
    *,
    log_path: str | None = None,
    cwd: str | None = None,
    detach: bool = False,
) -> subprocess.Popen:
    """Start a background process and return immediately.

    stdout and stderr both go to ``log_path``. With ``detach`` the
    process gets its own session so it outlives the provisioner.

    Raises:
        OSError: The executable could not be started.
    """
    out = _open_log(log_path)
    try:
        logger.debug("Spawning: %s (cwd=%s, log=%s)", cmd, cwd, log_path)
        return subprocess.Popen(
            cmd,
            stdout=out,
            stderr=subprocess.STDOUT,
            stdin=subprocess.DEVNULL,
            cwd=cwd,
            start_new_session=detach,
        )
    finally:
        # The child holds its own descriptor.
        if not isinstance(out, int):
            out.close()
