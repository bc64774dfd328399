"""
L4 Execution — Service launch and readiness probe.

The provisioner starts the generation service (and the notebook
server) as detached processes. It waits for the service's HTTP
endpoint to answer but does not manage it afterwards.
"""

from __future__ import annotations

import logging
import subprocess
import time
import urllib.error
import urllib.request
from collections.abc import Callable
from pathlib import Path

from provisioner.core.services.provisioning.data.constants import (
    _PYTHON,
    OPTIMIZATION_FLAG,
)
from provisioner.core.services.provisioning.execution.subprocess_runner import _spawn

logger = logging.getLogger(__name__)


def probe(url: str, timeout: float = 5.0) -> bool:
    """One readiness check: does ``url`` answer with a non-error status?"""
    try:
        req = urllib.request.Request(url, headers={"User-Agent": "comfy-provisioner/0.1"})
        with urllib.request.urlopen(req, timeout=timeout) as resp:
            return 200 <= resp.status < 400
    except urllib.error.HTTPError as e:
        logger.debug("Probe %s: HTTP %s", url, e.code)
        return False
    except (urllib.error.URLError, OSError) as e:
        logger.debug("Probe %s: %s", url, e)
        return False


def service_command(comfy_dir: Path, *, optimizations: bool) -> list[str]:
    cmd = [_PYTHON, str(comfy_dir / "main.py"), "--listen"]
    if optimizations:
        cmd.append(OPTIMIZATION_FLAG)
    return cmd


class ServiceLauncher:
    """Start the service and wait for it to become responsive.

    Args:
        probe_fn: Single readiness check, ``probe`` by default.
        sleep: Delay between readiness attempts.
    """

    def __init__(
        self,
        probe_fn: Callable[[str], bool] = probe,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._probe = probe_fn
        self._sleep = sleep

    def start_notebook(self, root_dir: Path, log_path: Path | None = None) -> subprocess.Popen | None:
        """Start JupyterLab on ``root_dir``. A failure is logged, not raised."""
        cmd = [
            "jupyter-lab",
            "--ip=0.0.0.0",
            "--allow-root",
            "--no-browser",
            "--NotebookApp.token=",
            "--NotebookApp.password=",
            "--ServerApp.allow_origin=*",
            "--ServerApp.allow_credentials=True",
            f"--notebook-dir={root_dir}",
        ]
        try:
            proc = _spawn(cmd, log_path=str(log_path) if log_path else None, detach=True)
        except OSError as e:
            logger.warning("Could not start JupyterLab: %s", e)
            return None
        logger.info("Starting JupyterLab on %s (PID %s)", root_dir, proc.pid)
        return proc

    def start_service(
        self,
        comfy_dir: Path,
        *,
        optimizations: bool,
        log_path: Path,
    ) -> subprocess.Popen:
        """Start the service detached.

        Raises:
            OSError: The interpreter could not be started.
        """
        cmd = service_command(comfy_dir, optimizations=optimizations)
        logger.info("▶️  Starting ComfyUI%s", "" if optimizations else " (without optimizations)")
        return _spawn(cmd, log_path=str(log_path), cwd=str(comfy_dir), detach=True)

    def wait_until_ready(
        self,
        url: str,
        *,
        poll_interval: float = 2.0,
        timeout: float | None = None,
        process: subprocess.Popen | None = None,
        log_path: Path | None = None,
    ) -> bool:
        """Poll ``url`` until it answers.

        Stops early if ``process`` exits or ``timeout`` seconds pass.
        Logs one line per attempt.
        """
        start = time.monotonic()
        while True:
            if self._probe(url):
                logger.info("🚀 ComfyUI is UP")
                return True
            if process is not None and process.poll() is not None:
                logger.error("❌ ComfyUI exited with code %s before becoming ready", process.returncode)
                return False
            if timeout is not None and time.monotonic() - start >= timeout:
                logger.error("❌ ComfyUI not ready after %.0fs", timeout)
                return False
            hint = f" You can view the startup logs here: {log_path}" if log_path else ""
            logger.info("🔄  ComfyUI Starting Up...%s", hint)
            self._sleep(poll_interval)
