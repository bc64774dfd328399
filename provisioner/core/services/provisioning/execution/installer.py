"""
L4 Execution — Package installs and the optimization build.

Both submit a single background job and return at once. The build
is long and variable; callers poll its liveness instead of joining
it straight away.
"""

from __future__ import annotations

import logging
import os
import shlex
from pathlib import Path

from provisioner.core.models.job import JobKind, WorkUnit
from provisioner.core.models.plan import BuildStep, InstallStep
from provisioner.core.services.provisioning.execution.supervisor import Job, JobSupervisor

logger = logging.getLogger(__name__)


class InstallTask:
    """Run one package-installation step in the background."""

    def __init__(self, supervisor: JobSupervisor):
        self._supervisor = supervisor

    def run(self, step: InstallStep) -> Job:
        job = self._supervisor.submit(WorkUnit(
            kind=JobKind.INSTALL,
            label=step.name,
            command=list(step.command),
            required=step.required,
            key=f"install:{step.name}",
            cwd=step.cwd,
            log_path=step.log_path,
        ))
        logger.info("🔧 Installing %s in the background (PID %s)", step.name, job.pid)
        return job


def _writable_log(log_path: str | None, fallback_dir: Path | None) -> str | None:
    """Keep ``log_path`` if its directory is writable, else move it to ``fallback_dir``."""
    if not log_path:
        return None
    path = Path(log_path)
    if os.access(path.parent, os.W_OK) or fallback_dir is None:
        return log_path
    moved = fallback_dir / path.name
    logger.debug("%s not writable — logging to %s", path.parent, moved)
    return str(moved)


class BuildTask:
    """Run a multi-command build as one background shell job."""

    def __init__(self, supervisor: JobSupervisor, fallback_log_dir: Path | None = None):
        self._supervisor = supervisor
        self._fallback_log_dir = fallback_log_dir

    @staticmethod
    def script(step: BuildStep) -> str:
        """Chain the commands so the first failure stops the build."""
        return " && ".join(shlex.join(cmd) for cmd in step.commands)

    def run(self, step: BuildStep) -> Job:
        log_path = _writable_log(step.log_path, self._fallback_log_dir)
        job = self._supervisor.submit(WorkUnit(
            kind=JobKind.BUILD,
            label=step.name,
            command=["sh", "-c", self.script(step)],
            required=step.required,
            key=f"build:{step.name}",
            cwd=step.cwd,
            log_path=log_path,
        ))
        logger.info("🛠️ Building %s in the background (PID %s, log %s)", step.name, job.pid, log_path)
        return job
