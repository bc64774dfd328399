"""
L4 Execution — Artifact fetcher.

One resumable, multi-connection transfer per artifact, run in the
background through the supervisor. The fetcher never retries: a
failed transfer is reported through the job's exit status.
"""

from __future__ import annotations

import logging
from pathlib import Path

from provisioner.core.models.artifact import Artifact, ArtifactState
from provisioner.core.models.job import JobKind, JobResult, WorkUnit
from provisioner.core.services.provisioning.domain.download_helpers import (
    _fmt_size,
    aria2_command,
)
from provisioner.core.services.provisioning.execution.integrity import IntegrityChecker
from provisioner.core.services.provisioning.execution.supervisor import Job, JobSupervisor

logger = logging.getLogger(__name__)


class Fetcher:
    """Submit artifact downloads to a supervisor.

    Args:
        supervisor: Where fetch jobs are registered.
        checker: Integrity authority consulted before every attempt.
        connections: Parallel byte-range connections per artifact.
        piece_size: Minimum segment size (aria2 ``-k``).
        log_dir: Directory for per-artifact transfer logs.
    """

    def __init__(
        self,
        supervisor: JobSupervisor,
        checker: IntegrityChecker | None = None,
        *,
        connections: int = 16,
        piece_size: str = "1M",
        log_dir: Path | None = None,
    ):
        self._supervisor = supervisor
        self._checker = checker or IntegrityChecker()
        self._connections = connections
        self._piece_size = piece_size
        self._log_dir = log_dir

    @property
    def checker(self) -> IntegrityChecker:
        return self._checker

    def build_command(self, artifact: Artifact) -> list[str]:
        return aria2_command(
            artifact.url,
            artifact.destination,
            connections=self._connections,
            piece_size=self._piece_size,
        )

    def _log_path(self, artifact: Artifact) -> str | None:
        if self._log_dir is None:
            return None
        return str(self._log_dir / "downloads" / f"{artifact.name}.log")

    def fetch(self, artifact: Artifact) -> Job | None:
        """Start fetching ``artifact`` unless it is already complete.

        Returns:
            The fetch job, or None when the file is already complete.
            A destination that already has a live fetch returns that job
            without touching the file.
        """
        live = self._supervisor.active(artifact.key)
        if live is not None:
            logger.debug("%s already being fetched by %s", artifact.name, live.id)
            return live

        state = self._checker.prepare(artifact.destination, artifact.min_size_bytes)
        if state == ArtifactState.COMPLETE:
            size = artifact.destination.stat().st_size
            logger.info(
                "✅ %s already exists (%s), skipping download.",
                artifact.name, _fmt_size(size),
            )
            return None

        artifact.directory.mkdir(parents=True, exist_ok=True)
        job = self._supervisor.submit(WorkUnit(
            kind=JobKind.FETCH,
            label=artifact.name,
            command=self.build_command(artifact),
            required=True,
            key=artifact.key,
            log_path=self._log_path(artifact),
            metadata={
                "url": artifact.url,
                "destination": str(artifact.destination),
                "min_size_bytes": artifact.min_size_bytes,
            },
        ))
        logger.info(
            "📥 Downloading %s to %s (PID %s)",
            artifact.name, artifact.directory, job.pid,
        )
        return job

    def verify(self, result: JobResult) -> JobResult:
        """Re-check a finished fetch; a short file turns success into failure."""
        if result.kind != JobKind.FETCH or not result.ok:
            return result
        dest = Path(result.metadata["destination"])
        min_size = int(result.metadata.get("min_size_bytes", 0))
        state = self._checker.assess(dest, min_size)
        if state == ArtifactState.COMPLETE:
            return result
        logger.error("❌ %s: integrity check failed after download (%s)", dest.name, state.value)
        return result.model_copy(update={
            "ok": False,
            "error": f"integrity check failed after download ({state.value})",
        })
