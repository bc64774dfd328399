"""
L4 Execution — Background job supervision.

Launches work units as child processes, tracks their handles, and
joins them at explicit barriers. A barrier never cancels siblings
when one job fails: every listed job runs to completion so partial
progress on other artifacts is kept.

Each job yields its result exactly once, through a join. After that
the supervisor drops its reference and releases the job's key.
"""

from __future__ import annotations

import itertools
import logging
import subprocess
import time
from collections.abc import Callable, Iterable
from datetime import UTC, datetime

from provisioner.core.models.job import JobKind, JobResult, JobState, WorkUnit
from provisioner.core.models.result import ProvisioningResult
from provisioner.core.services.provisioning.execution.subprocess_runner import _spawn

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class JobError(Exception):
    """Raised when a job is joined twice or was never submitted."""


class Job:
    """Live handle on one background unit of work."""

    def __init__(
        self,
        job_id: str,
        unit: WorkUnit,
        process: subprocess.Popen | None = None,
        spawn_error: str | None = None,
    ):
        self.id = job_id
        self.unit = unit
        self.started_at = _now_iso()
        self._process = process
        self._spawn_error = spawn_error
        self._t0 = time.monotonic()
        self._ended_at: str | None = None
        self._elapsed_ms: int | None = None

    def __repr__(self) -> str:
        return f"<Job {self.id} {self.kind.value} {self.label!r} {self.state.value}>"

    @property
    def kind(self) -> JobKind:
        return self.unit.kind

    @property
    def label(self) -> str:
        return self.unit.label

    @property
    def required(self) -> bool:
        return self.unit.required

    @property
    def key(self) -> str | None:
        return self.unit.key

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process else None

    @property
    def returncode(self) -> int | None:
        if self._process is None:
            return None
        return self._process.poll()

    @property
    def state(self) -> JobState:
        if self._spawn_error is not None:
            return JobState.FAILED
        if self._process is None:
            return JobState.PENDING
        rc = self._process.poll()
        if rc is None:
            return JobState.RUNNING
        self._mark_ended()
        return JobState.SUCCEEDED if rc == 0 else JobState.FAILED

    def is_alive(self) -> bool:
        return self.state == JobState.RUNNING

    def _mark_ended(self) -> None:
        if self._ended_at is None:
            self._ended_at = _now_iso()
            self._elapsed_ms = int((time.monotonic() - self._t0) * 1000)

    def _result(self) -> JobResult:
        """Build the terminal result. The job must already be terminal."""
        state = self.state
        common = {
            "required": self.required,
            "log_path": self.unit.log_path,
            "started_at": self.started_at,
            "ended_at": self._ended_at or _now_iso(),
            "duration_ms": self._elapsed_ms or 0,
            "metadata": dict(self.unit.metadata),
        }
        if self._spawn_error is not None:
            return JobResult.failure(
                self.id, self.kind, self.label,
                error=f"Could not start: {self._spawn_error}",
                **common,
            )
        rc = self.returncode
        if state == JobState.SUCCEEDED:
            return JobResult.success(self.id, self.kind, self.label, exit_code=rc, **common)
        return JobResult.failure(
            self.id, self.kind, self.label,
            error=f"exit {rc}",
            exit_code=rc,
            **common,
        )


class JobSupervisor:
    """Registry of background jobs plus the blocking barrier.

    Args:
        spawn: Process factory, ``_spawn`` by default.
        sleep: Delay function used between poll cycles.
    """

    def __init__(
        self,
        spawn: Callable[..., subprocess.Popen] = _spawn,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._spawn = spawn
        self._sleep = sleep
        self._jobs: dict[str, Job] = {}
        self._by_key: dict[str, Job] = {}
        self._ids = itertools.count(1)

    # ── Submission ──────────────────────────────────────────────

    def active(self, key: str) -> Job | None:
        """The registered, not-yet-joined job holding ``key``."""
        return self._by_key.get(key)

    def submit(self, unit: WorkUnit) -> Job:
        """Start a unit in the background and return at once.

        A unit whose key is already held by a registered job is not
        started again; the existing job is returned.
        """
        if unit.key is not None and unit.key in self._by_key:
            existing = self._by_key[unit.key]
            logger.debug("Key %s already held by %s — not resubmitting", unit.key, existing.id)
            return existing

        job_id = f"{unit.kind.value}-{next(self._ids)}"
        try:
            process = self._spawn(unit.command, log_path=unit.log_path, cwd=unit.cwd)
            job = Job(job_id, unit, process=process)
            logger.debug("Started %s '%s' (PID %s)", job_id, unit.label, job.pid)
        except OSError as e:
            logger.error("❌ Could not start %s '%s': %s", unit.kind.value, unit.label, e)
            job = Job(job_id, unit, spawn_error=str(e))

        self._jobs[job_id] = job
        if unit.key is not None:
            self._by_key[unit.key] = job
        return job

    def pending(self) -> list[Job]:
        """Registered jobs whose results have not been consumed."""
        return list(self._jobs.values())

    # ── Liveness ────────────────────────────────────────────────

    def poll_liveness(self, job: Job) -> bool:
        """Non-blocking: is the job still running?"""
        return job.is_alive()

    def wait_while_alive(
        self,
        job: Job,
        *,
        poll_interval: float,
        message: str,
    ) -> None:
        """Block until ``job`` ends, logging ``message`` every cycle."""
        while self.poll_liveness(job):
            logger.info(message)
            self._sleep(poll_interval)

    # ── Barriers ────────────────────────────────────────────────

    def _consume(self, job: Job) -> JobResult:
        if self._jobs.get(job.id) is not job:
            raise JobError(f"Job {job.id} was already joined or never submitted")
        result = job._result()
        del self._jobs[job.id]
        if job.key is not None and self._by_key.get(job.key) is job:
            del self._by_key[job.key]
        return result

    def join_all(
        self,
        jobs: Iterable[Job],
        *,
        poll_interval: float = 5.0,
        label: str = "jobs",
    ) -> ProvisioningResult:
        """Block until every listed job is terminal, then aggregate.

        Logs one progress line per poll cycle. Failed jobs do not stop
        the wait for the others.

        Raises:
            JobError: A listed job was already joined.
        """
        unique = list({j.id: j for j in jobs}.values())
        for job in unique:
            if self._jobs.get(job.id) is not job:
                raise JobError(f"Job {job.id} was already joined or never submitted")

        while True:
            running = [j for j in unique if self.poll_liveness(j)]
            if not running:
                break
            names = ", ".join(j.label for j in running[:3])
            more = f" +{len(running) - 3} more" if len(running) > 3 else ""
            logger.info(
                "⏳ %s: %d/%d still in progress (%s%s)",
                label, len(running), len(unique), names, more,
            )
            self._sleep(poll_interval)

        outcomes = [self._consume(j) for j in unique]
        for outcome in outcomes:
            if outcome.ok:
                logger.debug("✅ %s", outcome.describe())
            elif outcome.required:
                logger.error("❌ %s", outcome.describe())
            else:
                logger.warning("⚠️ %s (best-effort)", outcome.describe())
        return ProvisioningResult(outcomes=outcomes)

    def collect_finished(self, jobs: Iterable[Job]) -> ProvisioningResult:
        """Consume the jobs that have already ended; leave the rest running."""
        finished: list[Job] = []
        for job in {j.id: j for j in jobs}.values():
            if self._jobs.get(job.id) is not job:
                continue
            if self.poll_liveness(job):
                logger.info("… %s '%s' still running — not waiting for it", job.kind.value, job.label)
                continue
            finished.append(job)
        if not finished:
            return ProvisioningResult()
        return self.join_all(finished, label="finished jobs")
