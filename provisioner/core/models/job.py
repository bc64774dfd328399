"""
Job models — units of background work and their results.

A WorkUnit describes what to spawn. The supervisor turns it into a
live Job; when the Job is joined it yields exactly one JobResult.
Results never raise; failures are captured in the result.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class JobKind(str, Enum):
    FETCH = "fetch"
    INSTALL = "install"
    BUILD = "build"


class JobState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class WorkUnit(BaseModel):
    """A command to run in the background.

    ``key`` is the mutual-exclusion key: the supervisor never runs two
    live jobs with the same key. Fetches use the destination path.
    """

    kind: JobKind
    label: str
    command: list[str]
    required: bool = True
    key: str | None = None
    cwd: str | None = None
    log_path: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class JobResult(BaseModel):
    """Terminal outcome of a job."""

    job_id: str
    kind: JobKind
    label: str
    required: bool = True
    ok: bool = True

    exit_code: int | None = None
    error: str | None = None
    log_path: str | None = None

    started_at: str = Field(default_factory=_now_iso)
    ended_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0

    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def failed(self) -> bool:
        return not self.ok

    @classmethod
    def success(
        cls,
        job_id: str,
        kind: JobKind,
        label: str,
        **kwargs: Any,
    ) -> JobResult:
        """Create a success result."""
        return cls(job_id=job_id, kind=kind, label=label, ok=True, **kwargs)

    @classmethod
    def failure(
        cls,
        job_id: str,
        kind: JobKind,
        label: str,
        error: str,
        **kwargs: Any,
    ) -> JobResult:
        """Create a failure result."""
        return cls(
            job_id=job_id,
            kind=kind,
            label=label,
            ok=False,
            error=error,
            **kwargs,
        )

    def describe(self) -> str:
        """One-line diagnostic for logs."""
        if self.ok:
            return f"{self.kind.value} '{self.label}' ok ({self.duration_ms} ms)"
        parts = [f"{self.kind.value} '{self.label}' failed: {self.error}"]
        if self.metadata.get("url"):
            parts.append(f"url={self.metadata['url']}")
        if self.metadata.get("destination"):
            parts.append(f"dest={self.metadata['destination']}")
        if self.log_path:
            parts.append(f"log={self.log_path}")
        return " ".join(parts)
