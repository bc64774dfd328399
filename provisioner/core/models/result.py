"""
ProvisioningResult — aggregate of job outcomes.

The run may proceed to start the service only if every required
job succeeded. Best-effort failures are reported but never block.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from provisioner.core.models.job import JobKind, JobResult


@dataclass
class ProvisioningResult:
    """Outcomes collected by one or more barriers."""

    outcomes: list[JobResult] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.outcomes if r.ok)

    @property
    def failed_required(self) -> list[JobResult]:
        return [r for r in self.outcomes if r.failed and r.required]

    @property
    def failed_best_effort(self) -> list[JobResult]:
        return [r for r in self.outcomes if r.failed and not r.required]

    @property
    def failed_kinds(self) -> list[JobKind]:
        """Kinds of the failed required jobs, in first-seen order."""
        kinds: list[JobKind] = []
        for r in self.failed_required:
            if r.kind not in kinds:
                kinds.append(r.kind)
        return kinds

    @property
    def ok(self) -> bool:
        return not self.failed_required

    def of_kind(self, kind: JobKind) -> list[JobResult]:
        return [r for r in self.outcomes if r.kind == kind]

    def merge(self, other: ProvisioningResult) -> ProvisioningResult:
        """Return a new result holding both sets of outcomes."""
        return ProvisioningResult(outcomes=[*self.outcomes, *other.outcomes])

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "total": self.total,
            "succeeded": self.succeeded,
            "failed_required": len(self.failed_required),
            "failed_best_effort": len(self.failed_best_effort),
            "failed_kinds": [k.value for k in self.failed_kinds],
            "outcomes": [r.model_dump(mode="json") for r in self.outcomes],
        }
