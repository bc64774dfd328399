"""
Domain models — Pydantic types for the provisioner.

All models are re-exported here for convenient access:

    from provisioner.core.models import Artifact, JobResult, ProvisionConfig
"""

from provisioner.core.models.artifact import (
    DEFAULT_MIN_SIZE_BYTES,
    Artifact,
    ArtifactState,
)
from provisioner.core.models.config import NodePaths, ProvisionConfig
from provisioner.core.models.job import JobKind, JobResult, JobState, WorkUnit
from provisioner.core.models.plan import (
    BuildStep,
    InstallStep,
    PlanGroup,
    PlanSummary,
    ProvisioningPlan,
)
from provisioner.core.models.result import ProvisioningResult

__all__ = [
    # artifact.py
    "DEFAULT_MIN_SIZE_BYTES",
    "Artifact",
    "ArtifactState",
    # config.py
    "NodePaths",
    "ProvisionConfig",
    # job.py
    "JobKind",
    "JobResult",
    "JobState",
    "WorkUnit",
    # plan.py
    "BuildStep",
    "InstallStep",
    "PlanGroup",
    "PlanSummary",
    "ProvisioningPlan",
    # result.py
    "ProvisioningResult",
]
