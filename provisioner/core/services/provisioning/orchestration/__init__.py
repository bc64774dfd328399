"""
L5 Orchestration — ``__init__.py`` re-exports the run coordinator.

This is the entry point that external code calls.
"""

from provisioner.core.services.provisioning.orchestration.orchestrator import (  # noqa: F401
    Orchestrator,
    Phase,
    ProvisioningError,
    RunReport,
    generate_run_id,
)
