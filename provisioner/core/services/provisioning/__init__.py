"""
Provisioning service — package re-exports.

Each symbol lives in its single-responsibility module inside the
appropriate layer (data → domain → detection → execution →
orchestration)::

    from provisioner.core.services.provisioning import Orchestrator, evaluate
"""

# ── L1: Domain ──
from provisioner.core.services.provisioning.domain.plan import (  # noqa: F401
    evaluate,
    summarize,
)

# ── L4: Execution ──
from provisioner.core.services.provisioning.execution.fetcher import Fetcher  # noqa: F401
from provisioner.core.services.provisioning.execution.installer import (  # noqa: F401
    BuildTask,
    InstallTask,
)
from provisioner.core.services.provisioning.execution.integrity import (  # noqa: F401
    IntegrityChecker,
)
from provisioner.core.services.provisioning.execution.node_setup import (  # noqa: F401
    PreconditionError,
)
from provisioner.core.services.provisioning.execution.supervisor import (  # noqa: F401
    Job,
    JobError,
    JobSupervisor,
)

# ── L5: Orchestration ──
from provisioner.core.services.provisioning.orchestration.orchestrator import (  # noqa: F401
    Orchestrator,
    Phase,
    ProvisioningError,
    RunReport,
)
