"""
L4 Execution — ``__init__.py`` re-exports all execution components.

These WRITE to the system: subprocesses, file moves and deletes,
background jobs.
"""

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
    ensure_directories,
    ensure_tools,
    install_helper_script,
    mount_storage,
    place_workflows,
    rename_misnamed,
    resolve_volume,
    run_override_script,
    sync_custom_nodes,
)
from provisioner.core.services.provisioning.execution.service import (  # noqa: F401
    ServiceLauncher,
    probe,
    service_command,
)
from provisioner.core.services.provisioning.execution.subprocess_runner import (  # noqa: F401
    _run_subprocess,
    _spawn,
)
from provisioner.core.services.provisioning.execution.supervisor import (  # noqa: F401
    Job,
    JobError,
    JobSupervisor,
)
