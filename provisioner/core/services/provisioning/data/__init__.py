"""
L0 Data — ``__init__.py`` re-exports all data constants.
"""

from provisioner.core.services.provisioning.data.catalog import (  # noqa: F401
    ARTIFACT_CATEGORIES,
)
from provisioner.core.services.provisioning.data.constants import (  # noqa: F401
    _PIP,
    _PYTHON,
    ARIA2_BINARY,
    ARIA2_CONTROL_SUFFIX,
    MANAGER_CONFIG_DEFAULTS,
    MANAGER_CONFIG_SECTION,
    MISNAMED_SUFFIX,
    OPTIMIZATION_FLAG,
    PREVIEW_METHOD_KEY,
    PREVIEW_METHOD_VALUE,
    TOOL_PACKAGES,
    WEIGHTS_SUFFIX,
)
