"""
L1 Domain — ``__init__.py`` re-exports all pure domain functions.

These functions have NO subprocess calls, NO filesystem access,
NO network calls. Pure input→output.
"""

from provisioner.core.services.provisioning.domain.download_helpers import (  # noqa: F401
    _fmt_size,
    aria2_command,
)
from provisioner.core.services.provisioning.domain.plan import (  # noqa: F401
    evaluate,
    summarize,
)
