"""
L3 Detection — ``__init__.py`` re-exports all detection functions.

These functions READ system state but never WRITE.
"""

from provisioner.core.services.provisioning.detection.tools import (  # noqa: F401
    missing_tools,
    packages_for,
)
