"""
L3 Detection — Command-line tool presence.

Read-only: looks tools up on PATH, never installs anything.
"""

from __future__ import annotations

import shutil

from provisioner.core.services.provisioning.data.constants import TOOL_PACKAGES


def missing_tools(tools: tuple[str, ...] | list[str]) -> list[str]:
    """Return the tools that are not on PATH, in the given order."""
    return [t for t in tools if shutil.which(t) is None]


def packages_for(tools: list[str]) -> list[str]:
    """Map binaries to the apt packages that provide them (deduplicated)."""
    packages: list[str] = []
    for tool in tools:
        pkg = TOOL_PACKAGES.get(tool, tool)
        if pkg not in packages:
            packages.append(pkg)
    return packages
