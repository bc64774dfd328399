"""
Provisioning plan models — conditional groups of artifacts and steps.

A plan is built once from configuration and never mutated.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from provisioner.core.models.artifact import Artifact


class InstallStep(BaseModel):
    """One package-installation command."""

    model_config = ConfigDict(frozen=True)

    name: str
    command: list[str]
    required: bool = True
    cwd: str | None = None
    log_path: str | None = None


class BuildStep(BaseModel):
    """A long compiled-extension build: commands run in sequence."""

    model_config = ConfigDict(frozen=True)

    name: str
    commands: list[list[str]]
    required: bool = False
    cwd: str | None = None
    log_path: str | None = None


class PlanGroup(BaseModel):
    """A category gated by one configuration flag."""

    model_config = ConfigDict(frozen=True)

    category: str
    label: str = ""
    flag: str | None = None         # None = always enabled
    enabled: bool = True
    artifacts: tuple[Artifact, ...] = ()
    steps: tuple[InstallStep, ...] = ()


class ProvisioningPlan(BaseModel):
    """Ordered groups plus the optional build."""

    model_config = ConfigDict(frozen=True)

    groups: tuple[PlanGroup, ...] = ()
    build: BuildStep | None = None

    @property
    def enabled_groups(self) -> list[PlanGroup]:
        return [g for g in self.groups if g.enabled]

    def artifacts(self) -> list[Artifact]:
        """Enabled artifacts, deduplicated by destination path.

        The first group naming a destination wins; order is preserved.
        """
        seen: dict[str, Artifact] = {}
        for group in self.enabled_groups:
            for artifact in group.artifacts:
                seen.setdefault(artifact.key, artifact)
        return list(seen.values())

    def install_steps(self) -> list[InstallStep]:
        return [s for g in self.enabled_groups for s in g.steps]

    def to_dict(self) -> dict[str, Any]:
        return {
            "groups": [
                {
                    "category": g.category,
                    "label": g.label,
                    "flag": g.flag,
                    "enabled": g.enabled,
                    "artifacts": [str(a.destination) for a in g.artifacts],
                    "steps": [s.name for s in g.steps],
                }
                for g in self.groups
            ],
            "artifacts": [
                {"url": a.url, "destination": str(a.destination)}
                for a in self.artifacts()
            ],
            "install_steps": [
                {"name": s.name, "command": s.command, "required": s.required}
                for s in self.install_steps()
            ],
            "build": (
                {
                    "name": self.build.name,
                    "required": self.build.required,
                    "commands": self.build.commands,
                }
                if self.build
                else None
            ),
        }


class PlanSummary(BaseModel):
    """Counts for quick reporting."""

    categories_enabled: int = 0
    artifacts: int = 0
    install_steps: int = 0
    build: bool = False
    duplicate_destinations: list[str] = Field(default_factory=list)
