"""
L1 Domain — Provisioning plan evaluation (pure).

Turns the catalog + configuration into an immutable ProvisioningPlan.
No subprocess calls, no filesystem access, no network calls.
"""

from __future__ import annotations

import logging
from collections import Counter
from pathlib import PurePosixPath
from urllib.parse import urlparse

from provisioner.core.models.artifact import Artifact
from provisioner.core.models.config import NodePaths, ProvisionConfig
from provisioner.core.models.plan import (
    BuildStep,
    InstallStep,
    PlanGroup,
    PlanSummary,
    ProvisioningPlan,
)
from provisioner.core.services.provisioning.data.catalog import ARTIFACT_CATEGORIES
from provisioner.core.services.provisioning.data.constants import _PIP, _PYTHON

logger = logging.getLogger(__name__)


def _flag_enabled(config: ProvisionConfig, flag: str | None) -> bool:
    """Evaluate a category predicate. ``None`` means always on."""
    if flag is None:
        return True
    if flag not in ProvisionConfig.model_fields:
        raise ValueError(f"Catalog references unknown flag: {flag}")
    return bool(getattr(config, flag))


def _filename_from_url(url: str) -> str:
    name = PurePosixPath(urlparse(url).path).name
    if not name:
        raise ValueError(f"Cannot derive a file name from URL: {url}")
    return name


def _artifact(
    item: dict,
    paths: NodePaths,
    config: ProvisionConfig,
    label: str,
) -> Artifact:
    filename = item.get("filename") or _filename_from_url(item["url"])
    return Artifact(
        url=item["url"],
        destination=paths.model_dir(item["dir"]) / filename,
        min_size_bytes=item.get("min_size_bytes", config.min_artifact_bytes),
        label=label,
    )


def _install_groups(config: ProvisionConfig, paths: NodePaths) -> list[PlanGroup]:
    """Package installation groups.

    Custom-node requirements are required: the service cannot load the
    nodes without them. Runtime extras are best-effort upgrades.
    """
    node_steps = tuple(
        InstallStep(
            name=repo,
            command=_PIP + [
                "install", "--no-cache-dir",
                "-r", str(paths.custom_nodes / repo / "requirements.txt"),
            ],
            required=True,
            log_path=str(paths.log_dir / f"pip_{repo}.log"),
        )
        for repo in config.custom_nodes
    )
    groups = [
        PlanGroup(
            category="custom_node_requirements",
            label="custom node packages",
            steps=node_steps,
        ),
    ]
    if config.runtime_extras:
        groups.append(PlanGroup(
            category="runtime_extras",
            label="runtime extras",
            steps=(
                InstallStep(
                    name="runtime-extras",
                    command=_PIP + ["install", *config.runtime_extras],
                    required=False,
                    log_path=str(paths.log_dir / "pip_runtime_extras.log"),
                ),
            ),
        ))
    return groups


def _build_step(config: ProvisionConfig) -> BuildStep | None:
    """SageAttention + triton build, when optimizations are enabled."""
    if not config.enable_optimizations:
        return None

    src_dir = str(config.build_root / "SageAttention")
    return BuildStep(
        name="sage-attention",
        commands=[
            ["rm", "-rf", src_dir],
            ["git", "clone", config.sage_attention_repo, src_dir],
            ["cd", src_dir],
            [_PYTHON, "setup.py", "install"],
            ["cd", str(config.build_root)],
            _PIP + ["install", "--no-cache-dir", "triton"],
        ],
        required=config.require_optimizations,
        log_path=str(config.build_log),
    )


def evaluate(
    config: ProvisionConfig,
    paths: NodePaths | None = None,
    catalog: list[dict] | None = None,
) -> ProvisioningPlan:
    """Build the provisioning plan for a configuration.

    Args:
        config: The run configuration.
        paths: Resolved node layout (defaults to ``config.paths()``).
        catalog: Artifact categories (defaults to the built-in catalog).

    Returns:
        Immutable plan: artifact groups in catalog order, then install
        groups, plus the optional build.
    """
    paths = paths or config.paths()
    catalog = ARTIFACT_CATEGORIES if catalog is None else catalog

    groups: list[PlanGroup] = []
    for entry in catalog:
        flag = entry.get("flag")
        label = entry.get("label", entry["category"])
        groups.append(PlanGroup(
            category=entry["category"],
            label=label,
            flag=flag,
            enabled=_flag_enabled(config, flag),
            artifacts=tuple(
                _artifact(item, paths, config, label) for item in entry["artifacts"]
            ),
        ))

    groups.extend(_install_groups(config, paths))
    return ProvisioningPlan(groups=tuple(groups), build=_build_step(config))


def summarize(plan: ProvisioningPlan) -> PlanSummary:
    """Counts plus destinations named by more than one enabled category."""
    counts = Counter(
        a.key for g in plan.enabled_groups for a in g.artifacts
    )
    return PlanSummary(
        categories_enabled=sum(1 for g in plan.enabled_groups if g.artifacts),
        artifacts=len(plan.artifacts()),
        install_steps=len(plan.install_steps()),
        build=plan.build is not None,
        duplicate_destinations=sorted(k for k, n in counts.items() if n > 1),
    )
