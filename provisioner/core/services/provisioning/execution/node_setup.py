"""
L4 Execution — Sequential node preparation.

Everything that must happen in the foreground, before or after the
background work: the override script, command-line tools, moving
the baked installation onto the volume, helper scripts, custom-node
checkouts, and the file normalization passes.

A failure here that leaves the node unusable raises
``PreconditionError``; it is raised before any background job exists.
"""

from __future__ import annotations

import logging
import shutil
import stat
import tempfile
from pathlib import Path

from provisioner.core.models.config import NodePaths
from provisioner.core.services.provisioning.data.constants import (
    MISNAMED_SUFFIX,
    WEIGHTS_SUFFIX,
)
from provisioner.core.services.provisioning.detection.tools import (
    missing_tools,
    packages_for,
)
from provisioner.core.services.provisioning.execution.subprocess_runner import (
    _run_subprocess,
)

logger = logging.getLogger(__name__)


class PreconditionError(Exception):
    """A mandatory preparation step failed."""


def run_override_script(path: Path) -> bool:
    """Run the per-deployment override script if there is one.

    Returns:
        True if the script ran, False if it does not exist.

    Raises:
        PreconditionError: The script exited non-zero.
    """
    if not path.is_file():
        logger.info("%s not found. Skipping...", path)
        return False

    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    logger.info("Executing %s...", path.name)
    result = _run_subprocess([str(path)], timeout=None, cwd=str(path.parent))
    if not result["ok"]:
        raise PreconditionError(
            f"Override script {path} failed: {result['error']}"
            + (f"\n{result['stderr']}" if result.get("stderr") else "")
        )
    return True


def ensure_tools(tools: tuple[str, ...] | list[str]) -> list[str]:
    """Install missing command-line tools with apt.

    Returns:
        The packages that were installed (empty if nothing was missing).

    Raises:
        PreconditionError: apt failed or a tool is still missing.
    """
    missing = missing_tools(tools)
    for tool in tools:
        if tool not in missing:
            logger.debug("%s is already installed.", tool)
    if not missing:
        return []

    packages = packages_for(missing)
    logger.info("Installing %s...", ", ".join(packages))
    for cmd in (
        ["apt-get", "update"],
        ["apt-get", "install", "-y", *packages],
    ):
        result = _run_subprocess(cmd, needs_sudo=True, timeout=900)
        if not result["ok"]:
            raise PreconditionError(
                f"Installing {', '.join(packages)} failed: {result['error']}"
            )

    still_missing = missing_tools(missing)
    if still_missing:
        raise PreconditionError(f"Tools still missing after install: {', '.join(still_missing)}")
    return packages


def resolve_volume(network_volume: Path) -> Path:
    """The network volume, or ``/`` when none is mounted."""
    if network_volume.is_dir():
        return network_volume
    logger.warning(
        "Network volume '%s' does not exist. You are NOT using a network volume — "
        "falling back to '/'.",
        network_volume,
    )
    return Path("/")


def mount_storage(baked_dir: Path, target_dir: Path) -> bool:
    """Move the baked installation onto persistent storage, once.

    Returns:
        True if moved, False if ``target_dir`` already existed.

    Raises:
        PreconditionError: Nothing to move, or the move failed.
    """
    if target_dir.is_dir():
        logger.info("%s already exists, skipping move.", target_dir)
        return False
    if not baked_dir.is_dir():
        raise PreconditionError(
            f"Neither {target_dir} nor the baked installation {baked_dir} exists"
        )
    try:
        target_dir.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(str(baked_dir), str(target_dir))
    except OSError as e:
        raise PreconditionError(f"Moving {baked_dir} to {target_dir} failed: {e}") from e
    logger.info("Moved %s → %s", baked_dir, target_dir)
    return True


def ensure_directories(paths: NodePaths) -> None:
    for directory in (paths.custom_nodes, paths.workflows, paths.log_dir):
        directory.mkdir(parents=True, exist_ok=True)


def install_helper_script(repo_url: str, script_name: str, dest_dir: Path) -> Path:
    """Install a standalone script from a git repository onto the PATH.

    The repository is cloned into a scratch directory, ``script_name``
    is moved into ``dest_dir`` and made executable, and the checkout is
    thrown away. An existing copy is replaced.

    Returns:
        Path of the installed script.

    Raises:
        PreconditionError: The clone, move or chmod failed.
    """
    target = dest_dir / script_name
    logger.info("Downloading %s to %s", script_name, dest_dir)
    with tempfile.TemporaryDirectory(prefix="helper_") as scratch:
        checkout = Path(scratch) / "repo"
        result = _run_subprocess(["git", "clone", "--depth", "1", repo_url, str(checkout)], timeout=300)
        if not result["ok"]:
            raise PreconditionError(f"Cloning {repo_url} failed: {result['error']}")
        source = checkout / script_name
        if not source.is_file():
            raise PreconditionError(f"{script_name} not found in {repo_url}")
        try:
            dest_dir.mkdir(parents=True, exist_ok=True)
            shutil.move(str(source), str(target))
            target.chmod(target.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        except OSError as e:
            raise PreconditionError(f"Installing {script_name} into {dest_dir} failed: {e}") from e
    return target


def sync_custom_nodes(nodes: dict[str, str], custom_nodes_dir: Path) -> dict[str, str]:
    """Clone missing custom-node repositories, update existing ones.

    A failed update keeps the checkout that is already there.

    Returns:
        ``{repo: "cloned" | "updated" | "stale"}``

    Raises:
        PreconditionError: A clone failed.
    """
    status: dict[str, str] = {}
    for repo, url in nodes.items():
        repo_dir = custom_nodes_dir / repo
        if not repo_dir.is_dir():
            logger.info("Cloning %s...", repo)
            result = _run_subprocess(["git", "clone", url, str(repo_dir)], cwd=str(custom_nodes_dir))
            if not result["ok"]:
                raise PreconditionError(f"Cloning {repo} failed: {result['error']}")
            status[repo] = "cloned"
        else:
            logger.info("Updating %s", repo)
            result = _run_subprocess(["git", "pull"], cwd=str(repo_dir))
            if result["ok"]:
                status[repo] = "updated"
            else:
                logger.warning("git pull failed for %s (%s) — using existing checkout", repo, result["error"])
                status[repo] = "stale"
    return status


def rename_misnamed(
    directory: Path,
    from_suffix: str = MISNAMED_SUFFIX,
    to_suffix: str = WEIGHTS_SUFFIX,
) -> list[Path]:
    """Rename ``*<from_suffix>`` files in ``directory`` to ``to_suffix``.

    Returns:
        The renamed files' new paths. Empty if none matched.
    """
    if not directory.is_dir():
        logger.debug("%s does not exist — nothing to rename", directory)
        return []

    renamed: list[Path] = []
    for file in sorted(directory.glob(f"*{from_suffix}")):
        if not file.is_file():
            continue
        target = file.with_suffix(to_suffix)
        logger.info("Renaming %s to %s", file.name, target.name)
        file.replace(target)
        renamed.append(target)
    return renamed


def place_workflows(source_dir: Path, dest_dir: Path) -> dict[str, list[str]]:
    """Move bundled workflow files into the service's workflow directory.

    A file already present at the destination wins; the bundled copy
    is deleted.

    Returns:
        ``{"moved": [...], "dropped": [...]}`` file names.
    """
    outcome: dict[str, list[str]] = {"moved": [], "dropped": []}
    if not source_dir.is_dir():
        logger.debug("No bundled workflows at %s", source_dir)
        return outcome

    dest_dir.mkdir(parents=True, exist_ok=True)
    for file in sorted(source_dir.iterdir()):
        if not file.is_file():
            continue
        target = dest_dir / file.name
        if target.exists():
            logger.info("File already exists in destination. Deleting: %s", file)
            file.unlink()
            outcome["dropped"].append(file.name)
        else:
            logger.info("Moving: %s to %s", file, dest_dir)
            shutil.move(str(file), str(target))
            outcome["moved"].append(file.name)
    return outcome
