"""
L4 Execution — Artifact integrity check and recovery.

Decides whether a local artifact is complete or must be fetched
again, and clears whatever an earlier attempt left behind.

The check is a size threshold, not a checksum: the catalog carries
no digests, and the threshold only has to catch downloads that did
not finish cleanly.
"""

from __future__ import annotations

import logging
from pathlib import Path

from provisioner.core.models.artifact import ArtifactState
from provisioner.core.services.provisioning.data.constants import ARIA2_CONTROL_SUFFIX
from provisioner.core.services.provisioning.domain.download_helpers import _fmt_size

logger = logging.getLogger(__name__)


class IntegrityChecker:
    """Sole authority on whether a transfer is skipped or restarted."""

    def __init__(self, control_suffix: str = ARIA2_CONTROL_SUFFIX):
        self._control_suffix = control_suffix

    def control_file(self, path: Path) -> Path:
        """The resume-fragment marker written next to ``path``."""
        return path.with_name(path.name + self._control_suffix)

    def assess(self, path: Path, min_size_bytes: int) -> ArtifactState:
        """Classify the artifact at ``path`` without touching it.

        Size is checked first: a file at or above the threshold is
        complete even if a stale control file sits next to it. The
        control file only matters when no file is present.
        """
        if path.is_file():
            if path.stat().st_size < min_size_bytes:
                return ArtifactState.TOO_SMALL
            return ArtifactState.COMPLETE
        if self.control_file(path).exists():
            return ArtifactState.RESUMABLE_FRAGMENT
        return ArtifactState.ABSENT

    def prepare(self, path: Path, min_size_bytes: int) -> ArtifactState:
        """Assess, then clear leftovers so the next fetch starts clean.

        - too small: the file is deleted, with its control file if any
        - fragment: the orphan control file is deleted

        Returns:
            The state observed before recovery.
        """
        state = self.assess(path, min_size_bytes)

        if state == ArtifactState.TOO_SMALL:
            size = path.stat().st_size
            logger.info(
                "🗑️ Deleting corrupted file (%s < %s): %s",
                _fmt_size(size), _fmt_size(min_size_bytes), path,
            )
            path.unlink(missing_ok=True)
            self.control_file(path).unlink(missing_ok=True)

        elif state == ArtifactState.RESUMABLE_FRAGMENT:
            control = self.control_file(path)
            logger.info("🗑️ Deleting %s control file: %s", self._control_suffix, control)
            control.unlink(missing_ok=True)

        elif state == ArtifactState.COMPLETE:
            logger.debug("%s complete (%s)", path.name, _fmt_size(path.stat().st_size))

        return state
