"""
Artifact models — large binary files fetched into fixed local paths.

An artifact is identified by its destination path. Two catalog
categories naming the same destination describe the same artifact.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

# Files below this size are considered an unfinished download.
DEFAULT_MIN_SIZE_BYTES = 10 * 1024 * 1024


class ArtifactState(str, Enum):
    """On-disk state of an artifact as seen by the integrity check."""

    ABSENT = "absent"
    TOO_SMALL = "too_small"
    RESUMABLE_FRAGMENT = "resumable_fragment"
    COMPLETE = "complete"


class Artifact(BaseModel):
    """A single model file: where it comes from and where it lands."""

    model_config = ConfigDict(frozen=True)

    url: str
    destination: Path
    min_size_bytes: int = Field(default=DEFAULT_MIN_SIZE_BYTES, ge=0)
    label: str = ""

    @property
    def key(self) -> str:
        """Deduplication key — the destination path."""
        return str(self.destination)

    @property
    def name(self) -> str:
        return self.destination.name

    @property
    def directory(self) -> Path:
        return self.destination.parent
