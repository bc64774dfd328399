"""
Shared test fixtures and configuration.

Background work is exercised with real child processes of the
current interpreter standing in for aria2c, pip and the build.
"""

import logging
import sys
import time
from pathlib import Path

import pytest

from provisioner.core.models.artifact import Artifact
from provisioner.core.models.config import ProvisionConfig
from provisioner.core.services.provisioning.execution.fetcher import Fetcher
from provisioner.core.services.provisioning.execution.supervisor import JobSupervisor

# Size every fake download writes; above ``min_artifact_bytes`` below.
FAKE_ARTIFACT_BYTES = 2048

UNREACHABLE = "http://unreachable.invalid"

# argv: url, destination, size
_FAKE_FETCH = """\
import pathlib, sys, time
url, dest, size = sys.argv[1], sys.argv[2], int(sys.argv[3])
if url.startswith("http://unreachable"):
    sys.exit(1)
if url.startswith("http://slow"):
    time.sleep(0.5)
if url.startswith("http://short"):
    size = 10
pathlib.Path(dest).write_bytes(b"\\0" * size)
"""


class FakeFetcher(Fetcher):
    """Fetcher whose transfer is a tiny interpreter script.

    URL prefixes select the behavior: ``http://unreachable`` exits 1,
    ``http://slow`` sleeps first, ``http://short`` writes a 10-byte file.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.launched: list[str] = []

    def build_command(self, artifact: Artifact) -> list[str]:
        self.launched.append(artifact.name)
        return [
            sys.executable, "-c", _FAKE_FETCH,
            artifact.url, str(artifact.destination), str(FAKE_ARTIFACT_BYTES),
        ]


def fast_sleep(_seconds: float) -> None:
    time.sleep(0.01)


@pytest.fixture(autouse=True)
def _restore_root_logger():
    """CLI tests reconfigure the root logger; put it back afterwards."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def volume(tmp_path: Path) -> Path:
    vol = tmp_path / "volume"
    vol.mkdir()
    return vol


@pytest.fixture
def baked_dir(tmp_path: Path) -> Path:
    """A minimal baked installation, as found in the image."""
    baked = tmp_path / "baked" / "ComfyUI"
    (baked / "models" / "loras").mkdir(parents=True)
    (baked / "main.py").write_text("print('comfy')\n")
    return baked


@pytest.fixture
def config(tmp_path: Path, volume: Path, baked_dir: Path) -> ProvisionConfig:
    """Config that touches nothing outside ``tmp_path``."""
    return ProvisionConfig(
        network_volume=volume,
        baked_install_dir=baked_dir,
        workflow_source_dir=tmp_path / "bundled_workflows",
        build_log=tmp_path / "build.log",
        build_root=tmp_path,
        required_tools=(),
        custom_nodes={},
        civitai_downloader_dir=None,
        runtime_extras=(),
        enable_optimizations=False,
        start_notebook=False,
        min_artifact_bytes=1024,
        download_poll_seconds=0.05,
        build_poll_seconds=0.05,
        readiness_poll_seconds=0.01,
    )


@pytest.fixture
def supervisor() -> JobSupervisor:
    return JobSupervisor(sleep=fast_sleep)


@pytest.fixture
def fetcher(supervisor: JobSupervisor, tmp_path: Path) -> FakeFetcher:
    return FakeFetcher(supervisor, log_dir=tmp_path / "logs")
