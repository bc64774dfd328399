"""
Tests for the artifact fetcher — skip, recovery, dedup, verification.
"""

from pathlib import Path

from conftest import FAKE_ARTIFACT_BYTES, UNREACHABLE, FakeFetcher

from provisioner.core.models.artifact import Artifact
from provisioner.core.services.provisioning.domain.download_helpers import (
    _fmt_size,
    aria2_command,
)
from provisioner.core.services.provisioning.execution.fetcher import Fetcher
from provisioner.core.services.provisioning.execution.supervisor import JobSupervisor


def _artifact(tmp_path: Path, url: str = "https://host/m/model.safetensors", name="model.safetensors") -> Artifact:
    return Artifact(url=url, destination=tmp_path / "models" / "vae" / name, min_size_bytes=1024)


class TestAria2Command:
    def test_resumable_multi_connection(self):
        cmd = aria2_command("https://h/x.safetensors", Path("/m/vae/x.safetensors"))
        assert cmd[0] == "aria2c"
        assert cmd[cmd.index("-x") + 1] == "16"
        assert cmd[cmd.index("-s") + 1] == "16"
        assert cmd[cmd.index("-k") + 1] == "1M"
        assert "--continue=true" in cmd
        assert cmd[cmd.index("-d") + 1] == "/m/vae"
        assert cmd[cmd.index("-o") + 1] == "x.safetensors"
        assert cmd[-1] == "https://h/x.safetensors"

    def test_fetcher_passes_connection_settings(self, tmp_path: Path):
        fetcher = Fetcher(JobSupervisor(), connections=4, piece_size="8M")
        cmd = fetcher.build_command(_artifact(tmp_path))
        assert cmd[cmd.index("-x") + 1] == "4"
        assert cmd[cmd.index("-k") + 1] == "8M"

    def test_fmt_size(self):
        assert _fmt_size(512) == "512.0 B"
        assert _fmt_size(10 * 1024 * 1024) == "10.0 MB"


class TestFetch:
    def test_complete_file_is_skipped(self, fetcher: FakeFetcher, supervisor: JobSupervisor, tmp_path: Path):
        artifact = _artifact(tmp_path)
        artifact.directory.mkdir(parents=True)
        artifact.destination.write_bytes(b"x" * 4096)

        assert fetcher.fetch(artifact) is None
        assert fetcher.launched == []
        assert supervisor.pending() == []

    def test_absent_file_is_fetched(self, fetcher: FakeFetcher, supervisor: JobSupervisor, tmp_path: Path):
        artifact = _artifact(tmp_path)
        job = fetcher.fetch(artifact)

        result = supervisor.join_all([job], poll_interval=0.01)

        assert result.ok
        assert artifact.destination.stat().st_size == FAKE_ARTIFACT_BYTES
        assert result.outcomes[0].metadata["url"] == artifact.url

    def test_too_small_file_refetched(self, fetcher: FakeFetcher, supervisor: JobSupervisor, tmp_path: Path):
        artifact = _artifact(tmp_path)
        artifact.directory.mkdir(parents=True)
        artifact.destination.write_bytes(b"x" * 10)

        job = fetcher.fetch(artifact)
        supervisor.join_all([job], poll_interval=0.01)

        assert fetcher.launched == ["model.safetensors"]
        assert artifact.destination.stat().st_size == FAKE_ARTIFACT_BYTES

    def test_fragment_cleared_before_fetch(self, fetcher: FakeFetcher, supervisor: JobSupervisor, tmp_path: Path):
        artifact = _artifact(tmp_path, url="http://slow/model.safetensors")
        artifact.directory.mkdir(parents=True)
        artifact.destination.write_bytes(b"x" * 10)
        control = artifact.destination.with_name("model.safetensors.aria2")
        control.write_bytes(b"ctl")

        job = fetcher.fetch(artifact)

        assert job is not None
        assert not control.exists()
        assert not artifact.destination.exists()
        supervisor.join_all([job], poll_interval=0.01)

    def test_stale_control_file_beside_complete_file_skips(self, fetcher: FakeFetcher, tmp_path: Path):
        artifact = _artifact(tmp_path)
        artifact.directory.mkdir(parents=True)
        artifact.destination.write_bytes(b"x" * 4096)
        artifact.destination.with_name("model.safetensors.aria2").write_bytes(b"ctl")

        assert fetcher.fetch(artifact) is None
        assert fetcher.launched == []

    def test_live_fetch_not_duplicated(self, fetcher: FakeFetcher, supervisor: JobSupervisor, tmp_path: Path):
        artifact = _artifact(tmp_path, url="http://slow/model.safetensors")
        first = fetcher.fetch(artifact)
        second = fetcher.fetch(artifact)

        assert second is first
        assert fetcher.launched == ["model.safetensors"]
        supervisor.join_all([first], poll_interval=0.01)

    def test_transfer_log_path(self, fetcher: FakeFetcher, supervisor: JobSupervisor, tmp_path: Path):
        job = fetcher.fetch(_artifact(tmp_path))
        result = supervisor.join_all([job], poll_interval=0.01)
        assert result.outcomes[0].log_path == str(tmp_path / "logs" / "downloads" / "model.safetensors.log")


class TestVerify:
    def test_failed_transfer_reported(self, fetcher: FakeFetcher, supervisor: JobSupervisor, tmp_path: Path):
        artifact = _artifact(tmp_path, url=f"{UNREACHABLE}/model.safetensors")
        job = fetcher.fetch(artifact)
        outcome = fetcher.verify(supervisor.join_all([job], poll_interval=0.01).outcomes[0])

        assert not outcome.ok
        assert outcome.exit_code == 1
        assert artifact.url in outcome.describe()

    def test_short_file_after_success_is_failure(self, fetcher: FakeFetcher, supervisor: JobSupervisor, tmp_path: Path):
        artifact = _artifact(tmp_path, url="http://short/model.safetensors")
        job = fetcher.fetch(artifact)
        raw = supervisor.join_all([job], poll_interval=0.01).outcomes[0]
        assert raw.ok

        outcome = fetcher.verify(raw)

        assert not outcome.ok
        assert "integrity check failed" in outcome.error

    def test_complete_download_passes(self, fetcher: FakeFetcher, supervisor: JobSupervisor, tmp_path: Path):
        job = fetcher.fetch(_artifact(tmp_path))
        outcome = fetcher.verify(supervisor.join_all([job], poll_interval=0.01).outcomes[0])
        assert outcome.ok
