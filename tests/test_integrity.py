"""
Tests for the integrity checker — assess and recovery.
"""

from pathlib import Path

from provisioner.core.models.artifact import ArtifactState
from provisioner.core.services.provisioning.execution.integrity import IntegrityChecker


class TestAssess:
    def test_absent(self, tmp_path: Path):
        checker = IntegrityChecker()
        assert checker.assess(tmp_path / "model.safetensors", 100) == ArtifactState.ABSENT

    def test_too_small(self, tmp_path: Path):
        path = tmp_path / "model.safetensors"
        path.write_bytes(b"x" * 99)
        assert IntegrityChecker().assess(path, 100) == ArtifactState.TOO_SMALL

    def test_exact_threshold_is_complete(self, tmp_path: Path):
        path = tmp_path / "model.safetensors"
        path.write_bytes(b"x" * 100)
        assert IntegrityChecker().assess(path, 100) == ArtifactState.COMPLETE

    def test_size_wins_over_control_file(self, tmp_path: Path):
        """A file above the threshold is complete even with a stale control file."""
        path = tmp_path / "model.safetensors"
        path.write_bytes(b"x" * 500)
        (tmp_path / "model.safetensors.aria2").write_bytes(b"ctl")
        assert IntegrityChecker().assess(path, 100) == ArtifactState.COMPLETE

    def test_small_file_with_control_file_is_too_small(self, tmp_path: Path):
        path = tmp_path / "model.safetensors"
        path.write_bytes(b"x" * 10)
        (tmp_path / "model.safetensors.aria2").write_bytes(b"ctl")
        assert IntegrityChecker().assess(path, 100) == ArtifactState.TOO_SMALL

    def test_control_file_without_data(self, tmp_path: Path):
        path = tmp_path / "model.safetensors"
        (tmp_path / "model.safetensors.aria2").write_bytes(b"ctl")
        assert IntegrityChecker().assess(path, 100) == ArtifactState.RESUMABLE_FRAGMENT

    def test_assess_never_deletes(self, tmp_path: Path):
        path = tmp_path / "model.safetensors"
        path.write_bytes(b"x")
        IntegrityChecker().assess(path, 100)
        assert path.exists()

    def test_custom_control_suffix(self, tmp_path: Path):
        checker = IntegrityChecker(control_suffix=".part")
        path = tmp_path / "a.bin"
        assert checker.control_file(path) == tmp_path / "a.bin.part"


class TestPrepare:
    def test_deletes_too_small_file(self, tmp_path: Path):
        path = tmp_path / "model.safetensors"
        path.write_bytes(b"x" * 10)

        state = IntegrityChecker().prepare(path, 100)

        assert state == ArtifactState.TOO_SMALL
        assert not path.exists()

    def test_deletes_orphan_control_file(self, tmp_path: Path):
        path = tmp_path / "model.safetensors"
        control = tmp_path / "model.safetensors.aria2"
        control.write_bytes(b"ctl")

        state = IntegrityChecker().prepare(path, 100)

        assert state == ArtifactState.RESUMABLE_FRAGMENT
        assert not control.exists()

    def test_deletes_small_file_and_its_control_file(self, tmp_path: Path):
        path = tmp_path / "model.safetensors"
        control = tmp_path / "model.safetensors.aria2"
        path.write_bytes(b"x" * 10)
        control.write_bytes(b"ctl")

        state = IntegrityChecker().prepare(path, 100)

        assert state == ArtifactState.TOO_SMALL
        assert not path.exists()
        assert not control.exists()

    def test_keeps_complete_file_next_to_stale_control_file(self, tmp_path: Path):
        path = tmp_path / "model.safetensors"
        path.write_bytes(b"x" * 500)
        (tmp_path / "model.safetensors.aria2").write_bytes(b"ctl")

        assert IntegrityChecker().prepare(path, 100) == ArtifactState.COMPLETE
        assert path.stat().st_size == 500

    def test_keeps_complete_file(self, tmp_path: Path):
        path = tmp_path / "model.safetensors"
        path.write_bytes(b"x" * 200)

        assert IntegrityChecker().prepare(path, 100) == ArtifactState.COMPLETE
        assert path.stat().st_size == 200

    def test_absent_is_noop(self, tmp_path: Path):
        assert IntegrityChecker().prepare(tmp_path / "nope", 100) == ArtifactState.ABSENT
        assert list(tmp_path.iterdir()) == []
