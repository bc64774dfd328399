"""
Tests for persistence — run report files.
"""

import json
from pathlib import Path

from provisioner.core.persistence.report_file import save_report


def _read(path: Path) -> dict:
    return json.loads(path.read_text(encoding="utf-8"))


class TestReportFile:
    def test_save_creates_parents(self, tmp_path: Path):
        path = tmp_path / "reports" / "run.json"
        save_report({"run_id": "prov-1", "ok": True}, path)

        assert _read(path) == {"run_id": "prov-1", "ok": True}

    def test_valid_json_on_disk(self, tmp_path: Path):
        path = tmp_path / "run.json"
        save_report({"phase": "ready"}, path)
        assert _read(path)["phase"] == "ready"

    def test_no_temp_files_left(self, tmp_path: Path):
        save_report({"a": 1}, tmp_path / "run.json")
        assert list(tmp_path.glob(".report_*.tmp")) == []

    def test_overwrite(self, tmp_path: Path):
        path = tmp_path / "run.json"
        save_report({"v": 1}, path)
        save_report({"v": 2}, path)
        assert _read(path) == {"v": 2}

    def test_unicode_kept_readable(self, tmp_path: Path):
        path = tmp_path / "run.json"
        save_report({"error": "échec"}, path)
        assert "échec" in path.read_text(encoding="utf-8")
