"""
Tests for background package installs and the build task.
"""

import sys
from pathlib import Path

from provisioner.core.models.job import JobKind
from provisioner.core.models.plan import BuildStep, InstallStep
from provisioner.core.services.provisioning.execution.installer import BuildTask, InstallTask
from provisioner.core.services.provisioning.execution.supervisor import JobSupervisor


class TestInstallTask:
    def test_runs_in_background(self, supervisor: JobSupervisor, tmp_path: Path):
        log = tmp_path / "pip_node.log"
        step = InstallStep(
            name="node",
            command=[sys.executable, "-c", "print('installed')"],
            log_path=str(log),
        )
        job = InstallTask(supervisor).run(step)

        assert job.kind == JobKind.INSTALL
        assert job.key == "install:node"
        result = supervisor.join_all([job], poll_interval=0.01)
        assert result.ok
        assert "installed" in log.read_text()

    def test_best_effort_failure(self, supervisor: JobSupervisor):
        step = InstallStep(
            name="extras",
            command=[sys.executable, "-c", "import sys; sys.exit(1)"],
            required=False,
        )
        job = InstallTask(supervisor).run(step)
        result = supervisor.join_all([job], poll_interval=0.01)
        assert result.ok
        assert [r.label for r in result.failed_best_effort] == ["extras"]


class TestBuildTask:
    def test_script_chains_commands(self):
        step = BuildStep(name="b", commands=[["cd", "/src dir"], ["make", "install"]])
        assert BuildTask.script(step) == "cd '/src dir' && make install"

    def test_first_failure_stops_build(self, supervisor: JobSupervisor, tmp_path: Path):
        marker = tmp_path / "after"
        step = BuildStep(
            name="b",
            commands=[
                [sys.executable, "-c", "import sys; sys.exit(5)"],
                ["touch", str(marker)],
            ],
        )
        job = BuildTask(supervisor).run(step)
        result = supervisor.join_all([job], poll_interval=0.01)

        assert result.outcomes[0].failed
        assert result.outcomes[0].exit_code == 5
        assert not marker.exists()

    def test_unwritable_log_falls_back(self, supervisor: JobSupervisor, tmp_path: Path):
        step = BuildStep(
            name="b",
            commands=[[sys.executable, "-c", "print('built')"]],
            log_path="/nonexistent-dir/sage_build.log",
        )
        job = BuildTask(supervisor, fallback_log_dir=tmp_path).run(step)
        assert job.unit.log_path == str(tmp_path / "sage_build.log")
        supervisor.join_all([job], poll_interval=0.01)
        assert "built" in (tmp_path / "sage_build.log").read_text()
