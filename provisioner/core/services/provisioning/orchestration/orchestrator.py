"""
L5 Orchestration — Provisioning run coordinator.

Sequences one provisioning run:

    init → running_override → ensuring_tools → mounting_storage →
    syncing_nodes → dispatching (installs ‖ fetches ‖ build) →
    barrier_required → awaiting_build → renaming_artifacts →
    placing_workflows → configuring_service → starting_service → ready

Any required-class failure moves the run to ``failed``. Precondition
failures happen before a single background job exists. A failed
required barrier stops the wait on best-effort work; nothing that is
already running gets killed.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any

from provisioner.core.models.config import NodePaths, ProvisionConfig
from provisioner.core.models.job import JobKind
from provisioner.core.models.plan import ProvisioningPlan
from provisioner.core.models.result import ProvisioningResult
from provisioner.core.persistence.manager_config import (
    ManagerConfigError,
    set_manager_option,
)
from provisioner.core.services.provisioning.data.constants import (
    CIVITAI_DOWNLOADER_SCRIPT,
    MANAGER_CONFIG_DEFAULTS,
    MANAGER_CONFIG_SECTION,
    PREVIEW_METHOD_KEY,
    PREVIEW_METHOD_VALUE,
)
from provisioner.core.services.provisioning.domain.plan import evaluate
from provisioner.core.services.provisioning.execution.fetcher import Fetcher
from provisioner.core.services.provisioning.execution.installer import BuildTask, InstallTask
from provisioner.core.services.provisioning.execution.integrity import IntegrityChecker
from provisioner.core.services.provisioning.execution.node_setup import (
    PreconditionError,
    ensure_directories,
    ensure_tools,
    install_helper_script,
    mount_storage,
    place_workflows,
    rename_misnamed,
    resolve_volume,
    run_override_script,
    sync_custom_nodes,
)
from provisioner.core.services.provisioning.execution.service import ServiceLauncher
from provisioner.core.services.provisioning.execution.supervisor import Job, JobSupervisor

logger = logging.getLogger(__name__)


class Phase(str, Enum):
    INIT = "init"
    RUNNING_OVERRIDE = "running_override"
    ENSURING_TOOLS = "ensuring_tools"
    MOUNTING_STORAGE = "mounting_storage"
    SYNCING_NODES = "syncing_nodes"
    DISPATCHING = "dispatching"
    BARRIER_REQUIRED = "barrier_required"
    AWAITING_BUILD = "awaiting_build"
    RENAMING_ARTIFACTS = "renaming_artifacts"
    PLACING_WORKFLOWS = "placing_workflows"
    CONFIGURING_SERVICE = "configuring_service"
    STARTING_SERVICE = "starting_service"
    READY = "ready"
    FAILED = "failed"


class ProvisioningError(Exception):
    """A required-class job failed; carries the aggregated result."""

    def __init__(self, message: str, result: ProvisioningResult | None = None):
        super().__init__(message)
        self.result = result or ProvisioningResult()


def generate_run_id() -> str:
    """Generate a unique run ID."""
    now = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
    return f"prov-{now}-{uuid.uuid4().hex[:6]}"


@dataclass
class Dispatched:
    """Jobs submitted in the dispatch phase, split by how they are awaited."""

    required: list[Job] = field(default_factory=list)
    best_effort: list[Job] = field(default_factory=list)
    build: Job | None = None
    skipped_artifacts: list[str] = field(default_factory=list)


@dataclass
class RunReport:
    """Outcome of one provisioning run."""

    run_id: str = ""
    started_at: str = ""
    ended_at: str = ""
    phase: Phase = Phase.INIT
    history: list[Phase] = field(default_factory=list)
    result: ProvisioningResult = field(default_factory=ProvisioningResult)
    volume: str = ""
    skipped_artifacts: list[str] = field(default_factory=list)
    renamed: list[str] = field(default_factory=list)
    optimizations_active: bool = False
    service_pid: int | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.phase == Phase.READY

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "started_at": self.started_at,
            "ended_at": self.ended_at,
            "phase": self.phase.value,
            "history": [p.value for p in self.history],
            "ok": self.ok,
            "exit_code": self.exit_code,
            "volume": self.volume,
            "skipped_artifacts": self.skipped_artifacts,
            "renamed": self.renamed,
            "optimizations_active": self.optimizations_active,
            "service_pid": self.service_pid,
            "error": self.error,
            "result": self.result.to_dict(),
        }


class Orchestrator:
    """Drive one provisioning run end to end.

    Collaborators are injectable so the run can be exercised without
    aria2c, pip or a GPU; defaults are the real implementations.

    Args:
        config: Immutable run configuration.
        plan: Pre-built plan. Evaluated from ``config`` when None.
        supervisor: Background job registry.
        fetcher: Artifact fetcher (built on ``supervisor`` when None).
        launcher: Service/notebook launcher.
        launch_services: Start the notebook and the service at the end.
    """

    def __init__(
        self,
        config: ProvisionConfig,
        *,
        plan: ProvisioningPlan | None = None,
        supervisor: JobSupervisor | None = None,
        fetcher: Fetcher | None = None,
        launcher: ServiceLauncher | None = None,
        launch_services: bool = True,
    ):
        self.config = config
        self._plan = plan
        self.supervisor = supervisor or JobSupervisor()
        self._fetcher = fetcher
        self.launcher = launcher or ServiceLauncher()
        self.launch_services = launch_services
        self.paths: NodePaths = config.paths()
        self.history: list[Phase] = []
        self.phase = Phase.INIT

    # ── Phase bookkeeping ───────────────────────────────────────

    def _transition(self, phase: Phase) -> None:
        logger.debug("Phase %s → %s", self.phase.value, phase.value)
        self.phase = phase
        self.history.append(phase)

    @property
    def plan(self) -> ProvisioningPlan:
        if self._plan is None:
            self._plan = evaluate(self.config, self.paths)
        return self._plan

    @property
    def fetcher(self) -> Fetcher:
        if self._fetcher is None:
            self._fetcher = Fetcher(
                self.supervisor,
                IntegrityChecker(),
                connections=self.config.download_connections,
                piece_size=self.config.download_piece_size,
                log_dir=self.paths.log_dir,
            )
        return self._fetcher

    # ── Run ─────────────────────────────────────────────────────

    def run(self) -> RunReport:
        """Execute the whole run. Never raises for provisioning failures."""
        report = RunReport(run_id=generate_run_id(), started_at=datetime.now(UTC).isoformat())
        self.history = report.history
        self._transition(Phase.INIT)

        try:
            self._prepare_node()
            report.volume = str(self.paths.volume)

            dispatched = self._dispatch()
            report.skipped_artifacts = dispatched.skipped_artifacts

            report.result = self._await_required(dispatched)
            optimizations, build_result = self._await_build(dispatched)
            report.result = report.result.merge(build_result)
            report.result = report.result.merge(self._sweep_best_effort(dispatched))

            report.renamed = [str(p) for p in self._normalize_artifacts()]
            self._place_workflows()
            self._configure_service()

            report.optimizations_active = optimizations
            if self.launch_services:
                report.service_pid = self._start_service(optimizations)
            else:
                logger.info("Service start skipped.")

            self._transition(Phase.READY)
            logger.info("✅ Provisioning complete (%s)", report.run_id)

        except PreconditionError as e:
            report.error = str(e)
            self._fail(f"Precondition failed: {e}")
        except ProvisioningError as e:
            report.error = str(e)
            report.result = report.result.merge(e.result)
            self._fail(str(e))
        except OSError as e:
            report.error = f"Filesystem error during {self.phase.value}: {e}"
            self._fail(report.error)

        report.phase = self.phase
        report.ended_at = datetime.now(UTC).isoformat()
        return report

    def _fail(self, message: str) -> None:
        self._transition(Phase.FAILED)
        logger.error("❌ %s", message)
        leftover = self.supervisor.pending()
        if leftover:
            logger.warning(
                "Leaving %d background job(s) running: %s",
                len(leftover), ", ".join(j.label for j in leftover),
            )

    # ── Preparation (foreground, precondition-gated) ────────────

    def _prepare_node(self) -> None:
        self._transition(Phase.RUNNING_OVERRIDE)
        run_override_script(self.paths.override_script)

        self._transition(Phase.ENSURING_TOOLS)
        ensure_tools(self.config.required_tools)

        self._transition(Phase.MOUNTING_STORAGE)
        volume = resolve_volume(self.config.network_volume)
        self.paths = self.config.paths(volume)
        if self.launch_services and self.config.start_notebook:
            self.launcher.start_notebook(volume, self.paths.log_dir / "jupyter.log")
        mount_storage(self.config.baked_install_dir, self.paths.comfy_dir)
        ensure_directories(self.paths)

        self._transition(Phase.SYNCING_NODES)
        if self.config.civitai_downloader_dir is not None:
            install_helper_script(
                self.config.civitai_downloader_repo,
                CIVITAI_DOWNLOADER_SCRIPT,
                self.config.civitai_downloader_dir,
            )
        sync_custom_nodes(self.config.custom_nodes, self.paths.custom_nodes)

    # ── Dispatch (background) ───────────────────────────────────

    def _dispatch(self) -> Dispatched:
        """Submit installs, the build and all fetches together."""
        self._transition(Phase.DISPATCHING)
        plan = self.plan
        dispatched = Dispatched()

        installer = InstallTask(self.supervisor)
        for step in plan.install_steps():
            job = installer.run(step)
            (dispatched.required if job.required else dispatched.best_effort).append(job)

        if plan.build is not None:
            dispatched.build = BuildTask(self.supervisor, self.paths.log_dir).run(plan.build)

        for group in plan.enabled_groups:
            if group.artifacts:
                logger.info("Downloading %s...", group.label)

        for artifact in plan.artifacts():
            job = self.fetcher.fetch(artifact)
            if job is None:
                dispatched.skipped_artifacts.append(artifact.key)
            elif job not in dispatched.required:
                dispatched.required.append(job)

        logger.info(
            "Dispatched %d required job(s), %d best-effort, build=%s; %d artifact(s) already present",
            len(dispatched.required),
            len(dispatched.best_effort),
            "yes" if dispatched.build else "no",
            len(dispatched.skipped_artifacts),
        )
        return dispatched

    # ── Barriers ────────────────────────────────────────────────

    def _await_required(self, dispatched: Dispatched) -> ProvisioningResult:
        self._transition(Phase.BARRIER_REQUIRED)
        logger.info("Waiting for all model downloads and package installs to complete...")
        result = self.supervisor.join_all(
            dispatched.required,
            poll_interval=self.config.download_poll_seconds,
            label="🔽 Downloads/installs",
        )
        result = ProvisioningResult(
            outcomes=[self.fetcher.verify(o) for o in result.outcomes],
        )

        if not result.ok:
            raise ProvisioningError(_failure_summary(result), result)

        fetched = len(result.of_kind(JobKind.FETCH))
        installed = len(result.of_kind(JobKind.INSTALL))
        logger.info("✅ %d download(s) and %d install(s) complete.", fetched, installed)
        return result

    def _await_build(self, dispatched: Dispatched) -> tuple[bool, ProvisioningResult]:
        """Wait for the optimization build.

        Returns:
            (optimizations usable, build outcome).

        Raises:
            ProvisioningError: A required build failed.
        """
        self._transition(Phase.AWAITING_BUILD)
        job = dispatched.build
        if job is None:
            return False, ProvisioningResult()

        logger.info("⏳ Waiting for %s build to complete...", job.label)
        self.supervisor.wait_while_alive(
            job,
            poll_interval=self.config.build_poll_seconds,
            message=f"🛠️ Building {job.label} in progress...",
        )
        result = self.supervisor.join_all([job], label=f"{job.label} build")
        outcome = result.outcomes[0]
        if outcome.ok:
            logger.info("✅ %s build complete.", job.label)
            return True, result
        if outcome.required:
            raise ProvisioningError(f"build failed: {outcome.describe()}", result)
        logger.warning(
            "⚠️ %s build failed — starting without optimizations (see %s)",
            job.label, outcome.log_path,
        )
        return False, result

    def _sweep_best_effort(self, dispatched: Dispatched) -> ProvisioningResult:
        return self.supervisor.collect_finished(dispatched.best_effort)

    # ── Post-barrier file passes ────────────────────────────────

    def _normalize_artifacts(self) -> list[Path]:
        self._transition(Phase.RENAMING_ARTIFACTS)
        logger.info("Renaming loras downloaded as zip files to safetensors files")
        return rename_misnamed(self.paths.loras)

    def _place_workflows(self) -> None:
        self._transition(Phase.PLACING_WORKFLOWS)
        place_workflows(self.config.workflow_source_dir, self.paths.workflows)

    def _configure_service(self) -> None:
        self._transition(Phase.CONFIGURING_SERVICE)
        if self.config.skip_preview_method_patch:
            logger.info("Skipping preview method update.")
            return
        logger.info("Updating default preview method via config.ini...")
        try:
            set_manager_option(
                self.paths.manager_config,
                PREVIEW_METHOD_KEY,
                PREVIEW_METHOD_VALUE,
                defaults=MANAGER_CONFIG_DEFAULTS,
                section=MANAGER_CONFIG_SECTION,
            )
        except ManagerConfigError as e:
            raise PreconditionError(str(e)) from e

    # ── Service ─────────────────────────────────────────────────

    def _start_service(self, optimizations: bool) -> int | None:
        self._transition(Phase.STARTING_SERVICE)
        try:
            process = self.launcher.start_service(
                self.paths.comfy_dir,
                optimizations=optimizations,
                log_path=self.paths.service_log,
            )
        except OSError as e:
            raise PreconditionError(f"Could not start the service: {e}") from e

        ready = self.launcher.wait_until_ready(
            self.config.service_url,
            poll_interval=self.config.readiness_poll_seconds,
            timeout=self.config.readiness_timeout_seconds,
            process=process,
            log_path=self.paths.service_log,
        )
        if not ready:
            raise ProvisioningError(f"Service at {self.config.service_url} never became ready")
        return process.pid


def _failure_summary(result: ProvisioningResult) -> str:
    """Name the failed classes and units, e.g. ``fetch failed: a, b``."""
    parts = []
    for kind in result.failed_kinds:
        labels = [r.label for r in result.failed_required if r.kind == kind]
        parts.append(f"{kind.value} failed: {', '.join(labels)}")
    return "; ".join(parts)
