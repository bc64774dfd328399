"""
ComfyUI node provisioner — CLI entrypoint.

Usage:
    provisioner --help
    provisioner run
    provisioner plan --json
    provisioner check
"""

from __future__ import annotations

import json
import os
import sys
import time
from pathlib import Path

import click

from provisioner import __version__
from provisioner.core.observability.logging_config import attach_run_log, setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="provisioner")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Only log errors.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to provision.yml (default: $PROVISION_CONFIG or auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """Provision a GPU node for ComfyUI: models, packages, service."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = Path(config_path) if config_path else None
    ctx.obj["quiet"] = quiet

    # ── Logging setup (once, at process start) ──────────────────
    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    elif quiet:
        level = "ERROR"
    else:
        level = os.environ.get("PROVISION_LOG_LEVEL", "INFO")

    setup_logging(level=level)


def _load(ctx: click.Context):
    """Load the config or exit 1 with the error."""
    from provisioner.core.config.loader import ConfigError, load_config

    try:
        return load_config(ctx.obj.get("config_path"))
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)


# ── run ─────────────────────────────────────────────────────────


@cli.command()
@click.option("--no-service", is_flag=True, help="Provision only; don't start JupyterLab or ComfyUI.")
@click.option(
    "--report",
    "report_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Write the run report as JSON to this file.",
)
@click.option(
    "--foreground",
    is_flag=True,
    help="After the service is up, stay attached until it exits.",
)
@click.option("--no-run-log", is_flag=True, help="Don't keep a copy of the output under the volume's log directory.")
@click.pass_context
def run(
    ctx: click.Context,
    no_service: bool,
    report_path: str | None,
    foreground: bool,
    no_run_log: bool,
) -> None:
    """Run the full provisioning sequence."""
    from provisioner.core.persistence.report_file import save_report
    from provisioner.core.services.provisioning.execution.node_setup import resolve_volume
    from provisioner.core.services.provisioning.orchestration.orchestrator import Orchestrator

    config = _load(ctx)
    if not no_run_log:
        log_dir = config.paths(resolve_volume(config.network_volume)).log_dir
        try:
            attach_run_log(log_dir)
        except OSError as e:
            click.secho(f"⚠️  Not keeping a run log in {log_dir}: {e}", fg="yellow", err=True)
    orchestrator = Orchestrator(config, launch_services=not no_service)
    report = orchestrator.run()

    if report_path:
        save_report(report.to_dict(), Path(report_path))

    if not report.ok:
        click.secho(f"❌ Provisioning failed: {report.error}", fg="red", bold=True, err=True)
        sys.exit(report.exit_code)

    if not ctx.obj.get("quiet"):
        click.secho("✅ Provisioning complete", fg="green", bold=True)
        if report.skipped_artifacts:
            click.echo(f"   Already present: {len(report.skipped_artifacts)} artifact(s)")
        if not report.optimizations_active and config.enable_optimizations:
            click.secho("   ⚠️  Running without optimizations", fg="yellow")

    if foreground and report.service_pid:
        _wait_for_pid(report.service_pid)


def _wait_for_pid(pid: int) -> None:
    """Block until ``pid`` is gone (the service is not our child)."""
    while True:
        try:
            os.kill(pid, 0)
        except ProcessLookupError:
            return
        except PermissionError:
            pass
        time.sleep(5)


# ── plan ────────────────────────────────────────────────────────


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def plan(ctx: click.Context, as_json: bool) -> None:
    """Show what a run would download, install and build."""
    from provisioner.core.services.provisioning.domain.plan import evaluate, summarize
    from provisioner.core.services.provisioning.execution.node_setup import resolve_volume

    config = _load(ctx)
    volume = resolve_volume(config.network_volume)
    result = evaluate(config, config.paths(volume))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    summary = summarize(result)
    click.secho(f"\n📋 Plan for {volume}", fg="cyan", bold=True)
    for group in result.groups:
        if not group.enabled:
            click.secho(f"   ○ {group.label or group.category}  (off: {group.flag})", dim=True)
            continue
        click.echo(f"   ● {group.label or group.category}")
        for artifact in group.artifacts:
            click.echo(f"       {artifact.destination}")
        for step in group.steps:
            marker = "" if step.required else " (best-effort)"
            click.echo(f"       pip: {step.name}{marker}")

    click.echo()
    click.echo(f"   Artifacts: {summary.artifacts}")
    click.echo(f"   Install steps: {summary.install_steps}")
    if result.build:
        marker = "required" if result.build.required else "optional"
        click.echo(f"   Build: {result.build.name} ({marker})")
    if summary.duplicate_destinations:
        click.echo(f"   Shared destinations (fetched once): {len(summary.duplicate_destinations)}")
    click.echo()


# ── check ───────────────────────────────────────────────────────


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def check(ctx: click.Context, as_json: bool) -> None:
    """Report the on-disk state of every planned artifact.

    Read-only: nothing is deleted or downloaded. Exits 1 if any
    artifact is not complete.
    """
    from provisioner.core.models.artifact import ArtifactState
    from provisioner.core.services.provisioning.domain.download_helpers import _fmt_size
    from provisioner.core.services.provisioning.domain.plan import evaluate
    from provisioner.core.services.provisioning.execution.integrity import IntegrityChecker
    from provisioner.core.services.provisioning.execution.node_setup import resolve_volume

    config = _load(ctx)
    paths = config.paths(resolve_volume(config.network_volume))
    checker = IntegrityChecker()

    rows = []
    for artifact in evaluate(config, paths).artifacts():
        state = checker.assess(artifact.destination, artifact.min_size_bytes)
        size = artifact.destination.stat().st_size if artifact.destination.is_file() else 0
        rows.append({
            "destination": str(artifact.destination),
            "state": state.value,
            "size_bytes": size,
        })

    complete = sum(1 for r in rows if r["state"] == ArtifactState.COMPLETE.value)

    if as_json:
        click.echo(json.dumps({"artifacts": rows, "complete": complete, "total": len(rows)}, indent=2))
    else:
        icons = {
            ArtifactState.COMPLETE.value: "✅",
            ArtifactState.ABSENT.value: "○",
            ArtifactState.TOO_SMALL.value: "⚠️ ",
            ArtifactState.RESUMABLE_FRAGMENT.value: "⏸️ ",
        }
        for row in rows:
            size = f" ({_fmt_size(row['size_bytes'])})" if row["size_bytes"] else ""
            click.echo(f"   {icons[row['state']]} {row['destination']}{size}")
        click.echo()
        color = "green" if complete == len(rows) else "yellow"
        click.secho(f"   {complete}/{len(rows)} complete", fg=color, bold=True)

    if complete != len(rows):
        sys.exit(1)


# ── config ──────────────────────────────────────────────────────


@cli.group()
def config() -> None:
    """Provisioning configuration commands."""


@config.command("show")
@click.pass_context
def config_show(ctx: click.Context) -> None:
    """Print the effective configuration (file + environment)."""
    cfg = _load(ctx)
    click.echo(json.dumps(cfg.model_dump(mode="json"), indent=2))


if __name__ == "__main__":
    cli()
