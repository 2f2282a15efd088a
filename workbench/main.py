"""
PVE GPU Workbench — CLI entrypoint.

Usage:
    pve-gpu                 # interactive guided installer
    pve-gpu list --json
    pve-gpu run nvidia-drivers
    pve-gpu setup --yes
"""

from __future__ import annotations

import json
import logging
import os
import sys
import warnings
from pathlib import Path

import click

from workbench import __version__
from workbench.core.errors import (
    ConfigError,
    ExecutionFailure,
    ParseWarning,
    RebootRequired,
    SessionStateError,
)
from workbench.core.models.state import SequenceRun
from workbench.core.observability.logging_config import setup_logging
from workbench.core.use_cases.workbench import Workbench, open_workbench
from workbench.ui.shell.session import InteractiveShell, click_notify

GPU_VENDORS = ("nvidia", "amd", "intel")

# Exit statuses for the one-shot commands
EXIT_FAILED = 1
EXIT_INTERRUPTED = 130


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="pve-gpu")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to workbench.yml (default: auto-detect).",
)
@click.option(
    "--gpu",
    "gpus",
    multiple=True,
    type=click.Choice(GPU_VENDORS),
    help="Assume this GPU vendor is present instead of running lspci (repeatable).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
    gpus: tuple[str, ...],
) -> None:
    """Proxmox GPU Workbench — guided GPU driver and LXC installer."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None
    ctx.obj["gpus"] = list(gpus) if gpus else None

    # ── Logging setup (once, at process start) ──────────────────
    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    elif quiet:
        level = "ERROR"
    else:
        level = os.environ.get("WORKBENCH_LOG_LEVEL", "WARNING")

    setup_logging(
        level=level,
        log_file=os.environ.get("WORKBENCH_LOG_FILE"),
        log_file_level=os.environ.get("WORKBENCH_LOG_FILE_LEVEL"),
        quiet_third_party=not debug,
    )

    # Header problems are listed on the info screen; only surface them
    # as log records when asked to be chatty.
    if verbose or debug:
        logging.captureWarnings(True)
    else:
        warnings.simplefilter("ignore", ParseWarning)

    if ctx.invoked_subcommand is None:
        ctx.invoke(shell)


def _open(ctx: click.Context, notify=click_notify) -> Workbench:
    """Build the workbench or exit with a readable config error."""
    try:
        return open_workbench(
            config_path=ctx.obj.get("config_path"),
            gpu_vendors=ctx.obj.get("gpus"),
            notify=notify,
        )
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(EXIT_FAILED)


def _sequence_exit(run: SequenceRun, wb: Workbench) -> None:
    """Map a sequence's final status to the process exit status."""
    if run.status == "awaiting_reboot":
        sys.exit(wb.config.reboot_exit_code)
    if run.status == "failed":
        sys.exit(EXIT_FAILED)
    if run.status == "interrupted":
        sys.exit(EXIT_INTERRUPTED)


@cli.command()
@click.pass_context
def shell(ctx: click.Context) -> None:
    """Start the interactive guided installer (the default)."""
    wb = _open(ctx)
    sys.exit(InteractiveShell(wb).run())


@cli.command("list")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--no-probe", is_flag=True, help="Skip detection checks.")
@click.pass_context
def list_actions(ctx: click.Context, as_json: bool, no_probe: bool) -> None:
    """List discovered actions by category with their status."""
    from workbench.core.use_cases.menu import build_menu
    from workbench.ui.shell.menu import STATUS_MARKS

    wb = _open(ctx)
    snapshot = build_menu(wb, probe=not no_probe)

    if as_json:
        click.echo(json.dumps(snapshot.to_dict(), indent=2))
        return

    if not snapshot.entries:
        click.secho("No actions found.", fg="yellow")
        return

    for group in snapshot.groups:
        click.secho(f"\n{group.name}", fg="cyan", bold=True)
        for entry in snapshot.entries_for(group):
            mark, colour = STATUS_MARKS[entry.status]
            click.secho(f"  {mark}", fg=colour, nl=False)
            click.echo(f" [{entry.index:>2}] {entry.descriptor.id:<28} {entry.descriptor.description}")

    if not ctx.obj.get("quiet"):
        click.echo()
        click.echo(f"   Setup sequence: {', '.join(snapshot.setup_ids) or '(none)'}")
    click.echo()


@cli.command()
@click.argument("action_id")
@click.pass_context
def run(ctx: click.Context, action_id: str) -> None:
    """Run a single action by id.

    Exits with the reboot exit code (default 3) when the action asks for
    a host reboot, and with 1 when it fails.
    """
    wb = _open(ctx)
    if action_id not in wb.registry:
        click.secho(f"❌ Unknown action '{action_id}'", fg="red")
        ids = wb.registry.ids()
        if ids:
            click.echo(f"   Available: {', '.join(ids)}")
        sys.exit(EXIT_FAILED)

    result = wb.orchestrator.run(action_id)
    try:
        result.raise_for_outcome()
    except RebootRequired as e:
        click.secho(f"↻ {e}. Reboot the host now.", fg="yellow")
        sys.exit(wb.config.reboot_exit_code)
    except ExecutionFailure as e:
        click.secho(f"❌ {e}: {result.detail}", fg="red")
        if result.log_path:
            click.echo(f"   Log: {result.log_path}")
        sys.exit(EXIT_INTERRUPTED if result.interrupted else EXIT_FAILED)

    click.secho(f"✅ {action_id} completed", fg="green")


@cli.command()
@click.option("--yes", "-y", "assume_yes", is_flag=True, help="Run every step without asking.")
@click.option("--sequence", "sequence_id", default="setup", show_default=True,
              help="Named sequence to run.")
@click.pass_context
def setup(ctx: click.Context, assume_yes: bool, sequence_id: str) -> None:
    """Run the host setup sequence from the first step.

    Replaces any saved progress; use ``resume`` to continue it instead.
    """
    wb = _open(ctx)

    existing = wb.store.load()
    if existing is not None and not existing.finished and not assume_yes:
        click.secho(f"⚠️  Saved progress exists for '{existing.sequence_id}'", fg="yellow")
        click.confirm("Discard it and start over?", abort=True)

    ids = wb.registry.sequence(sequence_id)
    if not ids:
        click.secho(f"❌ Sequence '{sequence_id}' has no steps", fg="red")
        sys.exit(EXIT_FAILED)

    confirm = None if assume_yes else InteractiveShell(wb, use_readline=False).confirm_step
    try:
        result = wb.orchestrator.run_sequence(ids, sequence_id=sequence_id, confirm=confirm)
    except SessionStateError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(EXIT_FAILED)
    _sequence_exit(result, wb)


@cli.command()
@click.option("--yes", "-y", "assume_yes", is_flag=True, help="Run every step without asking.")
@click.pass_context
def resume(ctx: click.Context, assume_yes: bool) -> None:
    """Continue a saved sequence at its next step."""
    wb = _open(ctx)

    saved = wb.store.load()
    if saved is None:
        click.secho("Nothing to resume.", fg="yellow")
        sys.exit(EXIT_FAILED)

    if saved.pending_reboot and saved.boot_id and saved.boot_id == wb.context.boot_id:
        click.secho("⚠️  The host has not been rebooted since progress was saved.", fg="yellow")

    confirm = None if assume_yes else InteractiveShell(wb, use_readline=False).confirm_step
    try:
        result = wb.orchestrator.resume(saved, confirm=confirm)
    except SessionStateError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(EXIT_FAILED)
    _sequence_exit(result, wb)


@cli.command()
@click.pass_context
def cancel(ctx: click.Context) -> None:
    """Discard saved sequence progress."""
    wb = _open(ctx)
    if wb.orchestrator.cancel():
        click.secho("✅ Progress cleared", fg="green")
    else:
        click.echo("No saved progress.")


@cli.command()
@click.option("-n", "count", default=20, show_default=True, help="Number of runs to show.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def logs(ctx: click.Context, count: int, as_json: bool) -> None:
    """Show the most recent action runs and their log files."""
    wb = _open(ctx)
    records = wb.run_log.read_recent(count)

    if as_json:
        click.echo(json.dumps([r.model_dump(mode="json") for r in records], indent=2))
        return

    if not records:
        click.echo("No runs recorded yet.")
        return

    colours = {"success": "green", "reboot_required": "yellow", "failure": "red"}
    for rec in records:
        click.echo(f"{rec.ended_at[:19]}  {rec.action_id:<28} ", nl=False)
        click.secho(f"{rec.outcome:<16}", fg=colours.get(rec.outcome), nl=False)
        click.echo(f" {rec.log_path or '-'}")


if __name__ == "__main__":
    cli()
