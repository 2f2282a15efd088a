"""
Menu rendering — the categorized action list and the info screen.
"""

from __future__ import annotations

import click

from workbench.core.models.action import ActionStatus
from workbench.core.models.state import LogRecord, SequenceRun
from workbench.core.use_cases.menu import MenuSnapshot
from workbench.core.use_cases.workbench import Workbench

STATUS_MARKS: dict[ActionStatus, tuple[str, str | None]] = {
    ActionStatus.SATISFIED: ("✓", "green"),
    ActionStatus.UNSATISFIED: (" ", None),
    ActionStatus.ERROR: ("!", "red"),
    ActionStatus.UNKNOWN: ("·", None),
}

_RULE = "=" * 48


def render_menu(snapshot: MenuSnapshot, workbench: Workbench) -> None:
    """Print the main menu."""
    click.echo()
    click.secho(_RULE, fg="green")
    click.secho("Proxmox GPU Workbench — Guided Installer", fg="green", bold=True)
    click.secho(_RULE, fg="green")

    vendors = ", ".join(v.upper() for v in workbench.context.gpu_vendors) or "none detected"
    click.echo(f"GPUs: {vendors}")
    click.secho(
        f"Status: {snapshot.satisfied_count}/{len(snapshot.entries)} actions already in place",
        fg="yellow",
    )

    if snapshot.session is not None:
        click.echo()
        click.secho(f"⏸  {describe_session(snapshot.session)}", fg="yellow")

    if not snapshot.entries:
        click.echo()
        click.secho("No actions found in:", fg="red")
        for root in workbench.config.roots:
            click.echo(f"   • {root}")

    for group in snapshot.groups:
        click.echo()
        click.secho(f"=== {group.name} ===", fg="green", bold=True)
        for entry in snapshot.entries_for(group):
            mark, colour = STATUS_MARKS[entry.status]
            click.secho(f" {mark}", fg=colour, nl=False)
            click.echo(f" [{entry.index:>2}] {entry.descriptor.id:<28} {entry.descriptor.description}")

    click.echo()
    click.secho("Options:", fg="yellow")
    setup_label = f"{len(snapshot.setup_ids)} steps" if snapshot.setup_ids else "none defined"
    click.echo(f"  setup        - Run the host setup sequence ({setup_label}) [Enter]")
    click.echo("  <number|id>  - Run one action")
    click.echo("  info         - Show details and refresh statuses")
    click.echo("  update       - Update the action scripts")
    click.echo("  reset        - Discard saved setup progress")
    click.echo("  quit         - Exit")
    click.echo()
    click.echo("Legend: ✓ in place   ! check failed   · no check")
    click.echo()


def describe_session(run: SequenceRun) -> str:
    """One-line summary of a saved sequence."""
    if run.finished:
        where = "all steps done"
    else:
        where = f"next step {run.next_index + 1}/{run.total} ({run.next_action_id})"
    labels = {
        "awaiting_reboot": "waiting for a reboot",
        "failed": "stopped after a failure",
        "interrupted": "paused",
        "running": "in progress",
        "completed": "completed",
    }
    return f"'{run.sequence_id}' {labels.get(run.status, run.status)} — {where}"


def render_info(snapshot: MenuSnapshot, workbench: Workbench, recent: list[LogRecord]) -> None:
    """Print the details screen: host, session, recent runs, warnings."""
    ctx = workbench.context
    cfg = workbench.config

    click.echo()
    click.secho("ℹ️  Workbench info", fg="cyan", bold=True)
    click.echo(f"   Install root: {cfg.root}")
    click.echo(f"   Action roots: {', '.join(str(r) for r in cfg.roots)}")
    click.echo(f"   State dir:    {cfg.state_path}")
    click.echo(f"   Logs:         {cfg.log_path} (keeping {cfg.log_retention})")
    click.echo(f"   NVIDIA GPU:   {'yes' if ctx.has_nvidia else 'no'}")
    click.echo(f"   AMD GPU:      {'yes' if ctx.has_amd else 'no'}")

    click.echo()
    click.secho("   Setup sequence:", bold=True)
    if snapshot.setup_ids:
        for n, action_id in enumerate(snapshot.setup_ids, start=1):
            click.echo(f"     {n}. {action_id}")
    else:
        click.echo("     (none)")

    if snapshot.session is not None:
        run = snapshot.session
        click.echo()
        click.secho("   Saved progress:", bold=True)
        click.echo(f"     {describe_session(run)}")
        click.echo(f"     Completed: {', '.join(run.completed) or '-'}")
        click.echo(f"     Remaining: {', '.join(run.remaining) or '-'}")
        if run.skipped:
            click.echo(f"     Skipped:   {', '.join(run.skipped)}")
        if run.last_error:
            click.secho(f"     Last error: {run.last_error}", fg="red")
        if run.last_log:
            click.echo(f"     Last log:  {run.last_log}")

    errors = [e for e in snapshot.entries if e.status == ActionStatus.ERROR]
    if errors:
        click.echo()
        click.secho("   ⚠️  Detection checks that failed or timed out:", fg="yellow")
        for entry in errors:
            click.echo(f"     • {entry.descriptor.id}: {entry.descriptor.detect}")

    malformed = [e.descriptor for e in snapshot.entries if e.descriptor.warnings]
    if malformed:
        click.echo()
        click.secho("   ⚠️  Header problems (defaults used):", fg="yellow")
        for d in malformed:
            click.echo(f"     • {d.source}: {'; '.join(d.warnings)}")

    if recent:
        click.echo()
        click.secho("   Recent runs:", bold=True)
        colours = {"success": "green", "reboot_required": "yellow", "failure": "red"}
        for rec in recent:
            click.echo(f"     {rec.ended_at[:19]}  {rec.action_id:<28} ", nl=False)
            click.secho(rec.outcome, fg=colours.get(rec.outcome))

    click.echo()
