"""
Interactive shell — the guided installer's main loop.

Render (with freshly probed statuses) → read a command → dispatch to the
orchestrator → re-render.  Bad input re-prompts with an error; an action
failure is reported and control returns to the prompt.  Ctrl-C stops
the current command or probe pass, never the shell; the shell only
exits on ``quit`` or end of input.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path

import click

from workbench.core.engine.orchestrator import StepChoice
from workbench.core.errors import WorkbenchError
from workbench.core.models.action import ActionDescriptor, ActionStatus, ExecutionResult
from workbench.core.models.state import SequenceRun
from workbench.core.services.prober import probe
from workbench.core.use_cases.menu import MenuSnapshot, build_menu
from workbench.core.use_cases.update import run_update
from workbench.core.use_cases.workbench import Workbench
from workbench.ui.shell.commands import (
    DEFAULT_COMMAND,
    Command,
    CommandError,
    completion_candidates,
    parse_command,
)
from workbench.ui.shell.menu import describe_session, render_info, render_menu

try:
    import readline
except ImportError:  # not available on every platform
    readline = None

logger = logging.getLogger(__name__)

NOTIFY_COLOURS = {"success": "green", "warning": "yellow", "error": "red", "info": "cyan"}


def click_notify(level: str, message: str) -> None:
    """Orchestrator notifier that prints to the terminal."""
    click.secho(message, fg=NOTIFY_COLOURS.get(level))


class CommandCompleter:
    """readline completer over keywords and registered action ids."""

    def __init__(self, ids: Callable[[], list[str]]):
        self._ids = ids

    def complete(self, text: str, state: int) -> str | None:
        options = completion_candidates(text, self._ids())
        if state < len(options):
            return options[state]
        return None


class InteractiveShell:
    """The menu-driven guided installer.

    Args:
        workbench: Runtime collaborators.
        input_func: Line reader (``input`` by default, injectable for tests).
        use_readline: Enable tab completion and history.
    """

    def __init__(
        self,
        workbench: Workbench,
        input_func: Callable[[str], str] = input,
        use_readline: bool = True,
    ):
        self.wb = workbench
        self._input = input_func
        self._use_readline = use_readline and readline is not None
        self._history_path: Path = workbench.config.history_path
        self._snapshot: MenuSnapshot | None = None

    # ── Main loop ───────────────────────────────────────────────

    def run(self) -> int:
        self._setup_readline()
        try:
            self._offer_resume()
            while True:
                self._snapshot = self._build_snapshot()
                render_menu(self._snapshot, self.wb)

                command = self._read_command(self._snapshot)
                if command is None or command.kind == "quit":
                    break

                try:
                    self.dispatch(command)
                except WorkbenchError as e:
                    logger.debug("Command %s failed", command, exc_info=True)
                    click.secho(f"✗ {e}", fg="red")
                    self._pause()
                except KeyboardInterrupt:
                    click.echo()
                    click.secho(f"⊘ Interrupted: {command.kind}", fg="yellow")
        finally:
            self._save_history()

        click.echo()
        click.secho("Thank you for using the Proxmox GPU Workbench", fg="green")
        return 0

    def _build_snapshot(self) -> MenuSnapshot:
        """Probe and organize; an interrupted probe pass renders unknown statuses."""
        try:
            return build_menu(self.wb)
        except KeyboardInterrupt:
            click.echo()
            click.secho("⊘ Status checks interrupted; statuses shown as unknown", fg="yellow")
            return build_menu(self.wb, probe=False)

    def _read_command(self, snapshot: MenuSnapshot) -> Command | None:
        """Prompt until valid input arrives.  None means end of input."""
        while True:
            try:
                line = self._input(f"Enter your choice [{DEFAULT_COMMAND}]: ")
            except EOFError:
                click.echo()
                return None
            except KeyboardInterrupt:
                click.echo()
                continue

            try:
                return parse_command(line, snapshot)
            except CommandError as e:
                click.secho(f"✗ {e}", fg="red")

    def dispatch(self, command: Command) -> None:
        """Run one parsed command."""
        if command.kind == "action":
            assert command.action_id is not None
            self.run_action(command.action_id)
        elif command.kind == "setup":
            self.run_setup()
        elif command.kind == "update":
            self.update()
        elif command.kind == "info":
            self.show_info()
        elif command.kind == "reset":
            self.reset()

    # ── Commands ────────────────────────────────────────────────

    def run_action(self, action_id: str) -> ExecutionResult:
        descriptor = self.wb.registry.get(action_id)
        _banner(f"Running: {action_id}")
        if descriptor is not None:
            click.echo(descriptor.description)
            click.echo()

        result = self.wb.orchestrator.run(action_id)
        click.echo()
        if result.reboot_required:
            click.secho(f"↻ {action_id} completed — reboot the host for it to take effect", fg="yellow")
        elif result.ok:
            click.secho(f"✓ Completed: {action_id}", fg="green")
        elif result.interrupted:
            click.secho(f"⊘ Interrupted: {action_id}", fg="yellow")
        else:
            click.secho(f"✗ Failed: {action_id} ({result.detail})", fg="red")
        if result.log_path:
            click.echo(f"   Log: {result.log_path}")
        self._pause()
        return result

    def run_setup(self) -> SequenceRun | None:
        existing = self.wb.store.load()
        if existing is not None and not existing.finished:
            click.secho(f"Saved progress: {describe_session(existing)}", fg="yellow")
            if existing.last_error:
                click.secho(f"Last error: {existing.last_error}", fg="red")
            if self._ask(f"Continue from step {existing.next_index + 1}?", default=True):
                return self._finish_sequence(self.wb.orchestrator.resume(existing, confirm=self.confirm_step))
            if not self._ask("Discard it and start over?", default=False):
                return None

        ids = self.wb.registry.sequence()
        if not ids:
            click.secho(
                f"✗ No actions in the setup sequence (category '{self.wb.config.setup_category}')",
                fg="red",
            )
            self._pause()
            return None

        _banner(f"Running setup sequence ({len(ids)} steps)")
        click.secho("You will be asked before each step.", fg="yellow")
        click.secho("Press 'y' to run, 'n' to skip, or 'q' to return to the menu.", fg="yellow")
        return self._finish_sequence(self.wb.orchestrator.run_sequence(ids, confirm=self.confirm_step))

    def confirm_step(self, descriptor: ActionDescriptor, run: SequenceRun) -> StepChoice:
        """Ask before each sequence step: run, skip, or quit."""
        status_note = ""
        action = self.wb.registry.action_for(descriptor.id)
        if action is not None:
            status = probe(action, self.wb.context, self.wb.config.probe_timeout)
            if status == ActionStatus.SATISFIED:
                status_note = " (already in place ✓)"

        click.echo()
        click.secho("─" * 40, fg="green")
        click.secho(f"[{run.next_index + 1}/{run.total}] {descriptor.id}{status_note}", fg="green")
        click.echo(f"Description: {descriptor.description}")
        click.secho("─" * 40, fg="green")

        answer = self._input("Run this step? [Y/n/q]: ").strip().lower() or "y"
        if answer in ("q", "quit"):
            return "quit"
        if answer in ("y", "yes"):
            return "run"
        return "skip"

    def update(self) -> None:
        result = run_update(self.wb.config)
        if result.ok:
            click.secho("✓ Updated", fg="green")
        else:
            click.secho(f"✗ {result.error}", fg="red")
        self.wb.registry.refresh()
        click.echo(f"   {len(self.wb.registry)} actions available")
        self._pause()

    def show_info(self) -> None:
        self.wb.registry.refresh()
        snapshot = self._build_snapshot()
        render_info(snapshot, self.wb, self.wb.run_log.read_recent(10))
        self._pause()

    def reset(self) -> None:
        if not self.wb.store.exists():
            click.echo("No saved progress.")
        elif self._ask("Discard saved setup progress?", default=True):
            self.wb.orchestrator.cancel()
            click.secho("Progress cleared!", fg="green")
        self._pause()

    # ── Startup resume ──────────────────────────────────────────

    def _offer_resume(self) -> None:
        """Offer to resume a sequence that stopped for a reboot."""
        run = self.wb.store.load()
        if run is None or not run.pending_reboot:
            return

        click.echo()
        click.secho(f"⏸  Saved progress: {describe_session(run)}", fg="yellow")
        current_boot = self.wb.context.boot_id
        if run.boot_id and current_boot and run.boot_id == current_boot:
            click.secho(
                "⚠️  The host has not been rebooted since this was saved.", fg="yellow",
            )
        if self._ask("Resume the setup sequence now?", default=True):
            self._finish_sequence(self.wb.orchestrator.resume(run, confirm=self.confirm_step))
        elif not self._ask("Keep the saved progress for later?", default=True):
            self.wb.orchestrator.cancel()
            click.secho("Progress cleared.", fg="green")

    def _finish_sequence(self, run: SequenceRun) -> SequenceRun:
        if run.status == "completed":
            _banner("Setup sequence completed!")
        elif run.status == "awaiting_reboot":
            click.secho("Reboot the host now (e.g. run 'reboot').", fg="yellow", bold=True)
            click.echo("Progress is saved; start the workbench again afterwards to continue.")
        elif run.status == "failed" and run.last_log:
            click.echo(f"   Log: {run.last_log}")
            click.echo("   Run 'setup' again to retry from the failed step.")
        self._pause()
        return run

    # ── Helpers ─────────────────────────────────────────────────

    def _ask(self, question: str, default: bool) -> bool:
        hint = "[Y/n]" if default else "[y/N]"
        try:
            answer = self._input(f"{question} {hint}: ").strip().lower()
        except (EOFError, KeyboardInterrupt):
            click.echo()
            return False
        if not answer:
            return default
        return answer in ("y", "yes")

    def _pause(self) -> None:
        try:
            self._input("Press Enter to continue...")
        except (EOFError, KeyboardInterrupt):
            click.echo()

    def _setup_readline(self) -> None:
        if not self._use_readline:
            return
        completer = CommandCompleter(self.wb.registry.ids)
        readline.set_completer(completer.complete)
        readline.set_completer_delims(" \t\n")
        readline.parse_and_bind("tab: complete")
        try:
            readline.read_history_file(self._history_path)
        except OSError:
            pass

    def _save_history(self) -> None:
        if not self._use_readline:
            return
        try:
            self._history_path.parent.mkdir(parents=True, exist_ok=True)
            readline.write_history_file(self._history_path)
        except OSError as e:
            logger.debug("Cannot save shell history: %s", e)


def _banner(title: str) -> None:
    click.echo()
    click.secho("=" * 40, fg="green")
    click.secho(title, fg="green")
    click.secho("=" * 40, fg="green")
    click.echo()
