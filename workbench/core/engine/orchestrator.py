"""
Execution orchestrator — runs single actions and resumable sequences.

Actions mutate shared host state (package databases, device files,
kernel boot parameters), so they run strictly one at a time: every call
here blocks until the child action exits.  There is no other locking.

Sequence flow:
    create SequenceRun → for each step: run → persist → next
    reboot requested  → persist with pending_reboot, stop, tell the user
    failure/interrupt → persist at the failing step, stop, surface the log
    all steps done    → delete the record

The persisted record never points past a step that did not complete.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Literal

from workbench.core.context import InstallContext
from workbench.core.models.action import ActionDescriptor, ExecutionResult
from workbench.core.models.state import SequenceRun
from workbench.core.persistence.run_log import RunLog
from workbench.core.persistence.session_store import SessionStore
from workbench.core.services.registry import ActionRegistry

logger = logging.getLogger(__name__)

StepChoice = Literal["run", "skip", "quit"]
ConfirmStep = Callable[[ActionDescriptor, SequenceRun], StepChoice]
Notify = Callable[[str, str], None]


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


_NOTIFY_LEVELS = {
    "info": logging.INFO,
    "success": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def _log_notify(level: str, message: str) -> None:
    logger.log(_NOTIFY_LEVELS.get(level, logging.INFO), message)


class Orchestrator:
    """Sequential executor for registered actions.

    Args:
        registry: Where actions are looked up by id.
        context: Immutable host context handed to every action.
        store: Session state persistence for sequences.
        run_log: Log file allocation and the run ledger.
        notify: ``(level, message)`` callback for user-facing messages;
            level is one of info, success, warning, error.
    """

    def __init__(
        self,
        registry: ActionRegistry,
        context: InstallContext,
        store: SessionStore,
        run_log: RunLog,
        notify: Notify | None = None,
    ):
        self._registry = registry
        self._context = context
        self._store = store
        self._run_log = run_log
        self._notify = notify or _log_notify

    @property
    def store(self) -> SessionStore:
        return self._store

    @property
    def run_log(self) -> RunLog:
        return self._run_log

    # ── Single action ───────────────────────────────────────────

    def run(self, action_id: str, sequence_id: str | None = None) -> ExecutionResult:
        """Run one action to completion.  Never raises for action failures."""
        action = self._registry.action_for(action_id)
        if action is None:
            return ExecutionResult.failure(action_id, f"Unknown action '{action_id}'")

        descriptor = action.describe()
        log_path = self._run_log.open_log(action_id, descriptor.description)
        started_at = _now_iso()
        logger.info("Running %s (log: %s)", action_id, log_path)

        try:
            result = action.run(self._context, log_path)
        except KeyboardInterrupt:
            result = ExecutionResult.interrupt(action_id, log_path=log_path)
        except Exception as e:
            # Action.run contract says never raise
            logger.error("Action %s raised during execution: %s", action_id, e)
            result = ExecutionResult.failure(action_id, f"Unexpected error: {e}", log_path=log_path)

        result = result.model_copy(update={"started_at": started_at, "ended_at": _now_iso()})

        self._run_log.close_log(result)
        self._run_log.record(result, sequence_id=sequence_id)
        self._run_log.prune()

        status_marker = {
            "success": "✓", "reboot_required": "↻", "interrupted": "⊘",
        }.get(result.outcome, "✗")
        logger.info("%s %s → %s (exit %s)", status_marker, action_id, result.outcome, result.exit_status)
        return result

    # ── Sequences ───────────────────────────────────────────────

    def run_sequence(
        self,
        action_ids: list[str],
        sequence_id: str = "setup",
        confirm: ConfirmStep | None = None,
    ) -> SequenceRun:
        """Start a new sequence from its first step.

        Any previous record is replaced.
        """
        run = SequenceRun(
            sequence_id=sequence_id,
            action_ids=list(action_ids),
            boot_id=self._context.boot_id,
        )
        self._store.save(run)
        logger.info("Sequence %s started with %d steps", sequence_id, run.total)
        return self._advance(run, confirm)

    def resume(self, run: SequenceRun, confirm: ConfirmStep | None = None) -> SequenceRun:
        """Continue a persisted sequence at its stored index.

        Steps before ``next_index`` are never re-run.
        """
        run.pending_reboot = False
        run.status = "running"
        run.last_error = None
        run.boot_id = self._context.boot_id
        self._store.save(run)
        logger.info(
            "Sequence %s resumed at step %d/%d", run.sequence_id, run.next_index + 1, run.total,
        )
        return self._advance(run, confirm)

    def cancel(self) -> bool:
        """Discard the persisted sequence, if any."""
        return self._store.clear()

    def _advance(self, run: SequenceRun, confirm: ConfirmStep | None) -> SequenceRun:
        while not run.finished:
            action_id = run.action_ids[run.next_index]
            step = f"[{run.next_index + 1}/{run.total}]"
            action = self._registry.action_for(action_id)

            if action is None:
                run.status = "failed"
                run.last_error = f"Unknown action '{action_id}'"
                self._store.save(run)
                self._notify("error", f"{step} {run.last_error} — sequence halted")
                return run

            descriptor = action.describe()

            if descriptor.requires_gpu and not self._context.has_gpu(descriptor.requires_gpu):
                self._notify(
                    "warning",
                    f"{step} Skipping {action_id} — no {descriptor.requires_gpu.upper()} GPU detected",
                )
                self._skip(run, action_id)
                continue

            if confirm is not None:
                try:
                    choice = confirm(descriptor, run)
                except (KeyboardInterrupt, EOFError):
                    choice = "quit"
                if choice == "skip":
                    self._notify("warning", f"{step} Skipped by user: {action_id}")
                    self._skip(run, action_id)
                    continue
                if choice == "quit":
                    run.status = "interrupted"
                    self._store.save(run)
                    self._notify("info", f"Sequence paused before {action_id}")
                    return run

            result = self.run(action_id, sequence_id=run.sequence_id)
            run.last_log = str(result.log_path) if result.log_path else None

            if result.interrupted:
                run.status = "interrupted"
                run.last_error = result.detail
                self._store.save(run)
                self._notify(
                    "warning",
                    f"{step} {action_id} interrupted — progress kept at this step",
                )
                return run

            if result.failed:
                run.status = "failed"
                run.last_error = result.detail or f"exit {result.exit_status}"
                self._store.save(run)
                self._notify(
                    "error",
                    f"{step} {action_id} failed ({run.last_error}). Log: {result.log_path}",
                )
                return run

            run.completed.append(action_id)
            run.next_index += 1

            if result.reboot_required:
                run.pending_reboot = True
                run.status = "awaiting_reboot"
                self._store.save(run)
                self._notify("warning", self._reboot_message(run, action_id))
                return run

            self._store.save(run)
            self._notify("success", f"{step} Completed: {action_id}")

        run.status = "completed"
        self._store.clear()
        self._notify("success", f"Sequence '{run.sequence_id}' completed")
        logger.info(
            "Sequence %s completed (%d run, %d skipped)",
            run.sequence_id, len(run.completed), len(run.skipped),
        )
        return run

    def _skip(self, run: SequenceRun, action_id: str) -> None:
        run.skipped.append(action_id)
        run.next_index += 1
        self._store.save(run)

    @staticmethod
    def _reboot_message(run: SequenceRun, action_id: str) -> str:
        if run.finished:
            after = "then start the workbench again to finish the sequence"
        else:
            after = (
                f"then start the workbench again to resume at step "
                f"{run.next_index + 1}/{run.total} ({run.next_action_id})"
            )
        return f"{action_id} requires a host reboot. Reboot now, {after}."
