"""
Script action adapter — runs bash action scripts as child processes.

This is the SINGLE PLACE where action scripts and detection predicates
are spawned.  Exit codes are translated into ActionStatus and
ExecutionResult here and nowhere else.
"""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import sys
import time
from pathlib import Path
from typing import IO

from workbench.adapters.base import Action
from workbench.core.context import InstallContext
from workbench.core.errors import ProbeError
from workbench.core.models.action import ActionDescriptor, ActionStatus, ExecutionResult

logger = logging.getLogger(__name__)

SHELL = "bash"
_CHUNK = 4096
_TERMINATE_GRACE = 5.0


class ScriptAction(Action):
    """An action backed by a script discovered on disk.

    The script runs with the terminal's stdin (it may prompt the user),
    while stdout and stderr are copied both to the terminal and to the
    per-run log file.
    """

    def __init__(self, descriptor: ActionDescriptor):
        self._descriptor = descriptor

    def describe(self) -> ActionDescriptor:
        return self._descriptor

    # ── Detection ───────────────────────────────────────────────

    def detect(self, context: InstallContext, timeout: float) -> ActionStatus:
        expr = self._descriptor.detect
        if not expr:
            return ActionStatus.UNKNOWN

        logger.debug("Probing %s: %s", self._descriptor.id, expr)
        try:
            proc = subprocess.Popen(
                [SHELL, "-c", expr],
                cwd=context.root if context.root.is_dir() else None,
                env=context.env(),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as e:
            raise ProbeError(f"{self._descriptor.id}: cannot start predicate: {e}") from e

        try:
            rc = proc.wait(timeout=timeout)
        except subprocess.TimeoutExpired as e:
            _kill_group(proc)
            raise ProbeError(
                f"{self._descriptor.id}: predicate timed out after {timeout}s"
            ) from e

        return ActionStatus.SATISFIED if rc == 0 else ActionStatus.UNSATISFIED

    # ── Execution ───────────────────────────────────────────────

    def run(
        self,
        context: InstallContext,
        log_path: Path,
        stream: IO | None = None,
    ) -> ExecutionResult:
        action_id = self._descriptor.id
        entry = self._descriptor.entry_point
        marker = context.reboot_marker
        marker.unlink(missing_ok=True)

        logger.debug("Executing %s (%s)", action_id, entry)
        start = time.monotonic()

        with log_path.open("ab") as log:
            try:
                proc = subprocess.Popen(
                    [SHELL, str(entry)],
                    cwd=entry.parent,
                    env=context.env(log_path),
                    stdout=subprocess.PIPE,
                    stderr=subprocess.STDOUT,
                )
            except OSError as e:
                return ExecutionResult.failure(
                    action_id,
                    f"Cannot start {entry}: {e}",
                    log_path=log_path,
                )

            try:
                _tee(proc, log, stream)
                rc = proc.wait()
            except KeyboardInterrupt:
                logger.info("Interrupt — terminating %s (pid %d)", action_id, proc.pid)
                _terminate(proc)
                return ExecutionResult.interrupt(
                    action_id,
                    exit_status=proc.returncode,
                    log_path=log_path,
                    duration_ms=_elapsed_ms(start),
                )

        elapsed_ms = _elapsed_ms(start)

        reboot_flagged = marker.is_file()
        if reboot_flagged:
            marker.unlink(missing_ok=True)

        if rc == context.reboot_exit_code or (rc == 0 and reboot_flagged):
            return ExecutionResult.reboot(
                action_id,
                exit_status=rc,
                log_path=log_path,
                duration_ms=elapsed_ms,
                metadata={"marker": reboot_flagged},
            )
        if rc == 0:
            return ExecutionResult.success(
                action_id,
                exit_status=rc,
                log_path=log_path,
                duration_ms=elapsed_ms,
            )
        return ExecutionResult.failure(
            action_id,
            f"Exited with code {rc}",
            exit_status=rc,
            log_path=log_path,
            duration_ms=elapsed_ms,
        )


def _tee(proc: subprocess.Popen, log: IO[bytes], stream: IO | None) -> None:
    """Copy the child's output to the terminal and the log as it arrives.

    Reads raw chunks rather than lines so prompts without a trailing
    newline reach the user immediately.
    """
    out = stream if stream is not None else sys.stdout
    binary = getattr(out, "buffer", None)
    fd = proc.stdout.fileno()
    while True:
        chunk = os.read(fd, _CHUNK)
        if not chunk:
            break
        log.write(chunk)
        log.flush()
        if binary is not None:
            binary.write(chunk)
            binary.flush()
        else:
            out.write(chunk.decode("utf-8", errors="replace"))
            out.flush()
    proc.stdout.close()


def _terminate(proc: subprocess.Popen) -> None:
    """Stop the child: SIGTERM, then SIGKILL after a grace period."""
    if proc.poll() is None:
        proc.terminate()
        try:
            proc.wait(timeout=_TERMINATE_GRACE)
        except subprocess.TimeoutExpired:
            proc.kill()
            proc.wait()
    if proc.stdout and not proc.stdout.closed:
        proc.stdout.close()


def _kill_group(proc: subprocess.Popen) -> None:
    """Kill a predicate and anything it spawned."""
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except (ProcessLookupError, PermissionError):
        proc.kill()
    proc.wait()


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)
