"""
Error taxonomy for the workbench.

Recoverable conditions (parse and probe problems) degrade to conservative
defaults and are only logged.  Execution failures halt the current
sequence but never the shell.  ``RebootRequired`` is a control signal,
not a failure.
"""

from __future__ import annotations


class WorkbenchError(Exception):
    """Base class for all workbench errors."""


class ConfigError(WorkbenchError):
    """Raised when workbench.yml is invalid or unreadable."""


class DiscoveryError(WorkbenchError):
    """An action search root could not be read.

    Logged by the registry; the remaining roots are still processed.
    """

    def __init__(self, root: object, reason: str):
        self.root = root
        self.reason = reason
        super().__init__(f"Cannot scan {root}: {reason}")


class ParseWarning(UserWarning):
    """A malformed header field was replaced by its default."""


class ProbeError(WorkbenchError):
    """A detection predicate crashed or timed out."""


class ExecutionFailure(WorkbenchError):
    """An action exited nonzero (and did not ask for a reboot)."""

    def __init__(self, action_id: str, exit_status: int | None, log_path: object = None):
        self.action_id = action_id
        self.exit_status = exit_status
        self.log_path = log_path
        super().__init__(f"{action_id} failed (exit {exit_status})")


class RebootRequired(WorkbenchError):
    """Control signal: the action succeeded but the host must reboot."""

    def __init__(self, action_id: str):
        self.action_id = action_id
        super().__init__(f"{action_id} requires a host reboot")


class SessionStateError(WorkbenchError):
    """The session state file could not be written."""
