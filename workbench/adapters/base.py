"""
Action base — the capability contract between the engine and actions.

The orchestrator and prober only talk to actions through this interface,
never directly to scripts or subprocesses.  An action describes itself,
checks whether its effect is already present, and runs.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from workbench.core.context import InstallContext
from workbench.core.models.action import ActionDescriptor, ActionStatus, ExecutionResult


class Action(ABC):
    """Abstract base class for all actions.

    ``run`` NEVER raises for a failing action: failures, reboot requests
    and interrupts are all captured in the ExecutionResult.

    To create a new action:
        1. Subclass Action
        2. Implement describe, detect, run
        3. Register it with ActionRegistry.register()
    """

    @abstractmethod
    def describe(self) -> ActionDescriptor:
        """Return the action's metadata."""

    @abstractmethod
    def detect(self, context: InstallContext, timeout: float) -> ActionStatus:
        """Check whether the action's effect is already present.

        Must be read-only.  Returns SATISFIED or UNSATISFIED; raises
        ProbeError if the check itself crashes or exceeds ``timeout``.
        Actions without a check return UNKNOWN.
        """

    @abstractmethod
    def run(self, context: InstallContext, log_path: Path) -> ExecutionResult:
        """Run the action attached to the terminal, appending output to ``log_path``."""

    @property
    def id(self) -> str:
        return self.describe().id

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} id={self.id!r}>"
