"""
Action models — descriptors, live status, and execution results.

A descriptor is what the registry knows about an action without running
it.  An ExecutionResult is what the child-process adapter hands back after
running it: the exit code is translated into a tagged outcome exactly
once, at that boundary.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from workbench.core.errors import ExecutionFailure, RebootRequired

DEFAULT_CATEGORY = "uncategorized"


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class ActionStatus(str, Enum):
    """Live status of an action, as reported by its detection predicate."""

    UNKNOWN = "unknown"           # no predicate declared
    SATISFIED = "satisfied"       # predicate exited 0
    UNSATISFIED = "unsatisfied"   # predicate exited nonzero
    ERROR = "error"               # predicate crashed or timed out


class ActionDescriptor(BaseModel):
    """Parsed metadata for one discoverable action.

    Built from the leading comment block of the action's source.
    Immutable: a re-discovery produces new descriptors.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    description: str
    category: str = DEFAULT_CATEGORY
    detect: str | None = None
    order: int | None = None
    requires_gpu: str | None = None     # "nvidia" / "amd"
    entry_point: Path                    # canonical path of the script
    source: str = ""                     # path relative to its search root
    warnings: tuple[str, ...] = ()

    @property
    def has_detect(self) -> bool:
        return bool(self.detect)


Outcome = Literal["success", "failure", "reboot_required", "interrupted"]


class ExecutionResult(BaseModel):
    """Result of running one action.

    Adapters never raise for a failing action; the outcome is captured
    here.  ``raise_for_outcome()`` converts it back into the exception
    taxonomy for callers that want exceptions.
    """

    action_id: str
    outcome: Outcome = "success"
    exit_status: int | None = None
    log_path: Path | None = None

    started_at: str = Field(default_factory=_now_iso)
    ended_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0

    detail: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        """Whether the action completed (a reboot request still counts)."""
        return self.outcome in ("success", "reboot_required")

    @property
    def reboot_required(self) -> bool:
        return self.outcome == "reboot_required"

    @property
    def failed(self) -> bool:
        return self.outcome == "failure"

    @property
    def interrupted(self) -> bool:
        return self.outcome == "interrupted"

    def raise_for_outcome(self) -> None:
        """Raise ExecutionFailure or RebootRequired if applicable."""
        if self.outcome == "reboot_required":
            raise RebootRequired(self.action_id)
        if self.outcome in ("failure", "interrupted"):
            raise ExecutionFailure(self.action_id, self.exit_status, self.log_path)

    @classmethod
    def success(cls, action_id: str, **kwargs: Any) -> ExecutionResult:
        """Create a success result."""
        return cls(action_id=action_id, outcome="success", **kwargs)

    @classmethod
    def failure(cls, action_id: str, detail: str, **kwargs: Any) -> ExecutionResult:
        """Create a failure result."""
        return cls(action_id=action_id, outcome="failure", detail=detail, **kwargs)

    @classmethod
    def reboot(cls, action_id: str, **kwargs: Any) -> ExecutionResult:
        """Create a reboot-required result."""
        return cls(action_id=action_id, outcome="reboot_required", **kwargs)

    @classmethod
    def interrupt(cls, action_id: str, **kwargs: Any) -> ExecutionResult:
        """Create an interrupted result (Ctrl-C while the child ran)."""
        return cls(
            action_id=action_id,
            outcome="interrupted",
            detail="Interrupted by user",
            **kwargs,
        )
