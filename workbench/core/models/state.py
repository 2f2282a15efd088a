"""
SequenceRun and LogRecord — the persisted state of the workbench.

SequenceRun is the only thing that carries meaning across a host reboot.
It is serialized to .state/session.json after every step of a sequence
and removed once the sequence completes or the user cancels it.
"""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


RunStatus = Literal["running", "awaiting_reboot", "failed", "interrupted", "completed"]


class SequenceRun(BaseModel):
    """An in-progress multi-step run ("setup")."""

    # ── Schema ───────────────────────────────────────────────────
    schema_version: int = 1

    # ── Identity ─────────────────────────────────────────────────
    sequence_id: str = "setup"
    action_ids: list[str] = Field(default_factory=list)

    # ── Progress ─────────────────────────────────────────────────
    next_index: int = 0
    pending_reboot: bool = False
    status: RunStatus = "running"
    completed: list[str] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)

    # ── Diagnostics ──────────────────────────────────────────────
    last_error: str | None = None
    last_log: str | None = None
    boot_id: str | None = None      # boot the record was written in

    # ── Timestamps ───────────────────────────────────────────────
    started_at: str = Field(default_factory=_now_iso)
    updated_at: str = Field(default_factory=_now_iso)

    def touch(self) -> None:
        """Update the updated_at timestamp."""
        self.updated_at = _now_iso()

    @property
    def total(self) -> int:
        return len(self.action_ids)

    @property
    def finished(self) -> bool:
        return self.next_index >= len(self.action_ids)

    @property
    def next_action_id(self) -> str | None:
        if self.finished:
            return None
        return self.action_ids[self.next_index]

    @property
    def remaining(self) -> list[str]:
        return self.action_ids[self.next_index:]


class LogRecord(BaseModel):
    """One entry in the run ledger (.state/runs.ndjson)."""

    action_id: str
    sequence_id: str | None = None
    started_at: str = Field(default_factory=_now_iso)
    ended_at: str = Field(default_factory=_now_iso)
    exit_status: int | None = None
    outcome: str = ""
    log_path: Path | None = None
