"""
Run log — per-execution log files plus an append-only run ledger.

Every action execution gets its own log file named
``<action-id>-<YYYYmmdd-HHMMSS>.log`` holding a header, the full captured
output and a footer with the final status.  A one-line LogRecord is
appended to ``runs.ndjson`` for each execution.

Log files are bounded: after each run, the oldest files beyond the
retention cap are deleted.  The ledger is never rewritten.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path

from workbench.core.models.action import ExecutionResult
from workbench.core.models.state import LogRecord

logger = logging.getLogger(__name__)

DEFAULT_RETENTION = 50


class RunLog:
    """Log file allocation, retention, and the run ledger."""

    def __init__(self, log_dir: Path, ledger_path: Path, retention: int = DEFAULT_RETENTION):
        self._log_dir = log_dir
        self._ledger_path = ledger_path
        self._retention = retention

    @property
    def log_dir(self) -> Path:
        return self._log_dir

    @property
    def ledger_path(self) -> Path:
        return self._ledger_path

    # ── Log files ───────────────────────────────────────────────

    def open_log(self, action_id: str, description: str = "") -> Path:
        """Create a fresh log file for a run and write its header."""
        self._log_dir.mkdir(parents=True, exist_ok=True)
        now = datetime.now()
        stamp = now.strftime("%Y%m%d-%H%M%S")
        path = self._log_dir / f"{action_id}-{stamp}.log"
        n = 1
        while path.exists():
            path = self._log_dir / f"{action_id}-{stamp}-{n}.log"
            n += 1

        header = (
            "===================================\n"
            f"Action:  {action_id}\n"
            + (f"About:   {description}\n" if description else "")
            + f"Started: {now.isoformat(timespec='seconds')}\n"
            "===================================\n\n"
        )
        path.write_text(header, encoding="utf-8")
        return path

    def close_log(self, result: ExecutionResult) -> None:
        """Append the footer with the final status to a run's log."""
        if result.log_path is None:
            return
        footer = (
            "\n===================================\n"
            f"Finished: {datetime.now().isoformat(timespec='seconds')}\n"
            f"Outcome:  {result.outcome}\n"
            f"Exit:     {result.exit_status if result.exit_status is not None else '-'}\n"
            + (f"Detail:   {result.detail}\n" if result.detail else "")
            + "===================================\n"
        )
        try:
            with result.log_path.open("a", encoding="utf-8") as f:
                f.write(footer)
        except OSError as e:
            logger.error("Failed to finish log %s: %s", result.log_path, e)

    def log_files(self) -> list[Path]:
        """All log files, oldest first."""
        if not self._log_dir.is_dir():
            return []
        files = [p for p in self._log_dir.glob("*.log") if p.is_file()]
        return sorted(files, key=lambda p: (p.stat().st_mtime, p.name))

    def prune(self) -> list[Path]:
        """Delete the oldest log files beyond the retention cap."""
        files = self.log_files()
        excess = files[:-self._retention] if len(files) > self._retention else []
        for path in excess:
            try:
                path.unlink()
            except OSError as e:
                logger.warning("Cannot remove old log %s: %s", path, e)
        if excess:
            logger.debug("Pruned %d old logs", len(excess))
        return excess

    # ── Ledger ──────────────────────────────────────────────────

    def record(self, result: ExecutionResult, sequence_id: str | None = None) -> LogRecord:
        """Append a LogRecord for a finished run to the ledger."""
        entry = LogRecord(
            action_id=result.action_id,
            sequence_id=sequence_id,
            started_at=result.started_at,
            ended_at=result.ended_at,
            exit_status=result.exit_status,
            outcome=result.outcome,
            log_path=result.log_path,
        )
        self._ledger_path.parent.mkdir(parents=True, exist_ok=True)
        line = json.dumps(entry.model_dump(mode="json"), ensure_ascii=False) + "\n"
        try:
            with self._ledger_path.open("a", encoding="utf-8") as f:
                f.write(line)
            logger.debug("Ledger entry written: %s/%s", entry.action_id, entry.outcome)
        except OSError as e:
            logger.error("Failed to write ledger entry: %s", e)
        return entry

    def read_all(self) -> list[LogRecord]:
        """Read every ledger entry, oldest first."""
        if not self._ledger_path.is_file():
            return []

        entries = []
        try:
            with self._ledger_path.open("r", encoding="utf-8") as f:
                for line_num, line in enumerate(f, start=1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        entries.append(LogRecord.model_validate(json.loads(line)))
                    except ValueError as e:
                        logger.warning("Skipping corrupt ledger entry at line %d: %s", line_num, e)
        except OSError as e:
            logger.error("Failed to read run ledger: %s", e)

        return entries

    def read_recent(self, n: int = 20) -> list[LogRecord]:
        """Read the most recent N entries."""
        return self.read_all()[-n:]
