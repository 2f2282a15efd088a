"""
Session state persistence — atomic read/write for SequenceRun.

The record lives in .state/session.json.  Writes are atomic (write to a
temp file in the same directory, fsync, then rename) so a crash or power
loss between steps leaves either the previous record or the new one,
never a torn file.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from workbench.core.errors import SessionStateError
from workbench.core.models.state import SequenceRun

logger = logging.getLogger(__name__)

DEFAULT_STATE_DIR = ".state"
DEFAULT_SESSION_FILE = "session.json"


def default_session_path(root: Path) -> Path:
    """Get the default session file path for an install root."""
    return root / DEFAULT_STATE_DIR / DEFAULT_SESSION_FILE


class SessionStore:
    """Load, save and clear the single in-progress SequenceRun."""

    def __init__(self, path: Path):
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.is_file()

    def load(self) -> SequenceRun | None:
        """Load the persisted run.

        Returns:
            The SequenceRun, or None if there is none or it is unreadable.
        """
        if not self._path.is_file():
            return None

        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
            run = SequenceRun.model_validate(data)
            logger.debug(
                "Loaded session %s at step %d/%d (status=%s)",
                run.sequence_id, run.next_index, run.total, run.status,
            )
            return run
        except json.JSONDecodeError as e:
            logger.warning("Corrupt session file %s: %s — ignoring", self._path, e)
            return None
        except (ValidationError, OSError) as e:
            logger.warning("Cannot load session from %s: %s — ignoring", self._path, e)
            return None

    def save(self, run: SequenceRun) -> None:
        """Persist a run (atomic write).

        Raises:
            SessionStateError: If the record could not be written.
        """
        run.touch()
        data = run.model_dump(mode="json")
        content = json.dumps(data, indent=2, ensure_ascii=False) + "\n"

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=self._path.parent,
                prefix=".session_",
                suffix=".tmp",
            )
            tmp = Path(tmp_path)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(content)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp, self._path)
            except Exception:
                tmp.unlink(missing_ok=True)
                raise
        except OSError as e:
            logger.error("Failed to save session to %s: %s", self._path, e)
            raise SessionStateError(f"Cannot write {self._path}: {e}") from e

        logger.debug(
            "Session saved: %s step %d/%d (%s)",
            run.sequence_id, run.next_index, run.total, run.status,
        )

    def clear(self) -> bool:
        """Delete the persisted run.  Returns True if one existed."""
        try:
            self._path.unlink()
        except FileNotFoundError:
            return False
        logger.info("Session cleared: %s", self._path)
        return True
