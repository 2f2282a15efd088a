"""
Update use case — pull the latest action scripts into the install root.

Runs the configured update command (``git pull --ff-only`` by default)
attached to the terminal, so credential prompts still work.
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass

from workbench.core.config.loader import WorkbenchConfig

logger = logging.getLogger(__name__)


@dataclass
class UpdateResult:
    """Result of running the update command."""

    command: str = ""
    exit_status: int | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.exit_status == 0

    def to_dict(self) -> dict:
        return {
            "command": self.command,
            "exit_status": self.exit_status,
            "ok": self.ok,
            "error": self.error,
        }


def run_update(config: WorkbenchConfig) -> UpdateResult:
    """Run the update command in the install root."""
    result = UpdateResult(command=config.update_command)
    logger.info("Updating: %s (cwd=%s)", config.update_command, config.root)

    try:
        proc = subprocess.run(config.update_command, shell=True, cwd=config.root)
    except OSError as e:
        result.error = f"Cannot run update command: {e}"
        return result
    except KeyboardInterrupt:
        logger.info("Update interrupted")
        result.error = "Update interrupted"
        return result

    result.exit_status = proc.returncode
    if proc.returncode != 0:
        result.error = f"Update command exited with code {proc.returncode}"
    return result
