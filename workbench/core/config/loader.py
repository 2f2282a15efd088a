"""
Configuration loader — reads workbench.yml into a WorkbenchConfig.

The file is optional: without one, every setting takes its default and
the install root is the current directory.  Relative paths in the file
are resolved against the directory that holds it.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from workbench.core.errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_FILE = "workbench.yml"
CONFIG_ENV_VAR = "WORKBENCH_CONFIG"


class CategoryRange(BaseModel):
    """Maps a numeric filename prefix range to a default category."""

    start: int
    end: int
    category: str

    def contains(self, number: int) -> bool:
        return self.start <= number <= self.end


class WorkbenchConfig(BaseModel):
    """Validated contents of workbench.yml."""

    # ── Discovery ────────────────────────────────────────────────
    action_roots: list[str] = Field(default_factory=lambda: ["host"])
    recursive: bool = False
    pattern: str = "*.sh"
    category_ranges: list[CategoryRange] = Field(default_factory=list)

    # ── State & logs ─────────────────────────────────────────────
    state_dir: str = ".state"
    log_dir: str | None = None            # default: <state_dir>/logs
    log_retention: int = 50
    history_file: str | None = None       # default: <state_dir>/history

    # ── Probing ──────────────────────────────────────────────────
    probe_timeout: float = 5.0
    probe_workers: int = 8

    # ── Execution ────────────────────────────────────────────────
    reboot_exit_code: int = 3
    reboot_marker: str | None = None      # default: <state_dir>/reboot-required
    setup_category: str = "host-setup"
    sequences: dict[str, list[str]] = Field(default_factory=dict)
    update_command: str = "git pull --ff-only"

    # Set by the loader, not read from YAML
    root: Path = Field(default_factory=Path.cwd, exclude=True)

    @field_validator("log_retention", "probe_workers")
    @classmethod
    def _positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    @field_validator("probe_timeout")
    @classmethod
    def _positive_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be greater than 0")
        return v

    def resolve(self, value: str) -> Path:
        """Resolve a configured path against the install root."""
        path = Path(value).expanduser()
        return path if path.is_absolute() else self.root / path

    @property
    def roots(self) -> list[Path]:
        return [self.resolve(r) for r in self.action_roots]

    @property
    def state_path(self) -> Path:
        return self.resolve(self.state_dir)

    @property
    def session_file(self) -> Path:
        return self.state_path / "session.json"

    @property
    def ledger_file(self) -> Path:
        return self.state_path / "runs.ndjson"

    @property
    def log_path(self) -> Path:
        return self.resolve(self.log_dir) if self.log_dir else self.state_path / "logs"

    @property
    def reboot_marker_path(self) -> Path:
        if self.reboot_marker:
            return self.resolve(self.reboot_marker)
        return self.state_path / "reboot-required"

    @property
    def history_path(self) -> Path:
        if self.history_file:
            return self.resolve(self.history_file)
        return self.state_path / "history"


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Search for workbench.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to workbench.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break
        current = parent

    return None


def load_config(path: Path | None = None) -> WorkbenchConfig:
    """Load and validate the workbench configuration.

    Args:
        path: Explicit path to workbench.yml.  If None, uses
            WORKBENCH_CONFIG, then searches upward from the cwd.

    Returns:
        Validated WorkbenchConfig.  Defaults when no file exists.

    Raises:
        ConfigError: If an explicit file is missing, or any file is invalid.
    """
    if path is None and os.environ.get(CONFIG_ENV_VAR):
        path = Path(os.environ[CONFIG_ENV_VAR])

    if path is None:
        path = find_config_file()
        if path is None:
            logger.debug("No %s found — using defaults rooted at %s", CONFIG_FILE, Path.cwd())
            return WorkbenchConfig(root=Path.cwd().resolve())

    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading workbench config from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    data.pop("root", None)

    try:
        config = WorkbenchConfig.model_validate({**data, "root": path.parent.resolve()})
    except ValidationError as e:
        raise ConfigError(f"Invalid workbench configuration: {e}") from e

    logger.info("Loaded config from %s (%d action roots)", path, len(config.action_roots))
    return config
