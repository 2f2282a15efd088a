"""
Shared test fixtures and configuration.

Actions under test are real throwaway bash scripts written into
``tmp_path``; nothing touches the host beyond spawning ``bash``.
"""

import logging
from collections.abc import Callable
from pathlib import Path

import pytest

from workbench.core.config.loader import WorkbenchConfig
from workbench.core.use_cases.workbench import Workbench, open_workbench

ScriptWriter = Callable[..., Path]


def make_script(
    directory: Path,
    filename: str,
    body: str = "exit 0",
    **headers: str,
) -> Path:
    """Write a bash action with ``# SCRIPT_<KEY>: value`` header lines.

    ``make_script(d, "001 - tools.sh", "exit 0", desc="Tools", order="1")``
    """
    directory.mkdir(parents=True, exist_ok=True)
    lines = ["#!/usr/bin/env bash"]
    for key, value in headers.items():
        lines.append(f"# SCRIPT_{key.upper()}: {value}")
    lines.append("")
    lines.append(body)
    path = directory / filename
    path.write_text("\n".join(lines) + "\n")
    path.chmod(0o755)
    return path


@pytest.fixture
def script_factory() -> ScriptWriter:
    """``make_script`` for tests that need scripts outside the default root."""
    return make_script


@pytest.fixture
def host_dir(tmp_path: Path) -> Path:
    """The default action root (``<root>/host``)."""
    d = tmp_path / "host"
    d.mkdir()
    return d


@pytest.fixture
def write_action(host_dir: Path) -> ScriptWriter:
    """Write an action script into the default action root."""

    def _write(filename: str, body: str = "exit 0", **headers: str) -> Path:
        return make_script(host_dir, filename, body, **headers)

    return _write


@pytest.fixture
def config(tmp_path: Path) -> WorkbenchConfig:
    """Default config rooted at ``tmp_path``."""
    return WorkbenchConfig(root=tmp_path, probe_timeout=2.0)


@pytest.fixture
def open_wb(config: WorkbenchConfig) -> Callable[..., Workbench]:
    """Build a workbench with fixed host facts (no lspci, fixed boot id)."""

    def _open(gpu_vendors: list[str] | None = None, boot_id: str = "boot-1", **kwargs) -> Workbench:
        return open_workbench(
            config=config,
            gpu_vendors=gpu_vendors or [],
            boot_id=boot_id,
            **kwargs,
        )

    return _open


@pytest.fixture(autouse=True)
def _restore_logging():
    """Undo ``setup_logging`` calls made by the CLI under test."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
    logging.captureWarnings(False)
