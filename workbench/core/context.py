"""
Install context — the immutable view of the host handed to every action.

Built once at startup from the configuration and a hardware scan.  Actions
receive it as WORKBENCH_* environment variables instead of re-detecting
host state or relying on globals.
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from workbench.core.config.loader import WorkbenchConfig
from workbench.core.services.hardware import detect_gpu_vendors, read_boot_id


class InstallContext(BaseModel):
    """Host facts and workbench locations shared by all actions."""

    model_config = ConfigDict(frozen=True)

    root: Path
    state_dir: Path
    reboot_marker: Path
    reboot_exit_code: int = 3
    gpu_vendors: tuple[str, ...] = ()
    boot_id: str | None = None

    @property
    def has_nvidia(self) -> bool:
        return "nvidia" in self.gpu_vendors

    @property
    def has_amd(self) -> bool:
        return "amd" in self.gpu_vendors

    def has_gpu(self, vendor: str) -> bool:
        return vendor in self.gpu_vendors

    def env(self, log_path: Path | None = None) -> dict[str, str]:
        """Environment for a child action: the caller's env plus WORKBENCH_*."""
        env = os.environ.copy()
        env.update({
            "WORKBENCH_ROOT": str(self.root),
            "WORKBENCH_STATE_DIR": str(self.state_dir),
            "WORKBENCH_REBOOT_MARKER": str(self.reboot_marker),
            "WORKBENCH_REBOOT_EXIT_CODE": str(self.reboot_exit_code),
            "WORKBENCH_HAS_NVIDIA": "1" if self.has_nvidia else "0",
            "WORKBENCH_HAS_AMD": "1" if self.has_amd else "0",
        })
        if log_path is not None:
            env["WORKBENCH_RUN_LOG"] = str(log_path)
        return env


def build_context(
    config: WorkbenchConfig,
    gpu_vendors: list[str] | None = None,
    boot_id: str | None = None,
) -> InstallContext:
    """Build the context for this process.

    Args:
        config: Loaded workbench configuration.
        gpu_vendors: Override hardware detection (tests, ``--gpu``).
        boot_id: Override the kernel boot id.
    """
    if gpu_vendors is None:
        gpu_vendors = detect_gpu_vendors()
    return InstallContext(
        root=config.root,
        state_dir=config.state_path,
        reboot_marker=config.reboot_marker_path,
        reboot_exit_code=config.reboot_exit_code,
        gpu_vendors=tuple(gpu_vendors),
        boot_id=boot_id if boot_id is not None else read_boot_id(),
    )
