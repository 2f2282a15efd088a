"""
Hardware detection — GPU vendors and boot identity.

Read-only probes: lspci and /proc.  Run once at startup to build the
InstallContext; actions never re-detect through here.
"""

from __future__ import annotations

import logging
import re
import subprocess
from pathlib import Path

logger = logging.getLogger(__name__)

_BOOT_ID_PATH = Path("/proc/sys/kernel/random/boot_id")

# PCI vendor IDs
_VENDOR_IDS = {
    "10de": "nvidia",
    "1002": "amd",
    "8086": "intel",
}


def _extract_pci_vendor(line: str) -> str | None:
    """Extract the PCI vendor ID from an lspci -nn line."""
    m = re.search(r"\[([0-9a-f]{4}):[0-9a-f]{4}\]", line, re.IGNORECASE)
    return m.group(1).lower() if m else None


def parse_gpu_vendors(lspci_output: str) -> list[str]:
    """Return the GPU vendors named in ``lspci -nn`` output, sorted.

    Only VGA, 3D and Display controllers count.
    """
    vendors: set[str] = set()
    for line in lspci_output.splitlines():
        if not re.search(r"VGA|3D controller|Display controller", line):
            continue
        vendor = _VENDOR_IDS.get(_extract_pci_vendor(line) or "")
        if vendor is None:
            upper = line.upper()
            if "NVIDIA" in upper:
                vendor = "nvidia"
            elif "AMD" in upper or "ATI" in upper:
                vendor = "amd"
            elif "INTEL" in upper:
                vendor = "intel"
        if vendor:
            vendors.add(vendor)
    return sorted(vendors)


def detect_gpu_vendors() -> list[str]:
    """Detect installed GPU vendors via lspci.  Empty list if unavailable."""
    try:
        r = subprocess.run(
            ["lspci", "-nn"],
            capture_output=True, text=True, timeout=5,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired) as e:
        logger.info("GPU detection unavailable: %s", e)
        return []
    if r.returncode != 0:
        logger.info("lspci exited %d — assuming no GPUs", r.returncode)
        return []
    vendors = parse_gpu_vendors(r.stdout)
    logger.debug("Detected GPU vendors: %s", vendors)
    return vendors


def read_boot_id(path: Path = _BOOT_ID_PATH) -> str | None:
    """Return the kernel's boot id, or None on non-Linux hosts."""
    try:
        return path.read_text(encoding="utf-8").strip() or None
    except OSError:
        return None
