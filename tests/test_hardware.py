"""
Tests for GPU vendor and boot id detection.
"""

import subprocess
import textwrap
from pathlib import Path

from workbench.core.services import hardware
from workbench.core.services.hardware import detect_gpu_vendors, parse_gpu_vendors, read_boot_id

LSPCI = textwrap.dedent("""\
    00:02.0 VGA compatible controller [0300]: Intel Corporation UHD Graphics 630 [8086:3e92]
    01:00.0 VGA compatible controller [0300]: NVIDIA Corporation GA102 [GeForce RTX 3090] [10de:2204] (rev a1)
    01:00.1 Audio device [0403]: NVIDIA Corporation GA102 High Definition Audio Controller [10de:1aef]
    02:00.0 Ethernet controller [0200]: Intel Corporation I211 Gigabit [8086:1539]
""")


class TestParseGpuVendors:
    """Tests for lspci output parsing."""

    def test_vendors_from_ids(self):
        assert parse_gpu_vendors(LSPCI) == ["intel", "nvidia"]

    def test_ignores_non_display_devices(self):
        out = "01:00.1 Audio device [0403]: NVIDIA Corporation HDA [10de:1aef]\n"
        assert parse_gpu_vendors(out) == []

    def test_amd_3d_controller(self):
        out = "03:00.0 Display controller [0380]: Advanced Micro Devices, Inc. [AMD/ATI] Navi [1002:73bf]\n"
        assert parse_gpu_vendors(out) == ["amd"]

    def test_name_fallback_without_ids(self):
        out = "01:00.0 3D controller: NVIDIA Corporation TU104GL [Tesla T4]\n"
        assert parse_gpu_vendors(out) == ["nvidia"]

    def test_empty(self):
        assert parse_gpu_vendors("") == []


class TestDetect:
    """Tests for the lspci wrapper."""

    def test_missing_lspci(self, monkeypatch):
        def _raise(*args, **kwargs):
            raise FileNotFoundError("lspci")
        monkeypatch.setattr(hardware.subprocess, "run", _raise)
        assert detect_gpu_vendors() == []

    def test_lspci_failure(self, monkeypatch):
        monkeypatch.setattr(
            hardware.subprocess, "run",
            lambda *a, **k: subprocess.CompletedProcess(a, 1, stdout="", stderr="boom"),
        )
        assert detect_gpu_vendors() == []

    def test_lspci_output(self, monkeypatch):
        monkeypatch.setattr(
            hardware.subprocess, "run",
            lambda *a, **k: subprocess.CompletedProcess(a, 0, stdout=LSPCI, stderr=""),
        )
        assert detect_gpu_vendors() == ["intel", "nvidia"]


class TestBootId:
    """Tests for read_boot_id."""

    def test_reads_and_strips(self, tmp_path: Path):
        path = tmp_path / "boot_id"
        path.write_text("6f1c-42\n")
        assert read_boot_id(path) == "6f1c-42"

    def test_missing(self, tmp_path: Path):
        assert read_boot_id(tmp_path / "nope") is None
