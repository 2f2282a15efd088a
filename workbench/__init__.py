"""PVE GPU Workbench — guided installer for GPU drivers and GPU-enabled LXCs."""

__version__ = "0.1.0"
