"""
Action descriptor parser — reads metadata from an action's header.

Actions declare themselves with structured comment lines at the top of
the file::

    #!/usr/bin/env bash
    # SCRIPT_DESC: Install NVIDIA CUDA drivers and modules
    # SCRIPT_CATEGORY: host-setup
    # SCRIPT_DETECT: command -v nvidia-smi &>/dev/null
    # SCRIPT_ORDER: 4
    # SCRIPT_REQUIRES_GPU: nvidia

Only the leading comment block is read; the body is never executed or
even scanned.  Missing or malformed fields fall back to defaults and are
recorded as warnings; parsing never fails.
"""

from __future__ import annotations

import logging
import re
import warnings
from collections.abc import Iterable
from pathlib import Path

from workbench.core.config.loader import CategoryRange
from workbench.core.errors import ParseWarning
from workbench.core.models.action import DEFAULT_CATEGORY, ActionDescriptor

logger = logging.getLogger(__name__)

# Header lines beyond this are never considered metadata
MAX_HEADER_LINES = 50

KNOWN_GPU_VENDORS = ("nvidia", "amd", "intel")

_HEADER_RE = re.compile(r"^#\s*(SCRIPT_[A-Z_]+)\s*:(.*)$")
_NUMBERED_RE = re.compile(r"^(\d+)\s*[-_ ]\s*(.+)$")


def read_header(text: str) -> dict[str, str]:
    """Extract ``SCRIPT_*`` fields from the leading comment block.

    The block ends at the first line that is neither blank nor a comment.
    Later duplicates of a key are ignored.  Values are stripped; empty
    values are kept so the caller can flag them.
    """
    fields: dict[str, str] = {}
    for index, line in enumerate(text.splitlines()):
        if index >= MAX_HEADER_LINES:
            break
        stripped = line.strip()
        if not stripped:
            continue
        if not stripped.startswith("#"):
            break
        m = _HEADER_RE.match(stripped)
        if m and m.group(1) not in fields:
            fields[m.group(1)] = m.group(2).strip()
    return fields


def split_filename(path: Path) -> tuple[int | None, str]:
    """Split ``"001 - install-tools.sh"`` into ``(1, "install-tools")``.

    Files without a numeric prefix return ``(None, stem)``.
    """
    stem = path.stem
    m = _NUMBERED_RE.match(stem)
    if m:
        return int(m.group(1)), m.group(2).strip()
    return None, stem


def make_id(name: str) -> str:
    """Normalize a filename stem into an action id."""
    slug = re.sub(r"[^a-z0-9._-]+", "-", name.lower()).strip("-")
    return slug or "action"


def parse_descriptor(
    path: Path,
    text: str,
    root: Path | None = None,
    category_ranges: Iterable[CategoryRange] | None = None,
) -> ActionDescriptor:
    """Build a descriptor from an action's path and source text.

    Args:
        path: Path of the action file.
        text: Source text (only the header block is inspected).
        root: Search root the file was found under, for ``source``.
        category_ranges: Default categories for numbered filenames
            without a ``SCRIPT_CATEGORY`` header.

    Returns:
        ActionDescriptor.  Never raises for bad metadata.
    """
    fields = read_header(text)
    number, name = split_filename(path)
    problems: list[str] = []

    description = fields.get("SCRIPT_DESC", "")
    if not description:
        if "SCRIPT_DESC" in fields:
            problems.append("empty SCRIPT_DESC")
        description = path.stem

    category = fields.get("SCRIPT_CATEGORY", "")
    if not category:
        if "SCRIPT_CATEGORY" in fields:
            problems.append("empty SCRIPT_CATEGORY")
        category = _category_for_number(number, category_ranges) or DEFAULT_CATEGORY

    detect: str | None = fields.get("SCRIPT_DETECT") or None
    if detect is None and "SCRIPT_DETECT" in fields:
        problems.append("empty SCRIPT_DETECT")

    order = number
    raw_order = fields.get("SCRIPT_ORDER")
    if raw_order is not None:
        try:
            order = int(raw_order)
        except ValueError:
            problems.append(f"non-integer SCRIPT_ORDER {raw_order!r}")

    requires_gpu = None
    raw_gpu = fields.get("SCRIPT_REQUIRES_GPU")
    if raw_gpu:
        if raw_gpu.lower() in KNOWN_GPU_VENDORS:
            requires_gpu = raw_gpu.lower()
        else:
            problems.append(f"unknown SCRIPT_REQUIRES_GPU {raw_gpu!r}")

    for problem in problems:
        warnings.warn(f"{path.name}: {problem}", ParseWarning, stacklevel=2)
        logger.debug("Header problem in %s: %s", path, problem)

    try:
        source = path.relative_to(root).as_posix() if root else path.name
    except ValueError:
        source = path.name

    return ActionDescriptor(
        id=make_id(name),
        description=description,
        category=category,
        detect=detect,
        order=order,
        requires_gpu=requires_gpu,
        entry_point=path.resolve(),
        source=source,
        warnings=tuple(problems),
    )


def _category_for_number(
    number: int | None,
    category_ranges: Iterable[CategoryRange] | None,
) -> str | None:
    if number is None or not category_ranges:
        return None
    for rng in category_ranges:
        if rng.contains(number):
            return rng.category
    return None
