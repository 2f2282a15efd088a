"""
Action registry — discovers action scripts and hands out Action objects.

Discovery walks each search root, parses every matching file's header,
deduplicates by canonical path (symlink aliases) and by id, and returns
descriptors in a deterministic order: roots in configured order, files
lexicographically by path relative to their root.  Calling it twice on
an unchanged filesystem yields identical results.
"""

from __future__ import annotations

import fnmatch
import logging
import os
from collections.abc import Iterable
from pathlib import Path

from workbench.adapters.base import Action
from workbench.adapters.script import ScriptAction
from workbench.core.config.loader import CategoryRange, WorkbenchConfig
from workbench.core.errors import DiscoveryError
from workbench.core.models.action import ActionDescriptor
from workbench.core.services.descriptor_parser import parse_descriptor

logger = logging.getLogger(__name__)

SETUP_SEQUENCE = "setup"


def discover(
    roots: Iterable[Path],
    recursive: bool = False,
    pattern: str = "*.sh",
    category_ranges: Iterable[CategoryRange] | None = None,
) -> list[ActionDescriptor]:
    """Discover all actions under the given search roots.

    An unreadable or missing root is logged and skipped; discovery of
    the other roots continues.

    Args:
        roots: Directories to scan, in priority order.
        recursive: Descend into subdirectories.
        pattern: Filename glob an action must match.
        category_ranges: Default categories for numbered filenames.

    Returns:
        Deterministically ordered, deduplicated descriptors.
    """
    ranges = list(category_ranges or [])
    seen_paths: set[Path] = set()
    seen_ids: dict[str, Path] = {}
    descriptors: list[ActionDescriptor] = []

    for root in roots:
        try:
            candidates = _candidates(root, recursive, pattern)
        except DiscoveryError as e:
            logger.warning("%s", e)
            continue

        for path in candidates:
            canonical = path.resolve()
            if canonical in seen_paths:
                logger.debug("Skipping alias %s → %s", path, canonical)
                continue
            seen_paths.add(canonical)

            try:
                text = path.read_text(encoding="utf-8", errors="replace")
            except OSError as e:
                logger.warning("Cannot read action %s: %s", path, e)
                continue

            descriptor = parse_descriptor(path, text, root=root, category_ranges=ranges)
            if descriptor.id in seen_ids:
                logger.warning(
                    "Duplicate action id '%s' in %s (already defined by %s), skipping",
                    descriptor.id, path, seen_ids[descriptor.id],
                )
                continue
            seen_ids[descriptor.id] = canonical
            descriptors.append(descriptor)

    logger.info("Discovered %d actions", len(descriptors))
    return descriptors


def _candidates(root: Path, recursive: bool, pattern: str) -> list[Path]:
    """List matching files under a root, sorted by relative path."""
    if not root.exists():
        raise DiscoveryError(root, "does not exist")
    if not root.is_dir():
        raise DiscoveryError(root, "not a directory")

    found: list[Path] = []
    if recursive:
        errors: list[OSError] = []
        for dirpath, dirnames, filenames in os.walk(root, onerror=errors.append):
            dirnames[:] = [d for d in dirnames if not d.startswith(".")]
            for name in filenames:
                if _matches(name, pattern):
                    found.append(Path(dirpath) / name)
        for err in errors:
            if Path(err.filename or "") == root:
                raise DiscoveryError(root, err.strerror or str(err))
            logger.warning("Cannot scan %s: %s", err.filename, err.strerror or err)
    else:
        try:
            with os.scandir(root) as it:
                for entry in it:
                    if _matches(entry.name, pattern):
                        found.append(Path(entry.path))
        except OSError as e:
            raise DiscoveryError(root, e.strerror or str(e)) from e

    files = [p for p in found if p.is_file()]
    return sorted(files, key=lambda p: p.relative_to(root).as_posix())


def _matches(name: str, pattern: str) -> bool:
    return not name.startswith(".") and fnmatch.fnmatchcase(name, pattern)


def resolve_sequence(
    descriptors: list[ActionDescriptor],
    sequence_id: str,
    sequences: dict[str, list[str]] | None = None,
    setup_category: str = "host-setup",
) -> list[str]:
    """Resolve a sequence name to its ordered action ids.

    Explicitly configured sequences win.  Otherwise ``setup`` is every
    action in ``setup_category`` that has an order, sorted by order
    (discovery order breaks ties).
    """
    known = {d.id for d in descriptors}
    if sequences and sequence_id in sequences:
        ids = []
        for action_id in sequences[sequence_id]:
            if action_id in known:
                ids.append(action_id)
            else:
                logger.warning("Sequence '%s' names unknown action '%s'", sequence_id, action_id)
        return ids

    if sequence_id != SETUP_SEQUENCE:
        return []

    members = [
        d for d in descriptors
        if d.category == setup_category and d.order is not None
    ]
    members.sort(key=lambda d: d.order)
    return [d.id for d in members]


class ActionRegistry:
    """Discovered and compiled-in actions, keyed by id.

    Features:
        - Discover script actions from search roots (``refresh``)
        - Register Action implementations directly (``register``)
        - Resolve named sequences to ordered ids
    """

    def __init__(
        self,
        roots: Iterable[Path] = (),
        recursive: bool = False,
        pattern: str = "*.sh",
        category_ranges: Iterable[CategoryRange] | None = None,
        sequences: dict[str, list[str]] | None = None,
        setup_category: str = "host-setup",
    ):
        self._roots = list(roots)
        self._recursive = recursive
        self._pattern = pattern
        self._category_ranges = list(category_ranges or [])
        self._sequences = dict(sequences or {})
        self._setup_category = setup_category
        self._discovered: dict[str, Action] = {}
        self._registered: dict[str, Action] = {}

    @classmethod
    def from_config(cls, config: WorkbenchConfig) -> ActionRegistry:
        registry = cls(
            roots=config.roots,
            recursive=config.recursive,
            pattern=config.pattern,
            category_ranges=config.category_ranges,
            sequences=config.sequences,
            setup_category=config.setup_category,
        )
        registry.refresh()
        return registry

    def refresh(self) -> list[ActionDescriptor]:
        """Re-run discovery.  Registered actions are kept."""
        descriptors = discover(
            self._roots,
            recursive=self._recursive,
            pattern=self._pattern,
            category_ranges=self._category_ranges,
        )
        self._discovered = {d.id: ScriptAction(d) for d in descriptors}
        return self.descriptors

    def register(self, action: Action) -> None:
        """Register a compiled-in action."""
        action_id = action.describe().id
        if action_id in self._registered or action_id in self._discovered:
            logger.warning("Overwriting existing action: %s", action_id)
        self._registered[action_id] = action
        logger.debug("Registered action: %s", action_id)

    @property
    def actions(self) -> list[Action]:
        """All actions: discovered first (discovery order), then registered."""
        merged = {k: v for k, v in self._discovered.items() if k not in self._registered}
        merged.update(self._registered)
        return list(merged.values())

    @property
    def descriptors(self) -> list[ActionDescriptor]:
        return [a.describe() for a in self.actions]

    def ids(self) -> list[str]:
        return [a.describe().id for a in self.actions]

    def get(self, action_id: str) -> ActionDescriptor | None:
        action = self.action_for(action_id)
        return action.describe() if action else None

    def action_for(self, action_id: str) -> Action | None:
        """Look up an action by id."""
        return self._registered.get(action_id) or self._discovered.get(action_id)

    def sequence(self, sequence_id: str = SETUP_SEQUENCE) -> list[str]:
        return resolve_sequence(
            self.descriptors,
            sequence_id,
            sequences=self._sequences,
            setup_category=self._setup_category,
        )

    def __len__(self) -> int:
        return len(self.actions)

    def __contains__(self, action_id: object) -> bool:
        return isinstance(action_id, str) and self.action_for(action_id) is not None
