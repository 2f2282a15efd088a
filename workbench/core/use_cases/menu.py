"""
Menu use case — the categorized, numbered, freshly probed action list.

Statuses are probed every time a snapshot is built; nothing is carried
over from a previous snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from workbench.core.models.action import ActionDescriptor, ActionStatus
from workbench.core.models.category import CategoryGroup
from workbench.core.models.state import SequenceRun
from workbench.core.services.organizer import organize
from workbench.core.services.prober import probe_all
from workbench.core.use_cases.workbench import Workbench


@dataclass
class MenuEntry:
    """One numbered line of the menu."""

    index: int
    descriptor: ActionDescriptor
    status: ActionStatus


@dataclass
class MenuSnapshot:
    """Everything the shell needs to render one menu."""

    groups: list[CategoryGroup] = field(default_factory=list)
    entries: list[MenuEntry] = field(default_factory=list)
    setup_ids: list[str] = field(default_factory=list)
    session: SequenceRun | None = None

    def by_index(self, index: int) -> MenuEntry | None:
        if 1 <= index <= len(self.entries):
            return self.entries[index - 1]
        return None

    def entries_for(self, group: CategoryGroup) -> list[MenuEntry]:
        ids = {d.id for d in group.actions}
        return [e for e in self.entries if e.descriptor.id in ids]

    @property
    def satisfied_count(self) -> int:
        return sum(1 for e in self.entries if e.status == ActionStatus.SATISFIED)

    def to_dict(self) -> dict:
        """Convert to a JSON-serializable dictionary."""
        result: dict = {
            "categories": [
                {
                    "name": g.name,
                    "actions": [
                        {
                            "index": e.index,
                            "id": e.descriptor.id,
                            "description": e.descriptor.description,
                            "status": e.status.value,
                            "order": e.descriptor.order,
                            "source": e.descriptor.source,
                        }
                        for e in self.entries_for(g)
                    ],
                }
                for g in self.groups
            ],
            "setup": self.setup_ids,
            "session": self.session.model_dump(mode="json") if self.session else None,
        }
        return result


def build_menu(workbench: Workbench, probe: bool = True) -> MenuSnapshot:
    """Organize and probe all registered actions.

    Args:
        workbench: Runtime collaborators.
        probe: Run detection predicates (False renders every status as unknown).
    """
    actions = workbench.registry.actions
    groups = organize(a.describe() for a in actions)

    if probe:
        statuses = probe_all(
            actions,
            workbench.context,
            timeout=workbench.config.probe_timeout,
            max_workers=workbench.config.probe_workers,
        )
    else:
        statuses = {}

    entries: list[MenuEntry] = []
    for group in groups:
        for descriptor in group.actions:
            entries.append(MenuEntry(
                index=len(entries) + 1,
                descriptor=descriptor,
                status=statuses.get(descriptor.id, ActionStatus.UNKNOWN),
            ))

    return MenuSnapshot(
        groups=groups,
        entries=entries,
        setup_ids=workbench.registry.sequence(),
        session=workbench.store.load(),
    )
