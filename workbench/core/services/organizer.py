"""
Category organizer — groups descriptors into menu sections.

Pure function of its input: categories appear in the order their first
member was discovered, and members keep discovery order.
"""

from __future__ import annotations

from collections.abc import Iterable

from workbench.core.models.action import ActionDescriptor
from workbench.core.models.category import CategoryGroup


def organize(descriptors: Iterable[ActionDescriptor]) -> list[CategoryGroup]:
    groups: dict[str, CategoryGroup] = {}
    for descriptor in descriptors:
        group = groups.get(descriptor.category)
        if group is None:
            group = groups[descriptor.category] = CategoryGroup(name=descriptor.category)
        group.actions.append(descriptor)
    return list(groups.values())
