"""CategoryGroup — one section of the menu."""

from __future__ import annotations

from pydantic import BaseModel, Field

from workbench.core.models.action import ActionDescriptor


class CategoryGroup(BaseModel):
    """A category name and its member actions in discovery order."""

    name: str
    actions: list[ActionDescriptor] = Field(default_factory=list)

    def __len__(self) -> int:
        return len(self.actions)
