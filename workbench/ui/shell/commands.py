"""
Command parsing for the interactive shell.

A command line is one of:
    - a menu number (``3``)
    - an action id, or a unique prefix of one (``nvidia-drivers``, ``nvidia-d``)
    - a reserved keyword: setup/all, update, info/refresh, reset, quit/q/exit
    - nothing, which means ``setup``

Keywords win over action ids with the same name; such actions stay
reachable by number.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Literal

from workbench.core.use_cases.menu import MenuSnapshot

CommandKind = Literal["action", "setup", "update", "info", "reset", "quit"]

DEFAULT_COMMAND: CommandKind = "setup"

KEYWORDS: dict[str, CommandKind] = {
    "setup": "setup",
    "all": "setup",
    "update": "update",
    "info": "info",
    "refresh": "info",
    "reset": "reset",
    "quit": "quit",
    "q": "quit",
    "exit": "quit",
}


class CommandError(ValueError):
    """Input that does not map to any command."""


@dataclass(frozen=True)
class Command:
    kind: CommandKind
    action_id: str | None = None


def parse_command(line: str, snapshot: MenuSnapshot) -> Command:
    """Map a line of input to a Command.

    Blank input selects ``DEFAULT_COMMAND``.

    Raises:
        CommandError: If the input matches nothing.
    """
    text = line.strip()
    if not text:
        return Command(DEFAULT_COMMAND)

    lowered = text.lower()
    if lowered in KEYWORDS:
        return Command(KEYWORDS[lowered])

    if text.isdigit():
        entry = snapshot.by_index(int(text))
        if entry is None:
            raise CommandError(
                f"No action number {text} (choose 1-{len(snapshot.entries)})"
            )
        return Command("action", entry.descriptor.id)

    ids = [e.descriptor.id for e in snapshot.entries]
    if lowered in ids:
        return Command("action", lowered)

    matches = [i for i in ids if i.startswith(lowered)]
    if len(matches) == 1:
        return Command("action", matches[0])
    if len(matches) > 1:
        raise CommandError(f"Ambiguous command '{text}': {', '.join(matches)}")

    raise CommandError(f"Unknown command '{text}'")


def completion_candidates(text: str, action_ids: Iterable[str]) -> list[str]:
    """Keywords and action ids starting with ``text``, keywords first."""
    prefix = text.lower()
    keywords = [k for k in KEYWORDS if k.startswith(prefix)]
    ids = sorted(i for i in action_ids if i.startswith(prefix) and i not in KEYWORDS)
    return keywords + ids
