"""
Action adapters — the Action interface and its script-backed implementation.
"""

from workbench.adapters.base import Action
from workbench.adapters.script import ScriptAction

__all__ = ["Action", "ScriptAction"]
