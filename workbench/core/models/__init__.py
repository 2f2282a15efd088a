"""
Domain models — Pydantic types for the workbench.

All models are re-exported here for convenient access:

    from workbench.core.models import ActionDescriptor, ActionStatus, SequenceRun
"""

from workbench.core.models.action import (
    DEFAULT_CATEGORY,
    ActionDescriptor,
    ActionStatus,
    ExecutionResult,
)
from workbench.core.models.category import CategoryGroup
from workbench.core.models.state import LogRecord, SequenceRun

__all__ = [
    # action.py
    "DEFAULT_CATEGORY",
    "ActionDescriptor",
    "ActionStatus",
    "ExecutionResult",
    # category.py
    "CategoryGroup",
    # state.py
    "LogRecord",
    "SequenceRun",
]
