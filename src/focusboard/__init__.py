"""focusboard - local-first focus session tracker with productivity analytics."""

__version__ = "0.1.0"
__author__ = "focusboard Team"

from .domain import (
    Category,
    Priority,
    Session,
    SessionType,
    Task,
    TaskStatus,
)

__all__ = ["Category", "Priority", "Session", "SessionType", "Task", "TaskStatus", "__version__"]
