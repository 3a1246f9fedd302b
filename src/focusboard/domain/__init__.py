"""Domain models for focusboard."""

from .models import Category, Priority, Session, SessionType, Task, TaskStatus

__all__ = [
    "Category",
    "Priority",
    "Session",
    "SessionType",
    "Task",
    "TaskStatus",
]
