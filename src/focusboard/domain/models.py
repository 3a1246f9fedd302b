"""Record types for focusboard: tasks, focus sessions and categories."""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Optional

from ..utils.datetime import parse_iso_date, parse_iso_datetime


class Priority(Enum):
    """Task priority levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TaskStatus(Enum):
    """Task lifecycle states."""
    ACTIVE = "active"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class SessionType(Enum):
    """Kinds of timer runs."""
    DEEP_WORK = "deep_work"
    QUICK_TASK = "quick_task"
    BREAK = "break"
    CUSTOM = "custom"


@dataclass
class Category:
    """A grouping for tasks and sessions with an optional weekly goal."""
    id: int
    name: str
    color: str = "#6B7280"
    weekly_goal_minutes: int = 0  # 0 means no goal configured
    icon: Optional[str] = None
    description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'color': self.color,
            'weekly_goal_minutes': self.weekly_goal_minutes,
            'icon': self.icon,
            'description': self.description,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Category':
        return cls(
            id=data['id'],
            name=data['name'],
            color=data.get('color') or "#6B7280",
            weekly_goal_minutes=int(data.get('weekly_goal_minutes') or 0),
            icon=data.get('icon'),
            description=data.get('description'),
        )


@dataclass
class Task:
    """A unit of work; ``actual_duration`` accumulates from its sessions."""
    id: int
    title: str
    category_id: int
    actual_duration: int = 0  # minutes
    priority: Priority = Priority.MEDIUM
    status: TaskStatus = TaskStatus.ACTIVE
    description: Optional[str] = None
    estimated_duration: Optional[int] = None  # minutes
    due_date: Optional[date] = None
    created_at: datetime = field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'category_id': self.category_id,
            'estimated_duration': self.estimated_duration,
            'actual_duration': self.actual_duration,
            'priority': self.priority.value,
            'status': self.status.value,
            'due_date': self.due_date.isoformat() if self.due_date else None,
            'created_at': self.created_at.isoformat(),
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Task':
        return cls(
            id=data['id'],
            title=data['title'],
            category_id=data['category_id'],
            actual_duration=int(data.get('actual_duration') or 0),
            priority=Priority(data.get('priority', 'medium')),
            status=TaskStatus(data.get('status', 'active')),
            description=data.get('description'),
            estimated_duration=data.get('estimated_duration'),
            due_date=parse_iso_date(data['due_date']) if data.get('due_date') else None,
            created_at=parse_iso_datetime(data['created_at']) if data.get('created_at') else datetime.now(),
            completed_at=parse_iso_datetime(data['completed_at']) if data.get('completed_at') else None,
        )


@dataclass
class Session:
    """One focus-timer run.

    Sessions are immutable once written; only ``completed`` sessions feed
    analytics. ``started_at`` is local wall-clock time.
    """
    id: int
    category_id: int
    started_at: datetime
    duration_minutes: int
    completed: bool = True
    task_id: Optional[int] = None
    quality_rating: Optional[int] = None  # 1-5
    interruption_count: Optional[int] = None
    session_type: SessionType = SessionType.DEEP_WORK

    def __post_init__(self):
        if self.quality_rating is not None and not 1 <= self.quality_rating <= 5:
            raise ValueError(f"Quality rating must be between 1 and 5, got {self.quality_rating}")
        if self.duration_minutes < 0:
            raise ValueError(f"Session duration cannot be negative, got {self.duration_minutes}")

    @property
    def day(self) -> date:
        """Calendar date the session belongs to."""
        return self.started_at.date()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'task_id': self.task_id,
            'category_id': self.category_id,
            'session_type': self.session_type.value,
            'started_at': self.started_at.isoformat(),
            'duration_minutes': self.duration_minutes,
            'quality_rating': self.quality_rating,
            'interruption_count': self.interruption_count,
            'completed': self.completed,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Session':
        return cls(
            id=data['id'],
            category_id=data['category_id'],
            started_at=parse_iso_datetime(data['started_at']),
            duration_minutes=int(data['duration_minutes']),
            completed=bool(data.get('completed', True)),
            task_id=data.get('task_id'),
            quality_rating=data.get('quality_rating'),
            interruption_count=data.get('interruption_count'),
            session_type=SessionType(data.get('session_type', 'deep_work')),
        )
