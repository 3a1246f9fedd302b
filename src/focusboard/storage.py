"""Record store for focusboard.

The analytics core reads tasks, sessions and categories through the
``RecordStore`` interface. ``SQLiteRecordStore`` is the single-file local
database implementation; it also carries the few writes needed to populate
it and the persisted streak recoveries.
"""

import logging
import sqlite3
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Iterator, List, Optional, Set, Union

from .domain import Category, Priority, Session, SessionType, Task, TaskStatus
from .utils.datetime import parse_iso_date, parse_iso_datetime

logger = logging.getLogger(__name__)


class RecordStoreError(Exception):
    """Raised when the record store cannot complete a read or write."""


class RecordStore(ABC):
    """Read interface the analytics core consumes."""

    @abstractmethod
    def get_sessions(self, start_date: date, end_date: date) -> List[Session]:
        """Sessions whose start falls on a date in ``[start_date, end_date]``."""

    @abstractmethod
    def get_tasks(self, category_id: Optional[int] = None,
                  status: Optional[TaskStatus] = None) -> List[Task]:
        """Tasks, optionally filtered by category and status."""

    @abstractmethod
    def get_categories(self) -> List[Category]:
        """The full category catalog."""

    @abstractmethod
    def get_recovered_dates(self) -> Set[date]:
        """Dates manually recovered into a streak."""

    @abstractmethod
    def add_recovered_date(self, day: date) -> None:
        """Persist a streak recovery."""


# ============================================================================
# SQLite implementation
# ============================================================================

class SQLiteRecordStore(RecordStore):
    """SQLite-backed record store."""

    def __init__(self, db_path: Union[str, Path]):
        """Initialize the store.

        Args:
            db_path: Path of the database file; created on first use
        """
        self.db_path = Path(db_path)
        self.initialize()

    @contextmanager
    def get_connection(self) -> Iterator[sqlite3.Connection]:
        """Get a database connection with a context manager.

        Yields:
            sqlite3.Connection: Database connection

        Raises:
            RecordStoreError: If SQLite reports an error
        """
        try:
            conn = sqlite3.connect(self.db_path)
        except sqlite3.Error as e:
            raise RecordStoreError(f"Cannot open database {self.db_path}: {e}") from e
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            logger.error(f"Database error on {self.db_path}: {e}")
            raise RecordStoreError(str(e)) from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def initialize(self) -> None:
        """Create the schema if it does not exist."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self.get_connection() as conn:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS categories (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT UNIQUE NOT NULL,
                    color TEXT NOT NULL DEFAULT '#6B7280',
                    icon TEXT,
                    description TEXT,
                    weekly_goal_minutes INTEGER NOT NULL DEFAULT 0
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS tasks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    title TEXT NOT NULL,
                    description TEXT,
                    category_id INTEGER NOT NULL,
                    estimated_duration INTEGER,
                    actual_duration INTEGER NOT NULL DEFAULT 0,
                    priority TEXT NOT NULL DEFAULT 'medium',
                    status TEXT NOT NULL DEFAULT 'active',
                    due_date TEXT,
                    created_at TEXT NOT NULL,
                    completed_at TEXT,
                    FOREIGN KEY (category_id) REFERENCES categories (id)
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS sessions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    task_id INTEGER,
                    category_id INTEGER NOT NULL,
                    session_type TEXT NOT NULL DEFAULT 'deep_work',
                    started_at TEXT NOT NULL,
                    duration_minutes INTEGER NOT NULL,
                    quality_rating INTEGER,
                    interruption_count INTEGER,
                    completed BOOLEAN NOT NULL DEFAULT 1,
                    FOREIGN KEY (task_id) REFERENCES tasks (id),
                    FOREIGN KEY (category_id) REFERENCES categories (id)
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS streak_recoveries (
                    day TEXT PRIMARY KEY,
                    recovered_at TEXT NOT NULL
                )
            """)

            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_sessions_started_at ON sessions (started_at)"
            )
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_tasks_category_id ON tasks (category_id)"
            )

    # ========================================================================
    # Reads
    # ========================================================================

    def get_sessions(self, start_date: date, end_date: date) -> List[Session]:
        # ISO timestamps sort lexicographically, so a half-open string range
        # over [start, end + 1 day) selects every session on the end date.
        upper = (end_date + timedelta(days=1)).isoformat()
        with self.get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM sessions WHERE started_at >= ? AND started_at < ? "
                "ORDER BY started_at, id",
                (start_date.isoformat(), upper)
            ).fetchall()
        return [self._row_to_session(row) for row in rows]

    def get_tasks(self, category_id: Optional[int] = None,
                  status: Optional[TaskStatus] = None) -> List[Task]:
        query = "SELECT * FROM tasks WHERE 1 = 1"
        params: list = []
        if category_id is not None:
            query += " AND category_id = ?"
            params.append(category_id)
        if status is not None:
            query += " AND status = ?"
            params.append(status.value)
        query += " ORDER BY id"

        with self.get_connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_task(row) for row in rows]

    def get_categories(self) -> List[Category]:
        with self.get_connection() as conn:
            rows = conn.execute("SELECT * FROM categories ORDER BY id").fetchall()
        return [
            Category(
                id=row['id'],
                name=row['name'],
                color=row['color'],
                weekly_goal_minutes=row['weekly_goal_minutes'],
                icon=row['icon'],
                description=row['description'],
            )
            for row in rows
        ]

    def get_recovered_dates(self) -> Set[date]:
        with self.get_connection() as conn:
            rows = conn.execute("SELECT day FROM streak_recoveries").fetchall()
        return {parse_iso_date(row['day']) for row in rows}

    # ========================================================================
    # Writes
    # ========================================================================

    def add_category(self, name: str, color: str = "#6B7280",
                     weekly_goal_minutes: int = 0, icon: Optional[str] = None,
                     description: Optional[str] = None) -> Category:
        """Create a category.

        Raises:
            ValueError: If the name is already taken
        """
        try:
            with self.get_connection() as conn:
                cursor = conn.execute(
                    "INSERT INTO categories (name, color, icon, description, weekly_goal_minutes) "
                    "VALUES (?, ?, ?, ?, ?)",
                    (name, color, icon, description, weekly_goal_minutes)
                )
                category_id = cursor.lastrowid
        except RecordStoreError as e:
            if isinstance(e.__cause__, sqlite3.IntegrityError):
                raise ValueError(f"Category '{name}' already exists") from e
            raise

        logger.info(f"Created category {category_id} '{name}'")
        return Category(id=category_id, name=name, color=color,
                        weekly_goal_minutes=weekly_goal_minutes,
                        icon=icon, description=description)

    def add_task(self, title: str, category_id: int,
                 priority: Priority = Priority.MEDIUM,
                 status: TaskStatus = TaskStatus.ACTIVE,
                 description: Optional[str] = None,
                 estimated_duration: Optional[int] = None,
                 due_date: Optional[date] = None,
                 created_at: Optional[datetime] = None,
                 completed_at: Optional[datetime] = None) -> Task:
        """Create a task."""
        created_at = created_at or datetime.now()
        if status == TaskStatus.COMPLETED and completed_at is None:
            completed_at = created_at

        with self.get_connection() as conn:
            cursor = conn.execute(
                "INSERT INTO tasks (title, description, category_id, estimated_duration, "
                "priority, status, due_date, created_at, completed_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (title, description, category_id, estimated_duration, priority.value,
                 status.value, due_date.isoformat() if due_date else None,
                 created_at.isoformat(), completed_at.isoformat() if completed_at else None)
            )
            task_id = cursor.lastrowid

        return Task(id=task_id, title=title, category_id=category_id, priority=priority,
                    status=status, description=description,
                    estimated_duration=estimated_duration, due_date=due_date,
                    created_at=created_at, completed_at=completed_at)

    def add_session(self, category_id: int, started_at: datetime, duration_minutes: int,
                    completed: bool = True, task_id: Optional[int] = None,
                    quality_rating: Optional[int] = None,
                    interruption_count: Optional[int] = None,
                    session_type: SessionType = SessionType.DEEP_WORK) -> Session:
        """Record a finished session and credit its minutes to the task."""
        started_at = parse_iso_datetime(started_at)
        # Validate before touching the database
        session = Session(id=0, category_id=category_id, started_at=started_at,
                          duration_minutes=duration_minutes, completed=completed,
                          task_id=task_id, quality_rating=quality_rating,
                          interruption_count=interruption_count, session_type=session_type)

        with self.get_connection() as conn:
            cursor = conn.execute(
                "INSERT INTO sessions (task_id, category_id, session_type, started_at, "
                "duration_minutes, quality_rating, interruption_count, completed) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (task_id, category_id, session_type.value,
                 started_at.replace(microsecond=0).isoformat(), duration_minutes,
                 quality_rating, interruption_count, int(completed))
            )
            session.id = cursor.lastrowid
            if task_id is not None and completed:
                conn.execute(
                    "UPDATE tasks SET actual_duration = actual_duration + ? WHERE id = ?",
                    (duration_minutes, task_id)
                )

        logger.debug(f"Logged session {session.id}: {duration_minutes} min in category {category_id}")
        return session

    def add_recovered_date(self, day: date) -> None:
        with self.get_connection() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO streak_recoveries (day, recovered_at) VALUES (?, ?)",
                (day.isoformat(), datetime.now().replace(microsecond=0).isoformat())
            )
        logger.info(f"Persisted streak recovery for {day}")

    # ========================================================================
    # Row mapping
    # ========================================================================

    @staticmethod
    def _row_to_session(row: sqlite3.Row) -> Session:
        return Session(
            id=row['id'],
            task_id=row['task_id'],
            category_id=row['category_id'],
            session_type=SessionType(row['session_type']),
            started_at=parse_iso_datetime(row['started_at']),
            duration_minutes=row['duration_minutes'],
            quality_rating=row['quality_rating'],
            interruption_count=row['interruption_count'],
            completed=bool(row['completed']),
        )

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        return Task(
            id=row['id'],
            title=row['title'],
            description=row['description'],
            category_id=row['category_id'],
            estimated_duration=row['estimated_duration'],
            actual_duration=row['actual_duration'],
            priority=Priority(row['priority']),
            status=TaskStatus(row['status']),
            due_date=parse_iso_date(row['due_date']) if row['due_date'] else None,
            created_at=parse_iso_datetime(row['created_at']),
            completed_at=parse_iso_datetime(row['completed_at']) if row['completed_at'] else None,
        )
