"""Aggregation primitives for focus session analytics.

Pure functions that bucket and summarize session records. Every higher-level
report (heatmaps, goals, comparisons, exports) is built from these results,
so each function returns a well-formed zero result for empty input instead
of raising.
"""

import statistics
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Sequence

from ..domain import Category, Session, Task, TaskStatus
from ..utils.datetime import day_of_week
from ..utils.validation import DateRange, validate_duration_boundaries

UNKNOWN_CATEGORY_NAME = "Unknown"
UNKNOWN_CATEGORY_COLOR = "#6B7280"


@dataclass
class TimeDistributionEntry:
    """Focused minutes for one category"""
    category_id: int
    category_name: str
    color: str
    total_minutes: int
    percentage_of_total: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'category_id': self.category_id,
            'category_name': self.category_name,
            'color': self.color,
            'total_minutes': self.total_minutes,
            'percentage_of_total': self.percentage_of_total,
        }


@dataclass
class TimeDistribution:
    """Breakdown of focused minutes by category over a date range"""
    entries: List[TimeDistributionEntry] = field(default_factory=list)
    total_minutes: int = 0

    @property
    def top_category(self) -> Optional[TimeDistributionEntry]:
        return self.entries[0] if self.entries else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'entries': [entry.to_dict() for entry in self.entries],
            'total_minutes': self.total_minutes,
        }


@dataclass
class HourWeekdayBucket:
    """Session statistics for one (day of week, hour) cell"""
    day_of_week: int  # 0 = Sunday
    hour: int
    session_count: int = 0
    total_minutes: int = 0
    rated_count: int = 0
    quality_total: int = 0

    @property
    def average_minutes(self) -> float:
        return self.total_minutes / self.session_count if self.session_count else 0.0

    @property
    def average_quality(self) -> float:
        return self.quality_total / self.rated_count if self.rated_count else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'day_of_week': self.day_of_week,
            'hour': self.hour,
            'session_count': self.session_count,
            'total_minutes': self.total_minutes,
            'average_minutes': self.average_minutes,
            'average_quality': self.average_quality,
        }


@dataclass
class DurationBucket:
    """Sessions whose length falls in ``[lower, upper)``; ``upper`` None means open-ended"""
    lower: int
    upper: Optional[int]
    count: int = 0
    total_minutes: int = 0
    rated_count: int = 0
    average_quality: float = 0.0

    @property
    def label(self) -> str:
        if self.upper is None:
            return f"{self.lower}+"
        return f"{self.lower}-{self.upper}"

    def contains(self, minutes: int) -> bool:
        return minutes >= self.lower and (self.upper is None or minutes < self.upper)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'label': self.label,
            'lower': self.lower,
            'upper': self.upper,
            'count': self.count,
            'total_minutes': self.total_minutes,
            'rated_count': self.rated_count,
            'average_quality': self.average_quality,
        }


@dataclass
class SessionSummary:
    """Headline numbers for a set of sessions"""
    session_count: int = 0
    total_minutes: int = 0
    average_session_length: float = 0.0
    rated_count: int = 0
    average_quality: float = 0.0
    quality_score: float = 0.0  # average quality on a 0-100 scale
    total_interruptions: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'session_count': self.session_count,
            'total_minutes': self.total_minutes,
            'average_session_length': self.average_session_length,
            'rated_count': self.rated_count,
            'average_quality': self.average_quality,
            'quality_score': self.quality_score,
            'total_interruptions': self.total_interruptions,
        }


def completed_sessions(sessions: Iterable[Session]) -> List[Session]:
    """Only finished sessions feed analytics."""
    return [s for s in sessions if s.completed]


def filter_sessions(sessions: Iterable[Session], date_range: DateRange) -> List[Session]:
    """Completed sessions whose date falls inside the inclusive range."""
    return [s for s in sessions if s.completed and date_range.contains(s.day)]


def aggregate_time_by_category(sessions: Iterable[Session],
                               categories: Iterable[Category],
                               date_range: DateRange) -> TimeDistribution:
    """Total focused minutes per category, largest first.

    Categories without sessions in the range are omitted; percentages are
    relative to the total of the included categories and sum to 100 when
    any time was logged.
    """
    catalog = {category.id: category for category in categories}
    minutes_by_category: Dict[int, int] = defaultdict(int)

    for session in filter_sessions(sessions, date_range):
        minutes_by_category[session.category_id] += session.duration_minutes

    total = sum(minutes_by_category.values())
    entries = []
    for category_id, minutes in minutes_by_category.items():
        category = catalog.get(category_id)
        entries.append(TimeDistributionEntry(
            category_id=category_id,
            category_name=category.name if category else UNKNOWN_CATEGORY_NAME,
            color=category.color if category else UNKNOWN_CATEGORY_COLOR,
            total_minutes=minutes,
            percentage_of_total=(minutes / total * 100) if total > 0 else 0.0,
        ))

    entries.sort(key=lambda e: (-e.total_minutes, e.category_id))
    return TimeDistribution(entries=entries, total_minutes=total)


def aggregate_by_hour_and_weekday(sessions: Iterable[Session]) -> List[HourWeekdayBucket]:
    """Dense 7x24 grid of session statistics keyed by local start time.

    Always returns 168 buckets ordered by (day_of_week, hour), including
    buckets with no sessions.
    """
    grid = {
        (dow, hour): HourWeekdayBucket(day_of_week=dow, hour=hour)
        for dow in range(7) for hour in range(24)
    }

    for session in completed_sessions(sessions):
        bucket = grid[(day_of_week(session.started_at), session.started_at.hour)]
        bucket.session_count += 1
        bucket.total_minutes += session.duration_minutes
        if session.quality_rating is not None:
            bucket.rated_count += 1
            bucket.quality_total += session.quality_rating

    return [grid[key] for key in sorted(grid)]


def distribution_by_duration_range(sessions: Iterable[Session],
                                   boundaries: Sequence[int]) -> List[DurationBucket]:
    """Count sessions per duration bucket with each bucket's mean quality.

    Args:
        sessions: Sessions to bucket
        boundaries: Ascending lower bounds starting at 0, e.g.
            ``[0, 15, 30, 45, 60, 90]``; the last bucket is open-ended

    Raises:
        ValueError: If boundaries are empty, do not start at 0 or are not
            strictly ascending
    """
    boundaries = validate_duration_boundaries(boundaries)

    uppers: List[Optional[int]] = list(boundaries[1:]) + [None]
    buckets = [DurationBucket(lower=lower, upper=upper) for lower, upper in zip(boundaries, uppers)]
    ratings: Dict[int, List[int]] = defaultdict(list)

    for session in completed_sessions(sessions):
        for index, bucket in enumerate(buckets):
            if bucket.contains(session.duration_minutes):
                bucket.count += 1
                bucket.total_minutes += session.duration_minutes
                if session.quality_rating is not None:
                    ratings[index].append(session.quality_rating)
                break

    for index, bucket in enumerate(buckets):
        rated = ratings.get(index, [])
        bucket.rated_count = len(rated)
        bucket.average_quality = statistics.mean(rated) if rated else 0.0

    return buckets


def summarize_sessions(sessions: Iterable[Session]) -> SessionSummary:
    """Count, total, mean length and mean quality of completed sessions."""
    finished = completed_sessions(sessions)
    if not finished:
        return SessionSummary()

    total = sum(s.duration_minutes for s in finished)
    ratings = [s.quality_rating for s in finished if s.quality_rating is not None]
    average_quality = statistics.mean(ratings) if ratings else 0.0

    return SessionSummary(
        session_count=len(finished),
        total_minutes=total,
        average_session_length=total / len(finished),
        rated_count=len(ratings),
        average_quality=average_quality,
        quality_score=average_quality * 20,
        total_interruptions=sum(s.interruption_count or 0 for s in finished),
    )


def daily_totals(sessions: Iterable[Session], date_range: DateRange) -> Dict[date, int]:
    """Focused minutes per calendar day, zero-filled for every day in range."""
    totals = {day: 0 for day in date_range.dates()}
    for session in filter_sessions(sessions, date_range):
        totals[session.day] += session.duration_minutes
    return totals


def count_completed_tasks(tasks: Iterable[Task], date_range: DateRange) -> int:
    """Tasks completed on a date inside the range."""
    return sum(
        1 for task in tasks
        if task.status == TaskStatus.COMPLETED
        and task.completed_at is not None
        and date_range.contains(task.completed_at.date())
    )
