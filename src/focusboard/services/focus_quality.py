"""Focus quality metrics: deep work share, rating mix and interruptions."""

import statistics
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, List

from ..domain import Session, SessionType
from ..utils.validation import DateRange
from .aggregation import daily_totals, filter_sessions
from .comparative import consistency_score

SESSION_TYPE_COLORS = {
    SessionType.DEEP_WORK: "#3B82F6",
    SessionType.QUICK_TASK: "#10B981",
    SessionType.BREAK: "#F59E0B",
    SessionType.CUSTOM: "#8B5CF6",
}


@dataclass
class DailyQuality:
    day: date
    average_quality: float
    deep_work_minutes: int
    total_minutes: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'date': self.day.isoformat(),
            'average_quality': self.average_quality,
            'deep_work_minutes': self.deep_work_minutes,
            'total_minutes': self.total_minutes,
        }


@dataclass
class FocusQualityMetrics:
    """Quality profile of the sessions in a range"""
    session_count: int = 0
    deep_work_percentage: float = 0.0
    average_quality_rating: float = 0.0
    quality_distribution: List[Dict[str, Any]] = field(default_factory=list)
    session_type_breakdown: List[Dict[str, Any]] = field(default_factory=list)
    daily_quality_trend: List[DailyQuality] = field(default_factory=list)
    average_interruptions: float = 0.0
    interruption_impact: float = 0.0
    consistency_score: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'session_count': self.session_count,
            'deep_work_percentage': self.deep_work_percentage,
            'average_quality_rating': self.average_quality_rating,
            'quality_distribution': [dict(row) for row in self.quality_distribution],
            'session_type_breakdown': [dict(row) for row in self.session_type_breakdown],
            'daily_quality_trend': [d.to_dict() for d in self.daily_quality_trend],
            'average_interruptions': self.average_interruptions,
            'interruption_impact': self.interruption_impact,
            'consistency_score': self.consistency_score,
        }


def _mean_rating(sessions: Iterable[Session]) -> float:
    ratings = [s.quality_rating for s in sessions if s.quality_rating is not None]
    return statistics.mean(ratings) if ratings else 0.0


def _quality_distribution(rated: List[Session]) -> List[Dict[str, Any]]:
    rows = []
    for rating in range(1, 6):
        count = sum(1 for s in rated if s.quality_rating == rating)
        rows.append({
            'rating': rating,
            'count': count,
            'percentage': (count / len(rated) * 100) if rated else 0.0,
        })
    return rows


def _session_type_breakdown(sessions: List[Session]) -> List[Dict[str, Any]]:
    rows = []
    for session_type in SessionType:
        of_type = [s for s in sessions if s.session_type == session_type]
        if not of_type:
            continue
        rows.append({
            'type': session_type.value,
            'count': len(of_type),
            'average_quality': _mean_rating(of_type),
            'total_minutes': sum(s.duration_minutes for s in of_type),
            'color': SESSION_TYPE_COLORS[session_type],
        })
    return rows


def _interruption_impact(sessions: List[Session]) -> float:
    """Mean rating of uninterrupted sessions minus that of interrupted ones."""
    tracked = [s for s in sessions
               if s.quality_rating is not None and s.interruption_count is not None]
    calm = [s for s in tracked if s.interruption_count == 0]
    interrupted = [s for s in tracked if s.interruption_count > 0]
    if not calm or not interrupted:
        return 0.0
    return _mean_rating(calm) - _mean_rating(interrupted)


def focus_quality_metrics(sessions: Iterable[Session], date_range: DateRange,
                          deep_work_minutes: int = 45) -> FocusQualityMetrics:
    """Quality metrics for completed sessions in the range.

    Zero sessions yields all-zero metrics with an empty trend.
    """
    in_range = filter_sessions(sessions, date_range)
    if not in_range:
        return FocusQualityMetrics(quality_distribution=_quality_distribution([]))

    rated = [s for s in in_range if s.quality_rating is not None]
    deep = [s for s in in_range if s.duration_minutes >= deep_work_minutes]

    by_day: Dict[date, List[Session]] = {}
    for session in in_range:
        by_day.setdefault(session.day, []).append(session)
    trend = [
        DailyQuality(
            day=day,
            average_quality=_mean_rating(day_sessions),
            deep_work_minutes=sum(s.duration_minutes for s in day_sessions
                                  if s.duration_minutes >= deep_work_minutes),
            total_minutes=sum(s.duration_minutes for s in day_sessions),
        )
        for day, day_sessions in sorted(by_day.items())
    ]

    counted = [s.interruption_count for s in in_range if s.interruption_count is not None]

    return FocusQualityMetrics(
        session_count=len(in_range),
        deep_work_percentage=len(deep) / len(in_range) * 100,
        average_quality_rating=_mean_rating(rated),
        quality_distribution=_quality_distribution(rated),
        session_type_breakdown=_session_type_breakdown(in_range),
        daily_quality_trend=trend,
        average_interruptions=statistics.mean(counted) if counted else 0.0,
        interruption_impact=_interruption_impact(in_range),
        consistency_score=consistency_score(daily_totals(in_range, date_range).values()),
    )
