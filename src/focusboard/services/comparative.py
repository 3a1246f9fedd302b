"""Period-over-period comparison of focus metrics."""

import statistics
from collections import Counter
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from ..domain import Session
from ..utils.validation import DateRange
from .aggregation import daily_totals, filter_sessions, summarize_sessions

PERIOD_DAYS = {
    'week': 7,
    'month': 30,
}

METRIC_LABELS = {
    'focus_time': "Focus Time",
    'sessions': "Sessions",
    'average_quality': "Session Quality",
    'average_session_length': "Session Length",
    'consistency': "Consistency",
}

RECOMMENDATIONS = {
    ('focus_time', 'down'): "Block out focus time earlier in the day to rebuild total focus time",
    ('sessions', 'down'): "Try to increase session frequency",
    ('average_quality', 'down'): "Reduce interruptions to lift session quality",
    ('average_session_length', 'down'): "Aim for fewer, longer sessions",
    ('consistency', 'down'): "Maintain consistent daily practice",
    ('focus_time', 'up'): "Keep protecting the time blocks that raised your focus time",
    ('average_quality', 'up'): "Continue the upward trend in session quality",
}


@dataclass
class MetricComparison:
    """One metric in the current and previous period"""
    metric: str
    current: float
    previous: float
    change: float
    change_percentage: float
    trend: str  # "up", "down" or "stable"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'metric': self.metric,
            'current': self.current,
            'previous': self.previous,
            'change': self.change,
            'change_percentage': self.change_percentage,
            'trend': self.trend,
        }


@dataclass
class ComparativeReport:
    """Week-over-week or month-over-month comparison"""
    period: str
    current_range: DateRange
    previous_range: DateRange
    metrics: List[MetricComparison] = field(default_factory=list)
    overall_trend: str = "stable"
    strongest_improvement: Optional[str] = None
    biggest_decline: Optional[str] = None
    recommendations: List[str] = field(default_factory=list)

    def metric(self, name: str) -> Optional[MetricComparison]:
        for comparison in self.metrics:
            if comparison.metric == name:
                return comparison
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'period': self.period,
            'current_range': self.current_range.to_dict(),
            'previous_range': self.previous_range.to_dict(),
            'metrics': [m.to_dict() for m in self.metrics],
            'overall_trend': self.overall_trend,
            'strongest_improvement': self.strongest_improvement,
            'biggest_decline': self.biggest_decline,
            'recommendations': list(self.recommendations),
        }


def change_percentage(current: float, previous: float) -> float:
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return (current - previous) / previous * 100


def classify_trend(percentage: float, dead_band: float = 5.0) -> str:
    if percentage > dead_band:
        return "up"
    if percentage < -dead_band:
        return "down"
    return "stable"


def compare_metric(name: str, current: float, previous: float,
                   dead_band: float = 5.0) -> MetricComparison:
    """Delta, percentage change and trend for one metric."""
    percentage = change_percentage(current, previous)
    return MetricComparison(
        metric=name,
        current=current,
        previous=previous,
        change=current - previous,
        change_percentage=percentage,
        trend=classify_trend(percentage, dead_band),
    )


def overall_trend(comparisons: Sequence[MetricComparison]) -> str:
    """The most common trend; ``stable`` when there is no single winner."""
    counts = Counter(c.trend for c in comparisons)
    if not counts:
        return "stable"
    ranked = counts.most_common()
    if len(ranked) > 1 and ranked[0][1] == ranked[1][1]:
        return "stable"
    return ranked[0][0]


def consistency_score(totals: Iterable[float]) -> float:
    """How evenly focus time is spread across days, 0-100.

    ``100 * (1 - stddev / mean)`` using the population standard deviation,
    clamped to [0, 100]. No days or a zero mean scores 0.
    """
    values = list(totals)
    if not values:
        return 0.0
    mean = statistics.mean(values)
    if mean == 0:
        return 0.0
    score = 100 * (1 - statistics.pstdev(values) / mean)
    return max(0.0, min(100.0, score))


def period_ranges(period: str, anchor: date) -> Tuple[DateRange, DateRange]:
    """Current and previous ranges for a ``week`` or ``month`` comparison.

    Raises:
        ValueError: If the period is not ``week`` or ``month``
    """
    if period not in PERIOD_DAYS:
        raise ValueError(f"Unknown comparison period '{period}'; use 'week' or 'month'")
    current = DateRange.ending_on(anchor, PERIOD_DAYS[period])
    return current, current.previous()


def _period_metrics(sessions: Iterable[Session], date_range: DateRange) -> Dict[str, float]:
    in_range = filter_sessions(sessions, date_range)
    summary = summarize_sessions(in_range)
    return {
        'focus_time': float(summary.total_minutes),
        'sessions': float(summary.session_count),
        'average_quality': summary.average_quality,
        'average_session_length': summary.average_session_length,
        'consistency': consistency_score(daily_totals(in_range, date_range).values()),
    }


def compare_periods(current_sessions: Iterable[Session],
                    previous_sessions: Iterable[Session],
                    current_range: DateRange,
                    previous_range: DateRange,
                    period: str = "week",
                    dead_band: float = 5.0) -> ComparativeReport:
    """Compare the current period's metrics against the previous period's."""
    current = _period_metrics(current_sessions, current_range)
    previous = _period_metrics(previous_sessions, previous_range)

    metrics = [
        compare_metric(name, current[name], previous[name], dead_band)
        for name in METRIC_LABELS
    ]

    improvements = [m for m in metrics if m.trend == "up"]
    declines = [m for m in metrics if m.trend == "down"]
    strongest = max(improvements, key=lambda m: m.change_percentage, default=None)
    weakest = min(declines, key=lambda m: m.change_percentage, default=None)

    recommendations = [
        RECOMMENDATIONS[(m.metric, m.trend)]
        for m in sorted(declines + improvements, key=lambda m: m.trend != "down")
        if (m.metric, m.trend) in RECOMMENDATIONS
    ]
    if current['sessions'] == 0 and previous['sessions'] == 0:
        recommendations = ["Complete more sessions to get trend analysis"]

    return ComparativeReport(
        period=period,
        current_range=current_range,
        previous_range=previous_range,
        metrics=metrics,
        overall_trend=overall_trend(metrics),
        strongest_improvement=METRIC_LABELS[strongest.metric] if strongest else None,
        biggest_decline=METRIC_LABELS[weakest.metric] if weakest else None,
        recommendations=recommendations,
    )
