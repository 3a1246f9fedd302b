"""Analytics services for focusboard."""

from .aggregation import (
    TimeDistribution,
    TimeDistributionEntry,
    aggregate_by_hour_and_weekday,
    aggregate_time_by_category,
    distribution_by_duration_range,
    summarize_sessions,
)
from .patterns import (
    HeatmapCell,
    OptimalSessionLength,
    SessionSuggestion,
    recommend_session_length,
    score_heatmap,
    suggest_session_times,
)
from .streaks import DayStatus, RecoveryResult, StreakInfo, StreakTracker
from .goals import GoalProgress, goal_progress
from .comparative import ComparativeReport, MetricComparison, compare_metric, compare_periods
from .focus_quality import FocusQualityMetrics, focus_quality_metrics
from .export import AnalyticsExporter, ExportFormat
from .reports import AnalyticsService, ReportResult, ReportStatus

__all__ = [
    "TimeDistribution",
    "TimeDistributionEntry",
    "aggregate_by_hour_and_weekday",
    "aggregate_time_by_category",
    "distribution_by_duration_range",
    "summarize_sessions",
    "HeatmapCell",
    "OptimalSessionLength",
    "SessionSuggestion",
    "recommend_session_length",
    "score_heatmap",
    "suggest_session_times",
    "DayStatus",
    "RecoveryResult",
    "StreakInfo",
    "StreakTracker",
    "GoalProgress",
    "goal_progress",
    "ComparativeReport",
    "MetricComparison",
    "compare_metric",
    "compare_periods",
    "FocusQualityMetrics",
    "focus_quality_metrics",
    "AnalyticsExporter",
    "ExportFormat",
    "AnalyticsService",
    "ReportResult",
    "ReportStatus",
]
