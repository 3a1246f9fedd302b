"""Report assembly and the analytics service facade.

``AnalyticsService`` answers one request per report type. Each answer is a
``ReportResult`` carrying its own status so a failing report never takes
the others down with it.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional

from ..config import ConfigModel, get_config
from ..domain import Category, Session, Task, TaskStatus
from ..storage import RecordStore, RecordStoreError
from ..utils.datetime import month_bounds, today, week_end, week_start
from ..utils.validation import DateRange, validate_range
from .aggregation import (
    SessionSummary,
    aggregate_by_hour_and_weekday,
    aggregate_time_by_category,
    count_completed_tasks,
    distribution_by_duration_range,
    filter_sessions,
    summarize_sessions,
)
from .comparative import compare_periods, period_ranges
from .export import AnalyticsExporter, ExportFormat, build_export_payload
from .focus_quality import focus_quality_metrics
from .goals import goal_progress, goals_needing_attention, week_progress
from .patterns import (
    peak_hours,
    recommend_session_length,
    score_heatmap,
    suggest_session_times,
)
from .streaks import RecoveryResult, StreakTracker, streak_statistics, upcoming_milestones

logger = logging.getLogger(__name__)

STREAK_HISTORY_DAYS = 365


class ReportStatus(Enum):
    OK = "ok"
    ERROR = "error"
    LOADING = "loading"


@dataclass
class ReportResult:
    """Status and payload of one report request"""
    status: ReportStatus
    data: Any = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, data: Any) -> "ReportResult":
        return cls(ReportStatus.OK, data=data)

    @classmethod
    def failed(cls, message: str) -> "ReportResult":
        return cls(ReportStatus.ERROR, error=message)

    @classmethod
    def loading(cls) -> "ReportResult":
        return cls(ReportStatus.LOADING)

    @property
    def is_ok(self) -> bool:
        return self.status == ReportStatus.OK

    def to_dict(self) -> Dict[str, Any]:
        data = self.data
        if hasattr(data, 'to_dict'):
            data = data.to_dict()
        elif isinstance(data, list):
            data = [item.to_dict() if hasattr(item, 'to_dict') else item for item in data]
        return {'status': self.status.value, 'data': data, 'error': self.error}


@dataclass
class WeeklyReport:
    """Summary of one Monday-to-Sunday week"""
    week_start: date
    week_end: date
    total_focus_time: int
    sessions_completed: int
    average_session_length: float
    focus_score: float
    top_category: Optional[str]
    goals_achieved: int
    total_goals: int
    tasks_completed: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'week_start': self.week_start.isoformat(),
            'week_end': self.week_end.isoformat(),
            'total_focus_time': self.total_focus_time,
            'sessions_completed': self.sessions_completed,
            'average_session_length': self.average_session_length,
            'focus_score': self.focus_score,
            'top_category': self.top_category,
            'goals_achieved': self.goals_achieved,
            'total_goals': self.total_goals,
            'tasks_completed': self.tasks_completed,
        }


@dataclass
class MonthlyReport:
    """Summary of one calendar month with its weekly breakdown"""
    year: int
    month: int
    month_start: date
    month_end: date
    total_focus_time: int
    sessions_completed: int
    average_session_length: float
    focus_score: float
    top_category: Optional[str]
    goals_achieved: int
    total_goals: int
    tasks_completed: int
    weekly_breakdown: List[WeeklyReport] = field(default_factory=list)

    @property
    def month_name(self) -> str:
        return self.month_start.strftime("%B")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'year': self.year,
            'month': self.month,
            'month_name': self.month_name,
            'month_start': self.month_start.isoformat(),
            'month_end': self.month_end.isoformat(),
            'total_focus_time': self.total_focus_time,
            'sessions_completed': self.sessions_completed,
            'average_session_length': self.average_session_length,
            'focus_score': self.focus_score,
            'top_category': self.top_category,
            'goals_achieved': self.goals_achieved,
            'total_goals': self.total_goals,
            'tasks_completed': self.tasks_completed,
            'weekly_breakdown': [w.to_dict() for w in self.weekly_breakdown],
        }


@dataclass
class PeriodReports:
    weekly: List[WeeklyReport] = field(default_factory=list)
    monthly: List[MonthlyReport] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'weekly': [w.to_dict() for w in self.weekly],
            'monthly': [m.to_dict() for m in self.monthly],
        }


@dataclass
class SessionLengthAnalysis:
    buckets: list
    optimal: Any
    summary: SessionSummary

    def to_dict(self) -> Dict[str, Any]:
        return {
            'buckets': [b.to_dict() for b in self.buckets],
            'optimal': self.optimal.to_dict(),
            'summary': self.summary.to_dict(),
        }


@dataclass
class StreakReport:
    info: Any
    statistics: Any
    milestones: list

    def to_dict(self) -> Dict[str, Any]:
        return {
            'info': self.info.to_dict(),
            'statistics': self.statistics.to_dict(),
            'milestones': [m.to_dict() for m in self.milestones],
        }


@dataclass
class GoalReport:
    progress: list
    week: Any
    needs_attention: list

    def to_dict(self) -> Dict[str, Any]:
        return {
            'progress': [g.to_dict() for g in self.progress],
            'week': self.week.to_dict(),
            'needs_attention': [a.to_dict() for a in self.needs_attention],
        }


# ============================================================================
# Weekly / monthly assembly
# ============================================================================

def _period_figures(sessions: List[Session], categories: List[Category],
                    tasks: List[Task], period: DateRange) -> Dict[str, Any]:
    in_period = filter_sessions(sessions, period)
    summary = summarize_sessions(in_period)
    distribution = aggregate_time_by_category(in_period, categories, period)
    top = distribution.top_category
    return {
        'sessions': in_period,
        'summary': summary,
        'top_category': top.category_name if top else None,
        'tasks_completed': count_completed_tasks(tasks, period),
    }


def build_weekly_reports(sessions: Iterable[Session], categories: Iterable[Category],
                         tasks: Iterable[Task], date_range: DateRange) -> List[WeeklyReport]:
    """One report per Monday-start week intersecting the range.

    Weeks are reported whole; weeks without sessions are omitted.
    """
    sessions, categories, tasks = list(sessions), list(categories), list(tasks)
    reports = []

    monday = week_start(date_range.start_date)
    while monday <= date_range.end_date:
        period = DateRange(monday, week_end(monday))
        figures = _period_figures(sessions, categories, tasks, period)
        summary = figures['summary']

        if summary.session_count > 0:
            goals = goal_progress(categories, figures['sessions'], week_start=monday,
                                  as_of=period.end_date, lookback_weeks=0)
            reports.append(WeeklyReport(
                week_start=period.start_date,
                week_end=period.end_date,
                total_focus_time=summary.total_minutes,
                sessions_completed=summary.session_count,
                average_session_length=summary.average_session_length,
                focus_score=summary.quality_score,
                top_category=figures['top_category'],
                goals_achieved=sum(1 for g in goals if g.is_completed),
                total_goals=len(goals),
                tasks_completed=figures['tasks_completed'],
            ))

        monday += timedelta(weeks=1)

    return reports


def build_monthly_reports(sessions: Iterable[Session], categories: Iterable[Category],
                          tasks: Iterable[Task], date_range: DateRange) -> List[MonthlyReport]:
    """One report per calendar month intersecting the range.

    Goal counts sum over the weeks that start inside the month.
    """
    sessions, categories, tasks = list(sessions), list(categories), list(tasks)
    reports = []

    first, last = month_bounds(date_range.start_date)
    while first <= date_range.end_date:
        period = DateRange(first, last)
        figures = _period_figures(sessions, categories, tasks, period)
        summary = figures['summary']

        if summary.session_count > 0:
            weeks = [
                w for w in build_weekly_reports(sessions, categories, tasks, period)
                if period.contains(w.week_start)
            ]
            reports.append(MonthlyReport(
                year=first.year,
                month=first.month,
                month_start=first,
                month_end=last,
                total_focus_time=summary.total_minutes,
                sessions_completed=summary.session_count,
                average_session_length=summary.average_session_length,
                focus_score=summary.quality_score,
                top_category=figures['top_category'],
                goals_achieved=sum(w.goals_achieved for w in weeks),
                total_goals=sum(w.total_goals for w in weeks),
                tasks_completed=figures['tasks_completed'],
                weekly_breakdown=weeks,
            ))

        first, last = month_bounds(last + timedelta(days=1))

    return reports


# ============================================================================
# Service facade
# ============================================================================

class AnalyticsService:
    """Runs analytics queries against a record store."""

    def __init__(self, store: RecordStore, config: Optional[ConfigModel] = None):
        self.store = store
        self.config = config or get_config()

    @property
    def settings(self):
        return self.config.analytics

    def _validate(self, date_range: DateRange) -> DateRange:
        return validate_range(date_range, self.settings.max_range_days)

    def _run(self, name: str, build: Callable[[], Any],
             isolate_errors: bool = False) -> ReportResult:
        """Build one report, capturing store failures as an error result.

        With ``isolate_errors`` a ``ValueError`` (e.g. unusable settings) is
        captured too, so one dashboard panel cannot stop the others.
        """
        try:
            return ReportResult.ok(build())
        except RecordStoreError as e:
            logger.error(f"Failed to build {name} report: {e}")
            return ReportResult.failed(f"Could not load data for {name}: {e}")
        except ValueError as e:
            if not isolate_errors:
                raise
            logger.error(f"Failed to build {name} panel: {e}")
            return ReportResult.failed(f"Could not build {name}: {e}")

    # ------------------------------------------------------------------
    # Builders (no validation, no error capture)
    # ------------------------------------------------------------------

    def _time_distribution(self, date_range: DateRange):
        sessions = self.store.get_sessions(date_range.start_date, date_range.end_date)
        return aggregate_time_by_category(sessions, self.store.get_categories(), date_range)

    def _heatmap(self, date_range: DateRange):
        sessions = self.store.get_sessions(date_range.start_date, date_range.end_date)
        return score_heatmap(
            aggregate_by_hour_and_weekday(sessions),
            self.settings.heatmap_quality_weight,
            self.settings.heatmap_volume_weight,
        )

    def _session_lengths(self, date_range: DateRange) -> SessionLengthAnalysis:
        sessions = self.store.get_sessions(date_range.start_date, date_range.end_date)
        summary = summarize_sessions(sessions)
        buckets = distribution_by_duration_range(sessions, self.settings.duration_bucket_boundaries)
        optimal = recommend_session_length(
            buckets,
            summary.average_session_length,
            self.settings.quality_confidence_samples,
            self.settings.default_session_minutes,
        )
        return SessionLengthAnalysis(buckets=buckets, optimal=optimal, summary=summary)

    def _suggestions(self, date_range: DateRange):
        cells = self._heatmap(date_range)
        optimal = self._session_lengths(date_range).optimal
        return suggest_session_times(cells, optimal, self.settings.suggestion_count)

    def _goals(self, date_range: DateRange) -> GoalReport:
        monday = week_start(date_range.end_date)
        sunday = week_end(monday)
        history_start = monday - timedelta(weeks=self.settings.goal_streak_lookback_weeks)

        categories = self.store.get_categories()
        week_sessions = self.store.get_sessions(monday, sunday)
        history = self.store.get_sessions(history_start, monday - timedelta(days=1))
        as_of = min(today(), sunday)

        progress = goal_progress(categories, week_sessions, history, week_start=monday,
                                 as_of=as_of,
                                 lookback_weeks=self.settings.goal_streak_lookback_weeks)
        week = week_progress(categories, week_sessions, monday)
        return GoalReport(progress=progress, week=week,
                          needs_attention=goals_needing_attention(week, as_of))

    def _streak_tracker(self, as_of: date) -> StreakTracker:
        sessions = self.store.get_sessions(as_of - timedelta(days=STREAK_HISTORY_DAYS), as_of)
        tracker = StreakTracker(self.config.streak, self.store.get_recovered_dates())
        tracker.rebuild_from_history(sessions, as_of)
        return tracker

    def _streak(self, date_range: DateRange) -> StreakReport:
        tracker = self._streak_tracker(date_range.end_date)
        info = tracker.info(date_range.end_date)
        return StreakReport(
            info=info,
            statistics=streak_statistics(tracker, date_range),
            milestones=upcoming_milestones(info.current_streak),
        )

    def _comparison(self, date_range: DateRange, period: str):
        current, previous = period_ranges(period, date_range.end_date)
        current_sessions = self.store.get_sessions(current.start_date, current.end_date)
        previous_sessions = self.store.get_sessions(previous.start_date, previous.end_date)
        return compare_periods(current_sessions, previous_sessions, current, previous,
                               period, self.settings.trend_dead_band)

    def _reports(self, date_range: DateRange) -> PeriodReports:
        first, _ = month_bounds(date_range.start_date)
        _, last = month_bounds(date_range.end_date)
        fetch_start = min(first, week_start(date_range.start_date))
        fetch_end = max(last, week_end(date_range.end_date))

        sessions = self.store.get_sessions(fetch_start, fetch_end)
        categories = self.store.get_categories()
        tasks = self.store.get_tasks(status=TaskStatus.COMPLETED)
        return PeriodReports(
            weekly=build_weekly_reports(sessions, categories, tasks, date_range),
            monthly=build_monthly_reports(sessions, categories, tasks, date_range),
        )

    def _focus_quality(self, date_range: DateRange):
        sessions = self.store.get_sessions(date_range.start_date, date_range.end_date)
        return focus_quality_metrics(sessions, date_range, self.settings.deep_work_minutes)

    # ------------------------------------------------------------------
    # Public report requests
    # ------------------------------------------------------------------

    def time_distribution(self, date_range: DateRange) -> ReportResult:
        self._validate(date_range)
        return self._run("time distribution", lambda: self._time_distribution(date_range))

    def heatmap(self, date_range: DateRange) -> ReportResult:
        self._validate(date_range)
        return self._run("heatmap", lambda: self._heatmap(date_range))

    def session_lengths(self, date_range: DateRange) -> ReportResult:
        self._validate(date_range)
        return self._run("session length", lambda: self._session_lengths(date_range))

    def suggestions(self, date_range: DateRange) -> ReportResult:
        self._validate(date_range)
        return self._run("session suggestions", lambda: self._suggestions(date_range))

    def goals(self, date_range: DateRange) -> ReportResult:
        self._validate(date_range)
        return self._run("goal progress", lambda: self._goals(date_range))

    def streak(self, date_range: DateRange) -> ReportResult:
        self._validate(date_range)
        return self._run("streak", lambda: self._streak(date_range))

    def comparison(self, date_range: DateRange, period: str = "week") -> ReportResult:
        self._validate(date_range)
        period_ranges(period, date_range.end_date)  # reject unknown periods up front
        return self._run("comparison", lambda: self._comparison(date_range, period))

    def reports(self, date_range: DateRange) -> ReportResult:
        self._validate(date_range)
        return self._run("weekly/monthly reports", lambda: self._reports(date_range))

    def focus_quality(self, date_range: DateRange) -> ReportResult:
        self._validate(date_range)
        return self._run("focus quality", lambda: self._focus_quality(date_range))

    def insights(self, date_range: DateRange) -> ReportResult:
        """Peak hours of the range, ranked by focus score."""
        self._validate(date_range)
        return self._run("insights", lambda: peak_hours(self._heatmap(date_range)))

    def dashboard(self, date_range: DateRange) -> Dict[str, ReportResult]:
        """Every panel, each built independently."""
        self._validate(date_range)
        panels = {
            'time_distribution': self._time_distribution,
            'heatmap': self._heatmap,
            'session_lengths': self._session_lengths,
            'suggestions': self._suggestions,
            'goals': self._goals,
            'streak': self._streak,
            'comparison': lambda r: self._comparison(r, "week"),
            'reports': self._reports,
            'focus_quality': self._focus_quality,
        }
        results = {}
        for name, build in panels.items():
            results[name] = self._run(name.replace('_', ' '), lambda b=build: b(date_range),
                                      isolate_errors=True)
        failed = [name for name, result in results.items() if not result.is_ok]
        if failed:
            logger.warning(f"Dashboard rendered with failed panels: {', '.join(failed)}")
        return results

    def recover_streak(self, day: date, as_of: Optional[date] = None) -> RecoveryResult:
        """Recover a grace-pending day and persist the recovery.

        Raises:
            RecordStoreError: If history cannot be read or the recovery saved
        """
        tracker = self._streak_tracker(as_of or today())
        result = tracker.recover(day)
        if result.success:
            self.store.add_recovered_date(day)
        else:
            logger.info(f"Streak recovery for {day} rejected: {result.message}")
        return result

    def export_payload(self, date_range: DateRange) -> Dict[str, Any]:
        """Assemble the export document.

        Raises:
            RecordStoreError: If any part of the export cannot be loaded
        """
        self._validate(date_range)
        sessions = self.store.get_sessions(date_range.start_date, date_range.end_date)
        lengths = self._session_lengths(date_range)
        return build_export_payload(
            date_range,
            summary=summarize_sessions(sessions),
            time_distribution=self._time_distribution(date_range),
            heatmap=self._heatmap(date_range),
            duration_distribution=lengths.buckets,
            optimal_session_length=lengths.optimal,
            goal_progress=self._goals(date_range).progress,
            streak=self._streak(date_range).info,
            comparison=self._comparison(date_range, "week"),
            weekly_reports=self._reports(date_range).weekly,
        )

    def export(self, date_range: DateRange, format: ExportFormat,
               output_path: Optional[str] = None) -> str:
        payload = self.export_payload(date_range)
        return AnalyticsExporter().export(payload, format, output_path)
