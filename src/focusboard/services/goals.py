"""Weekly category goals.

Each category may carry a weekly goal in minutes. Weeks run Monday to
Sunday; categories without a goal (``weekly_goal_minutes == 0``) are left
out of every goal report.
"""

import math
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..domain import Category, Session
from ..utils.datetime import iter_dates, today, week_end, week_start as monday_of
from ..utils.validation import DateRange


@dataclass
class GoalProgress:
    """Progress of one category toward its weekly goal"""
    category_id: int
    category_name: str
    color: str
    weekly_goal_minutes: int
    current_minutes: int
    percentage: float  # capped at 100 for display
    is_completed: bool
    streak_weeks: int = 0

    @property
    def remaining_minutes(self) -> int:
        return max(0, self.weekly_goal_minutes - self.current_minutes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'category_id': self.category_id,
            'category_name': self.category_name,
            'color': self.color,
            'weekly_goal_minutes': self.weekly_goal_minutes,
            'current_minutes': self.current_minutes,
            'percentage': self.percentage,
            'is_completed': self.is_completed,
            'streak_weeks': self.streak_weeks,
        }


@dataclass
class DayBreakdown:
    day: date
    total_minutes: int
    category_minutes: Dict[int, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'date': self.day.isoformat(),
            'total_minutes': self.total_minutes,
            'category_minutes': {str(k): v for k, v in self.category_minutes.items()},
        }


@dataclass
class WeekProgress:
    """All weekly goals for one Monday-to-Sunday week"""
    week_start: date
    week_end: date
    total_target_minutes: int
    total_current_minutes: int
    overall_percentage: float
    completed_goals: int
    total_goals: int
    goals: List[GoalProgress] = field(default_factory=list)
    daily_breakdown: List[DayBreakdown] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'week_start': self.week_start.isoformat(),
            'week_end': self.week_end.isoformat(),
            'total_target_minutes': self.total_target_minutes,
            'total_current_minutes': self.total_current_minutes,
            'overall_percentage': self.overall_percentage,
            'completed_goals': self.completed_goals,
            'total_goals': self.total_goals,
            'goals': [g.to_dict() for g in self.goals],
            'daily_breakdown': [d.to_dict() for d in self.daily_breakdown],
        }


@dataclass
class GoalAttention:
    """An unfinished goal and how hard it is to still reach it"""
    category_id: int
    category_name: str
    color: str
    target_minutes: int
    current_minutes: int
    remaining_minutes: int
    days_left: int
    daily_target: float
    risk_level: str  # "low", "medium", "high"
    suggestion: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'category_id': self.category_id,
            'category_name': self.category_name,
            'color': self.color,
            'target_minutes': self.target_minutes,
            'current_minutes': self.current_minutes,
            'remaining_minutes': self.remaining_minutes,
            'days_left': self.days_left,
            'daily_target': self.daily_target,
            'risk_level': self.risk_level,
            'suggestion': self.suggestion,
        }


@dataclass
class GoalAchievement:
    category_id: int
    category_name: str
    week_start: date
    target_minutes: int
    actual_minutes: int
    overachievement_percentage: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'category_id': self.category_id,
            'category_name': self.category_name,
            'week_start': self.week_start.isoformat(),
            'target_minutes': self.target_minutes,
            'actual_minutes': self.actual_minutes,
            'overachievement_percentage': self.overachievement_percentage,
        }


def goal_percentage(current_minutes: int, goal_minutes: int) -> float:
    if goal_minutes <= 0:
        return 0.0
    return min(100.0, current_minutes / goal_minutes * 100)


def _weekly_minutes(sessions: Iterable[Session]) -> Dict[Tuple[date, int], int]:
    """Completed minutes keyed by (week start, category id)."""
    totals: Dict[Tuple[date, int], int] = defaultdict(int)
    for session in sessions:
        if session.completed:
            totals[(monday_of(session.day), session.category_id)] += session.duration_minutes
    return totals


def goal_progress(categories: Iterable[Category],
                  week_sessions: Iterable[Session],
                  history_sessions: Iterable[Session] = (),
                  week_start: Optional[date] = None,
                  as_of: Optional[date] = None,
                  lookback_weeks: int = 12) -> List[GoalProgress]:
    """Weekly goal progress for every category that has a goal.

    Args:
        categories: Category catalog
        week_sessions: Sessions of the week being reported
        history_sessions: Sessions of earlier weeks, used for ``streak_weeks``
        week_start: Monday of the reported week (default: this week)
        as_of: Today; the reported week is in progress when it contains it
        lookback_weeks: How many earlier weeks the streak count may span

    Returns:
        One ``GoalProgress`` per category with ``weekly_goal_minutes > 0``
    """
    as_of = as_of or today()
    week_start = monday_of(week_start or as_of)
    current_end = week_start + timedelta(days=6)
    in_progress = week_start <= as_of <= current_end

    current = defaultdict(int)
    for session in week_sessions:
        if session.completed and week_start <= session.day <= current_end:
            current[session.category_id] += session.duration_minutes

    history = _weekly_minutes(s for s in history_sessions if s.day < week_start)

    results = []
    for category in categories:
        goal = category.weekly_goal_minutes
        if goal <= 0:
            continue

        minutes = current[category.id]
        completed = minutes >= goal

        streak = 1 if completed else 0
        if completed or in_progress:
            for weeks_back in range(1, lookback_weeks + 1):
                earlier = week_start - timedelta(weeks=weeks_back)
                if history.get((earlier, category.id), 0) >= goal:
                    streak += 1
                else:
                    break

        results.append(GoalProgress(
            category_id=category.id,
            category_name=category.name,
            color=category.color,
            weekly_goal_minutes=goal,
            current_minutes=minutes,
            percentage=goal_percentage(minutes, goal),
            is_completed=completed,
            streak_weeks=streak,
        ))

    return results


def week_progress(categories: Iterable[Category],
                  week_sessions: Iterable[Session],
                  week_start: date) -> WeekProgress:
    """Totals and a Monday-to-Sunday daily breakdown for one week's goals."""
    week_start = monday_of(week_start)
    last_day = week_end(week_start)
    sessions = [s for s in week_sessions if s.completed and week_start <= s.day <= last_day]
    with_goals = [c for c in categories if c.weekly_goal_minutes > 0]

    goals = goal_progress(with_goals, sessions, week_start=week_start,
                          as_of=last_day, lookback_weeks=0)
    total_target = sum(g.weekly_goal_minutes for g in goals)
    total_current = sum(g.current_minutes for g in goals)

    goal_ids = {c.id for c in with_goals}
    per_day: Dict[date, Dict[int, int]] = {day: {cid: 0 for cid in goal_ids}
                                           for day in iter_dates(week_start, last_day)}
    for session in sessions:
        if session.category_id in goal_ids:
            per_day[session.day][session.category_id] += session.duration_minutes

    breakdown = [
        DayBreakdown(day=day, total_minutes=sum(minutes.values()), category_minutes=minutes)
        for day, minutes in per_day.items()
    ]

    return WeekProgress(
        week_start=week_start,
        week_end=last_day,
        total_target_minutes=total_target,
        total_current_minutes=total_current,
        overall_percentage=goal_percentage(total_current, total_target),
        completed_goals=sum(1 for g in goals if g.is_completed),
        total_goals=len(goals),
        goals=goals,
        daily_breakdown=breakdown,
    )


def goals_needing_attention(progress: WeekProgress,
                            as_of: Optional[date] = None) -> List[GoalAttention]:
    """Unfinished goals with a risk level and a daily target to still meet them.

    ``days_left`` counts today. Risk is high below 25% with two or fewer
    days left, medium below 50% with three or fewer days left or when more
    than an hour a day is needed, low otherwise.
    """
    as_of = as_of or today()
    days_left = max(0, (progress.week_end - as_of).days + 1)

    attention = []
    for goal in progress.goals:
        if goal.is_completed:
            continue

        remaining = goal.remaining_minutes
        daily_target = remaining / days_left if days_left > 0 else float(remaining)
        per_day = math.ceil(daily_target)

        if goal.percentage < 25 and days_left <= 2:
            risk, suggestion = "high", f"Critical: need {per_day} minutes daily to meet goal"
        elif goal.percentage < 50 and days_left <= 3:
            risk, suggestion = "medium", f"Focus needed: {per_day} minutes daily recommended"
        elif daily_target > 60:
            risk, suggestion = "medium", "Consider breaking into smaller sessions throughout the day"
        else:
            risk, suggestion = "low", f"On track: {per_day} minutes daily to complete"

        attention.append(GoalAttention(
            category_id=goal.category_id,
            category_name=goal.category_name,
            color=goal.color,
            target_minutes=goal.weekly_goal_minutes,
            current_minutes=goal.current_minutes,
            remaining_minutes=remaining,
            days_left=days_left,
            daily_target=daily_target,
            risk_level=risk,
            suggestion=suggestion,
        ))

    return attention


def goal_achievements(categories: Iterable[Category],
                      sessions: Iterable[Session],
                      date_range: DateRange) -> List[GoalAchievement]:
    """Goals completed in each week intersecting the range, latest week first."""
    categories = [c for c in categories if c.weekly_goal_minutes > 0]
    totals = _weekly_minutes(sessions)

    achievements = []
    week = monday_of(date_range.start_date)
    while week <= date_range.end_date:
        for category in categories:
            actual = totals.get((week, category.id), 0)
            goal = category.weekly_goal_minutes
            if actual >= goal:
                achievements.append(GoalAchievement(
                    category_id=category.id,
                    category_name=category.name,
                    week_start=week,
                    target_minutes=goal,
                    actual_minutes=actual,
                    overachievement_percentage=max(0.0, (actual - goal) / goal * 100),
                ))
        week += timedelta(weeks=1)

    achievements.sort(key=lambda a: (a.week_start, a.category_id), reverse=True)
    return achievements
