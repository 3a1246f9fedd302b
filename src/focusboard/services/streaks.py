"""Daily streak tracking with a grace period and manual recovery.

``StreakTracker`` is a materialized view over per-day focus minutes. Days
are evaluated in calendar order by a small state machine:

* ``met``: the day reached the minimum focus time, or was recovered
* ``missed``: below the threshold with no streak to protect
* ``grace-pending``: below the threshold but still inside the grace window
* ``grace-expired``: the grace window ran out; the streak resets to 0

The incremental path (``update_day``) and the full replay
(``rebuild_from_history``) produce the same ``StreakInfo``.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Set

from ..config import StreakSettings
from ..domain import Session
from ..utils.datetime import iter_dates, today
from ..utils.validation import DateRange

logger = logging.getLogger(__name__)

MILESTONES = {
    7: "One Week Warrior",
    14: "Two Week Champion",
    30: "Monthly Master",
    50: "Focus Fighter",
    100: "Century Achiever",
    200: "Consistency King",
    365: "Year-Long Legend",
}


class DayStatus(Enum):
    """Outcome of evaluating one calendar day"""
    MET = "met"
    MISSED = "missed"
    GRACE_PENDING = "grace-pending"
    GRACE_EXPIRED = "grace-expired"


@dataclass
class DayEvaluation:
    day: date
    minutes: int
    status: DayStatus
    current_streak: int
    longest_streak: int
    recovered: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'day': self.day.isoformat(),
            'minutes': self.minutes,
            'status': self.status.value,
            'current_streak': self.current_streak,
            'longest_streak': self.longest_streak,
            'recovered': self.recovered,
        }


@dataclass
class StreakInfo:
    """Current and longest streak as of a date"""
    current_streak: int = 0
    longest_streak: int = 0
    streak_dates: List[date] = field(default_factory=list)
    last_streak_date: Optional[date] = None
    grace_period_active: bool = False
    grace_period_ends_at: Optional[date] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'current_streak': self.current_streak,
            'longest_streak': self.longest_streak,
            'streak_dates': [d.isoformat() for d in self.streak_dates],
            'last_streak_date': self.last_streak_date.isoformat() if self.last_streak_date else None,
            'grace_period_active': self.grace_period_active,
            'grace_period_ends_at': (self.grace_period_ends_at.isoformat()
                                     if self.grace_period_ends_at else None),
        }


@dataclass
class RecoveryResult:
    """Outcome of a manual streak recovery request"""
    success: bool
    message: str
    streak: Optional[StreakInfo] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': self.success,
            'message': self.message,
            'streak': self.streak.to_dict() if self.streak else None,
        }


@dataclass
class StreakStatistics:
    total_streak_days: int
    streak_percentage: float
    average_daily_focus: float
    longest_streak_in_period: int
    streak_days: List[date] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total_streak_days': self.total_streak_days,
            'streak_percentage': self.streak_percentage,
            'average_daily_focus': self.average_daily_focus,
            'longest_streak_in_period': self.longest_streak_in_period,
            'streak_days': [d.isoformat() for d in self.streak_days],
        }


@dataclass
class Milestone:
    milestone: int
    days_to_go: int
    description: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'milestone': self.milestone,
            'days_to_go': self.days_to_go,
            'description': self.description,
        }


@dataclass
class _ChainState:
    current_streak: int = 0
    longest_streak: int = 0
    missed_in_row: int = 0
    streak_start: Optional[date] = None
    last_met: Optional[date] = None
    restart_candidate: Optional[date] = None
    last_status: Optional[DayStatus] = None


class StreakTracker:
    """Materialized streak state over daily focus minutes."""

    def __init__(self, settings: Optional[StreakSettings] = None,
                 recovered_dates: Optional[Iterable[date]] = None):
        self.settings = settings or StreakSettings()
        self.recovered_dates: Set[date] = set(recovered_dates or ())
        self._minutes: Dict[date, int] = {}
        self._evaluations: Dict[date, DayEvaluation] = {}
        self._state = _ChainState()
        self._origin: Optional[date] = None
        self._last_evaluated: Optional[date] = None

    @property
    def last_evaluated(self) -> Optional[date]:
        return self._last_evaluated

    @property
    def restart_candidate(self) -> Optional[date]:
        """Day on which the most recent streak expired."""
        return self._state.restart_candidate

    def evaluation(self, day: date) -> Optional[DayEvaluation]:
        return self._evaluations.get(day)

    def evaluations(self) -> List[DayEvaluation]:
        return [self._evaluations[d] for d in sorted(self._evaluations)]

    # ========================================================================
    # State machine
    # ========================================================================

    def _step(self, state: _ChainState, day: date) -> DayEvaluation:
        minutes = self._minutes.get(day, 0)
        recovered = day in self.recovered_dates

        if minutes >= self.settings.minimum_focus_time or recovered:
            status = DayStatus.MET
            if state.current_streak == 0:
                state.streak_start = day
            state.current_streak += 1
            state.missed_in_row = 0
            state.last_met = day
        elif state.current_streak == 0:
            status = DayStatus.MISSED
        else:
            state.missed_in_row += 1
            if self.settings.grace_enabled and state.missed_in_row <= self.settings.grace_period_days:
                status = DayStatus.GRACE_PENDING
            else:
                status = DayStatus.GRACE_EXPIRED
                state.current_streak = 0
                state.missed_in_row = 0
                state.streak_start = None
                state.restart_candidate = day

        state.longest_streak = max(state.longest_streak, state.current_streak)
        state.last_status = status
        return DayEvaluation(day=day, minutes=minutes, status=status,
                             current_streak=state.current_streak,
                             longest_streak=state.longest_streak,
                             recovered=recovered and minutes < self.settings.minimum_focus_time)

    def _replay(self) -> None:
        """Recompute every evaluation from the first tracked day."""
        self._state = _ChainState()
        self._evaluations = {}
        if self._origin is None or self._last_evaluated is None:
            return
        for day in iter_dates(self._origin, self._last_evaluated):
            self._evaluations[day] = self._step(self._state, day)

    def _project(self, as_of: date) -> _ChainState:
        """Chain state as of ``as_of`` without touching the cached view."""
        if self._last_evaluated is not None and as_of == self._last_evaluated:
            return self._state

        state = _ChainState()
        if self._origin is None or as_of < self._origin:
            return state
        for day in iter_dates(self._origin, as_of):
            self._step(state, day)
        return state

    # ========================================================================
    # Public operations
    # ========================================================================

    def update_day(self, day: date, minutes: int) -> DayEvaluation:
        """Record a day's focus minutes and evaluate it.

        Days between the last evaluated day and ``day`` are evaluated as
        zero-minute days. Updating a day that was already evaluated replays
        the chain so later days see the change.

        ``longest_streak`` never decreases while days are added in forward
        order. A correction to an already evaluated day replays the history,
        so ``longest_streak`` then reflects the corrected data and may drop;
        the result always equals ``rebuild_from_history`` over the same
        minutes.
        """
        self._minutes[day] = minutes

        if self._last_evaluated is None:
            self._origin = day
            self._last_evaluated = day
            self._evaluations[day] = self._step(self._state, day)
        elif day > self._last_evaluated:
            for gap_day in iter_dates(self._last_evaluated + timedelta(days=1), day):
                self._evaluations[gap_day] = self._step(self._state, gap_day)
            self._last_evaluated = day
        else:
            if day < self._origin:
                self._origin = day
            logger.debug(f"Re-evaluating {day}; replaying streak chain from {self._origin}")
            self._replay()

        return self._evaluations[day]

    def rebuild_from_history(self, sessions: Iterable[Session],
                             as_of: Optional[date] = None) -> StreakInfo:
        """Rebuild the view from raw sessions through ``as_of`` (default today)."""
        as_of = as_of or today()
        minutes: Dict[date, int] = defaultdict(int)
        for session in sessions:
            if session.completed and session.day <= as_of:
                minutes[session.day] += session.duration_minutes

        self._minutes = dict(minutes)
        known_days = set(self._minutes) | {d for d in self.recovered_dates if d <= as_of}
        self._origin = min(known_days) if known_days else None
        self._last_evaluated = as_of if self._origin is not None else None
        self._replay()

        logger.debug(f"Rebuilt streak view over {len(self._evaluations)} days as of {as_of}")
        return self.info(as_of)

    def recover(self, day: date) -> RecoveryResult:
        """Mark a grace-pending day as met and recompute the chain.

        Ineligible requests return ``success=False`` and leave the tracker
        unchanged.
        """
        if not self.settings.streak_recovery_enabled:
            return RecoveryResult(False, "Streak recovery is disabled")

        evaluation = self._evaluations.get(day)
        if evaluation is None:
            return RecoveryResult(False, f"No streak history for {day.isoformat()}")
        if evaluation.status == DayStatus.MET:
            return RecoveryResult(False, f"{day.isoformat()} already counts toward the streak")
        if evaluation.status != DayStatus.GRACE_PENDING:
            return RecoveryResult(
                False, f"{day.isoformat()} is outside any grace window and cannot be recovered"
            )

        self.recovered_dates.add(day)
        self._replay()
        logger.info(f"Streak recovered for {day}")
        return RecoveryResult(True, f"Streak successfully recovered for {day.isoformat()}",
                              self.info())

    def info(self, as_of: Optional[date] = None) -> StreakInfo:
        """Streak summary as of ``as_of`` (default: last evaluated day)."""
        as_of = as_of or self._last_evaluated
        if as_of is None:
            return StreakInfo()

        state = self._project(as_of)
        streak_dates: List[date] = []
        if state.current_streak > 0 and state.streak_start is not None:
            streak_dates = [
                d for d in iter_dates(state.streak_start, state.last_met)
                if self._minutes.get(d, 0) >= self.settings.minimum_focus_time
                or d in self.recovered_dates
            ]

        grace_active = state.last_status == DayStatus.GRACE_PENDING
        grace_ends = None
        if grace_active and state.last_met is not None:
            grace_ends = state.last_met + timedelta(days=self.settings.grace_period_days + 1)

        return StreakInfo(
            current_streak=state.current_streak,
            longest_streak=state.longest_streak,
            streak_dates=streak_dates,
            last_streak_date=state.last_met if state.current_streak > 0 else None,
            grace_period_active=grace_active,
            grace_period_ends_at=grace_ends,
        )


def streak_statistics(tracker: StreakTracker, date_range: DateRange) -> StreakStatistics:
    """Streak-day counts and the longest run inside a range."""
    statuses: List[bool] = []
    streak_days: List[date] = []
    total_minutes = 0

    for day in date_range.dates():
        evaluation = tracker.evaluation(day)
        met = evaluation is not None and evaluation.status == DayStatus.MET
        statuses.append(met)
        if met:
            streak_days.append(day)
        if evaluation is not None:
            total_minutes += evaluation.minutes

    longest = run = 0
    for met in statuses:
        run = run + 1 if met else 0
        longest = max(longest, run)

    total_days = date_range.days
    return StreakStatistics(
        total_streak_days=len(streak_days),
        streak_percentage=(len(streak_days) / total_days * 100) if total_days > 0 else 0.0,
        average_daily_focus=(total_minutes / total_days) if total_days > 0 else 0.0,
        longest_streak_in_period=longest,
        streak_days=streak_days,
    )


def upcoming_milestones(current_streak: int, limit: int = 3) -> List[Milestone]:
    """Next streak milestones above the current streak."""
    return [
        Milestone(milestone=days, days_to_go=days - current_streak, description=name)
        for days, name in sorted(MILESTONES.items())
        if days > current_streak
    ][:limit]
