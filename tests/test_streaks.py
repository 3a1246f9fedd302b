"""Tests for the streak tracker state machine."""

from datetime import date, timedelta

import pytest

from focusboard.config import StreakSettings
from focusboard.services.streaks import (
    DayStatus,
    StreakTracker,
    streak_statistics,
    upcoming_milestones,
)
from focusboard.utils.validation import DateRange

D1 = date(2024, 3, 4)


def day(offset):
    return D1 + timedelta(days=offset)


@pytest.fixture
def tracker():
    return StreakTracker(StreakSettings(minimum_focus_time=25, grace_period_days=1))


class TestDayEvaluation:
    """Test the per-day state machine"""

    def test_first_met_day_starts_streak(self, tracker):
        evaluation = tracker.update_day(D1, 30)
        assert evaluation.status == DayStatus.MET
        assert evaluation.current_streak == 1
        assert evaluation.longest_streak == 1

    def test_threshold_is_inclusive(self, tracker):
        assert tracker.update_day(D1, 25).status == DayStatus.MET

    def test_missed_without_streak(self, tracker):
        assert tracker.update_day(D1, 10).status == DayStatus.MISSED
        assert tracker.info().current_streak == 0

    def test_grace_day_keeps_streak(self, tracker):
        tracker.update_day(day(0), 30)
        pending = tracker.update_day(day(1), 0)
        assert pending.status == DayStatus.GRACE_PENDING
        assert pending.current_streak == 1

        resumed = tracker.update_day(day(2), 30)
        assert resumed.status == DayStatus.MET
        assert resumed.current_streak == 2

    def test_grace_expires(self, tracker):
        tracker.update_day(day(0), 30)
        tracker.update_day(day(1), 0)
        expired = tracker.update_day(day(2), 0)

        assert expired.status == DayStatus.GRACE_EXPIRED
        assert expired.current_streak == 0
        assert expired.longest_streak == 1
        assert tracker.restart_candidate == day(2)

    def test_gap_days_are_filled(self, tracker):
        tracker.update_day(day(0), 30)
        tracker.update_day(day(3), 30)

        assert tracker.evaluation(day(1)).status == DayStatus.GRACE_PENDING
        assert tracker.evaluation(day(2)).status == DayStatus.GRACE_EXPIRED
        assert tracker.evaluation(day(3)).current_streak == 1
        assert len(tracker.evaluations()) == 4

    def test_grace_disabled(self):
        tracker = StreakTracker(StreakSettings(minimum_focus_time=25, grace_period_days=0))
        tracker.update_day(day(0), 30)
        assert tracker.update_day(day(1), 0).status == DayStatus.GRACE_EXPIRED

    def test_longest_streak_is_monotone(self, tracker):
        minutes = [30, 30, 30, 0, 0, 30, 0, 30, 30, 30, 30, 0, 0, 0]
        longest = 0
        for offset, value in enumerate(minutes):
            evaluation = tracker.update_day(day(offset), value)
            assert evaluation.longest_streak >= longest
            longest = evaluation.longest_streak
        assert longest == 5


class TestStreakInfo:
    """Test streak summaries"""

    def test_empty_tracker(self, tracker):
        info = tracker.info()
        assert info.current_streak == 0
        assert info.streak_dates == []
        assert info.last_streak_date is None

    def test_info_during_grace(self, tracker):
        tracker.update_day(day(0), 30)
        tracker.update_day(day(1), 40)
        tracker.update_day(day(2), 0)
        info = tracker.info()

        assert info.current_streak == 2
        assert info.streak_dates == [day(0), day(1)]
        assert info.last_streak_date == day(1)
        assert info.grace_period_active is True
        assert info.grace_period_ends_at == day(3)

    def test_projection_does_not_mutate(self, tracker):
        tracker.update_day(day(0), 30)
        projected = tracker.info(day(5))

        assert projected.current_streak == 0
        assert tracker.last_evaluated == day(0)
        assert tracker.info().current_streak == 1

    def test_to_dict_uses_iso_dates(self, tracker):
        tracker.update_day(day(0), 30)
        data = tracker.info().to_dict()
        assert data['streak_dates'] == ["2024-03-04"]
        assert data['last_streak_date'] == "2024-03-04"
        assert data['grace_period_ends_at'] is None


class TestRebuild:
    """Test that incremental updates and a full rebuild agree"""

    def _sessions(self, make_session):
        return [
            make_session("2024-03-04T09:00", 20),
            make_session("2024-03-04T15:00", 10),
            make_session("2024-03-05T09:00", 45),
            make_session("2024-03-07T09:00", 30),
            make_session("2024-03-08T09:00", 90, completed=False),
            make_session("2024-03-10T09:00", 25),
            make_session("2024-03-11T09:00", 25),
        ]

    def test_incremental_matches_rebuild(self, tracker, make_session):
        sessions = self._sessions(make_session)
        totals = {}
        for session in sessions:
            if session.completed:
                totals[session.day] = totals.get(session.day, 0) + session.duration_minutes
        for session_day in sorted(totals):
            tracker.update_day(session_day, totals[session_day])

        rebuilt = StreakTracker(StreakSettings(minimum_focus_time=25, grace_period_days=1))
        info = rebuilt.rebuild_from_history(sessions, as_of=date(2024, 3, 11))

        assert info == tracker.info()
        assert info.current_streak == 2
        assert info.longest_streak == 3

    def test_out_of_order_update_replays(self, tracker):
        tracker.update_day(day(2), 30)
        tracker.update_day(day(0), 30)
        tracker.update_day(day(1), 30)

        assert tracker.info().current_streak == 3
        assert [e.day for e in tracker.evaluations()] == [day(0), day(1), day(2)]

    def test_correcting_past_day_recomputes_longest(self, tracker):
        tracker.update_day(day(0), 30)
        tracker.update_day(day(1), 30)
        assert tracker.info().longest_streak == 2

        # Lowering an evaluated day replays history, so longest can drop
        evaluation = tracker.update_day(day(1), 10)
        assert evaluation.status == DayStatus.GRACE_PENDING
        assert tracker.info().longest_streak == 1

        fresh = StreakTracker(StreakSettings(minimum_focus_time=25, grace_period_days=1))
        fresh.update_day(day(0), 30)
        fresh.update_day(day(1), 10)
        assert fresh.info() == tracker.info()

    def test_rebuild_ignores_future_sessions(self, tracker, make_session):
        sessions = [make_session("2024-03-04T09:00", 30), make_session("2024-03-06T09:00", 30)]
        info = tracker.rebuild_from_history(sessions, as_of=day(0))
        assert info.current_streak == 1
        assert tracker.last_evaluated == day(0)

    def test_rebuild_with_no_history(self, tracker):
        info = tracker.rebuild_from_history([], as_of=D1)
        assert info.current_streak == 0
        assert tracker.evaluations() == []


class TestRecovery:
    """Test manual streak recovery"""

    def test_recover_grace_day(self, tracker):
        tracker.update_day(day(0), 30)
        tracker.update_day(day(1), 10)
        tracker.update_day(day(2), 0)
        assert tracker.info().current_streak == 0

        result = tracker.recover(day(1))

        assert result.success is True
        assert day(1) in tracker.recovered_dates
        assert tracker.evaluation(day(1)).status == DayStatus.MET
        assert tracker.evaluation(day(1)).recovered is True
        assert tracker.evaluation(day(2)).status == DayStatus.GRACE_PENDING
        assert result.streak.current_streak == 2

    def test_met_day_cannot_be_recovered(self, tracker):
        tracker.update_day(day(0), 30)
        tracker.update_day(day(1), 30)
        before = tracker.evaluations()

        result = tracker.recover(day(1))

        assert result.success is False
        assert "already counts" in result.message
        assert tracker.evaluations() == before
        assert tracker.recovered_dates == set()

    def test_unknown_day(self, tracker):
        tracker.update_day(day(0), 30)
        result = tracker.recover(day(10))
        assert result.success is False
        assert "No streak history" in result.message

    def test_missed_day_outside_grace(self, tracker):
        tracker.update_day(day(0), 0)
        result = tracker.recover(day(0))
        assert result.success is False
        assert "outside any grace window" in result.message

    def test_recovery_disabled(self):
        tracker = StreakTracker(StreakSettings(streak_recovery_enabled=False))
        tracker.update_day(day(0), 30)
        tracker.update_day(day(1), 0)
        result = tracker.recover(day(1))
        assert result.success is False
        assert result.message == "Streak recovery is disabled"

    def test_recovered_dates_survive_rebuild(self, make_session):
        settings = StreakSettings(minimum_focus_time=25, grace_period_days=1)
        sessions = [make_session("2024-03-04T09:00", 30), make_session("2024-03-06T09:00", 30)]
        tracker = StreakTracker(settings, recovered_dates=[day(1)])
        info = tracker.rebuild_from_history(sessions, as_of=day(2))
        assert info.current_streak == 3


class TestStreakStatistics:

    def test_statistics_over_range(self, tracker):
        for offset, minutes in enumerate([30, 40, 0, 50]):
            tracker.update_day(day(offset), minutes)

        stats = streak_statistics(tracker, DateRange(day(0), day(3)))

        assert stats.total_streak_days == 3
        assert stats.streak_percentage == pytest.approx(75.0)
        assert stats.average_daily_focus == pytest.approx(30.0)
        assert stats.longest_streak_in_period == 2
        assert stats.streak_days == [day(0), day(1), day(3)]

    def test_days_without_history(self, tracker):
        stats = streak_statistics(tracker, DateRange(day(0), day(6)))
        assert stats.total_streak_days == 0
        assert stats.streak_percentage == 0


class TestMilestones:

    def test_next_three(self):
        milestones = upcoming_milestones(5)
        assert [m.milestone for m in milestones] == [7, 14, 30]
        assert milestones[0].days_to_go == 2
        assert milestones[0].description == "One Week Warrior"

    def test_past_all_milestones(self):
        assert upcoming_milestones(400) == []
