"""Tests for the aggregation primitives."""

from datetime import date, datetime

import pytest

from focusboard.domain import Category, Task, TaskStatus
from focusboard.services.aggregation import (
    aggregate_by_hour_and_weekday,
    aggregate_time_by_category,
    count_completed_tasks,
    daily_totals,
    distribution_by_duration_range,
    filter_sessions,
    summarize_sessions,
)
from focusboard.utils.validation import DateRange

BOUNDARIES = [0, 15, 30, 45, 60, 90]


class TestTimeByCategory:
    """Test time distribution by category"""

    def test_empty_range(self, categories):
        """A day with no sessions gives an empty distribution"""
        day = DateRange.parse("2024-01-01", "2024-01-01")
        result = aggregate_time_by_category([], categories, day)

        assert result.entries == []
        assert result.total_minutes == 0
        assert result.to_dict() == {'entries': [], 'total_minutes': 0}

    def test_single_dominant_category(self, make_session, categories):
        """All time in one category is 100% of the total"""
        sessions = [
            make_session("2024-01-01T09:00", 60, category_id=1),
            make_session("2024-01-02T10:00", 40, category_id=1),
        ]
        week = DateRange.parse("2024-01-01", "2024-01-07")
        result = aggregate_time_by_category(sessions, categories, week)

        assert len(result.entries) == 1
        entry = result.entries[0]
        assert entry.category_id == 1
        assert entry.category_name == "Deep Work"
        assert entry.total_minutes == 100
        assert entry.percentage_of_total == pytest.approx(100.0)

    def test_percentages_sum_to_100(self, make_session, categories):
        sessions = [
            make_session("2024-01-01T09:00", 35, category_id=1),
            make_session("2024-01-01T11:00", 25, category_id=2),
            make_session("2024-01-03T14:00", 13, category_id=3),
        ]
        week = DateRange.parse("2024-01-01", "2024-01-07")
        result = aggregate_time_by_category(sessions, categories, week)

        assert sum(e.percentage_of_total for e in result.entries) == pytest.approx(100.0, abs=0.1)
        assert [e.category_id for e in result.entries] == [1, 2, 3]
        assert result.total_minutes == 73

    def test_sorted_by_minutes_descending(self, make_session, categories):
        sessions = [
            make_session("2024-01-01T09:00", 20, category_id=1),
            make_session("2024-01-01T11:00", 50, category_id=2),
        ]
        result = aggregate_time_by_category(sessions, categories,
                                            DateRange.parse("2024-01-01", "2024-01-01"))
        assert [e.category_id for e in result.entries] == [2, 1]
        assert result.top_category.category_name == "Learning"

    def test_excludes_out_of_range_and_incomplete(self, make_session, categories):
        sessions = [
            make_session("2023-12-31T23:30", 30),
            make_session("2024-01-01T00:00", 10),
            make_session("2024-01-01T12:00", 90, completed=False),
            make_session("2024-01-02T00:00", 30),
        ]
        result = aggregate_time_by_category(sessions, categories,
                                            DateRange.parse("2024-01-01", "2024-01-01"))
        assert result.total_minutes == 10

    def test_unknown_category(self, make_session):
        sessions = [make_session("2024-01-01T09:00", 30, category_id=99)]
        result = aggregate_time_by_category(sessions, [Category(id=1, name="A")],
                                            DateRange.parse("2024-01-01", "2024-01-01"))
        assert result.entries[0].category_name == "Unknown"
        assert result.entries[0].color == "#6B7280"


class TestHourWeekdayGrid:
    """Test the dense 7x24 grid"""

    def test_always_168_cells(self, make_session):
        assert len(aggregate_by_hour_and_weekday([])) == 168
        sessions = [make_session("2024-01-01T09:15", 30)]
        assert len(aggregate_by_hour_and_weekday(sessions)) == 168

    def test_empty_cells_are_zero(self):
        cells = aggregate_by_hour_and_weekday([])
        assert all(c.session_count == 0 and c.average_minutes == 0 for c in cells)

    def test_bucket_by_local_start(self, make_session):
        """2024-01-01 is a Monday (day 1); 2024-01-07 is a Sunday (day 0)"""
        sessions = [
            make_session("2024-01-01T09:15", 30, quality=4),
            make_session("2024-01-08T09:50", 50, quality=2),
            make_session("2024-01-07T23:10", 20),
        ]
        cells = {(c.day_of_week, c.hour): c for c in aggregate_by_hour_and_weekday(sessions)}

        monday_nine = cells[(1, 9)]
        assert monday_nine.session_count == 2
        assert monday_nine.total_minutes == 80
        assert monday_nine.average_minutes == 40
        assert monday_nine.average_quality == 3

        sunday_late = cells[(0, 23)]
        assert sunday_late.session_count == 1
        assert sunday_late.average_quality == 0

    def test_ordered_by_day_then_hour(self):
        cells = aggregate_by_hour_and_weekday([])
        assert (cells[0].day_of_week, cells[0].hour) == (0, 0)
        assert (cells[25].day_of_week, cells[25].hour) == (1, 1)
        assert (cells[-1].day_of_week, cells[-1].hour) == (6, 23)


class TestDurationDistribution:
    """Test session length buckets"""

    def test_bucket_labels(self):
        buckets = distribution_by_duration_range([], BOUNDARIES)
        assert [b.label for b in buckets] == ["0-15", "15-30", "30-45", "45-60", "60-90", "90+"]
        assert all(b.count == 0 and b.average_quality == 0 for b in buckets)

    def test_boundaries_are_half_open(self, make_session):
        sessions = [
            make_session("2024-01-01T09:00", 14),
            make_session("2024-01-01T10:00", 15),
            make_session("2024-01-01T11:00", 90),
            make_session("2024-01-01T13:00", 240),
        ]
        counts = {b.label: b.count for b in distribution_by_duration_range(sessions, BOUNDARIES)}
        assert counts["0-15"] == 1
        assert counts["15-30"] == 1
        assert counts["90+"] == 2

    def test_unrated_sessions_excluded_from_mean(self, make_session):
        sessions = [
            make_session("2024-01-01T09:00", 25, quality=4),
            make_session("2024-01-01T10:00", 25, quality=2),
            make_session("2024-01-01T11:00", 25),
        ]
        bucket = distribution_by_duration_range(sessions, BOUNDARIES)[1]
        assert bucket.count == 3
        assert bucket.rated_count == 2
        assert bucket.average_quality == 3

    @pytest.mark.parametrize("boundaries", [[], [0, 30, 30], [0, 45, 15], [15, 30]])
    def test_invalid_boundaries(self, boundaries):
        with pytest.raises(ValueError):
            distribution_by_duration_range([], boundaries)

    def test_every_completed_session_is_counted(self, make_session):
        sessions = [
            make_session("2024-03-04T09:00", minutes)
            for minutes in [0, 10, 20, 44, 45, 90, 180]
        ]
        sessions.append(make_session("2024-03-04T18:00", 5, completed=False))

        buckets = distribution_by_duration_range(sessions, BOUNDARIES)
        assert sum(b.count for b in buckets) == 7
        assert buckets[0].count == 2


class TestSummaries:
    """Test session summaries and daily totals"""

    def test_empty_summary(self):
        summary = summarize_sessions([])
        assert summary.session_count == 0
        assert summary.average_session_length == 0
        assert summary.quality_score == 0

    def test_summary(self, make_session):
        sessions = [
            make_session("2024-01-01T09:00", 30, quality=4, interruptions=1),
            make_session("2024-01-01T10:00", 60, quality=5, interruptions=2),
            make_session("2024-01-01T11:00", 30),
            make_session("2024-01-01T12:00", 30, completed=False),
        ]
        summary = summarize_sessions(sessions)
        assert summary.session_count == 3
        assert summary.total_minutes == 120
        assert summary.average_session_length == 40
        assert summary.average_quality == 4.5
        assert summary.quality_score == 90
        assert summary.total_interruptions == 3

    def test_daily_totals_zero_filled(self, make_session):
        sessions = [make_session("2024-01-02T09:00", 45), make_session("2024-01-02T15:00", 15)]
        totals = daily_totals(sessions, DateRange.parse("2024-01-01", "2024-01-03"))
        assert totals == {date(2024, 1, 1): 0, date(2024, 1, 2): 60, date(2024, 1, 3): 0}

    def test_filter_sessions(self, make_session):
        sessions = [make_session("2024-01-01T09:00", 30), make_session("2024-01-05T09:00", 30)]
        kept = filter_sessions(sessions, DateRange.parse("2024-01-04", "2024-01-06"))
        assert [s.day for s in kept] == [date(2024, 1, 5)]

    def test_count_completed_tasks(self):
        tasks = [
            Task(id=1, title="a", category_id=1, status=TaskStatus.COMPLETED,
                 completed_at=datetime(2024, 1, 2, 10, 0)),
            Task(id=2, title="b", category_id=1, status=TaskStatus.ACTIVE),
            Task(id=3, title="c", category_id=1, status=TaskStatus.COMPLETED,
                 completed_at=datetime(2024, 2, 2, 10, 0)),
        ]
        assert count_completed_tasks(tasks, DateRange.parse("2024-01-01", "2024-01-07")) == 1
