"""Tests for the analytics service against a SQLite record store."""

import json
from datetime import date, datetime
from unittest.mock import patch

import pytest

from focusboard.services.export import (
    AnalyticsExporter,
    ExportFormat,
    flatten_payload,
    parse_csv_export,
)
from focusboard.services.reports import AnalyticsService, ReportStatus
from focusboard.storage import RecordStoreError
from focusboard.utils.validation import DateRange, InvalidRangeError

WEEK = DateRange(date(2024, 3, 4), date(2024, 3, 10))


@pytest.fixture
def populated_store(store):
    deep = store.add_category("Deep Work", color="#3B82F6", weekly_goal_minutes=300)
    learning = store.add_category("Learning", color="#10B981", weekly_goal_minutes=120)
    store.add_session(deep.id, datetime(2024, 3, 4, 9, 0), 50, quality_rating=5, interruption_count=0)
    store.add_session(deep.id, datetime(2024, 3, 5, 9, 0), 50, quality_rating=4, interruption_count=1)
    store.add_session(learning.id, datetime(2024, 3, 5, 14, 0), 30, quality_rating=3)
    store.add_session(learning.id, datetime(2024, 3, 6, 20, 0), 10)
    store.add_session(deep.id, datetime(2024, 2, 28, 9, 0), 40, quality_rating=4)
    return store


@pytest.fixture
def service(populated_store, config):
    return AnalyticsService(populated_store, config)


class TestRangeValidation:
    """Test that bad ranges are rejected before any data is read"""

    def test_inverted_range(self, service, populated_store):
        bad = DateRange(date(2024, 3, 10), date(2024, 3, 4))
        with patch.object(populated_store, 'get_sessions') as get_sessions:
            with pytest.raises(InvalidRangeError):
                service.time_distribution(bad)
            get_sessions.assert_not_called()

    def test_range_too_long(self, service):
        with pytest.raises(InvalidRangeError):
            service.heatmap(DateRange(date(2022, 1, 1), date(2024, 1, 1)))

    def test_dashboard_rejects_bad_range(self, service):
        with pytest.raises(InvalidRangeError):
            service.dashboard(DateRange(date(2024, 3, 10), date(2024, 3, 4)))

    def test_unknown_comparison_period(self, service):
        with pytest.raises(ValueError):
            service.comparison(WEEK, period="quarter")


class TestReports:
    """Test individual report requests"""

    def test_time_distribution(self, service):
        result = service.time_distribution(WEEK)
        assert result.status == ReportStatus.OK
        assert result.data.total_minutes == 140
        assert [e.category_name for e in result.data.entries] == ["Deep Work", "Learning"]

    def test_heatmap(self, service):
        cells = service.heatmap(WEEK).data
        assert len(cells) == 168
        best = max(cells, key=lambda c: c.focus_score)
        assert (best.day_of_week, best.hour) == (1, 9)

    def test_session_lengths(self, service):
        analysis = service.session_lengths(WEEK).data
        assert analysis.summary.session_count == 4
        assert analysis.optimal.basis == "quality"
        assert analysis.optimal.bucket_label == "45-60"

    def test_suggestions(self, service):
        suggestion = service.suggestions(WEEK).data
        assert suggestion.suggested_duration_minutes == 53
        assert suggestion.alternative_times[0].label == "Monday 9:00 AM"

    def test_goals_use_week_of_range_end(self, service):
        report = service.goals(WEEK).data
        deep_work = report.progress[0]
        assert deep_work.current_minutes == 100
        assert report.week.week_start == date(2024, 3, 4)

    def test_streak(self, service):
        report = service.streak(WEEK).data
        # 2024-02-28 met, then a gap that expires before 2024-03-04
        assert report.info.longest_streak == 2
        assert report.statistics.total_streak_days == 2
        assert report.milestones[0].milestone == 7

    def test_comparison(self, service):
        report = service.comparison(WEEK).data
        assert report.previous_range == DateRange(date(2024, 2, 26), date(2024, 3, 3))
        assert report.metric("focus_time").current == 140
        assert report.metric("focus_time").previous == 40

    def test_reports(self, service):
        reports = service.reports(WEEK).data
        assert [w.week_start for w in reports.weekly] == [date(2024, 3, 4)]
        assert reports.monthly[0].month == 3

    def test_focus_quality(self, service):
        metrics = service.focus_quality(WEEK).data
        assert metrics.session_count == 4
        assert metrics.deep_work_percentage == pytest.approx(50.0)
        assert metrics.interruption_impact == pytest.approx(1.0)

    def test_insights(self, service):
        assert service.insights(WEEK).data[0] == 9


class TestDashboard:
    """Test that panels fail independently"""

    def test_all_panels_ok(self, service):
        panels = service.dashboard(WEEK)
        assert list(panels) == [
            'time_distribution', 'heatmap', 'session_lengths', 'suggestions',
            'goals', 'streak', 'comparison', 'reports', 'focus_quality',
        ]
        assert all(result.is_ok for result in panels.values())

    def test_one_failing_panel(self, service, populated_store):
        with patch.object(populated_store, 'get_recovered_dates',
                          side_effect=RecordStoreError("disk I/O error")):
            panels = service.dashboard(WEEK)

        failed = {name: r for name, r in panels.items() if not r.is_ok}
        assert list(failed) == ['streak']
        assert failed['streak'].status == ReportStatus.ERROR
        assert "disk I/O error" in failed['streak'].error
        assert panels['time_distribution'].data.total_minutes == 140

    def test_bad_settings_fail_only_their_panels(self, service):
        service.config.analytics.duration_bucket_boundaries = [30, 15]
        panels = service.dashboard(WEEK)

        failed = sorted(name for name, r in panels.items() if not r.is_ok)
        assert failed == ['session_lengths', 'suggestions']
        assert "strictly ascending" in panels['session_lengths'].error
        assert panels['time_distribution'].data.total_minutes == 140
        assert panels['streak'].is_ok

    def test_bad_settings_raise_outside_dashboard(self, service):
        service.config.analytics.duration_bucket_boundaries = [30, 15]
        with pytest.raises(ValueError):
            service.session_lengths(WEEK)

    def test_single_report_failure(self, service, populated_store):
        with patch.object(populated_store, 'get_categories',
                          side_effect=RecordStoreError("database is locked")):
            result = service.time_distribution(WEEK)
        assert result.status == ReportStatus.ERROR
        assert result.data is None


class TestStreakRecovery:

    def test_recovery_is_persisted(self, store, config):
        category = store.add_category("Deep Work")
        store.add_session(category.id, datetime(2024, 3, 4, 9, 0), 30)
        store.add_session(category.id, datetime(2024, 3, 5, 9, 0), 10)
        service = AnalyticsService(store, config)

        result = service.recover_streak(date(2024, 3, 5), as_of=date(2024, 3, 6))

        assert result.success is True
        assert result.streak.current_streak == 2
        assert store.get_recovered_dates() == {date(2024, 3, 5)}

    def test_rejected_recovery_not_persisted(self, store, config):
        category = store.add_category("Deep Work")
        store.add_session(category.id, datetime(2024, 3, 4, 9, 0), 30)
        service = AnalyticsService(store, config)

        result = service.recover_streak(date(2024, 3, 4), as_of=date(2024, 3, 4))

        assert result.success is False
        assert store.get_recovered_dates() == set()


class TestExport:
    """Test JSON and CSV exports of one query"""

    def test_payload_sections(self, service):
        payload = service.export_payload(WEEK)
        assert list(payload) == [
            'metadata', 'summary', 'time_distribution', 'heatmap', 'duration_distribution',
            'optimal_session_length', 'goal_progress', 'streak', 'comparison', 'weekly_reports',
        ]
        assert payload['metadata']['start_date'] == "2024-03-04"
        assert payload['summary']['total_minutes'] == 140

    def test_json_and_csv_carry_same_values(self, service):
        payload = service.export_payload(WEEK)
        exporter = AnalyticsExporter()

        as_json = json.loads(exporter.export(payload, ExportFormat.JSON))
        as_csv = parse_csv_export(exporter.export(payload, ExportFormat.CSV))

        assert flatten_payload(as_json) == as_csv

    def test_export_writes_file(self, service, tmp_path):
        output = tmp_path / "exports" / "week.csv"
        content = service.export(WEEK, ExportFormat.CSV, str(output))
        assert output.read_text(encoding="utf-8") == content
        assert content.startswith("path,type,value\n")

    def test_export_propagates_store_errors(self, service, populated_store):
        with patch.object(populated_store, 'get_sessions',
                          side_effect=RecordStoreError("disk I/O error")):
            with pytest.raises(RecordStoreError):
                service.export_payload(WEEK)
