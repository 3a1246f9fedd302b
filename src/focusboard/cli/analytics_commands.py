"""CLI analytics commands for focusboard.

Every command takes ``--start``/``--end`` ISO dates (default: the last
``default_range_days`` days ending today) and prints either tables or the
raw JSON result with ``--format json``.
"""

import functools
import json
import sys
from pathlib import Path
from typing import Callable, Dict, List, Optional

import click
import tabulate
from rich.console import Console
from rich.panel import Panel

from ..config import get_config
from ..storage import RecordStoreError, SQLiteRecordStore
from ..services.export import ExportFormat
from ..services.reports import AnalyticsService, ReportResult
from ..utils.datetime import DAY_NAMES, format_hour, parse_iso_date, today
from ..utils.validation import DateRange, InvalidRangeError

HEATMAP_SYMBOLS = [" ", ".", ":", "#", "█"]


def get_store(ctx: click.Context) -> SQLiteRecordStore:
    """Open the record store selected by ``--db`` or the configuration."""
    obj = ctx.find_root().obj or {}
    db_path = obj.get('db') or get_config().get_database_path()
    return SQLiteRecordStore(db_path)


def get_service(ctx: click.Context) -> AnalyticsService:
    return AnalyticsService(get_store(ctx), get_config())


def get_console() -> Console:
    return Console(no_color=get_config().no_color)


# Console formatting helpers
def format_metric(value: float, unit: str = "", format_spec: str = ".1f") -> str:
    """Format a metric value with proper units"""
    formatted = f"{value:{format_spec}}"
    return f"{formatted}{unit}" if unit else formatted


def format_minutes(minutes: float) -> str:
    hours, rest = divmod(int(round(minutes)), 60)
    return f"{hours}h {rest}m" if hours else f"{rest}m"


def format_table(data: List[Dict], headers=None, tablefmt: Optional[str] = None) -> str:
    """Format data as a table"""
    if not data:
        return "No data available"
    return tabulate.tabulate(data, headers=headers or "keys",
                             tablefmt=tablefmt or get_config().table_style)


def print_section(title: str, content: str = ""):
    """Print a formatted section"""
    click.echo(f"\n{'=' * 60}")
    click.echo(f"{title:^60}")
    click.echo(f"{'=' * 60}")
    if content:
        click.echo(content)
    click.echo()


def print_subsection(title: str):
    """Print a formatted subsection"""
    click.echo(f"\n{title}")
    click.echo("-" * len(title))


# ============================================================================
# Option helpers
# ============================================================================

def resolve_range(start: Optional[str], end: Optional[str]) -> DateRange:
    """Build the requested range, defaulting to the configured trailing window."""
    days = get_config().default_range_days
    if start is None and end is None:
        return DateRange.last_days(days)
    if start is None:
        return DateRange.ending_on(DateRange.parse(end, end).end_date, days)
    return DateRange.parse(start, end if end is not None else today())


def range_options(func: Callable) -> Callable:
    """Add ``--start``/``--end`` and ``--format`` and turn range errors into exit code 2."""
    @click.option('--start', '-s', help='First date of the range (YYYY-MM-DD)')
    @click.option('--end', '-e', help='Last date of the range (YYYY-MM-DD)')
    @click.option('--format', '-f', 'output_format', type=click.Choice(['text', 'json']),
                  default='text', help='Output format')
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            kwargs['date_range'] = resolve_range(kwargs.pop('start'), kwargs.pop('end'))
            return func(*args, **kwargs)
        except InvalidRangeError as e:
            click.echo(f"Invalid date range: {e}", err=True)
            sys.exit(2)
    return wrapper


def emit(result: ReportResult, output_format: str, render: Callable) -> None:
    """Print a report result, exiting with status 1 when it failed."""
    if output_format == 'json':
        click.echo(json.dumps(result.to_dict(), indent=2))
        if not result.is_ok:
            sys.exit(1)
        return

    if not result.is_ok:
        click.echo(f"Error: {result.error}", err=True)
        sys.exit(1)
    render(result.data)


# ============================================================================
# Renderers
# ============================================================================

def _render_distribution(distribution) -> None:
    print_subsection("Time by Category")
    if not distribution.entries:
        click.echo("No focus sessions in this range")
        return
    rows = [
        {"Category": e.category_name, "Time": format_minutes(e.total_minutes),
         "Minutes": e.total_minutes, "Share": format_metric(e.percentage_of_total, "%")}
        for e in distribution.entries
    ]
    click.echo(format_table(rows))
    click.echo(f"\nTotal: {format_minutes(distribution.total_minutes)}")


def _render_heatmap(cells) -> None:
    print_subsection("Productivity Heatmap")
    if not any(cell.session_count for cell in cells):
        click.echo("No productivity data available")
        return

    grid = {(c.day_of_week, c.hour): c for c in cells}
    click.echo("     " + "".join(f"{h:3d}" for h in range(24)))
    for dow, name in enumerate(DAY_NAMES):
        row = f"{name[:3]}: "
        for hour in range(24):
            cell = grid[(dow, hour)]
            if cell.session_count == 0:
                row += "   "
            else:
                intensity = min(int(cell.focus_score * 4), 4)
                row += f" {HEATMAP_SYMBOLS[intensity]} "
        click.echo(row)

    click.echo("\nLegend: █ = Peak focus, # = High, : = Medium, . = Low, (space) = No sessions")


def _render_session_lengths(analysis) -> None:
    print_subsection("Session Length Distribution")
    rows = [
        {"Length": f"{b.label} min", "Sessions": b.count, "Rated": b.rated_count,
         "Avg Quality": format_metric(b.average_quality, format_spec=".2f")}
        for b in analysis.buckets
    ]
    click.echo(format_table(rows))
    optimal = analysis.optimal
    click.echo(f"\nRecommended session length: {optimal.recommended_minutes} minutes "
               f"(based on {optimal.basis.replace('_', ' ')})")


def _render_suggestions(suggestion) -> None:
    print_subsection("Session Suggestions")
    click.echo(f"Suggested duration: {suggestion.suggested_duration_minutes} minutes")
    click.echo(f"Confidence: {suggestion.confidence_label} "
               f"({format_metric(suggestion.confidence * 100, '%')})")
    click.echo(suggestion.reason)
    if suggestion.alternative_times:
        rows = [{"When": t.label, "Score": format_metric(t.score, format_spec=".2f")}
                for t in suggestion.alternative_times]
        click.echo()
        click.echo(format_table(rows))


def _render_goals(report) -> None:
    print_subsection(f"Weekly Goals ({report.week.week_start} to {report.week.week_end})")
    if not report.progress:
        click.echo("No weekly goals configured")
        return
    rows = [
        {"Category": g.category_name, "Goal": format_minutes(g.weekly_goal_minutes),
         "Done": format_minutes(g.current_minutes), "Progress": format_metric(g.percentage, "%"),
         "Complete": "yes" if g.is_completed else "no", "Week Streak": g.streak_weeks}
        for g in report.progress
    ]
    click.echo(format_table(rows))
    click.echo(f"\nOverall: {format_metric(report.week.overall_percentage, '%')} "
               f"({report.week.completed_goals}/{report.week.total_goals} goals complete)")

    if report.needs_attention:
        print_subsection("Needs Attention")
        for item in report.needs_attention:
            click.echo(f"[{item.risk_level}] {item.category_name}: {item.suggestion}")


def _render_streak(report) -> None:
    info = report.info
    lines = [
        f"Current streak: {info.current_streak} day{'s' if info.current_streak != 1 else ''}",
        f"Longest streak: {info.longest_streak} days",
    ]
    if info.grace_period_active:
        lines.append(f"Grace period active: focus by {info.grace_period_ends_at} to keep it")
    stats = report.statistics
    lines.append(f"Streak days in range: {stats.total_streak_days} "
                 f"({format_metric(stats.streak_percentage, '%')})")
    for milestone in report.milestones:
        lines.append(f"Next: {milestone.description} in {milestone.days_to_go} days")
    get_console().print(Panel("\n".join(lines), title="Focus Streak", expand=False))


def _render_comparison(report) -> None:
    print_subsection(f"{report.period.title()} over {report.period}")
    rows = [
        {"Metric": m.metric, "Current": format_metric(m.current, format_spec=".1f"),
         "Previous": format_metric(m.previous, format_spec=".1f"),
         "Change": format_metric(m.change_percentage, "%"), "Trend": m.trend}
        for m in report.metrics
    ]
    click.echo(format_table(rows))
    click.echo(f"\nOverall trend: {report.overall_trend}")
    if report.strongest_improvement:
        click.echo(f"Strongest improvement: {report.strongest_improvement}")
    if report.biggest_decline:
        click.echo(f"Biggest decline: {report.biggest_decline}")
    for i, rec in enumerate(report.recommendations, 1):
        click.echo(f"{i}. {rec}")


def _render_reports(reports) -> None:
    print_subsection("Weekly Reports")
    click.echo(format_table([
        {"Week": f"{w.week_start}", "Focus": format_minutes(w.total_focus_time),
         "Sessions": w.sessions_completed, "Score": format_metric(w.focus_score),
         "Top Category": w.top_category or "-", "Goals": f"{w.goals_achieved}/{w.total_goals}",
         "Tasks": w.tasks_completed}
        for w in reports.weekly
    ]))
    print_subsection("Monthly Reports")
    click.echo(format_table([
        {"Month": f"{m.month_name} {m.year}", "Focus": format_minutes(m.total_focus_time),
         "Sessions": m.sessions_completed, "Score": format_metric(m.focus_score),
         "Top Category": m.top_category or "-", "Goals": f"{m.goals_achieved}/{m.total_goals}",
         "Tasks": m.tasks_completed}
        for m in reports.monthly
    ]))


def _render_quality(metrics) -> None:
    print_subsection("Focus Quality")
    rows = [
        {"Metric": "Sessions", "Value": metrics.session_count},
        {"Metric": "Deep work", "Value": format_metric(metrics.deep_work_percentage, "%")},
        {"Metric": "Average rating", "Value": format_metric(metrics.average_quality_rating, "/5", ".2f")},
        {"Metric": "Average interruptions", "Value": format_metric(metrics.average_interruptions, format_spec=".2f")},
        {"Metric": "Interruption impact", "Value": format_metric(metrics.interruption_impact, format_spec="+.2f")},
        {"Metric": "Consistency", "Value": format_metric(metrics.consistency_score, "/100")},
    ]
    click.echo(format_table(rows))
    if metrics.session_type_breakdown:
        print_subsection("By Session Type")
        click.echo(format_table([
            {"Type": row['type'], "Sessions": row['count'],
             "Time": format_minutes(row['total_minutes']),
             "Avg Quality": format_metric(row['average_quality'], format_spec=".2f")}
            for row in metrics.session_type_breakdown
        ]))


def _render_insights(hours) -> None:
    print_subsection("Peak Focus Hours")
    if not hours:
        click.echo("No productivity data available")
        return
    for rank, hour in enumerate(hours, 1):
        click.echo(f"{rank}. {format_hour(hour)}")


PANEL_RENDERERS = {
    'time_distribution': _render_distribution,
    'heatmap': _render_heatmap,
    'session_lengths': _render_session_lengths,
    'suggestions': _render_suggestions,
    'goals': _render_goals,
    'streak': _render_streak,
    'comparison': _render_comparison,
    'reports': _render_reports,
    'focus_quality': _render_quality,
}


# ============================================================================
# Commands
# ============================================================================

@click.group(name='analytics')
def analytics_cli():
    """Focus analytics and reporting"""
    pass


@analytics_cli.command(name='distribution')
@range_options
@click.pass_context
def distribution_cmd(ctx, date_range: DateRange, output_format: str):
    """Focus time by category"""
    emit(get_service(ctx).time_distribution(date_range), output_format, _render_distribution)


@analytics_cli.command(name='heatmap')
@range_options
@click.pass_context
def heatmap_cmd(ctx, date_range: DateRange, output_format: str):
    """Focus score by weekday and hour"""
    emit(get_service(ctx).heatmap(date_range), output_format, _render_heatmap)


@analytics_cli.command(name='sessions')
@range_options
@click.pass_context
def sessions_cmd(ctx, date_range: DateRange, output_format: str):
    """Session length distribution and recommended length"""
    emit(get_service(ctx).session_lengths(date_range), output_format, _render_session_lengths)


@analytics_cli.command(name='suggest')
@range_options
@click.pass_context
def suggest_cmd(ctx, date_range: DateRange, output_format: str):
    """Suggest when and how long to focus next"""
    emit(get_service(ctx).suggestions(date_range), output_format, _render_suggestions)


@analytics_cli.command(name='goals')
@range_options
@click.pass_context
def goals_cmd(ctx, date_range: DateRange, output_format: str):
    """Weekly goal progress for the week containing the end date"""
    emit(get_service(ctx).goals(date_range), output_format, _render_goals)


@analytics_cli.command(name='streak')
@range_options
@click.pass_context
def streak_cmd(ctx, date_range: DateRange, output_format: str):
    """Daily focus streak as of the end date"""
    emit(get_service(ctx).streak(date_range), output_format, _render_streak)


@analytics_cli.command(name='recover')
@click.argument('day')
@click.pass_context
def recover_cmd(ctx, day: str):
    """Recover a missed day that is still inside its grace period"""
    console = get_console()
    try:
        target = parse_iso_date(day)
    except ValueError:
        click.echo(f"Invalid date: {day}", err=True)
        sys.exit(2)

    try:
        result = get_service(ctx).recover_streak(target)
    except RecordStoreError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    if result.success:
        console.print(f"[green]✅ {result.message}[/green]")
        console.print(f"Current streak: {result.streak.current_streak} days")
    else:
        console.print(f"[yellow]⚠️  {result.message}[/yellow]")
        sys.exit(1)


@analytics_cli.command(name='compare')
@click.option('--type', '-t', 'period', type=click.Choice(['week', 'month']),
              default='week', help='Comparison period')
@range_options
@click.pass_context
def compare_cmd(ctx, period: str, date_range: DateRange, output_format: str):
    """Compare the period ending on the end date with the one before it"""
    emit(get_service(ctx).comparison(date_range, period), output_format, _render_comparison)


@analytics_cli.command(name='report')
@range_options
@click.pass_context
def report_cmd(ctx, date_range: DateRange, output_format: str):
    """Weekly and monthly summaries"""
    emit(get_service(ctx).reports(date_range), output_format, _render_reports)


@analytics_cli.command(name='quality')
@range_options
@click.pass_context
def quality_cmd(ctx, date_range: DateRange, output_format: str):
    """Focus quality metrics"""
    emit(get_service(ctx).focus_quality(date_range), output_format, _render_quality)


@analytics_cli.command(name='insights')
@range_options
@click.pass_context
def insights_cmd(ctx, date_range: DateRange, output_format: str):
    """Hours of the day where focus is strongest"""
    emit(get_service(ctx).insights(date_range), output_format, _render_insights)


@analytics_cli.command(name='export')
@click.option('--start', '-s', help='First date of the range (YYYY-MM-DD)')
@click.option('--end', '-e', help='Last date of the range (YYYY-MM-DD)')
@click.option('--format', '-f', 'export_format', type=click.Choice(['json', 'csv']),
              default='json', help='Export format')
@click.option('--output', '-o', type=click.Path(), help='Write to file instead of stdout')
@click.pass_context
def export_cmd(ctx, start: Optional[str], end: Optional[str], export_format: str,
               output: Optional[str]):
    """Export the analytics for a range as JSON or CSV"""
    try:
        date_range = resolve_range(start, end)
        content = get_service(ctx).export(date_range, ExportFormat(export_format), output)
    except InvalidRangeError as e:
        click.echo(f"Invalid date range: {e}", err=True)
        sys.exit(2)
    except RecordStoreError as e:
        click.echo(f"Error exporting analytics: {e}", err=True)
        sys.exit(1)

    if output:
        click.echo(f"Analytics exported to {Path(output)}")
    else:
        click.echo(content, nl=False)


@analytics_cli.command(name='dashboard')
@range_options
@click.pass_context
def dashboard_cmd(ctx, date_range: DateRange, output_format: str):
    """Every analytics panel; a failing panel does not hide the others"""
    results = get_service(ctx).dashboard(date_range)

    if output_format == 'json':
        click.echo(json.dumps({name: r.to_dict() for name, r in results.items()}, indent=2))
        return

    print_section(f"FOCUS DASHBOARD {date_range.start_date} to {date_range.end_date}")
    for name, result in results.items():
        if result.is_ok:
            PANEL_RENDERERS[name](result.data)
        else:
            print_subsection(name.replace('_', ' ').title())
            click.echo(f"Unavailable: {result.error}")


def get_analytics_commands():
    """Get all analytics CLI commands"""
    return analytics_cli
