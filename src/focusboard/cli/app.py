"""Command-line interface for focusboard."""

import logging
import sys
from datetime import datetime
from pathlib import Path

import click
from rich.table import Table

from ..config import get_config, load_config
from ..domain import Priority, SessionType, TaskStatus
from ..storage import RecordStoreError
from ..utils.datetime import parse_iso_date, parse_iso_datetime
from .analytics_commands import get_analytics_commands, get_console, get_store

logger = logging.getLogger(__name__)


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@click.group()
@click.option("--config", type=click.Path(), help="Path to config file")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.option("--db", type=click.Path(), help="Path to the SQLite database")
@click.pass_context
def main(ctx, config, verbose, db):
    """focusboard - focus sessions, streaks and productivity analytics."""
    ctx.ensure_object(dict)
    ctx.obj['verbose'] = verbose
    ctx.obj['db'] = db
    configure_logging(verbose)

    try:
        if config:
            load_config(Path(config))
        else:
            get_config()
    except Exception as e:
        get_console().print(f"[red]Configuration error: {e}[/red]")
        sys.exit(1)


@main.command(name="add-category")
@click.argument("name")
@click.option("--color", default="#6B7280", help="Display color (hex)")
@click.option("--goal", "weekly_goal", type=click.IntRange(min=0), default=0,
              help="Weekly goal in minutes (0 for none)")
@click.option("--icon", help="Icon name")
@click.option("--description", help="Short description")
@click.pass_context
def add_category(ctx, name, color, weekly_goal, icon, description):
    """Create a category."""
    console = get_console()
    try:
        category = get_store(ctx).add_category(name, color=color, weekly_goal_minutes=weekly_goal,
                                               icon=icon, description=description)
    except (ValueError, RecordStoreError) as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    goal = f", weekly goal {category.weekly_goal_minutes} min" if category.weekly_goal_minutes else ""
    console.print(f"[green]✅ Added category {category.id} '{category.name}'{goal}[/green]")


@main.command(name="add-task")
@click.argument("title")
@click.option("--category", "-c", "category_id", type=int, required=True, help="Category id")
@click.option("--priority", "-p", type=click.Choice([p.value for p in Priority]), default="medium")
@click.option("--status", type=click.Choice([s.value for s in TaskStatus]), default="active")
@click.option("--estimate", type=click.IntRange(min=1), help="Estimated duration in minutes")
@click.option("--due", help="Due date (YYYY-MM-DD)")
@click.option("--description", help="Task description")
@click.pass_context
def add_task(ctx, title, category_id, priority, status, estimate, due, description):
    """Create a task."""
    console = get_console()
    try:
        task = get_store(ctx).add_task(
            title, category_id,
            priority=Priority(priority),
            status=TaskStatus(status),
            description=description,
            estimated_duration=estimate,
            due_date=parse_iso_date(due) if due else None,
        )
    except (ValueError, RecordStoreError) as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    console.print(f"[green]✅ Added task {task.id}: {task.title}[/green]")


@main.command(name="log-session")
@click.option("--category", "-c", "category_id", type=int, required=True, help="Category id")
@click.option("--minutes", "-m", type=int, required=True, help="Session length in minutes")
@click.option("--start", help="Start time (ISO 8601, default now)")
@click.option("--task", "task_id", type=int, help="Task id to credit")
@click.option("--quality", "-q", type=click.IntRange(1, 5), help="Quality rating 1-5")
@click.option("--interruptions", type=click.IntRange(min=0), help="Number of interruptions")
@click.option("--type", "session_type", type=click.Choice([t.value for t in SessionType]),
              default=SessionType.DEEP_WORK.value)
@click.option("--incomplete", is_flag=True, help="Session was abandoned before finishing")
@click.pass_context
def log_session(ctx, category_id, minutes, start, task_id, quality, interruptions,
                session_type, incomplete):
    """Record a focus session."""
    console = get_console()
    try:
        started_at = parse_iso_datetime(start) if start else datetime.now()
        session = get_store(ctx).add_session(
            category_id, started_at, minutes,
            completed=not incomplete,
            task_id=task_id,
            quality_rating=quality,
            interruption_count=interruptions,
            session_type=SessionType(session_type),
        )
    except (ValueError, RecordStoreError) as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    console.print(f"[green]✅ Logged {session.duration_minutes} min session "
                  f"on {session.started_at:%Y-%m-%d %H:%M}[/green]")


@main.command(name="categories")
@click.pass_context
def list_categories(ctx):
    """List categories and their weekly goals."""
    console = get_console()
    try:
        categories = get_store(ctx).get_categories()
    except RecordStoreError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    if not categories:
        console.print("[dim]No categories yet. Add one with 'focusboard add-category'.[/dim]")
        return

    table = Table(title="Categories")
    table.add_column("ID", justify="right")
    table.add_column("Name")
    table.add_column("Color")
    table.add_column("Weekly Goal", justify="right")
    for category in categories:
        goal = f"{category.weekly_goal_minutes} min" if category.weekly_goal_minutes else "-"
        table.add_row(str(category.id), category.name,
                      f"[{category.color}]{category.color}[/]", goal)
    console.print(table)


main.add_command(get_analytics_commands())


if __name__ == "__main__":
    main()
