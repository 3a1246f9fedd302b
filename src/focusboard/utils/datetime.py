"""Calendar utilities for focusboard.

Sessions carry naive local wall-clock timestamps; every analytics bucket is
keyed by the calendar date or the (day of week, hour) of that wall clock.
This module keeps the date arithmetic in one place so the services never
disagree about where a week or a month starts.
"""

from datetime import date, datetime, timedelta
from typing import Iterator, Tuple, Union


DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]


def today() -> date:
    """Return the current local calendar date."""
    return date.today()


def parse_iso_date(value: Union[str, date, datetime]) -> date:
    """Parse an ISO 8601 calendar date (``YYYY-MM-DD``).

    Args:
        value: ISO string, ``date`` or ``datetime``

    Returns:
        The calendar date

    Raises:
        ValueError: If the string is not an ISO calendar date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = value.strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        # Full timestamps are accepted; anything else after the date is not
        return datetime.fromisoformat(text).date()


def parse_iso_datetime(value: Union[str, datetime]) -> datetime:
    """Parse an ISO 8601 timestamp, dropping any timezone offset."""
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(value.strip())
    if parsed.tzinfo is not None:
        # Local wall clock is what the buckets are keyed on
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def day_of_week(moment: Union[date, datetime]) -> int:
    """Day of week with 0 = Sunday and 6 = Saturday."""
    return (moment.weekday() + 1) % 7


def week_start(day: date) -> date:
    """Monday of the week containing ``day``."""
    return day - timedelta(days=day.weekday())


def week_end(day: date) -> date:
    """Sunday of the week containing ``day``."""
    return week_start(day) + timedelta(days=6)


def month_bounds(day: date) -> Tuple[date, date]:
    """First and last calendar date of the month containing ``day``."""
    first = day.replace(day=1)
    if first.month == 12:
        next_first = first.replace(year=first.year + 1, month=1)
    else:
        next_first = first.replace(month=first.month + 1)
    return first, next_first - timedelta(days=1)


def iter_dates(start: date, end: date) -> Iterator[date]:
    """Yield every calendar date from ``start`` to ``end`` inclusive."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def days_between(start: date, end: date) -> int:
    """Number of calendar days in the inclusive range ``[start, end]``."""
    return (end - start).days + 1


def format_hour(hour: int) -> str:
    """Format an hour of day as ``9:00 AM``."""
    period = "PM" if hour >= 12 else "AM"
    display = 12 if hour % 12 == 0 else hour % 12
    return f"{display}:00 {period}"
