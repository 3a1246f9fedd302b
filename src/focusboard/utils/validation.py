"""Date range validation for analytics queries.

Every analytics request is scoped by an inclusive calendar range. Ranges are
validated before any record is fetched so a bad request never reaches the
aggregation layer, and an invalid range is rejected rather than clamped.
"""

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Dict, Iterator, List, Sequence, Union

from .datetime import days_between, iter_dates, parse_iso_date, today

logger = logging.getLogger(__name__)

DEFAULT_MAX_RANGE_DAYS = 365


class InvalidRangeError(ValueError):
    """Raised when a requested date range cannot be analyzed."""

    def __init__(self, message: str, start_date: Any = None, end_date: Any = None):
        self.start_date = start_date
        self.end_date = end_date
        super().__init__(message)


@dataclass(frozen=True)
class DateRange:
    """Inclusive calendar date range."""
    start_date: date
    end_date: date

    @classmethod
    def parse(cls, start: Union[str, date], end: Union[str, date]) -> "DateRange":
        """Build a range from ISO strings or dates.

        Raises:
            InvalidRangeError: If either bound is not an ISO calendar date
        """
        try:
            return cls(parse_iso_date(start), parse_iso_date(end))
        except (TypeError, ValueError) as e:
            raise InvalidRangeError(f"Invalid date in range: {e}", start, end) from e

    @classmethod
    def ending_on(cls, end: date, days: int) -> "DateRange":
        """The ``days``-long range ending on ``end``."""
        return cls(end - timedelta(days=days - 1), end)

    @classmethod
    def last_days(cls, days: int = 7) -> "DateRange":
        """The ``days``-long range ending today."""
        return cls.ending_on(today(), days)

    @property
    def days(self) -> int:
        return days_between(self.start_date, self.end_date)

    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date

    def dates(self) -> Iterator[date]:
        return iter_dates(self.start_date, self.end_date)

    def previous(self) -> "DateRange":
        """The equal-length range immediately before this one."""
        length = timedelta(days=self.days)
        return DateRange(self.start_date - length, self.end_date - length)

    def to_dict(self) -> Dict[str, str]:
        return {
            'start_date': self.start_date.isoformat(),
            'end_date': self.end_date.isoformat(),
        }


def validate_range(date_range: DateRange,
                   max_days: int = DEFAULT_MAX_RANGE_DAYS) -> DateRange:
    """Validate an analytics date range.

    Args:
        date_range: Range to validate
        max_days: Longest accepted range in days

    Returns:
        The same range, unchanged

    Raises:
        InvalidRangeError: If start is after end or the range is too long
    """
    if date_range.start_date > date_range.end_date:
        logger.debug(f"Rejected inverted range {date_range.start_date}..{date_range.end_date}")
        raise InvalidRangeError(
            f"Start date {date_range.start_date} is after end date {date_range.end_date}",
            date_range.start_date, date_range.end_date
        )

    if date_range.days > max_days:
        logger.debug(f"Rejected {date_range.days}-day range (max {max_days})")
        raise InvalidRangeError(
            f"Date range spans {date_range.days} days; at most {max_days} days are supported",
            date_range.start_date, date_range.end_date
        )

    return date_range


def validate_duration_boundaries(boundaries: Sequence[int]) -> List[int]:
    """Validate duration bucket lower bounds.

    The first bucket must start at 0 so every session lands in a bucket.

    Raises:
        ValueError: If boundaries are empty, do not start at 0 or are not
            strictly ascending
    """
    values = list(boundaries)
    if not values:
        raise ValueError("At least one duration boundary is required")
    if values[0] != 0:
        raise ValueError(f"Duration boundaries must start at 0: {values}")
    if any(b >= a for a, b in zip(values[1:], values)):
        raise ValueError(f"Duration boundaries must be strictly ascending: {values}")
    return values
