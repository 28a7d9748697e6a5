"""
Generation window planning.

The window starts today and covers ``horizon_weeks`` whole weeks of
calendar days, cut short by the pattern's end date when it has one.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterator

from django.utils import timezone

from .exceptions import InvalidPattern
from .recurrence import END_DATE, RecurrencePattern


@dataclass(frozen=True)
class GenerationWindow:
    """Inclusive range of calendar dates a generation run evaluates."""

    start_date: date
    end_date: date

    @property
    def is_empty(self) -> bool:
        return self.end_date < self.start_date

    def dates(self) -> Iterator[date]:
        """Yield every date in the window in ascending order."""
        current = self.start_date
        while current <= self.end_date:
            yield current
            current += timedelta(days=1)


def local_date(moment: datetime) -> date:
    """Calendar date of ``moment`` in the reference timezone."""
    if timezone.is_aware(moment):
        moment = timezone.localtime(moment)
    return moment.date()


def plan_window(now: datetime, horizon_weeks: int, pattern: RecurrencePattern) -> GenerationWindow:
    """
    Compute the generation window for a run.

    Args:
        now: Current moment
        horizon_weeks: Number of weeks ahead to materialize (0 = today only)
        pattern: Recurrence pattern of the template

    Returns:
        GenerationWindow; empty when the pattern ended before today

    Raises:
        InvalidPattern: If the horizon is negative or the pattern is invalid
    """
    if isinstance(horizon_weeks, bool) or not isinstance(horizon_weeks, int):
        raise InvalidPattern("horizon_weeks must be an integer")
    if horizon_weeks < 0:
        raise InvalidPattern("horizon_weeks must not be negative")
    if not isinstance(pattern, RecurrencePattern):
        raise InvalidPattern("A recurrence pattern is required")

    start_date = local_date(now)
    end_date = start_date + timedelta(days=max(horizon_weeks * 7 - 1, 0))

    if pattern.end.end_type == END_DATE:
        end_date = min(end_date, pattern.end.end_date)

    return GenerationWindow(start_date=start_date, end_date=end_date)
