"""
Recurrence patterns and the rule that decides whether a date matches one.

A pattern is one of four frozen dataclasses (daily, weekly, biweekly,
monthly), each with an EndCondition. Per-variant fields are validated
when the pattern is built, so a pattern object is always usable.

Weekdays follow the 0=Sunday .. 6=Saturday convention used by the
stored recurrence JSON, not Python's Monday-based date.weekday().

Nothing in this module touches the database.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import ClassVar, Dict, FrozenSet, Optional

from django.utils.dateparse import parse_date

from .exceptions import InvalidPattern


FREQUENCY_DAILY = 'daily'
FREQUENCY_WEEKLY = 'weekly'
FREQUENCY_BIWEEKLY = 'biweekly'
FREQUENCY_MONTHLY = 'monthly'

FREQUENCY_CHOICES = [
    (FREQUENCY_DAILY, 'Daily'),
    (FREQUENCY_WEEKLY, 'Weekly'),
    (FREQUENCY_BIWEEKLY, 'Every two weeks'),
    (FREQUENCY_MONTHLY, 'Monthly'),
]

END_NEVER = 'never'
END_DATE = 'date'
END_OCCURRENCES = 'occurrences'

END_TYPE_CHOICES = [
    (END_NEVER, 'Never'),
    (END_DATE, 'On date'),
    (END_OCCURRENCES, 'After a number of occurrences'),
]

WEEKDAY_NAMES = {
    0: 'Sunday',
    1: 'Monday',
    2: 'Tuesday',
    3: 'Wednesday',
    4: 'Thursday',
    5: 'Friday',
    6: 'Saturday',
}


def sunday_weekday(day: date) -> int:
    """Weekday of ``day`` with 0=Sunday and 6=Saturday."""
    return day.isoweekday() % 7


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass(frozen=True)
class EndCondition:
    """When a pattern stops producing instances."""

    end_type: str = END_NEVER
    end_date: Optional[date] = None
    occurrences: Optional[int] = None

    def __post_init__(self):
        if self.end_type == END_NEVER:
            object.__setattr__(self, 'end_date', None)
            object.__setattr__(self, 'occurrences', None)
        elif self.end_type == END_DATE:
            if not isinstance(self.end_date, date):
                raise InvalidPattern("end_date is required when end_type is 'date'")
            object.__setattr__(self, 'occurrences', None)
        elif self.end_type == END_OCCURRENCES:
            if not _is_int(self.occurrences) or self.occurrences < 1:
                raise InvalidPattern(
                    "occurrences must be a positive integer when end_type is 'occurrences'"
                )
            object.__setattr__(self, 'end_date', None)
        else:
            raise InvalidPattern(f"Unknown end_type: {self.end_type!r}")

    @property
    def occurrence_cap(self) -> Optional[int]:
        """Maximum instances a single run may create, if capped."""
        return self.occurrences if self.end_type == END_OCCURRENCES else None


@dataclass(frozen=True)
class RecurrencePattern:
    """Base class for the pattern variants."""

    frequency: ClassVar[str] = ''

    end: EndCondition = field(default_factory=EndCondition)

    def matches(self, candidate: date, anchor: date) -> bool:
        raise NotImplementedError

    def to_dict(self) -> Dict:
        return {
            'frequency': self.frequency,
            'end_type': self.end.end_type,
            'end_date': self.end.end_date.isoformat() if self.end.end_date else None,
            'occurrences': self.end.occurrences,
        }


@dataclass(frozen=True)
class DailyPattern(RecurrencePattern):
    frequency: ClassVar[str] = FREQUENCY_DAILY

    def matches(self, candidate: date, anchor: date) -> bool:
        return True


@dataclass(frozen=True)
class _WeekdayPattern(RecurrencePattern):
    """Pattern restricted to an explicit, non-empty set of weekdays."""

    days_of_week: FrozenSet[int] = frozenset()

    def __post_init__(self):
        days = self.days_of_week
        if days is None or isinstance(days, (str, bytes)):
            raise InvalidPattern(f"days_of_week must be a list of weekdays for {self.frequency}")
        try:
            days = frozenset(days)
        except TypeError as exc:
            raise InvalidPattern(
                f"days_of_week must be a list of weekdays for {self.frequency}"
            ) from exc
        if not days:
            raise InvalidPattern(f"days_of_week must not be empty for {self.frequency}")
        for day in days:
            if not _is_int(day) or not 0 <= day <= 6:
                raise InvalidPattern(
                    f"Invalid weekday {day!r}: expected 0 (Sunday) to 6 (Saturday)"
                )
        object.__setattr__(self, 'days_of_week', days)

    def to_dict(self) -> Dict:
        data = super().to_dict()
        data['days_of_week'] = sorted(self.days_of_week)
        return data


@dataclass(frozen=True)
class WeeklyPattern(_WeekdayPattern):
    frequency: ClassVar[str] = FREQUENCY_WEEKLY

    def matches(self, candidate: date, anchor: date) -> bool:
        return sunday_weekday(candidate) in self.days_of_week


@dataclass(frozen=True)
class BiweeklyPattern(_WeekdayPattern):
    """
    Every other week on the chosen weekdays.

    The two-week phase is counted in whole weeks from the anchor date
    (floor division of the day difference), so moving the anchor shifts
    the whole cadence.
    """

    frequency: ClassVar[str] = FREQUENCY_BIWEEKLY

    def matches(self, candidate: date, anchor: date) -> bool:
        weeks_elapsed = (candidate - anchor).days // 7
        return weeks_elapsed % 2 == 0 and sunday_weekday(candidate) in self.days_of_week


@dataclass(frozen=True)
class MonthlyPattern(RecurrencePattern):
    """
    Same day of month as the anchor.

    Months shorter than the anchor's day never match: an anchor on the
    31st skips February, April, June, September and November.
    """

    frequency: ClassVar[str] = FREQUENCY_MONTHLY

    def matches(self, candidate: date, anchor: date) -> bool:
        return candidate.day == anchor.day


PATTERN_TYPES = {
    cls.frequency: cls
    for cls in (DailyPattern, WeeklyPattern, BiweeklyPattern, MonthlyPattern)
}


def matches(pattern: RecurrencePattern, candidate_date: date, anchor_date: date) -> bool:
    """
    Decide whether an instance should exist on ``candidate_date``.

    Args:
        pattern: Recurrence pattern of the template
        candidate_date: Calendar date being evaluated
        anchor_date: Calendar date of the template's first occurrence

    Returns:
        True if the pattern produces an instance on that date
    """
    return pattern.matches(candidate_date, anchor_date)


def _coerce_date(value, field_name: str) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if value is None or isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise InvalidPattern(f"{field_name} must be an ISO date string")
    try:
        parsed = parse_date(value)
    except ValueError:
        parsed = None
    if parsed is None:
        raise InvalidPattern(f"{field_name} is not a valid date: {value!r}")
    return parsed


def pattern_from_dict(data) -> RecurrencePattern:
    """
    Build a pattern from its stored JSON form.

    Args:
        data: Mapping with frequency, days_of_week, end_type, end_date
              and occurrences keys

    Returns:
        RecurrencePattern variant for the frequency

    Raises:
        InvalidPattern: If the mapping does not describe a valid pattern
    """
    if not isinstance(data, dict):
        raise InvalidPattern("Recurrence must be an object")

    frequency = data.get('frequency')
    pattern_cls = PATTERN_TYPES.get(frequency)
    if pattern_cls is None:
        raise InvalidPattern(f"Unknown frequency: {frequency!r}")

    end = EndCondition(
        end_type=data.get('end_type') or END_NEVER,
        end_date=_coerce_date(data.get('end_date'), 'end_date'),
        occurrences=data.get('occurrences'),
    )

    if issubclass(pattern_cls, _WeekdayPattern):
        return pattern_cls(end=end, days_of_week=data.get('days_of_week') or ())
    return pattern_cls(end=end)
