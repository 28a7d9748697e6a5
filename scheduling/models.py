"""
Models for the recurring schedule.

Templates and generated instances share one table:
- A template (is_recurring_template=True) carries the recurrence rule,
  its exclusion dates and the payload copied onto every instance.
- An instance (is_recurring_template=False) is one concrete, dated event.
  Generated instances point back at their template; one-off events have
  no parent.
"""

import uuid
from datetime import timedelta

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q
from django.utils import timezone
from django.utils.dateparse import parse_date

from .exceptions import InvalidPattern
from .managers import ScheduledEventManager
from .recurrence import WEEKDAY_NAMES, RecurrencePattern, pattern_from_dict
from .types import STATUS_CHOICES, STATUS_SCHEDULED


class ScheduledEvent(models.Model):
    """
    A recurring template or a concrete scheduled event.

    The recurrence frequency of a template must not change once instances
    exist for it; instances already generated would no longer follow the
    rule and are not regenerated.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    title = models.CharField(max_length=200)
    description = models.TextField(blank=True, default='')
    category = models.CharField(max_length=100, blank=True, default='')
    location = models.CharField(max_length=200, blank=True, default='')
    resource = models.CharField(
        max_length=200,
        blank=True,
        default='',
        help_text="Assigned instructor or resource"
    )
    room = models.CharField(max_length=100, blank=True, default='')
    capacity = models.PositiveIntegerField(default=20)
    waitlist_capacity = models.PositiveIntegerField(default=0)

    start_time = models.DateTimeField(
        help_text="Start of the event; for templates, the first occurrence"
    )
    end_time = models.DateTimeField()

    is_recurring_template = models.BooleanField(default=False)
    recurrence = models.JSONField(
        null=True,
        blank=True,
        help_text="Recurrence rule (templates only)"
    )
    excluded_dates = models.JSONField(
        default=list,
        blank=True,
        help_text="Dates on which no instance is generated (templates only)"
    )
    is_active = models.BooleanField(
        default=True,
        help_text="Whether periodic generation runs for this template"
    )

    parent_template = models.ForeignKey(
        'self',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='generated_instances',
        limit_choices_to={'is_recurring_template': True},
        help_text="Template this instance was generated from"
    )
    occurrence_date = models.DateField(
        null=True,
        blank=True,
        help_text="Calendar date the instance was generated for"
    )

    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default=STATUS_SCHEDULED
    )
    is_exception = models.BooleanField(
        default=False,
        help_text="True if this instance was modified from its template"
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ScheduledEventManager()

    class Meta:
        ordering = ['start_time']
        indexes = [
            models.Index(fields=['start_time', 'status'], name='scheduling__start_t_4f1c2a_idx'),
            models.Index(fields=['parent_template', 'occurrence_date'], name='scheduling__parent__9b7e31_idx'),
            models.Index(fields=['is_recurring_template', 'is_active'], name='scheduling__is_recu_2d86b0_idx'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['parent_template', 'occurrence_date'],
                condition=Q(parent_template__isnull=False),
                name='unique_instance_per_template_date',
            ),
        ]

    def __str__(self):
        if self.is_recurring_template:
            return f"{self.title} (template)"
        status_str = f" [{self.status}]" if self.status != STATUS_SCHEDULED else ""
        local_start = timezone.localtime(self.start_time)
        return f"{self.title} - {local_start.strftime('%Y-%m-%d %H:%M')}{status_str}"

    @property
    def duration(self) -> timedelta:
        return self.end_time - self.start_time

    @property
    def duration_minutes(self) -> int:
        return int(self.duration.total_seconds() // 60)

    @property
    def is_generated(self):
        """Check if this instance was generated from a template."""
        return self.parent_template_id is not None

    @property
    def frequency(self):
        return (self.recurrence or {}).get('frequency')

    @property
    def weekday_names(self):
        days = (self.recurrence or {}).get('days_of_week') or []
        return [WEEKDAY_NAMES.get(day, 'Unknown') for day in sorted(days)]

    def get_pattern(self) -> RecurrencePattern:
        """
        Parse the stored recurrence rule.

        Raises:
            InvalidPattern: If the rule is missing or malformed
        """
        if not self.recurrence:
            raise InvalidPattern(f"Template {self.pk} has no recurrence rule")
        return pattern_from_dict(self.recurrence)

    def get_excluded_dates(self):
        """
        Return the set of excluded calendar dates.

        Entries are ``{"date": "YYYY-MM-DD", "reason": ..., "added_at": ...}``;
        bare date strings are accepted too. Unparseable entries are ignored.
        """
        dates = set()
        for entry in self.excluded_dates or []:
            value = entry.get('date') if isinstance(entry, dict) else entry
            if not isinstance(value, str):
                continue
            try:
                parsed = parse_date(value[:10])
            except ValueError:
                parsed = None
            if parsed is not None:
                dates.add(parsed)
        return dates

    def clean(self):
        """Validate event data."""
        super().clean()

        if self.start_time and self.end_time and self.end_time <= self.start_time:
            raise ValidationError({
                'end_time': 'End time must be after start time.'
            })

        if self.is_recurring_template:
            if self.parent_template_id is not None:
                raise ValidationError({
                    'parent_template': 'A template cannot have a parent template.'
                })
            try:
                self.get_pattern()
            except InvalidPattern as exc:
                raise ValidationError({'recurrence': str(exc)})
        elif self.recurrence:
            raise ValidationError({
                'recurrence': 'Only recurring templates carry a recurrence rule.'
            })

        if self.is_exception and not self.parent_template_id:
            raise ValidationError({
                'is_exception': 'Only generated instances can be marked as exceptions.'
            })

    def save(self, *args, **kwargs):
        """Save with validation."""
        self.full_clean(validate_unique=False, validate_constraints=False)
        super().save(*args, **kwargs)


class RecurringTemplate(ScheduledEvent):
    """Proxy for templates, used by the admin."""

    class Meta:
        proxy = True
        verbose_name = 'recurring template'


class EventInstance(ScheduledEvent):
    """Proxy for concrete events, used by the admin."""

    class Meta:
        proxy = True
        verbose_name = 'event instance'
