"""
Custom manager and queryset for scheduled events.

QuerySets define chainable query methods.
Managers use QuerySets to enable method chaining.
No business logic should be here - only query operations.
"""

from django.db import models
from django.utils import timezone


class ScheduledEventQuerySet(models.QuerySet):
    """Custom queryset for ScheduledEvent model with chainable methods."""

    def templates(self):
        """Get recurring templates."""
        return self.filter(is_recurring_template=True)

    def active_templates(self):
        """Get templates that periodic generation should run for."""
        return self.filter(is_recurring_template=True, is_active=True)

    def instances(self):
        """Get concrete events (generated and one-off), never templates."""
        return self.filter(is_recurring_template=False)

    def for_template(self, template_id):
        """
        Get instances generated from a template.

        Args:
            template_id: Template primary key
        """
        return self.filter(parent_template_id=template_id)

    def on_dates(self, start_date, end_date):
        """
        Get generated instances whose occurrence date is in a range.

        Args:
            start_date: date object (inclusive)
            end_date: date object (inclusive)
        """
        return self.filter(
            occurrence_date__gte=start_date,
            occurrence_date__lte=end_date
        )

    def scheduled(self):
        """Get all scheduled (not cancelled/completed) events."""
        return self.filter(status='scheduled')

    def upcoming(self):
        """Get upcoming scheduled events."""
        return self.filter(
            status='scheduled',
            start_time__gte=timezone.now()
        )

    def in_range(self, start_datetime, end_datetime):
        """
        Get events starting within a datetime range.

        Args:
            start_datetime: datetime object
            end_datetime: datetime object
        """
        return self.filter(
            start_time__gte=start_datetime,
            start_time__lte=end_datetime
        )


class ScheduledEventManager(models.Manager.from_queryset(ScheduledEventQuerySet)):
    """Custom manager for ScheduledEvent model."""
