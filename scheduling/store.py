"""
Data access for the instance generator.

The generator only needs four operations from its store. DjangoEventStore
provides them on top of the ScheduledEvent model; any object with the same
methods can be passed to services.generate_instances instead.
"""

import logging
from datetime import date
from typing import List, Set

from django.core.exceptions import ValidationError
from django.db import DatabaseError, transaction

from .exceptions import PersistenceFailure, TemplateNotFound
from .models import ScheduledEvent

logger = logging.getLogger(__name__)


class DjangoEventStore:
    """Event store backed by the default database."""

    def load_template(self, template_id) -> ScheduledEvent:
        """
        Load an event by id.

        Raises:
            TemplateNotFound: If no event has this id
        """
        try:
            return ScheduledEvent.objects.get(pk=template_id)
        except (ScheduledEvent.DoesNotExist, ValidationError, ValueError):
            raise TemplateNotFound(template_id)

    def load_instance_dates(self, template_id, start_date: date, end_date: date) -> Set[date]:
        """Dates that already hold an instance of the template, any status."""
        return set(
            ScheduledEvent.objects.for_template(template_id)
            .on_dates(start_date, end_date)
            .values_list('occurrence_date', flat=True)
        )

    def load_exclusions(self, template_id) -> Set[date]:
        return self.load_template(template_id).get_excluded_dates()

    def batch_insert_instances(self, records: List[ScheduledEvent]) -> List[str]:
        """
        Insert all records or none of them.

        Returns:
            Ids of the inserted records

        Raises:
            PersistenceFailure: If the database rejects the batch
        """
        if not records:
            return []

        try:
            with transaction.atomic():
                ScheduledEvent.objects.bulk_create(records)
        except DatabaseError as exc:
            logger.error("Batch insert of %d instance(s) failed: %s", len(records), exc)
            raise PersistenceFailure(
                f"Could not store {len(records)} generated instance(s)"
            ) from exc

        return [str(record.pk) for record in records]
