"""
Service layer for the recurring schedule.
Services are framework-agnostic and handle all business operations.

generate_instances is the instance generator: it expands one template's
recurrence rule into concrete events over a rolling horizon. Every run
re-reads the instances already stored for the template, so repeated or
overlapping runs never create an event twice for the same date.
"""

import logging
from collections import Counter
from datetime import date, datetime, time
from typing import List, Optional, Tuple

from django.db import transaction
from django.utils import timezone

from .exceptions import NotARecurringTemplate, SchedulingError
from .models import ScheduledEvent
from .planner import plan_window
from .recurrence import matches, pattern_from_dict
from .store import DjangoEventStore
from .types import (
    PAYLOAD_FIELDS,
    STATUS_CANCELLED,
    STATUS_COMPLETED,
    STATUS_SCHEDULED,
    GenerationResult,
    GenerationSummary,
    InstanceUpdateData,
    TemplateUpdateData,
    default_horizon_weeks,
)

logger = logging.getLogger(__name__)


def generate_instances(
    template_id,
    horizon_weeks: Optional[int] = None,
    now: Optional[datetime] = None,
    store=None
) -> GenerationResult:
    """
    Generate instances of a recurring template.

    Args:
        template_id: Id of the template
        horizon_weeks: How many weeks ahead to generate (default from settings)
        now: Current moment (defaults to timezone.now())
        store: Event store to read from and write to (defaults to the database)

    Returns:
        GenerationResult with the number and ids of created instances

    Raises:
        TemplateNotFound: If the template does not exist
        NotARecurringTemplate: If the id belongs to a concrete event
        InvalidPattern: If the recurrence rule or horizon is invalid
        PersistenceFailure: If the batch write fails; nothing is stored
    """
    store = store or DjangoEventStore()
    now = now or timezone.now()
    if horizon_weeks is None:
        horizon_weeks = default_horizon_weeks()

    template = store.load_template(template_id)
    if not template.is_recurring_template:
        raise NotARecurringTemplate(template_id)

    pattern = template.get_pattern()
    window = plan_window(now, horizon_weeks, pattern)
    logger.info(
        "Generating instances for template %s from %s to %s",
        template.pk, window.start_date, window.end_date
    )
    if window.is_empty:
        return GenerationResult()

    existing_dates = store.load_instance_dates(template.pk, window.start_date, window.end_date)
    excluded_dates = store.load_exclusions(template.pk)

    anchor = timezone.localtime(template.start_time)
    anchor_date = anchor.date()
    time_of_day = anchor.time()
    duration = template.duration
    occurrence_cap = pattern.end.occurrence_cap

    skipped = Counter()
    staged = []
    for day in window.dates():
        if day in excluded_dates:
            skipped['excluded'] += 1
            continue
        if not matches(pattern, day, anchor_date):
            continue
        if day in existing_dates:
            skipped['existing'] += 1
            continue

        start_time = _make_aware_datetime(day, time_of_day)
        if start_time < now:
            skipped['past'] += 1
            continue

        if occurrence_cap is not None and len(staged) >= occurrence_cap:
            break

        staged.append(_build_instance(template, day, start_time, start_time + duration))

    logger.debug("Template %s skipped dates: %s", template.pk, dict(skipped))

    created_ids = store.batch_insert_instances(staged)
    logger.info("Created %d instance(s) for template %s", len(created_ids), template.pk)
    return GenerationResult(created_count=len(created_ids), created_instance_ids=created_ids)


def generate_for_all_templates(
    horizon_weeks: Optional[int] = None,
    now: Optional[datetime] = None
) -> GenerationSummary:
    """
    Generate instances for all active templates.

    A failure for one template is logged and does not stop the others.

    Args:
        horizon_weeks: How many weeks ahead to generate
        now: Current moment (defaults to timezone.now())

    Returns:
        GenerationSummary for the whole run
    """
    summary = GenerationSummary()

    for template_id in ScheduledEvent.objects.active_templates().values_list('pk', flat=True):
        try:
            result = generate_instances(template_id, horizon_weeks, now=now)
        except SchedulingError as exc:
            logger.error("Generation failed for template %s: %s", template_id, exc)
            summary.failed_template_ids.append(str(template_id))
            continue
        summary.templates_processed += 1
        summary.created_count += result.created_count

    return summary


def _make_aware_datetime(date_obj: date, time_obj: time) -> datetime:
    """Combine date and time into timezone-aware datetime."""
    dt = datetime.combine(date_obj, time_obj)
    return timezone.make_aware(dt)


def _build_instance(
    template: ScheduledEvent,
    occurrence_date: date,
    start_time: datetime,
    end_time: datetime
) -> ScheduledEvent:
    """Create an instance object from the template (not yet saved to DB)."""
    payload = {name: getattr(template, name) for name in PAYLOAD_FIELDS}
    return ScheduledEvent(
        parent_template=template,
        occurrence_date=occurrence_date,
        start_time=start_time,
        end_time=end_time,
        status=STATUS_SCHEDULED,
        is_recurring_template=False,
        is_exception=False,
        **payload
    )


@transaction.atomic
def create_template(
    title: str,
    start_time: datetime,
    end_time: datetime,
    recurrence: dict,
    description: str = '',
    category: str = '',
    location: str = '',
    resource: str = '',
    room: str = '',
    capacity: int = 20,
    waitlist_capacity: int = 0,
    generate_now: bool = True,
    horizon_weeks: Optional[int] = None,
    now: Optional[datetime] = None
) -> Tuple[ScheduledEvent, int]:
    """
    Create a recurring template and optionally generate its instances.

    Args:
        title: Event title
        start_time: Start of the first occurrence
        end_time: End of the first occurrence
        recurrence: Recurrence rule in its stored JSON form
        description: Free-form notes copied onto instances
        category: Event category
        location: Where the event takes place
        resource: Assigned instructor or resource
        room: Room within the location
        capacity: Bookable places per instance
        waitlist_capacity: Waitlist places per instance
        generate_now: Whether to generate instances immediately
        horizon_weeks: How many weeks ahead to generate

    Returns:
        Tuple of (created template, number of instances created)

    Raises:
        InvalidPattern: If the recurrence rule is invalid
        ValueError: If the times are inconsistent
    """
    pattern = pattern_from_dict(recurrence)
    _validate_times(start_time, end_time)

    template = ScheduledEvent.objects.create(
        title=title,
        description=description,
        category=category,
        location=location,
        resource=resource,
        room=room,
        capacity=capacity,
        waitlist_capacity=waitlist_capacity,
        start_time=start_time,
        end_time=end_time,
        is_recurring_template=True,
        recurrence=pattern.to_dict(),
        excluded_dates=[],
        is_active=True
    )
    logger.info("Created template %s (%s)", template.pk, pattern.frequency)

    instances_created = 0
    if generate_now:
        result = generate_instances(template.pk, horizon_weeks, now=now)
        instances_created = result.created_count

    return template, instances_created


@transaction.atomic
def update_template(
    template: ScheduledEvent,
    update_data: TemplateUpdateData,
    update_future_instances: bool = True
) -> ScheduledEvent:
    """
    Update a recurring template.

    Args:
        template: Template to update
        update_data: TemplateUpdateData with fields to update
        update_future_instances: Whether to copy payload and time changes onto
                                 future, unmodified, scheduled instances

    Returns:
        Updated template

    Raises:
        NotARecurringTemplate: If the event is not a template
        InvalidPattern: If the new recurrence rule is invalid
        ValueError: If the new times are inconsistent
    """
    _require_template(template)

    recurrence = None
    if update_data.recurrence is not None:
        pattern = pattern_from_dict(update_data.recurrence)
        recurrence = pattern.to_dict()
        if (pattern.frequency != template.frequency
                and ScheduledEvent.objects.for_template(template.pk).exists()):
            logger.warning(
                "Frequency of template %s changed from %s to %s; existing instances are kept",
                template.pk, template.frequency, pattern.frequency
            )

    start_time = update_data.start_time or template.start_time
    end_time = update_data.end_time or template.end_time
    _validate_times(start_time, end_time)

    fields_to_update = {name: getattr(update_data, name) for name in PAYLOAD_FIELDS}
    fields_to_update.update({
        'start_time': update_data.start_time,
        'end_time': update_data.end_time,
        'recurrence': recurrence,
        'is_active': update_data.is_active,
    })
    _apply_field_updates(template, fields_to_update)
    template.save()

    if update_future_instances:
        _update_future_instances(template, update_data)

    return template


@transaction.atomic
def deactivate_template(template: ScheduledEvent) -> ScheduledEvent:
    """
    Stop periodic generation for a template.

    Instances already generated are left untouched.
    """
    _require_template(template)
    template.is_active = False
    template.save()
    logger.info("Deactivated template %s", template.pk)
    return template


@transaction.atomic
def add_exclusion(
    template: ScheduledEvent,
    excluded_date: date,
    reason: str = ''
) -> Tuple[ScheduledEvent, int]:
    """
    Exclude a date from a template and cancel its instance on that date.

    Args:
        template: Template to update
        excluded_date: Calendar date to exclude
        reason: Why the date is excluded (e.g. a holiday)

    Returns:
        Tuple of (updated template, number of instances cancelled)

    Raises:
        NotARecurringTemplate: If the event is not a template
    """
    _require_template(template)

    if excluded_date not in template.get_excluded_dates():
        template.excluded_dates = list(template.excluded_dates or []) + [{
            'date': excluded_date.isoformat(),
            'reason': reason,
            'added_at': timezone.now().isoformat(),
        }]
        template.save()

    to_cancel = (
        ScheduledEvent.objects.for_template(template.pk)
        .filter(occurrence_date=excluded_date)
        .scheduled()
    )
    cancelled = 0
    for instance in to_cancel:
        cancel_instance(instance)
        cancelled += 1

    logger.info(
        "Excluded %s from template %s; cancelled %d instance(s)",
        excluded_date, template.pk, cancelled
    )
    return template, cancelled


@transaction.atomic
def remove_exclusion(template: ScheduledEvent, excluded_date: date) -> ScheduledEvent:
    """
    Remove an excluded date from a template.

    Cancelled instances are not restored; a later generation run only
    fills the date if no instance exists for it.

    Raises:
        NotARecurringTemplate: If the event is not a template
        ValueError: If the date is not excluded
    """
    _require_template(template)

    if excluded_date not in template.get_excluded_dates():
        raise ValueError(f"{excluded_date.isoformat()} is not an excluded date")

    template.excluded_dates = [
        entry for entry in template.excluded_dates
        if _exclusion_entry_date(entry) != excluded_date.isoformat()
    ]
    template.save()
    return template


@transaction.atomic
def update_instance(
    instance: ScheduledEvent,
    update_data: InstanceUpdateData
) -> ScheduledEvent:
    """
    Update a concrete event.

    Moving the start keeps the duration unless a new end is given.
    Any change marks a generated instance as an exception, so later
    template updates no longer overwrite it.

    Raises:
        ValueError: If the event is a template or the times are inconsistent
    """
    _require_instance(instance)

    start_time = update_data.start_time or instance.start_time
    end_time = update_data.end_time
    if end_time is None:
        end_time = start_time + instance.duration if update_data.start_time else instance.end_time
    _validate_times(start_time, end_time)

    fields_to_update = {
        'title': update_data.title,
        'description': update_data.description,
        'location': update_data.location,
        'resource': update_data.resource,
        'room': update_data.room,
        'capacity': update_data.capacity,
        'start_time': start_time,
        'end_time': end_time,
    }
    _apply_field_updates(instance, fields_to_update)

    if instance.is_generated:
        instance.is_exception = True

    instance.save()
    return instance


@transaction.atomic
def cancel_instance(instance: ScheduledEvent) -> ScheduledEvent:
    """
    Cancel a concrete event.

    Raises:
        ValueError: If the event is a template or already cancelled
    """
    _require_instance(instance)

    if instance.status == STATUS_CANCELLED:
        raise ValueError("Event is already cancelled")

    instance.status = STATUS_CANCELLED

    if instance.is_generated:
        instance.is_exception = True

    instance.save()
    return instance


@transaction.atomic
def complete_instance(instance: ScheduledEvent) -> ScheduledEvent:
    """
    Mark a concrete event as completed.

    Raises:
        ValueError: If the event is a template, already completed or cancelled
    """
    _require_instance(instance)

    if instance.status == STATUS_COMPLETED:
        raise ValueError("Event is already completed")

    if instance.status == STATUS_CANCELLED:
        raise ValueError("Cannot complete a cancelled event")

    instance.status = STATUS_COMPLETED
    instance.save()
    return instance


def get_instances_in_range(
    start_datetime: datetime,
    end_datetime: datetime,
    status: Optional[str] = None,
    template_id=None
) -> List[ScheduledEvent]:
    """
    Get concrete events starting within a datetime range.

    Args:
        start_datetime: Range start
        end_datetime: Range end
        status: Optional status filter ('scheduled', 'cancelled', 'completed')
        template_id: Optional template to restrict to

    Returns:
        List of ScheduledEvent instances, never templates

    Raises:
        ValueError: If start_datetime >= end_datetime
    """
    if start_datetime >= end_datetime:
        raise ValueError("Start datetime must be before end datetime")

    queryset = ScheduledEvent.objects.instances().in_range(start_datetime, end_datetime)

    if status:
        queryset = queryset.filter(status=status)

    if template_id:
        queryset = queryset.for_template(template_id)

    return list(queryset)


def _require_template(event: ScheduledEvent) -> None:
    if not event.is_recurring_template:
        raise NotARecurringTemplate(event.pk)


def _require_instance(event: ScheduledEvent) -> None:
    if event.is_recurring_template:
        raise ValueError("Recurring templates cannot be changed as single events")


def _validate_times(start_time: datetime, end_time: datetime) -> None:
    """Validate the end comes after the start."""
    if end_time <= start_time:
        raise ValueError("End time must be after start time")


def _exclusion_entry_date(entry) -> Optional[str]:
    value = entry.get('date') if isinstance(entry, dict) else entry
    return value[:10] if isinstance(value, str) else None


def _update_future_instances(
    template: ScheduledEvent,
    update_data: TemplateUpdateData
) -> None:
    """
    Copy payload and time changes onto future non-exception instances.

    A new start or end moves each instance to the template's time of day
    on its own occurrence date, with the template's duration.
    """
    future_instances = (
        ScheduledEvent.objects.for_template(template.pk)
        .upcoming()
        .filter(is_exception=False)
    )

    updates = {}
    for name in PAYLOAD_FIELDS:
        value = getattr(update_data, name)
        if value is not None:
            updates[name] = value

    if updates:
        updated = future_instances.update(**updates)
        logger.info("Updated %d future instance(s) of template %s", updated, template.pk)

    if update_data.start_time is None and update_data.end_time is None:
        return

    time_of_day = timezone.localtime(template.start_time).time()
    rescheduled = []
    for instance in future_instances.exclude(occurrence_date__isnull=True):
        instance.start_time = _make_aware_datetime(instance.occurrence_date, time_of_day)
        instance.end_time = instance.start_time + template.duration
        rescheduled.append(instance)

    ScheduledEvent.objects.bulk_update(rescheduled, ['start_time', 'end_time'])
    logger.info("Rescheduled %d future instance(s) of template %s", len(rescheduled), template.pk)


def _apply_field_updates(obj, fields: dict) -> None:
    """Apply field updates to object if values are not None (DRY helper)."""
    for field_name, value in fields.items():
        if value is not None:
            setattr(obj, field_name, value)
