"""
Tests for the recurring schedule.

Tests cover:
- Recurrence rules (pure date matching and pattern parsing)
- Generation window planning
- Instance generation (idempotency, exclusions, caps, end dates, past dates)
- Service layer (templates, exclusions, instance updates)
- ScheduledEvent model and manager
- API endpoints (templates, generation, exclusions, instances)
- Management command
"""

import uuid
from datetime import date, datetime, time, timedelta, timezone as dt_timezone
from io import StringIO
from unittest import mock

from django.core.exceptions import ValidationError
from django.core.management import CommandError, call_command
from django.db import IntegrityError, transaction
from django.test import SimpleTestCase, TestCase, override_settings
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient, APITestCase

from . import services
from .exceptions import (
    InvalidPattern,
    NotARecurringTemplate,
    PersistenceFailure,
    TemplateNotFound,
)
from .models import ScheduledEvent
from .planner import GenerationWindow, local_date, plan_window
from .recurrence import (
    BiweeklyPattern,
    DailyPattern,
    EndCondition,
    MonthlyPattern,
    WeeklyPattern,
    matches,
    pattern_from_dict,
    sunday_weekday,
)
from .store import DjangoEventStore
from .types import InstanceUpdateData, TemplateUpdateData


def aware(*args):
    return timezone.make_aware(datetime(*args))


def make_template(recurrence, start_time=None, duration=timedelta(hours=1), **fields):
    """Create a template directly, bypassing the service layer."""
    start_time = start_time or aware(2024, 11, 4, 10, 0)
    fields.setdefault('title', 'Morning Spin')
    return ScheduledEvent.objects.create(
        start_time=start_time,
        end_time=start_time + duration,
        is_recurring_template=True,
        recurrence=recurrence,
        **fields
    )


def make_instance(template, occurrence_date, status='scheduled'):
    start_time = timezone.make_aware(
        datetime.combine(occurrence_date, timezone.localtime(template.start_time).time())
    )
    return ScheduledEvent.objects.create(
        parent_template=template,
        occurrence_date=occurrence_date,
        title=template.title,
        start_time=start_time,
        end_time=start_time + template.duration,
        status=status
    )


def tomorrow_at(hour, minute=0):
    day = timezone.localdate() + timedelta(days=1)
    return timezone.make_aware(datetime.combine(day, time(hour, minute)))


WEEKLY_MWF = {'frequency': 'weekly', 'days_of_week': [1, 3, 5]}
DAILY = {'frequency': 'daily'}


class RecurrenceRuleTests(SimpleTestCase):
    """Test the pure date-matching rules."""

    def test_sunday_based_weekdays(self):
        self.assertEqual(sunday_weekday(date(2024, 11, 3)), 0)  # Sunday
        self.assertEqual(sunday_weekday(date(2024, 11, 4)), 1)  # Monday
        self.assertEqual(sunday_weekday(date(2024, 11, 9)), 6)  # Saturday

    def test_daily_always_matches(self):
        pattern = DailyPattern()
        anchor = date(2024, 11, 4)
        for offset in range(10):
            self.assertTrue(matches(pattern, anchor + timedelta(days=offset), anchor))

    def test_weekly_matches_selected_weekdays(self):
        pattern = WeeklyPattern(days_of_week=[1, 3, 5])
        anchor = date(2024, 11, 4)

        self.assertTrue(matches(pattern, date(2024, 11, 4), anchor))   # Monday
        self.assertFalse(matches(pattern, date(2024, 11, 5), anchor))  # Tuesday
        self.assertTrue(matches(pattern, date(2024, 11, 6), anchor))   # Wednesday
        self.assertTrue(matches(pattern, date(2024, 11, 8), anchor))   # Friday
        self.assertFalse(matches(pattern, date(2024, 11, 10), anchor))  # Sunday

    def test_biweekly_follows_anchor_phase(self):
        pattern = BiweeklyPattern(days_of_week=[2])
        anchor = date(2024, 11, 5)  # Tuesday

        self.assertTrue(matches(pattern, date(2024, 11, 5), anchor))
        self.assertFalse(matches(pattern, date(2024, 11, 12), anchor))
        self.assertTrue(matches(pattern, date(2024, 11, 19), anchor))
        self.assertFalse(matches(pattern, date(2024, 11, 20), anchor))

    def test_biweekly_before_anchor_uses_floor_weeks(self):
        pattern = BiweeklyPattern(days_of_week=[2])
        anchor = date(2024, 11, 5)

        self.assertFalse(matches(pattern, date(2024, 10, 29), anchor))
        self.assertTrue(matches(pattern, date(2024, 10, 22), anchor))

    def test_biweekly_phase_shifts_with_anchor(self):
        pattern = BiweeklyPattern(days_of_week=[2])

        self.assertTrue(matches(pattern, date(2024, 11, 12), date(2024, 11, 12)))
        self.assertFalse(matches(pattern, date(2024, 11, 12), date(2024, 11, 5)))

    def test_monthly_matches_anchor_day(self):
        pattern = MonthlyPattern()
        anchor = date(2024, 11, 15)

        self.assertTrue(matches(pattern, date(2024, 12, 15), anchor))
        self.assertFalse(matches(pattern, date(2024, 12, 16), anchor))

    def test_monthly_does_not_clamp_short_months(self):
        pattern = MonthlyPattern()
        anchor = date(2025, 1, 31)

        self.assertFalse(matches(pattern, date(2025, 2, 28), anchor))
        self.assertTrue(matches(pattern, date(2025, 3, 31), anchor))
        self.assertFalse(matches(pattern, date(2025, 4, 30), anchor))


class PatternParsingTests(SimpleTestCase):
    """Test building patterns from their stored form."""

    def test_parse_weekly(self):
        pattern = pattern_from_dict({'frequency': 'weekly', 'days_of_week': [5, 1, 3]})

        self.assertIsInstance(pattern, WeeklyPattern)
        self.assertEqual(pattern.days_of_week, frozenset({1, 3, 5}))
        self.assertEqual(pattern.end.end_type, 'never')
        self.assertEqual(pattern.to_dict()['days_of_week'], [1, 3, 5])

    def test_parse_end_date(self):
        pattern = pattern_from_dict({
            'frequency': 'daily',
            'end_type': 'date',
            'end_date': '2024-12-31',
        })

        self.assertEqual(pattern.end.end_date, date(2024, 12, 31))
        self.assertIsNone(pattern.end.occurrence_cap)

    def test_parse_occurrences(self):
        pattern = pattern_from_dict({
            'frequency': 'monthly',
            'end_type': 'occurrences',
            'occurrences': 12,
        })

        self.assertIsInstance(pattern, MonthlyPattern)
        self.assertEqual(pattern.end.occurrence_cap, 12)

    def test_weekday_set_ignored_for_daily(self):
        pattern = pattern_from_dict({'frequency': 'daily', 'days_of_week': [1]})
        self.assertNotIn('days_of_week', pattern.to_dict())

    def test_unused_end_fields_are_dropped(self):
        end = EndCondition(end_type='never', end_date=date(2024, 12, 31), occurrences=3)
        self.assertIsNone(end.end_date)
        self.assertIsNone(end.occurrences)

    def test_invalid_patterns(self):
        invalid = [
            None,
            {},
            {'frequency': 'yearly'},
            {'frequency': 'weekly'},
            {'frequency': 'weekly', 'days_of_week': []},
            {'frequency': 'biweekly', 'days_of_week': [7]},
            {'frequency': 'weekly', 'days_of_week': ['monday']},
            {'frequency': 'daily', 'end_type': 'date'},
            {'frequency': 'daily', 'end_type': 'date', 'end_date': '2024-02-30'},
            {'frequency': 'daily', 'end_type': 'occurrences', 'occurrences': 0},
            {'frequency': 'daily', 'end_type': 'occurrences', 'occurrences': True},
            {'frequency': 'daily', 'end_type': 'sometimes'},
        ]
        for data in invalid:
            with self.subTest(data=data):
                with self.assertRaises(InvalidPattern):
                    pattern_from_dict(data)

    def test_invalid_pattern_is_value_error(self):
        with self.assertRaises(ValueError):
            WeeklyPattern(days_of_week=[])

    def test_non_iterable_weekdays_keep_cause(self):
        with self.assertRaises(InvalidPattern) as ctx:
            WeeklyPattern(days_of_week=5)

        self.assertIsInstance(ctx.exception.__cause__, TypeError)


class WindowPlannerTests(SimpleTestCase):
    """Test generation window planning."""

    def setUp(self):
        self.now = aware(2024, 11, 4, 8, 0)

    def test_window_covers_whole_weeks_from_today(self):
        window = plan_window(self.now, 2, DailyPattern())

        self.assertEqual(window.start_date, date(2024, 11, 4))
        self.assertEqual(window.end_date, date(2024, 11, 17))
        self.assertEqual(len(list(window.dates())), 14)

    def test_zero_horizon_is_today_only(self):
        window = plan_window(self.now, 0, DailyPattern())

        self.assertEqual(window.start_date, window.end_date)
        self.assertEqual(list(window.dates()), [date(2024, 11, 4)])

    def test_end_date_restricts_window(self):
        pattern = DailyPattern(end=EndCondition(end_type='date', end_date=date(2024, 11, 8)))
        window = plan_window(self.now, 4, pattern)

        self.assertEqual(window.end_date, date(2024, 11, 8))

    def test_later_end_date_keeps_horizon(self):
        pattern = DailyPattern(end=EndCondition(end_type='date', end_date=date(2025, 6, 1)))
        window = plan_window(self.now, 1, pattern)

        self.assertEqual(window.end_date, date(2024, 11, 10))

    def test_occurrence_cap_does_not_shorten_window(self):
        pattern = DailyPattern(end=EndCondition(end_type='occurrences', occurrences=2))
        window = plan_window(self.now, 1, pattern)

        self.assertEqual(window.end_date, date(2024, 11, 10))

    def test_ended_pattern_gives_empty_window(self):
        pattern = DailyPattern(end=EndCondition(end_type='date', end_date=date(2024, 10, 1)))
        window = plan_window(self.now, 4, pattern)

        self.assertTrue(window.is_empty)
        self.assertEqual(list(window.dates()), [])

    def test_negative_horizon_rejected(self):
        with self.assertRaises(InvalidPattern):
            plan_window(self.now, -1, DailyPattern())

    def test_missing_pattern_rejected(self):
        with self.assertRaises(InvalidPattern):
            plan_window(self.now, 1, None)

    def test_dates_are_ascending(self):
        window = GenerationWindow(date(2024, 12, 30), date(2025, 1, 2))
        self.assertEqual(
            list(window.dates()),
            [date(2024, 12, 30), date(2024, 12, 31), date(2025, 1, 1), date(2025, 1, 2)]
        )

    @override_settings(TIME_ZONE='America/New_York')
    def test_today_is_taken_in_reference_timezone(self):
        now = datetime(2024, 11, 5, 2, 0, tzinfo=dt_timezone.utc)
        self.assertEqual(local_date(now), date(2024, 11, 4))


class GenerateInstancesTests(TestCase):
    """Test the instance generator against the database."""

    def setUp(self):
        # Monday 08:00; templates start at 10:00
        self.now = aware(2024, 11, 4, 8, 0)

    def generate(self, template, horizon_weeks, **kwargs):
        kwargs.setdefault('now', self.now)
        return services.generate_instances(template.pk, horizon_weeks, **kwargs)

    def occurrence_dates(self, template):
        return list(
            ScheduledEvent.objects.for_template(template.pk)
            .order_by('occurrence_date')
            .values_list('occurrence_date', flat=True)
        )

    def test_weekly_generation(self):
        """Mon/Wed/Fri over two weeks gives six instances."""
        template = make_template(WEEKLY_MWF)

        result = self.generate(template, 2)

        self.assertEqual(result.created_count, 6)
        self.assertEqual(self.occurrence_dates(template), [
            date(2024, 11, 4), date(2024, 11, 6), date(2024, 11, 8),
            date(2024, 11, 11), date(2024, 11, 13), date(2024, 11, 15),
        ])
        for instance in ScheduledEvent.objects.for_template(template.pk):
            self.assertIn(sunday_weekday(instance.occurrence_date), {1, 3, 5})
            self.assertEqual(timezone.localtime(instance.start_time).time(), time(10, 0))
            self.assertEqual(instance.duration, timedelta(hours=1))

    def test_no_duplicate_generation(self):
        """Re-running does not create duplicates."""
        template = make_template(WEEKLY_MWF)

        first_run = self.generate(template, 2)
        second_run = self.generate(template, 2)

        self.assertEqual(first_run.created_count, 6)
        self.assertEqual(second_run.created_count, 0)
        self.assertEqual(second_run.created_instance_ids, [])
        self.assertEqual(ScheduledEvent.objects.for_template(template.pk).count(), 6)

    def test_overlapping_horizon_only_adds_new_dates(self):
        template = make_template(WEEKLY_MWF)

        self.assertEqual(self.generate(template, 1).created_count, 3)
        self.assertEqual(self.generate(template, 2).created_count, 3)
        self.assertEqual(len(set(self.occurrence_dates(template))), 6)

    def test_biweekly_generation(self):
        """Biweekly Tuesdays over six weeks land on weeks 0, 2 and 4."""
        template = make_template(
            {'frequency': 'biweekly', 'days_of_week': [2]},
            start_time=aware(2024, 11, 5, 10, 0)
        )

        result = self.generate(template, 6, now=aware(2024, 11, 5, 8, 0))

        self.assertEqual(result.created_count, 3)
        self.assertEqual(self.occurrence_dates(template), [
            date(2024, 11, 5), date(2024, 11, 19), date(2024, 12, 3),
        ])

    def test_monthly_generation_skips_short_months(self):
        """An anchor on the 31st produces nothing in February."""
        template = make_template(
            {'frequency': 'monthly'},
            start_time=aware(2025, 1, 31, 10, 0)
        )

        result = self.generate(template, 10, now=aware(2025, 1, 31, 8, 0))

        self.assertEqual(result.created_count, 2)
        self.assertEqual(self.occurrence_dates(template), [date(2025, 1, 31), date(2025, 3, 31)])

    def test_occurrence_cap(self):
        """A cap of three creates the earliest three qualifying dates."""
        template = make_template({
            'frequency': 'daily',
            'end_type': 'occurrences',
            'occurrences': 3,
        })

        result = self.generate(template, 10)

        self.assertEqual(result.created_count, 3)
        self.assertEqual(self.occurrence_dates(template), [
            date(2024, 11, 4), date(2024, 11, 5), date(2024, 11, 6),
        ])

    def test_occurrence_cap_stops_evaluation(self):
        template = make_template({
            'frequency': 'daily',
            'end_type': 'occurrences',
            'occurrences': 3,
        })

        with mock.patch('scheduling.services.matches', wraps=matches) as spy:
            self.generate(template, 10)

        evaluated = [call.args[1] for call in spy.call_args_list]
        self.assertEqual(evaluated[-1], date(2024, 11, 7))
        self.assertEqual(len(evaluated), 4)

    def test_occurrence_cap_applies_per_run(self):
        template = make_template({
            'frequency': 'daily',
            'end_type': 'occurrences',
            'occurrences': 3,
        })

        self.generate(template, 10)
        second_run = self.generate(template, 10)

        self.assertEqual(second_run.created_count, 3)
        self.assertEqual(self.occurrence_dates(template)[-1], date(2024, 11, 9))

    def test_exclusion_respected(self):
        """An excluded Wednesday is skipped; the other dates are unaffected."""
        template = make_template(
            WEEKLY_MWF,
            excluded_dates=[{'date': '2024-11-06', 'reason': 'Holiday'}]
        )

        result = self.generate(template, 2)

        self.assertEqual(result.created_count, 5)
        dates = self.occurrence_dates(template)
        self.assertNotIn(date(2024, 11, 6), dates)
        self.assertIn(date(2024, 11, 4), dates)
        self.assertIn(date(2024, 11, 8), dates)

    def test_end_date_respected(self):
        template = make_template({
            'frequency': 'weekly',
            'days_of_week': [1, 3, 5],
            'end_type': 'date',
            'end_date': '2024-11-08',
        })

        result = self.generate(template, 4)

        self.assertEqual(result.created_count, 3)
        self.assertLessEqual(max(self.occurrence_dates(template)), date(2024, 11, 8))

    def test_ended_template_creates_nothing(self):
        template = make_template({
            'frequency': 'daily',
            'end_type': 'date',
            'end_date': '2024-10-31',
        })

        self.assertEqual(self.generate(template, 4).created_count, 0)

    def test_no_past_instances(self):
        """Today's instance is skipped once its start has passed."""
        template = make_template(WEEKLY_MWF)
        now = aware(2024, 11, 4, 12, 0)

        result = self.generate(template, 2, now=now)

        self.assertEqual(result.created_count, 5)
        self.assertNotIn(date(2024, 11, 4), self.occurrence_dates(template))
        for instance in ScheduledEvent.objects.for_template(template.pk):
            self.assertGreaterEqual(instance.start_time, now)

    def test_old_anchor_is_not_backfilled(self):
        template = make_template(DAILY, start_time=aware(2024, 1, 1, 10, 0))

        result = self.generate(template, 1)

        self.assertEqual(result.created_count, 7)
        self.assertEqual(min(self.occurrence_dates(template)), date(2024, 11, 4))

    def test_existing_instance_date_skipped(self):
        """A cancelled instance still occupies its date."""
        template = make_template(WEEKLY_MWF)
        make_instance(template, date(2024, 11, 6), status='cancelled')

        result = self.generate(template, 2)

        self.assertEqual(result.created_count, 5)
        self.assertEqual(
            ScheduledEvent.objects.for_template(template.pk).filter(occurrence_date=date(2024, 11, 6)).count(),
            1
        )

    def test_payload_copied_to_instances(self):
        template = make_template(
            DAILY,
            duration=timedelta(minutes=90),
            description='Bring a towel',
            category='Cycling',
            location='Downtown',
            resource='Coach Sam',
            room='Studio B',
            capacity=12,
            waitlist_capacity=3
        )

        result = self.generate(template, 0)

        self.assertEqual(result.created_count, 1)
        instance = ScheduledEvent.objects.get(pk=result.created_instance_ids[0])
        self.assertEqual(instance.parent_template, template)
        self.assertFalse(instance.is_recurring_template)
        self.assertIsNone(instance.recurrence)
        self.assertEqual(instance.status, 'scheduled')
        self.assertFalse(instance.is_exception)
        self.assertEqual(instance.title, 'Morning Spin')
        self.assertEqual(instance.description, 'Bring a towel')
        self.assertEqual(instance.category, 'Cycling')
        self.assertEqual(instance.location, 'Downtown')
        self.assertEqual(instance.resource, 'Coach Sam')
        self.assertEqual(instance.room, 'Studio B')
        self.assertEqual(instance.capacity, 12)
        self.assertEqual(instance.waitlist_capacity, 3)
        self.assertEqual(instance.duration_minutes, 90)

    def test_returned_ids_match_created_instances(self):
        template = make_template(WEEKLY_MWF)

        result = self.generate(template, 2)

        stored_ids = {
            str(pk) for pk in ScheduledEvent.objects.for_template(template.pk).values_list('pk', flat=True)
        }
        self.assertEqual(set(result.created_instance_ids), stored_ids)

    def test_template_not_found(self):
        with self.assertRaises(TemplateNotFound):
            services.generate_instances(uuid.uuid4(), 2, now=self.now)

        with self.assertRaises(TemplateNotFound):
            services.generate_instances('not-a-uuid', 2, now=self.now)

    def test_instance_is_not_a_template(self):
        template = make_template(WEEKLY_MWF)
        instance = make_instance(template, date(2024, 11, 4))

        with self.assertRaises(NotARecurringTemplate):
            services.generate_instances(instance.pk, 2, now=self.now)

    def test_negative_horizon(self):
        template = make_template(WEEKLY_MWF)

        with self.assertRaises(InvalidPattern):
            self.generate(template, -1)

    def test_stored_invalid_pattern(self):
        template = make_template(WEEKLY_MWF)
        ScheduledEvent.objects.filter(pk=template.pk).update(
            recurrence={'frequency': 'weekly', 'days_of_week': []}
        )

        with self.assertRaises(InvalidPattern):
            self.generate(template, 2)

    def test_concurrent_insert_fails_whole_batch(self):
        """A uniqueness violation discards every staged instance."""

        class StaleStore(DjangoEventStore):
            def load_instance_dates(self, template_id, start_date, end_date):
                return set()

        template = make_template(WEEKLY_MWF)
        make_instance(template, date(2024, 11, 13))

        with self.assertRaises(PersistenceFailure):
            self.generate(template, 2, store=StaleStore())

        self.assertEqual(self.occurrence_dates(template), [date(2024, 11, 13)])

        result = self.generate(template, 2)
        self.assertEqual(result.created_count, 5)


class FakeStoreGenerationTests(SimpleTestCase):
    """The generator only talks to its store."""

    class MemoryStore:
        def __init__(self, template, existing=(), fail=False):
            self.template = template
            self.existing = set(existing)
            self.fail = fail
            self.inserted = []

        def load_template(self, template_id):
            if template_id != self.template.pk:
                raise TemplateNotFound(template_id)
            return self.template

        def load_instance_dates(self, template_id, start_date, end_date):
            return {d for d in self.existing if start_date <= d <= end_date}

        def load_exclusions(self, template_id):
            return self.template.get_excluded_dates()

        def batch_insert_instances(self, records):
            if self.fail:
                raise PersistenceFailure("store unavailable")
            self.inserted.extend(records)
            return [str(record.pk) for record in records]

    def setUp(self):
        start = aware(2024, 11, 4, 10, 0)
        self.template = ScheduledEvent(
            title='Yoga',
            start_time=start,
            end_time=start + timedelta(hours=1),
            is_recurring_template=True,
            recurrence=WEEKLY_MWF,
            excluded_dates=['2024-11-08']
        )
        self.now = aware(2024, 11, 4, 8, 0)

    def test_generation_uses_store(self):
        store = self.MemoryStore(self.template, existing={date(2024, 11, 4)})

        result = services.generate_instances(self.template.pk, 1, now=self.now, store=store)

        self.assertEqual(result.created_count, 1)
        self.assertEqual([r.occurrence_date for r in store.inserted], [date(2024, 11, 6)])

    def test_store_failure_propagates(self):
        store = self.MemoryStore(self.template, fail=True)

        with self.assertRaises(PersistenceFailure):
            services.generate_instances(self.template.pk, 1, now=self.now, store=store)


class GenerateForAllTemplatesTests(TestCase):
    """Test the periodic generation over all templates."""

    def test_active_templates_only(self):
        now = aware(2024, 11, 4, 8, 0)
        make_template(WEEKLY_MWF, title='Spin')
        make_template(DAILY, title='Yoga')
        make_template(DAILY, title='Paused', is_active=False)

        summary = services.generate_for_all_templates(horizon_weeks=1, now=now)

        self.assertEqual(summary.templates_processed, 2)
        self.assertEqual(summary.created_count, 3 + 7)
        self.assertEqual(summary.failed_template_ids, [])

    def test_failure_does_not_stop_other_templates(self):
        now = aware(2024, 11, 4, 8, 0)
        good = make_template(DAILY, title='Yoga')
        broken = make_template(DAILY, title='Broken')
        ScheduledEvent.objects.filter(pk=broken.pk).update(recurrence={'frequency': 'hourly'})

        summary = services.generate_for_all_templates(horizon_weeks=1, now=now)

        self.assertEqual(summary.failed_template_ids, [str(broken.pk)])
        self.assertEqual(summary.created_count, 7)
        self.assertEqual(ScheduledEvent.objects.for_template(good.pk).count(), 7)


class TemplateServiceTests(TestCase):
    """Test template and exclusion services."""

    def test_create_template_with_generation(self):
        template, count = services.create_template(
            title='Evening HIIT',
            start_time=aware(2024, 11, 4, 18, 0),
            end_time=aware(2024, 11, 4, 18, 45),
            recurrence={'frequency': 'weekly', 'days_of_week': [1, 4]},
            capacity=15,
            horizon_weeks=2,
            now=aware(2024, 11, 4, 8, 0)
        )

        self.assertTrue(template.is_recurring_template)
        self.assertEqual(template.recurrence['days_of_week'], [1, 4])
        self.assertEqual(count, 4)
        self.assertEqual(ScheduledEvent.objects.for_template(template.pk).count(), 4)

    def test_create_template_without_generation(self):
        template, count = services.create_template(
            title='Pilates',
            start_time=aware(2024, 11, 4, 9, 0),
            end_time=aware(2024, 11, 4, 10, 0),
            recurrence=DAILY,
            generate_now=False
        )

        self.assertIsNotNone(template.pk)
        self.assertEqual(count, 0)

    def test_create_template_invalid_recurrence(self):
        with self.assertRaises(InvalidPattern):
            services.create_template(
                title='Broken',
                start_time=aware(2024, 11, 4, 9, 0),
                end_time=aware(2024, 11, 4, 10, 0),
                recurrence={'frequency': 'weekly', 'days_of_week': []}
            )
        self.assertFalse(ScheduledEvent.objects.exists())

    def test_create_template_invalid_times(self):
        with self.assertRaises(ValueError):
            services.create_template(
                title='Backwards',
                start_time=aware(2024, 11, 4, 10, 0),
                end_time=aware(2024, 11, 4, 9, 0),
                recurrence=DAILY
            )

    def test_update_template_updates_future_instances(self):
        template = make_template(DAILY, start_time=tomorrow_at(9))
        services.generate_instances(template.pk, 1)
        modified = ScheduledEvent.objects.for_template(template.pk).first()
        services.update_instance(modified, InstanceUpdateData(title='Special session'))

        services.update_template(template, TemplateUpdateData(title='Sunrise Spin', capacity=8))

        template.refresh_from_db()
        self.assertEqual(template.title, 'Sunrise Spin')
        for instance in ScheduledEvent.objects.for_template(template.pk):
            if instance.pk == modified.pk:
                self.assertEqual(instance.title, 'Special session')
            else:
                self.assertEqual(instance.title, 'Sunrise Spin')
                self.assertEqual(instance.capacity, 8)

    def test_update_template_without_propagation(self):
        template = make_template(DAILY, start_time=tomorrow_at(9))
        services.generate_instances(template.pk, 1)

        services.update_template(
            template,
            TemplateUpdateData(title='Renamed'),
            update_future_instances=False
        )

        self.assertFalse(
            ScheduledEvent.objects.for_template(template.pk).filter(title='Renamed').exists()
        )

    def test_update_template_duration_reaches_existing_instances(self):
        """Instances generated before and after a duration change share one shape."""
        start = tomorrow_at(9)
        template = make_template(DAILY, start_time=start)
        services.generate_instances(template.pk, 1)

        services.update_template(template, TemplateUpdateData(end_time=start + timedelta(hours=2)))
        services.generate_instances(template.pk, 2)

        durations = {
            instance.duration for instance in ScheduledEvent.objects.for_template(template.pk)
        }
        self.assertEqual(durations, {timedelta(hours=2)})

    def test_update_template_start_moves_existing_instances(self):
        template = make_template(DAILY, start_time=tomorrow_at(9))
        services.generate_instances(template.pk, 1)
        modified = ScheduledEvent.objects.for_template(template.pk).first()
        services.update_instance(modified, InstanceUpdateData(title='Special session'))

        services.update_template(
            template,
            TemplateUpdateData(start_time=tomorrow_at(11), end_time=tomorrow_at(12))
        )

        for instance in ScheduledEvent.objects.for_template(template.pk):
            local_start = timezone.localtime(instance.start_time)
            if instance.pk == modified.pk:
                self.assertEqual(local_start.time(), time(9, 0))
            else:
                self.assertEqual(local_start.time(), time(11, 0))
                self.assertEqual(local_start.date(), instance.occurrence_date)
                self.assertEqual(instance.duration, timedelta(hours=1))

    def test_update_template_times_without_propagation(self):
        start = tomorrow_at(9)
        template = make_template(DAILY, start_time=start)
        services.generate_instances(template.pk, 1)

        services.update_template(
            template,
            TemplateUpdateData(end_time=start + timedelta(hours=2)),
            update_future_instances=False
        )

        durations = {
            instance.duration for instance in ScheduledEvent.objects.for_template(template.pk)
        }
        self.assertEqual(durations, {timedelta(hours=1)})

    def test_update_template_recurrence(self):
        template = make_template(DAILY)

        services.update_template(
            template,
            TemplateUpdateData(recurrence={'frequency': 'weekly', 'days_of_week': [2]})
        )

        template.refresh_from_db()
        self.assertEqual(template.frequency, 'weekly')

        with self.assertRaises(InvalidPattern):
            services.update_template(template, TemplateUpdateData(recurrence={'frequency': 'weekly'}))

    def test_update_requires_template(self):
        template = make_template(DAILY)
        instance = make_instance(template, date(2024, 11, 4))

        with self.assertRaises(NotARecurringTemplate):
            services.update_template(instance, TemplateUpdateData(title='Nope'))

    def test_deactivate_template_keeps_instances(self):
        template = make_template(WEEKLY_MWF)
        services.generate_instances(template.pk, 2, now=aware(2024, 11, 4, 8, 0))

        services.deactivate_template(template)

        template.refresh_from_db()
        self.assertFalse(template.is_active)
        self.assertEqual(ScheduledEvent.objects.for_template(template.pk).count(), 6)

    def test_add_exclusion_cancels_existing_instance(self):
        template = make_template(WEEKLY_MWF)
        services.generate_instances(template.pk, 2, now=aware(2024, 11, 4, 8, 0))

        template, cancelled = services.add_exclusion(template, date(2024, 11, 6), 'Holiday')

        self.assertEqual(cancelled, 1)
        self.assertIn(date(2024, 11, 6), template.get_excluded_dates())
        self.assertEqual(template.excluded_dates[0]['reason'], 'Holiday')
        instance = ScheduledEvent.objects.for_template(template.pk).get(occurrence_date=date(2024, 11, 6))
        self.assertEqual(instance.status, 'cancelled')
        self.assertTrue(instance.is_exception)

    def test_add_exclusion_twice_keeps_one_entry(self):
        template = make_template(WEEKLY_MWF)

        services.add_exclusion(template, date(2024, 11, 6), 'Holiday')
        template, cancelled = services.add_exclusion(template, date(2024, 11, 6), 'Holiday')

        self.assertEqual(cancelled, 0)
        self.assertEqual(len(template.excluded_dates), 1)

    def test_remove_exclusion(self):
        template = make_template(WEEKLY_MWF)
        now = aware(2024, 11, 4, 8, 0)
        services.add_exclusion(template, date(2024, 11, 6), 'Holiday')
        services.generate_instances(template.pk, 2, now=now)

        template = services.remove_exclusion(template, date(2024, 11, 6))

        self.assertEqual(template.get_excluded_dates(), set())
        result = services.generate_instances(template.pk, 2, now=now)
        self.assertEqual(result.created_count, 1)

    def test_remove_exclusion_after_cancel_does_not_regenerate(self):
        template = make_template(WEEKLY_MWF)
        now = aware(2024, 11, 4, 8, 0)
        services.generate_instances(template.pk, 2, now=now)
        services.add_exclusion(template, date(2024, 11, 6), 'Holiday')

        services.remove_exclusion(template, date(2024, 11, 6))

        self.assertEqual(services.generate_instances(template.pk, 2, now=now).created_count, 0)

    def test_remove_unknown_exclusion(self):
        template = make_template(WEEKLY_MWF)

        with self.assertRaises(ValueError):
            services.remove_exclusion(template, date(2024, 11, 6))


class InstanceServiceTests(TestCase):
    """Test services for concrete events."""

    def setUp(self):
        self.template = make_template(WEEKLY_MWF)
        self.instance = make_instance(self.template, date(2024, 11, 4))

    def test_update_instance_moves_and_keeps_duration(self):
        new_start = aware(2024, 11, 4, 11, 0)

        updated = services.update_instance(
            self.instance,
            InstanceUpdateData(start_time=new_start, title='Moved Spin')
        )

        self.assertEqual(updated.start_time, new_start)
        self.assertEqual(updated.end_time, new_start + timedelta(hours=1))
        self.assertEqual(updated.title, 'Moved Spin')
        self.assertTrue(updated.is_exception)
        self.assertEqual(updated.occurrence_date, date(2024, 11, 4))

    def test_update_instance_rejects_backwards_times(self):
        with self.assertRaises(ValueError):
            services.update_instance(
                self.instance,
                InstanceUpdateData(end_time=aware(2024, 11, 4, 9, 0))
            )

    def test_update_instance_rejects_template(self):
        with self.assertRaises(ValueError):
            services.update_instance(self.template, InstanceUpdateData(title='Nope'))

    def test_cancel_instance(self):
        services.cancel_instance(self.instance)

        self.instance.refresh_from_db()
        self.assertEqual(self.instance.status, 'cancelled')
        self.assertTrue(self.instance.is_exception)

        with self.assertRaises(ValueError):
            services.cancel_instance(self.instance)

    def test_complete_instance(self):
        services.complete_instance(self.instance)

        self.instance.refresh_from_db()
        self.assertEqual(self.instance.status, 'completed')

        with self.assertRaises(ValueError):
            services.complete_instance(self.instance)

    def test_cannot_complete_cancelled(self):
        services.cancel_instance(self.instance)

        with self.assertRaises(ValueError):
            services.complete_instance(self.instance)

    def test_get_instances_in_range(self):
        make_instance(self.template, date(2024, 11, 6))
        start = aware(2024, 11, 1, 0, 0)
        end = aware(2024, 11, 30, 23, 59)

        instances = services.get_instances_in_range(start, end)

        self.assertEqual(len(instances), 2)
        self.assertNotIn(self.template, instances)

    def test_get_instances_in_range_filters(self):
        services.cancel_instance(self.instance)
        make_instance(self.template, date(2024, 11, 6))
        start = aware(2024, 11, 1, 0, 0)
        end = aware(2024, 11, 30, 23, 59)

        scheduled = services.get_instances_in_range(start, end, status='scheduled')
        other = services.get_instances_in_range(start, end, template_id=uuid.uuid4())

        self.assertEqual(len(scheduled), 1)
        self.assertEqual(other, [])

    def test_invalid_range(self):
        with self.assertRaises(ValueError):
            services.get_instances_in_range(aware(2024, 11, 2), aware(2024, 11, 1))


class ScheduledEventModelTests(TestCase):
    """Test ScheduledEvent model validation and helpers."""

    def test_template_requires_valid_recurrence(self):
        with self.assertRaises(ValidationError):
            make_template({'frequency': 'weekly', 'days_of_week': []})

    def test_instance_cannot_carry_recurrence(self):
        start = aware(2024, 11, 4, 10, 0)
        with self.assertRaises(ValidationError):
            ScheduledEvent.objects.create(
                title='One-off',
                start_time=start,
                end_time=start + timedelta(hours=1),
                recurrence=DAILY
            )

    def test_end_after_start(self):
        start = aware(2024, 11, 4, 10, 0)
        with self.assertRaises(ValidationError):
            ScheduledEvent.objects.create(title='Backwards', start_time=start, end_time=start)

    def test_one_off_event_cannot_be_exception(self):
        start = aware(2024, 11, 4, 10, 0)
        with self.assertRaises(ValidationError):
            ScheduledEvent.objects.create(
                title='One-off',
                start_time=start,
                end_time=start + timedelta(hours=1),
                is_exception=True
            )

    def test_one_instance_per_template_and_date(self):
        template = make_template(WEEKLY_MWF)
        make_instance(template, date(2024, 11, 4))

        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                make_instance(template, date(2024, 11, 4))

    def test_excluded_dates_parsing(self):
        template = make_template(
            WEEKLY_MWF,
            excluded_dates=[
                {'date': '2024-12-25', 'reason': 'Christmas'},
                '2025-01-01',
                {'date': '2024-12-31T00:00:00Z'},
                {'reason': 'no date'},
                'garbage',
                42,
            ]
        )

        self.assertEqual(
            template.get_excluded_dates(),
            {date(2024, 12, 25), date(2025, 1, 1), date(2024, 12, 31)}
        )

    def test_properties(self):
        template = make_template(WEEKLY_MWF, duration=timedelta(minutes=45))

        self.assertEqual(template.frequency, 'weekly')
        self.assertEqual(template.weekday_names, ['Monday', 'Wednesday', 'Friday'])
        self.assertEqual(template.duration_minutes, 45)
        self.assertFalse(template.is_generated)
        self.assertIn('template', str(template))


class ScheduledEventManagerTests(TestCase):
    """Test custom manager methods."""

    def setUp(self):
        self.template = make_template(WEEKLY_MWF)
        make_template(DAILY, title='Paused', is_active=False)
        now = timezone.now()
        make_instance(self.template, date(2024, 11, 4))
        make_instance(self.template, date(2024, 11, 6), status='cancelled')
        ScheduledEvent.objects.create(
            title='Future one-off',
            start_time=now + timedelta(days=3),
            end_time=now + timedelta(days=3, hours=1)
        )

    def test_templates_and_instances(self):
        self.assertEqual(ScheduledEvent.objects.templates().count(), 2)
        self.assertEqual(ScheduledEvent.objects.active_templates().count(), 1)
        self.assertEqual(ScheduledEvent.objects.instances().count(), 3)

    def test_for_template_on_dates(self):
        on_dates = ScheduledEvent.objects.for_template(self.template.pk).on_dates(
            date(2024, 11, 5), date(2024, 11, 30)
        )
        self.assertEqual(on_dates.count(), 1)

    def test_scheduled_and_upcoming(self):
        self.assertEqual(ScheduledEvent.objects.instances().scheduled().count(), 2)
        self.assertEqual(ScheduledEvent.objects.instances().upcoming().count(), 1)


class TemplateAPITests(APITestCase):
    """Test template API endpoints."""

    def setUp(self):
        """Set up test client."""
        self.client = APIClient()
        self.start = tomorrow_at(10)

    def template_payload(self, **overrides):
        data = {
            'title': 'Lunchtime Yoga',
            'description': 'Mats provided',
            'resource': 'Coach Ana',
            'capacity': 16,
            'start_time': self.start.isoformat(),
            'end_time': (self.start + timedelta(hours=1)).isoformat(),
            'recurrence': {'frequency': 'daily'},
            'generate_instances': False,
        }
        data.update(overrides)
        return data

    def test_create_template(self):
        response = self.client.post('/api/templates/', self.template_payload(), format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['template']['title'], 'Lunchtime Yoga')
        self.assertEqual(response.data['template']['recurrence']['end_type'], 'never')
        self.assertEqual(response.data['instances_created'], 0)

    def test_create_template_with_generation(self):
        response = self.client.post(
            '/api/templates/',
            self.template_payload(generate_instances=True, horizon_weeks=1),
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIn(response.data['instances_created'], (6, 7))

    def test_create_template_invalid_recurrence(self):
        response = self.client.post(
            '/api/templates/',
            self.template_payload(recurrence={'frequency': 'weekly', 'days_of_week': []}),
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(ScheduledEvent.objects.exists())

    def test_create_template_horizon_too_large(self):
        response = self.client.post(
            '/api/templates/',
            self.template_payload(horizon_weeks=1000),
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_templates(self):
        template = make_template(WEEKLY_MWF, start_time=self.start)
        make_template(DAILY, start_time=self.start, title='Yoga')
        make_instance(template, self.start.date())

        response = self.client.get('/api/templates/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 2)

    def test_get_template_detail(self):
        template = make_template(WEEKLY_MWF, start_time=self.start)

        response = self.client.get(f'/api/templates/{template.pk}/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['weekday_names'], ['Monday', 'Wednesday', 'Friday'])

    def test_update_template(self):
        template = make_template(WEEKLY_MWF, start_time=self.start)

        response = self.client.patch(
            f'/api/templates/{template.pk}/',
            {'title': 'Updated Title'},
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['title'], 'Updated Title')

    def test_delete_template_deactivates(self):
        template = make_template(WEEKLY_MWF, start_time=self.start)

        response = self.client.delete(f'/api/templates/{template.pk}/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        template.refresh_from_db()
        self.assertFalse(template.is_active)

    def test_instance_is_not_a_template_resource(self):
        template = make_template(WEEKLY_MWF, start_time=self.start)
        instance = make_instance(template, self.start.date())

        response = self.client.get(f'/api/templates/{instance.pk}/')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class GenerateAPITests(APITestCase):
    """Test the generation endpoint."""

    def setUp(self):
        self.client = APIClient()
        self.template = make_template(DAILY, start_time=tomorrow_at(10))

    def test_generate(self):
        response = self.client.post(
            f'/api/templates/{self.template.pk}/generate/',
            {'horizon_weeks': 1},
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn(response.data['created_count'], (6, 7))
        self.assertEqual(len(response.data['created_instance_ids']), response.data['created_count'])

        response = self.client.post(
            f'/api/templates/{self.template.pk}/generate/',
            {'horizon_weeks': 1},
            format='json'
        )
        self.assertEqual(response.data['created_count'], 0)

    @override_settings(SCHEDULING={'DEFAULT_HORIZON_WEEKS': 2})
    def test_generate_default_horizon(self):
        response = self.client.post(f'/api/templates/{self.template.pk}/generate/', {}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn(response.data['created_count'], (13, 14))

    def test_generate_negative_horizon(self):
        response = self.client.post(
            f'/api/templates/{self.template.pk}/generate/',
            {'horizon_weeks': -1},
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    @override_settings(SCHEDULING={'MAX_HORIZON_WEEKS': 2})
    def test_generate_horizon_limit_follows_settings(self):
        url = f'/api/templates/{self.template.pk}/generate/'

        response = self.client.post(url, {'horizon_weeks': 3}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post(url, {'horizon_weeks': 2}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_generate_unknown_template(self):
        response = self.client.post(f'/api/templates/{uuid.uuid4()}/generate/', {}, format='json')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_generate_for_instance(self):
        instance = make_instance(self.template, tomorrow_at(10).date())

        response = self.client.post(f'/api/templates/{instance.pk}/generate/', {}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_generate_persistence_failure(self):
        with mock.patch(
            'scheduling.views.services.generate_instances',
            side_effect=PersistenceFailure('conflict')
        ):
            response = self.client.post(
                f'/api/templates/{self.template.pk}/generate/',
                {'horizon_weeks': 1},
                format='json'
            )

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)


class ExclusionAPITests(APITestCase):
    """Test the exclusion endpoints."""

    def setUp(self):
        self.client = APIClient()
        self.start = tomorrow_at(10)
        self.template = make_template(DAILY, start_time=self.start)
        services.generate_instances(self.template.pk, 1)

    def test_add_exclusion(self):
        excluded = (self.start + timedelta(days=2)).date()

        response = self.client.post(
            f'/api/templates/{self.template.pk}/exclusions/',
            {'date': excluded.isoformat(), 'reason': 'Studio maintenance'},
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['instances_cancelled'], 1)
        self.assertEqual(response.data['template']['excluded_dates'][0]['date'], excluded.isoformat())

    def test_remove_exclusion(self):
        excluded = (self.start + timedelta(days=2)).date()
        services.add_exclusion(self.template, excluded, 'Studio maintenance')

        response = self.client.delete(
            f'/api/templates/{self.template.pk}/exclusions/{excluded.isoformat()}/'
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['excluded_dates'], [])

    def test_remove_unknown_exclusion(self):
        response = self.client.delete(f'/api/templates/{self.template.pk}/exclusions/2030-01-01/')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_remove_exclusion_bad_date(self):
        response = self.client.delete(f'/api/templates/{self.template.pk}/exclusions/soon/')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class InstanceAPITests(APITestCase):
    """Test concrete event API endpoints."""

    def setUp(self):
        """Set up test client and data."""
        self.client = APIClient()
        self.template = make_template(WEEKLY_MWF)
        self.instance = make_instance(self.template, date(2024, 11, 4))

    def test_list_instances_in_range(self):
        make_instance(self.template, date(2024, 11, 6))

        response = self.client.get('/api/instances/', {
            'start': '2024-11-01T00:00:00Z',
            'end': '2024-11-30T23:59:59Z'
        })

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 2)
        self.assertEqual(response.data[0]['template_id'], str(self.template.pk))
        self.assertEqual(response.data[0]['occurrence_date'], '2024-11-04')

    def test_list_instances_invalid_range(self):
        response = self.client.get('/api/instances/', {
            'start': '2024-11-30T00:00:00Z',
            'end': '2024-11-01T00:00:00Z'
        })

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_get_instance_detail(self):
        response = self.client.get(f'/api/instances/{self.instance.pk}/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['is_generated'])

    def test_update_instance(self):
        response = self.client.patch(
            f'/api/instances/{self.instance.pk}/',
            {'title': 'Updated Spin', 'start_time': '2024-11-04T11:00:00Z'},
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['title'], 'Updated Spin')
        self.assertTrue(response.data['is_exception'])

    def test_cancel_instance(self):
        response = self.client.delete(f'/api/instances/{self.instance.pk}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        self.instance.refresh_from_db()
        self.assertEqual(self.instance.status, 'cancelled')

        response = self.client.delete(f'/api/instances/{self.instance.pk}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_complete_instance(self):
        response = self.client.post(f'/api/instances/{self.instance.pk}/complete/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        self.instance.refresh_from_db()
        self.assertEqual(self.instance.status, 'completed')

    def test_template_is_not_an_instance_resource(self):
        response = self.client.get(f'/api/instances/{self.template.pk}/')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class IntegrationTests(APITestCase):
    """End-to-end integration tests."""

    def setUp(self):
        """Set up test client."""
        self.client = APIClient()

    def test_complete_workflow(self):
        """Create a template, generate, exclude a date, regenerate, cancel."""
        start = tomorrow_at(7)
        response = self.client.post('/api/templates/', {
            'title': 'Bootcamp',
            'start_time': start.isoformat(),
            'end_time': (start + timedelta(minutes=50)).isoformat(),
            'recurrence': {'frequency': 'daily', 'end_type': 'occurrences', 'occurrences': 5},
            'generate_instances': True,
            'horizon_weeks': 2
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        template_id = response.data['template']['id']
        self.assertEqual(response.data['instances_created'], 5)

        excluded = (start + timedelta(days=1)).date()
        response = self.client.post(
            f'/api/templates/{template_id}/exclusions/',
            {'date': excluded.isoformat(), 'reason': 'Public holiday'},
            format='json'
        )
        self.assertEqual(response.data['instances_cancelled'], 1)

        response = self.client.get('/api/instances/', {
            'start': timezone.now().isoformat(),
            'end': (start + timedelta(weeks=3)).isoformat(),
            'template': template_id,
            'status': 'scheduled'
        })
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 4)

        response = self.client.post(
            f'/api/templates/{template_id}/generate/',
            {'horizon_weeks': 2},
            format='json'
        )
        self.assertEqual(response.data['created_count'], 5)

        response = self.client.get('/api/instances/', {
            'start': timezone.now().isoformat(),
            'end': (start + timedelta(weeks=3)).isoformat(),
            'template': template_id,
        })
        dates = [item['occurrence_date'] for item in response.data]
        self.assertEqual(len(dates), len(set(dates)))
        self.assertEqual(dates.count(excluded.isoformat()), 1)


class ManagementCommandTests(TestCase):
    """Test management commands."""

    def test_generate_instances_command(self):
        """Test the generate_instances management command."""
        make_template(DAILY, start_time=tomorrow_at(10))
        make_template(DAILY, start_time=tomorrow_at(10), title='Paused', is_active=False)

        out = StringIO()
        call_command('generate_instances', '--weeks=2', stdout=out)

        output = out.getvalue()
        self.assertIn('Successfully generated', output)
        self.assertIn('for 1 template(s)', output)
        self.assertGreater(ScheduledEvent.objects.instances().count(), 0)

    def test_generate_single_template(self):
        template = make_template(DAILY, start_time=tomorrow_at(10))

        out = StringIO()
        call_command('generate_instances', '--weeks=1', f'--template={template.pk}', stdout=out)

        self.assertIn(f'for template {template.pk}', out.getvalue())
        self.assertGreater(ScheduledEvent.objects.for_template(template.pk).count(), 0)

    def test_unknown_template(self):
        with self.assertRaises(CommandError):
            call_command('generate_instances', f'--template={uuid.uuid4()}', stdout=StringIO())

    def test_negative_weeks(self):
        with self.assertRaises(CommandError):
            call_command('generate_instances', '--weeks=-1', stdout=StringIO())
