"""
Serializers for the recurring schedule API.
"""

from rest_framework import serializers

from .exceptions import InvalidPattern
from .models import ScheduledEvent
from .recurrence import END_TYPE_CHOICES, FREQUENCY_CHOICES, pattern_from_dict
from .types import STATUS_CHOICES, default_horizon_weeks, max_horizon_weeks


class RecurrenceSerializer(serializers.Serializer):
    """Recurrence rule in its stored JSON form."""

    frequency = serializers.ChoiceField(choices=FREQUENCY_CHOICES)
    days_of_week = serializers.ListField(
        child=serializers.IntegerField(min_value=0, max_value=6),
        required=False,
        default=list
    )
    end_type = serializers.ChoiceField(choices=END_TYPE_CHOICES, default='never')
    end_date = serializers.DateField(required=False, allow_null=True, default=None)
    occurrences = serializers.IntegerField(
        min_value=1,
        required=False,
        allow_null=True,
        default=None
    )

    def validate(self, data):
        """Build the pattern so per-frequency rules are enforced."""
        try:
            pattern = pattern_from_dict(dict(data))
        except InvalidPattern as exc:
            raise serializers.ValidationError(str(exc))
        return pattern.to_dict()


class ExcludedDateSerializer(serializers.Serializer):
    """One excluded date of a template."""

    date = serializers.DateField()
    reason = serializers.CharField(required=False, allow_blank=True, default='')


def validate_horizon(value):
    """Check a generation horizon against the current MAX_HORIZON_WEEKS."""
    limit = max_horizon_weeks()
    if value > limit:
        raise serializers.ValidationError(
            f"Ensure this value is less than or equal to {limit}."
        )
    return value


class TemplateReadSerializer(serializers.ModelSerializer):
    """Serializer for reading/displaying templates (output)."""

    frequency = serializers.ReadOnlyField()
    weekday_names = serializers.ReadOnlyField()
    duration_minutes = serializers.ReadOnlyField()

    class Meta:
        model = ScheduledEvent
        fields = [
            'id',
            'title',
            'description',
            'category',
            'location',
            'resource',
            'room',
            'capacity',
            'waitlist_capacity',
            'start_time',
            'end_time',
            'duration_minutes',
            'recurrence',
            'frequency',
            'weekday_names',
            'excluded_dates',
            'is_active',
            'created_at',
            'updated_at',
        ]


class TemplateCreateSerializer(serializers.Serializer):
    """Serializer for creating a template with generation options."""

    title = serializers.CharField(max_length=200)
    description = serializers.CharField(required=False, allow_blank=True, default='')
    category = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    location = serializers.CharField(max_length=200, required=False, allow_blank=True, default='')
    resource = serializers.CharField(max_length=200, required=False, allow_blank=True, default='')
    room = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    capacity = serializers.IntegerField(min_value=0, default=20)
    waitlist_capacity = serializers.IntegerField(min_value=0, default=0)
    start_time = serializers.DateTimeField()
    end_time = serializers.DateTimeField()
    recurrence = RecurrenceSerializer()
    generate_instances = serializers.BooleanField(default=True)
    horizon_weeks = serializers.IntegerField(min_value=0, required=False)

    def validate_horizon_weeks(self, value):
        return validate_horizon(value)

    def validate(self, data):
        """Validate creation data."""
        if data['end_time'] <= data['start_time']:
            raise serializers.ValidationError({
                'end_time': 'End time must be after start time.'
            })

        data.setdefault('horizon_weeks', default_horizon_weeks())
        return data


class TemplateUpdateSerializer(serializers.Serializer):
    """Serializer for updating a template (input)."""

    title = serializers.CharField(max_length=200, required=False)
    description = serializers.CharField(required=False, allow_blank=True)
    category = serializers.CharField(max_length=100, required=False, allow_blank=True)
    location = serializers.CharField(max_length=200, required=False, allow_blank=True)
    resource = serializers.CharField(max_length=200, required=False, allow_blank=True)
    room = serializers.CharField(max_length=100, required=False, allow_blank=True)
    capacity = serializers.IntegerField(min_value=0, required=False)
    waitlist_capacity = serializers.IntegerField(min_value=0, required=False)
    start_time = serializers.DateTimeField(required=False)
    end_time = serializers.DateTimeField(required=False)
    recurrence = RecurrenceSerializer(required=False)
    is_active = serializers.BooleanField(required=False)
    update_future_instances = serializers.BooleanField(default=True)


class GenerateRequestSerializer(serializers.Serializer):
    """Serializer for a generation request."""

    horizon_weeks = serializers.IntegerField(min_value=0, required=False)

    def validate_horizon_weeks(self, value):
        return validate_horizon(value)

    def validate(self, data):
        data.setdefault('horizon_weeks', default_horizon_weeks())
        return data


class GenerationResultSerializer(serializers.Serializer):
    """Serializer for the outcome of a generation run."""

    created_count = serializers.IntegerField()
    created_instance_ids = serializers.ListField(child=serializers.CharField())


class InstanceReadSerializer(serializers.ModelSerializer):
    """Serializer for reading/displaying concrete events (output)."""

    template_id = serializers.UUIDField(
        source='parent_template_id',
        allow_null=True,
        read_only=True
    )
    is_generated = serializers.BooleanField(read_only=True)
    duration_minutes = serializers.ReadOnlyField()

    class Meta:
        model = ScheduledEvent
        fields = [
            'id',
            'title',
            'description',
            'category',
            'location',
            'resource',
            'room',
            'capacity',
            'waitlist_capacity',
            'template_id',
            'occurrence_date',
            'start_time',
            'end_time',
            'duration_minutes',
            'status',
            'is_exception',
            'is_generated',
            'created_at',
            'updated_at',
        ]


class InstanceUpdateSerializer(serializers.Serializer):
    """Serializer for updating a concrete event."""

    title = serializers.CharField(max_length=200, required=False)
    description = serializers.CharField(required=False, allow_blank=True)
    location = serializers.CharField(max_length=200, required=False, allow_blank=True)
    resource = serializers.CharField(max_length=200, required=False, allow_blank=True)
    room = serializers.CharField(max_length=100, required=False, allow_blank=True)
    capacity = serializers.IntegerField(min_value=0, required=False)
    start_time = serializers.DateTimeField(required=False)
    end_time = serializers.DateTimeField(required=False)


class DateRangeQuerySerializer(serializers.Serializer):
    """Serializer for date range query parameters."""

    start = serializers.DateTimeField(required=True)
    end = serializers.DateTimeField(required=True)
    status = serializers.ChoiceField(
        choices=STATUS_CHOICES,
        required=False,
        allow_null=True
    )
    template = serializers.UUIDField(required=False, allow_null=True)

    def validate(self, data):
        """Ensure start is before end."""
        if data['start'] >= data['end']:
            raise serializers.ValidationError(
                "Start datetime must be before end datetime."
            )
        return data
