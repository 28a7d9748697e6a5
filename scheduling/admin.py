"""
Admin configuration for the scheduling app.
"""

from django import forms
from django.contrib import admin, messages

from .exceptions import SchedulingError
from .models import EventInstance, RecurringTemplate
from . import services


class RecurringTemplateForm(forms.ModelForm):
    """Marks every event saved through the template admin as a template."""

    class Meta:
        model = RecurringTemplate
        fields = '__all__'

    def clean(self):
        self.instance.is_recurring_template = True
        return super().clean()


@admin.register(RecurringTemplate)
class RecurringTemplateAdmin(admin.ModelAdmin):
    """Admin interface for recurring templates."""

    form = RecurringTemplateForm
    list_display = ['title', 'frequency', 'start_time', 'resource', 'location', 'is_active']
    list_filter = ['is_active', 'category', 'created_at']
    search_fields = ['title', 'description', 'resource']
    date_hierarchy = 'start_time'
    actions = ['generate_default_horizon']

    fieldsets = (
        ('Basic Information', {
            'fields': ('title', 'description', 'category', 'is_active')
        }),
        ('Copied to Instances', {
            'fields': ('location', 'resource', 'room', 'capacity', 'waitlist_capacity')
        }),
        ('Recurrence Rules', {
            'fields': ('start_time', 'end_time', 'recurrence', 'excluded_dates')
        }),
        ('Metadata', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    readonly_fields = ['created_at', 'updated_at']

    def get_queryset(self, request):
        return super().get_queryset(request).templates()

    @admin.action(description='Generate instances for the default horizon')
    def generate_default_horizon(self, request, queryset):
        created = 0
        for template in queryset:
            try:
                created += services.generate_instances(template.pk).created_count
            except SchedulingError as exc:
                self.message_user(request, f'{template}: {exc}', level=messages.ERROR)
        self.message_user(request, f'Generated {created} new instance(s).')


@admin.register(EventInstance)
class EventInstanceAdmin(admin.ModelAdmin):
    """Admin interface for concrete events."""

    list_display = ['title', 'start_time', 'end_time', 'status', 'is_exception', 'parent_template']
    list_filter = ['status', 'is_exception', 'created_at']
    search_fields = ['title', 'description', 'resource']
    date_hierarchy = 'start_time'

    fieldsets = (
        ('Basic Information', {
            'fields': ('title', 'description', 'category', 'parent_template', 'occurrence_date')
        }),
        ('Schedule', {
            'fields': ('start_time', 'end_time', 'location', 'resource', 'room')
        }),
        ('Capacity', {
            'fields': ('capacity', 'waitlist_capacity')
        }),
        ('Status', {
            'fields': ('status', 'is_exception')
        }),
        ('Metadata', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    readonly_fields = ['parent_template', 'occurrence_date', 'created_at', 'updated_at']

    def get_queryset(self, request):
        return super().get_queryset(request).instances()
