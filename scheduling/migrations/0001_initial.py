import uuid

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='ScheduledEvent',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('title', models.CharField(max_length=200)),
                ('description', models.TextField(blank=True, default='')),
                ('category', models.CharField(blank=True, default='', max_length=100)),
                ('location', models.CharField(blank=True, default='', max_length=200)),
                ('resource', models.CharField(blank=True, default='', help_text='Assigned instructor or resource', max_length=200)),
                ('room', models.CharField(blank=True, default='', max_length=100)),
                ('capacity', models.PositiveIntegerField(default=20)),
                ('waitlist_capacity', models.PositiveIntegerField(default=0)),
                ('start_time', models.DateTimeField(help_text='Start of the event; for templates, the first occurrence')),
                ('end_time', models.DateTimeField()),
                ('is_recurring_template', models.BooleanField(default=False)),
                ('recurrence', models.JSONField(blank=True, help_text='Recurrence rule (templates only)', null=True)),
                ('excluded_dates', models.JSONField(blank=True, default=list, help_text='Dates on which no instance is generated (templates only)')),
                ('is_active', models.BooleanField(default=True, help_text='Whether periodic generation runs for this template')),
                ('occurrence_date', models.DateField(blank=True, help_text='Calendar date the instance was generated for', null=True)),
                ('status', models.CharField(choices=[('scheduled', 'Scheduled'), ('cancelled', 'Cancelled'), ('completed', 'Completed')], default='scheduled', max_length=20)),
                ('is_exception', models.BooleanField(default=False, help_text='True if this instance was modified from its template')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('parent_template', models.ForeignKey(blank=True, help_text='Template this instance was generated from', limit_choices_to={'is_recurring_template': True}, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='generated_instances', to='scheduling.scheduledevent')),
            ],
            options={
                'ordering': ['start_time'],
            },
        ),
        migrations.AddIndex(
            model_name='scheduledevent',
            index=models.Index(fields=['start_time', 'status'], name='scheduling__start_t_4f1c2a_idx'),
        ),
        migrations.AddIndex(
            model_name='scheduledevent',
            index=models.Index(fields=['parent_template', 'occurrence_date'], name='scheduling__parent__9b7e31_idx'),
        ),
        migrations.AddIndex(
            model_name='scheduledevent',
            index=models.Index(fields=['is_recurring_template', 'is_active'], name='scheduling__is_recu_2d86b0_idx'),
        ),
        migrations.AddConstraint(
            model_name='scheduledevent',
            constraint=models.UniqueConstraint(condition=models.Q(('parent_template__isnull', False)), fields=('parent_template', 'occurrence_date'), name='unique_instance_per_template_date'),
        ),
        migrations.CreateModel(
            name='EventInstance',
            fields=[],
            options={
                'verbose_name': 'event instance',
                'proxy': True,
                'indexes': [],
                'constraints': [],
            },
            bases=('scheduling.scheduledevent',),
        ),
        migrations.CreateModel(
            name='RecurringTemplate',
            fields=[],
            options={
                'verbose_name': 'recurring template',
                'proxy': True,
                'indexes': [],
                'constraints': [],
            },
            bases=('scheduling.scheduledevent',),
        ),
    ]
