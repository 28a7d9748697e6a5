"""
Management command to generate instances from recurring templates.

This command should be run periodically (e.g., daily via cron) so that
every active template always has instances for the coming weeks.
"""

import logging

from django.core.management.base import BaseCommand, CommandError

from scheduling import services
from scheduling.exceptions import SchedulingError
from scheduling.types import default_horizon_weeks

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Generate instances from active recurring templates'

    def add_arguments(self, parser):
        parser.add_argument(
            '--weeks',
            type=int,
            default=None,
            help='Number of weeks ahead to generate instances (default: DEFAULT_HORIZON_WEEKS)'
        )
        parser.add_argument(
            '--template',
            default=None,
            help='Only generate instances for this template id'
        )

    def handle(self, *args, **options):
        weeks = options['weeks']
        if weeks is None:
            weeks = default_horizon_weeks()
        if weeks < 0:
            raise CommandError('--weeks must not be negative')

        template_id = options['template']
        if template_id:
            self._generate_one(template_id, weeks)
            return

        self.stdout.write(
            f'Generating instances for the next {weeks} week(s)...'
        )

        summary = services.generate_for_all_templates(horizon_weeks=weeks)

        for failed_id in summary.failed_template_ids:
            self.stderr.write(f'Generation failed for template {failed_id}')

        self.stdout.write(
            self.style.SUCCESS(
                f'Successfully generated {summary.created_count} new instance(s) '
                f'for {summary.templates_processed} template(s)'
            )
        )

    def _generate_one(self, template_id, weeks):
        try:
            result = services.generate_instances(template_id, weeks)
        except SchedulingError as exc:
            logger.error("Generation failed for template %s: %s", template_id, exc)
            raise CommandError(str(exc))

        self.stdout.write(
            self.style.SUCCESS(
                f'Successfully generated {result.created_count} new instance(s) '
                f'for template {template_id}'
            )
        )
