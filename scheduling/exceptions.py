"""
Exceptions raised by the recurring schedule engine.

Services raise these; views translate them into HTTP responses.
"""


class SchedulingError(Exception):
    """Base class for scheduling errors."""


class TemplateNotFound(SchedulingError):
    """Raised when no template exists for the given id."""

    def __init__(self, template_id):
        self.template_id = template_id
        super().__init__(f"Template {template_id} does not exist")


class NotARecurringTemplate(SchedulingError):
    """Raised when the target event is a generated instance, not a template."""

    def __init__(self, event_id):
        self.event_id = event_id
        super().__init__(f"Event {event_id} is not a recurring template")


class InvalidPattern(SchedulingError, ValueError):
    """Raised for a malformed recurrence configuration or horizon."""


class PersistenceFailure(SchedulingError):
    """
    Raised when the batch write of generated instances fails.

    Nothing from the run has been committed, so the whole generation
    call can be retried.
    """
