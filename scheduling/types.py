"""
Data types and constants for the recurring schedule.

This module contains:
- DTOs (Data Transfer Objects) for service layer operations
- Constants used across the application
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from datetime import datetime

from django.conf import settings


STATUS_SCHEDULED = 'scheduled'
STATUS_CANCELLED = 'cancelled'
STATUS_COMPLETED = 'completed'

STATUS_CHOICES = [
    (STATUS_SCHEDULED, 'Scheduled'),
    (STATUS_CANCELLED, 'Cancelled'),
    (STATUS_COMPLETED, 'Completed'),
]

# Fields copied from a template onto every instance generated from it.
PAYLOAD_FIELDS = (
    'title',
    'description',
    'category',
    'location',
    'resource',
    'room',
    'capacity',
    'waitlist_capacity',
)


def scheduling_setting(name: str, default: Any) -> Any:
    """Read a key from the SCHEDULING settings dict."""
    return getattr(settings, 'SCHEDULING', {}).get(name, default)


def default_horizon_weeks() -> int:
    return scheduling_setting('DEFAULT_HORIZON_WEEKS', 4)


def max_horizon_weeks() -> int:
    return scheduling_setting('MAX_HORIZON_WEEKS', 52)


@dataclass
class GenerationResult:
    """Outcome of one generation run."""
    created_count: int = 0
    created_instance_ids: List[str] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {
            'created_count': self.created_count,
            'created_instance_ids': list(self.created_instance_ids),
        }


@dataclass
class GenerationSummary:
    """Outcome of a generation run over all active templates."""
    created_count: int = 0
    templates_processed: int = 0
    failed_template_ids: List[str] = field(default_factory=list)


@dataclass
class TemplateUpdateData:
    """DTO for template update operations."""
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    location: Optional[str] = None
    resource: Optional[str] = None
    room: Optional[str] = None
    capacity: Optional[int] = None
    waitlist_capacity: Optional[int] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    recurrence: Optional[Dict[str, Any]] = None
    is_active: Optional[bool] = None


@dataclass
class InstanceUpdateData:
    """DTO for instance update operations."""
    title: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    resource: Optional[str] = None
    room: Optional[str] = None
    capacity: Optional[int] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
