"""Domain types, models, and errors for the attribution service."""

from attribution.domain.errors import (
    AttributionError,
    FieldError,
    InvalidTransitionError,
    NotFoundError,
    PersistenceError,
    UnsupportedTemplateError,
    ValidationError,
)
from attribution.domain.models import (
    Campaign,
    CampaignStats,
    CookieData,
    CookieSpec,
    Event,
    EventMetadata,
    PostbackData,
    TemplateConfig,
)
from attribution.domain.types import (
    CONVERSION_EVENTS,
    EVENT_STATS,
    EventType,
    ReportPeriod,
    StatName,
    TemplateType,
    stat_for_event,
)

__all__ = [
    "CONVERSION_EVENTS",
    "EVENT_STATS",
    "AttributionError",
    "Campaign",
    "CampaignStats",
    "CookieData",
    "CookieSpec",
    "Event",
    "EventMetadata",
    "EventType",
    "FieldError",
    "InvalidTransitionError",
    "NotFoundError",
    "PersistenceError",
    "PostbackData",
    "ReportPeriod",
    "StatName",
    "TemplateConfig",
    "TemplateType",
    "UnsupportedTemplateError",
    "ValidationError",
    "stat_for_event",
]
