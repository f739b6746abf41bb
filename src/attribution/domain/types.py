"""Domain enumerations and event-type to counter mappings."""

from enum import StrEnum


class EventType(StrEnum):
    """Kinds of records stored in the append-only event log."""

    COOKIE_SET = "cookie_set"
    REGISTRATION = "registration"
    FTD = "ftd"


class StatName(StrEnum):
    """Derived counters kept on each campaign record."""

    COOKIE_SETS = "cookieSets"
    REGISTRATIONS = "registrations"
    FTDS = "ftds"


class TemplateType(StrEnum):
    """Script templates the synthesizer knows how to render."""

    MYAFFILIATES = "Myaffiliates"


class ReportPeriod(StrEnum):
    """Bucket granularity for funnel reports."""

    DAILY = "daily"
    MONTHLY = "monthly"


# Every event type feeds exactly one campaign counter
EVENT_STATS: dict[EventType, StatName] = {
    EventType.COOKIE_SET: StatName.COOKIE_SETS,
    EventType.REGISTRATION: StatName.REGISTRATIONS,
    EventType.FTD: StatName.FTDS,
}

# Event types a casino postback may carry
CONVERSION_EVENTS: frozenset[EventType] = frozenset({EventType.REGISTRATION, EventType.FTD})


def stat_for_event(event_type: EventType) -> StatName:
    """Look up which campaign counter an event type increments.

    Args:
        event_type: The event type to look up.

    Returns:
        The counter incremented when an event of this type is recorded.
    """
    return EVENT_STATS[event_type]
