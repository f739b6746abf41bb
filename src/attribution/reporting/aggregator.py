"""Funnel reports built from the event log.

All bucketing happens in UTC.  Buckets only exist for days (or months) that
contain at least one event in the window, and are emitted oldest first.

The functions here are read-only and make no isolation promise: events that
arrive while a report is being built may or may not be included.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, time, timedelta
from decimal import Decimal
from typing import Any

import structlog

from attribution.domain.errors import NotFoundError, ValidationError
from attribution.domain.models import Event
from attribution.domain.types import EventType, ReportPeriod
from attribution.reporting.rates import conversion_rates
from attribution.storage.base import CampaignRepository

logger = structlog.get_logger()

DEFAULT_WINDOW_DAYS = 30
REALTIME_WINDOW_HOURS = 24


@dataclass
class FunnelCounts:
    """Running totals for one bucket, one campaign, or the grand total."""

    cookie_sets: int = 0
    registrations: int = 0
    ftds: int = 0
    total_amount: Decimal = field(default_factory=lambda: Decimal("0"))

    def add(self, event: Event) -> None:
        """Fold one event into the totals; only FTD amounts are summed."""
        if event.event_type is EventType.COOKIE_SET:
            self.cookie_sets += 1
        elif event.event_type is EventType.REGISTRATION:
            self.registrations += 1
        elif event.event_type is EventType.FTD:
            self.ftds += 1
            if event.postback_data is not None:
                self.total_amount += event.postback_data.amount

    def merge(self, other: FunnelCounts) -> None:
        self.cookie_sets += other.cookie_sets
        self.registrations += other.registrations
        self.ftds += other.ftds
        self.total_amount += other.total_amount

    def counts(self) -> dict[str, Any]:
        return {
            "cookieSets": self.cookie_sets,
            "registrations": self.registrations,
            "ftds": self.ftds,
            "totalAmount": self.total_amount,
        }

    def rates(self) -> dict[str, str]:
        return conversion_rates(self.cookie_sets, self.registrations, self.ftds)


# ---------------------------------------------------------------------------
# Window and bucket helpers
# ---------------------------------------------------------------------------


def parse_period(value: str | ReportPeriod | None) -> ReportPeriod:
    """Coerce a query-string period, defaulting to daily.

    Raises:
        ValidationError: If *value* is not ``daily`` or ``monthly``.
    """
    if value is None or value == "":
        return ReportPeriod.DAILY
    try:
        return ReportPeriod(value)
    except ValueError:
        raise ValidationError.for_field("period", "Period must be daily or monthly") from None


def parse_bound(
    value: str | datetime | None, field_name: str, *, end_of_day: bool
) -> datetime | None:
    """Parse a window bound given as an ISO-8601 date or datetime.

    A date-only value (``YYYY-MM-DD``) means the start of that day, or the
    last microsecond of it when *end_of_day* is set.  Naive values are UTC.

    Raises:
        ValidationError: If *value* is not ISO-8601.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            raise ValidationError.for_field(
                field_name, "Must be a valid ISO-8601 date"
            ) from None
        if len(value.strip()) == 10 and end_of_day:
            parsed = datetime.combine(parsed.date(), time.max)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def resolve_window(
    start: str | datetime | None,
    end: str | datetime | None,
    *,
    now: datetime | None = None,
    default_days: int = DEFAULT_WINDOW_DAYS,
) -> tuple[datetime, datetime]:
    """Resolve the report window, filling omitted bounds.

    ``end`` defaults to *now* and ``start`` to ``end - default_days``.

    Raises:
        ValidationError: If a bound is malformed or ``start`` is after ``end``.
    """
    now = now or datetime.now(tz=UTC)
    resolved_end = parse_bound(end, "endDate", end_of_day=True) or now
    resolved_start = parse_bound(start, "startDate", end_of_day=False) or (
        resolved_end - timedelta(days=default_days)
    )
    if resolved_start > resolved_end:
        raise ValidationError.for_field("startDate", "startDate must not be after endDate")
    return resolved_start, resolved_end


def bucket_key(ts: datetime, period: ReportPeriod) -> str:
    """Return the calendar bucket of *ts* in UTC: ``YYYY-MM-DD`` or ``YYYY-MM``."""
    ts = ts.astimezone(UTC)
    if period is ReportPeriod.MONTHLY:
        return ts.strftime("%Y-%m")
    return ts.strftime("%Y-%m-%d")


def bucket_events(events: list[Event], period: ReportPeriod) -> dict[str, FunnelCounts]:
    """Group *events* into calendar buckets, keys in ascending order."""
    buckets: dict[str, FunnelCounts] = {}
    for event in events:
        buckets.setdefault(bucket_key(event.created_at, period), FunnelCounts()).add(event)
    return dict(sorted(buckets.items()))


def _date_range(start: datetime, end: datetime) -> dict[str, str]:
    return {"start": start.isoformat(), "end": end.isoformat()}


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


def report_for_campaign(
    repo: CampaignRepository,
    campaign_id: str,
    period: str | ReportPeriod | None = None,
    start: str | datetime | None = None,
    end: str | datetime | None = None,
    *,
    now: datetime | None = None,
    default_days: int = DEFAULT_WINDOW_DAYS,
) -> dict[str, Any]:
    """Build a bucketed funnel report for one campaign.

    Args:
        repo: The campaign repository.
        campaign_id: The campaign to report on; must be active.
        period: ``daily`` (default) or ``monthly``.
        start: Window start; defaults to ``end - default_days``.
        end: Window end; defaults to *now*.
        now: Clock override for tests.
        default_days: Window length used when *start* is omitted.

    Returns:
        ``{campaign, period, dateRange, reportData, totals}``.

    Raises:
        ValidationError: If the period or a window bound is malformed.
        NotFoundError: If no active campaign has *campaign_id*.
    """
    resolved_period = parse_period(period)
    window_start, window_end = resolve_window(start, end, now=now, default_days=default_days)

    campaign = repo.find_active_campaign(campaign_id)
    if campaign is None:
        raise NotFoundError("Campaign not found")

    events = repo.query_events_in_window(campaign.id, window_start, window_end)
    buckets = bucket_events(events, resolved_period)

    totals = FunnelCounts()
    report_data: list[dict[str, Any]] = []
    for key, counts in buckets.items():
        totals.merge(counts)
        report_data.append({"date": key, **counts.counts(), "conversionRates": counts.rates()})

    logger.debug(
        "campaign_report_built",
        campaign_id=campaign.id,
        period=resolved_period.value,
        events=len(events),
        buckets=len(report_data),
    )

    return {
        "campaign": {"id": campaign.id, "name": campaign.name, "casino": campaign.casino},
        "period": resolved_period.value,
        "dateRange": _date_range(window_start, window_end),
        "reportData": report_data,
        "totals": {**totals.counts(), "conversionRates": totals.rates()},
    }


def overview_report(
    repo: CampaignRepository,
    period: str | ReportPeriod | None = None,
    start: str | datetime | None = None,
    end: str | datetime | None = None,
    *,
    now: datetime | None = None,
    default_days: int = DEFAULT_WINDOW_DAYS,
) -> dict[str, Any]:
    """Summarise every active campaign over the window, plus grand totals.

    Campaigns are listed newest first.  The grand totals use the same
    zero-safe rate rule as the per-campaign figures.
    """
    resolved_period = parse_period(period)
    window_start, window_end = resolve_window(start, end, now=now, default_days=default_days)

    grand = FunnelCounts()
    campaigns: list[dict[str, Any]] = []
    for campaign in repo.list_active_campaigns():
        counts = FunnelCounts()
        for event in repo.query_events_in_window(campaign.id, window_start, window_end):
            counts.add(event)
        grand.merge(counts)
        campaigns.append(
            {
                "id": campaign.id,
                "name": campaign.name,
                "casino": campaign.casino,
                "createdAt": campaign.created_at.isoformat(),
                "stats": counts.counts(),
                "conversionRates": counts.rates(),
            }
        )

    return {
        "period": resolved_period.value,
        "dateRange": _date_range(window_start, window_end),
        "campaigns": campaigns,
        "grandTotals": {**grand.counts(), "conversionRates": grand.rates()},
    }


def realtime_snapshot(
    repo: CampaignRepository,
    *,
    now: datetime | None = None,
    window_hours: int = REALTIME_WINDOW_HOURS,
) -> dict[str, Any]:
    """Count events of every type across all campaigns in the trailing window.

    All three counters are always present, zero when no events occurred.

    Returns:
        ``{period, stats {cookieSets, registrations, ftds}, timestamp}``.
    """
    now = now or datetime.now(tz=UTC)
    counts = repo.count_events(None, since=now - timedelta(hours=window_hours), until=now)
    return {
        "period": f"last_{window_hours}_hours",
        "stats": {
            "cookieSets": counts.get(EventType.COOKIE_SET, 0),
            "registrations": counts.get(EventType.REGISTRATION, 0),
            "ftds": counts.get(EventType.FTD, 0),
        },
        "timestamp": now.isoformat(),
    }
