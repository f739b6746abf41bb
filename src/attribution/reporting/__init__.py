"""Reporting aggregator: bucketed funnels, overview, and real-time snapshot."""

from attribution.reporting.aggregator import (
    FunnelCounts,
    bucket_events,
    bucket_key,
    overview_report,
    parse_bound,
    parse_period,
    realtime_snapshot,
    report_for_campaign,
    resolve_window,
)
from attribution.reporting.rates import conversion_rate, conversion_rates

__all__ = [
    "FunnelCounts",
    "bucket_events",
    "bucket_key",
    "conversion_rate",
    "conversion_rates",
    "overview_report",
    "parse_bound",
    "parse_period",
    "realtime_snapshot",
    "report_for_campaign",
    "resolve_window",
]
