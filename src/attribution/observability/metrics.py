"""Prometheus metrics instrumentation for the attribution service.

Provides:
- ``setup_metrics(app)``: Attach prometheus-fastapi-instrumentator to a FastAPI app,
  exposing ``/metrics`` with HTTP request duration/count plus the business counters.
- ``EVENTS_TRACKED``: Counter of events accepted by the ingestion endpoint, by type.
- ``POSTBACKS_RECEIVED``: Counter of conversions attributed from postbacks, by type.
- ``SCRIPTS_SERVED``: Counter of tracking scripts rendered.

Business metrics are incremented by the services after a successful write.
"""

from __future__ import annotations

from fastapi import FastAPI
from prometheus_client import Counter
from prometheus_fastapi_instrumentator import Instrumentator

EVENTS_TRACKED: Counter = Counter(
    "attribution_events_tracked_total",
    "Events accepted by the tracking endpoint",
    ["event_type"],
)

POSTBACKS_RECEIVED: Counter = Counter(
    "attribution_postbacks_total",
    "Conversions recorded from casino postbacks",
    ["event_type"],
)

SCRIPTS_SERVED: Counter = Counter(
    "attribution_scripts_served_total",
    "Tracking scripts rendered and served",
)


def setup_metrics(app: FastAPI) -> None:
    """Instrument *app* with Prometheus HTTP metrics and expose ``/metrics``.

    Excludes health/ready/metrics endpoints from instrumentation to avoid
    noise in dashboards.

    Args:
        app: The FastAPI application to instrument.
    """
    Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        excluded_handlers=["/health", "/ready", "/metrics"],
    ).instrument(app).expose(app, include_in_schema=False, should_gzip=True)
