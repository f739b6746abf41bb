"""Event ingestion and conversion attribution services."""

from attribution.ingestion.events import track_event
from attribution.ingestion.postbacks import (
    PostbackRequest,
    attribute_conversion,
    parse_postback,
    postback_info,
    postback_url,
    send_test_postback,
)

__all__ = [
    "PostbackRequest",
    "attribute_conversion",
    "parse_postback",
    "postback_info",
    "postback_url",
    "send_test_postback",
    "track_event",
]
