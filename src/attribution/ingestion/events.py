"""Ingestion of tracking events sent by the rendered browser script.

Events are appended as-is; there is no deduplication, so a script that fires
twice records two events and bumps ``cookieSets`` twice.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import structlog
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from attribution.domain.errors import FieldError, NotFoundError, ValidationError
from attribution.domain.models import CookieData, Event, EventMetadata
from attribution.domain.types import EventType, StatName
from attribution.observability.metrics import EVENTS_TRACKED
from attribution.storage.base import CampaignRepository

logger = structlog.get_logger()


def _coerce_id(value: Any) -> str:
    if isinstance(value, bool):
        return ""
    if isinstance(value, int):
        return str(value)
    return value.strip() if isinstance(value, str) else ""


def _optional_text(attrs: dict[str, Any], key: str, errors: list[FieldError]) -> str | None:
    value = attrs.get(key)
    if value is None or isinstance(value, str):
        return value
    errors.append(FieldError(key, f"{key} must be a string"))
    return None


def _optional_model(
    attrs: dict[str, Any], key: str, model: type[BaseModel], errors: list[FieldError]
) -> Any:
    value = attrs.get(key)
    if value is None:
        return None
    try:
        return model.model_validate(value)
    except PydanticValidationError:
        errors.append(FieldError(key, f"{key} must be an object of strings"))
        return None


def track_event(
    repo: CampaignRepository,
    campaign_id: Any,
    event_type: Any,
    attrs: dict[str, Any] | None = None,
    *,
    ip_address: str | None = None,
    now: datetime | None = None,
) -> Event:
    """Validate and record a tracking event.

    Args:
        repo: The campaign repository.
        campaign_id: Target campaign (``campaignId`` from the body).
        event_type: One of ``cookie_set``, ``registration``, ``ftd``.
        attrs: Remaining body fields: ``userAgent``, ``referrer``,
               ``cookieData`` and ``metadata``.
        ip_address: Client address as seen by the HTTP layer.
        now: Clock override for tests.

    Returns:
        The stored event with its assigned ID.

    Raises:
        ValidationError: If ``campaignId``/``eventType`` are missing or malformed.
        NotFoundError: If no active campaign matches ``campaignId``.
        PersistenceError: If the event or counter write fails.
    """
    attrs = attrs or {}
    errors: list[FieldError] = []

    cid = _coerce_id(campaign_id)
    if not cid:
        errors.append(FieldError("campaignId", "campaignId is required"))

    resolved_type: EventType | None = None
    if event_type is None or event_type == "":
        errors.append(FieldError("eventType", "eventType is required"))
    else:
        try:
            resolved_type = EventType(event_type)
        except ValueError:
            errors.append(
                FieldError("eventType", "eventType must be cookie_set, registration or ftd")
            )

    user_agent = _optional_text(attrs, "userAgent", errors)
    referrer = _optional_text(attrs, "referrer", errors)
    cookie_data = _optional_model(attrs, "cookieData", CookieData, errors)
    client_metadata = _optional_model(attrs, "metadata", EventMetadata, errors)

    if errors or resolved_type is None:
        raise ValidationError(errors, message="Missing required fields")

    campaign = repo.find_active_campaign(cid)
    if campaign is None:
        logger.info("track_event_unknown_campaign", campaign_id=cid)
        raise NotFoundError("Campaign not found or inactive")

    # The campaign's own name and casino always win over client-supplied values.
    metadata = (client_metadata or EventMetadata()).model_copy(
        update={"campaign_name": campaign.name, "casino": campaign.casino}
    )

    event = repo.insert_event(
        Event(
            campaign_id=campaign.id,
            event_type=resolved_type,
            created_at=now or datetime.now(tz=UTC),
            user_agent=user_agent,
            referrer=referrer,
            ip_address=ip_address,
            cookie_data=cookie_data,
            metadata=metadata,
        )
    )

    if resolved_type is EventType.COOKIE_SET:
        repo.increment_stat(campaign.id, StatName.COOKIE_SETS)

    EVENTS_TRACKED.labels(event_type=resolved_type.value).inc()
    logger.info(
        "event_tracked",
        campaign_id=campaign.id,
        event_type=resolved_type.value,
        event_id=event.id,
    )
    return event
