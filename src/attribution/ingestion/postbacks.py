"""Attribution of casino conversion postbacks to campaigns.

A postback carries a ``registration`` or ``ftd`` for one player.  It is
recorded as an event and bumps the matching campaign counter.  There is no
idempotency key: a casino replaying the same postback is counted twice.
"""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from attribution.domain.errors import FieldError, NotFoundError, ValidationError
from attribution.domain.models import Campaign, Event, EventMetadata, PostbackData
from attribution.domain.types import CONVERSION_EVENTS, EventType, stat_for_event
from attribution.observability.metrics import POSTBACKS_RECEIVED
from attribution.storage.base import CampaignRepository

logger = structlog.get_logger()

DEFAULT_CURRENCY = "USD"


class PostbackRequest(BaseModel):
    """Body of ``POST /postbacks/{campaignId}``.

    Every field is declared optional so that all violations are collected in
    one pass rather than stopping at the first missing one.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        validate_default=True,
        extra="ignore",
    )

    event_type: Any = None
    player_id: Any = None
    amount: Any = None
    currency: Any = None
    timestamp: Any = None

    @field_validator("event_type")
    @classmethod
    def must_be_conversion(cls, v: Any) -> EventType:
        if not isinstance(v, str) or v not in {e.value for e in CONVERSION_EVENTS}:
            raise ValueError("Event type must be registration or ftd")
        return EventType(v)

    @field_validator("player_id")
    @classmethod
    def player_id_required(cls, v: Any) -> str:
        if isinstance(v, int) and not isinstance(v, bool):
            v = str(v)
        if not isinstance(v, str) or not v.strip():
            raise ValueError("Player ID is required")
        return v

    @field_validator("amount")
    @classmethod
    def amount_numeric(cls, v: Any) -> Decimal:
        if v is None:
            return Decimal("0")
        if isinstance(v, bool) or not isinstance(v, int | float | str):
            raise ValueError("Amount must be numeric")
        try:
            amount = Decimal(str(v).strip())
        except InvalidOperation:
            raise ValueError("Amount must be numeric") from None
        if not amount.is_finite():
            raise ValueError("Amount must be numeric")
        return amount

    @field_validator("currency")
    @classmethod
    def currency_three_chars(cls, v: Any) -> str:
        if v is None:
            return DEFAULT_CURRENCY
        if not isinstance(v, str) or len(v) != 3:
            raise ValueError("Currency must be 3 characters")
        return v

    @field_validator("timestamp")
    @classmethod
    def timestamp_iso8601(cls, v: Any) -> datetime | None:
        if v is None:
            return None
        if not isinstance(v, str):
            raise ValueError("Timestamp must be valid ISO date")
        try:
            parsed = datetime.fromisoformat(v)
        except ValueError:
            raise ValueError("Timestamp must be valid ISO date") from None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=UTC)
        return parsed


def _wire_name(loc: str) -> str:
    # Errors raised while validating defaults are located by field name, not alias.
    field = PostbackRequest.model_fields.get(loc)
    if field is not None and field.alias:
        return field.alias
    return loc


def parse_postback(body: Any) -> PostbackRequest:
    """Validate a raw postback body.

    Raises:
        ValidationError: Listing every violated field.
    """
    if not isinstance(body, dict):
        raise ValidationError.for_field("body", "Request body must be a JSON object")
    try:
        return PostbackRequest.model_validate(body)
    except PydanticValidationError as exc:
        details = []
        for err in exc.errors():
            field = _wire_name(str(err["loc"][0])) if err["loc"] else "body"
            cause = err.get("ctx", {}).get("error")
            details.append(FieldError(field, str(cause) if cause else err["msg"]))
        raise ValidationError(details) from None


def attribute_conversion(
    repo: CampaignRepository,
    campaign_id: str,
    body: Any,
    *,
    ip_address: str | None = None,
    user_agent: str | None = None,
    referrer: str | None = None,
    now: datetime | None = None,
) -> Event:
    """Validate a postback, record it, and increment the conversion counter.

    Args:
        repo: The campaign repository.
        campaign_id: Campaign the conversion is attributed to.
        body: Raw JSON body (``eventType``, ``playerId``, ``amount?``,
              ``currency?``, ``timestamp?``).
        ip_address: Address of the calling casino system.
        user_agent: ``User-Agent`` header of the calling system.
        referrer: ``Referer`` header of the calling system, if any.
        now: Clock override for tests; also the default conversion time.

    Returns:
        The stored event with its assigned ID.

    Raises:
        ValidationError: If the body violates any field rule.
        NotFoundError: If the campaign is absent or inactive.
        PersistenceError: If the event or counter write fails.
    """
    request = parse_postback(body)
    received_at = now or datetime.now(tz=UTC)

    campaign = repo.find_active_campaign(campaign_id)
    if campaign is None:
        logger.info("postback_unknown_campaign", campaign_id=campaign_id)
        raise NotFoundError("Campaign not found")

    event = repo.insert_event(
        Event(
            campaign_id=campaign.id,
            event_type=request.event_type,
            created_at=received_at,
            ip_address=ip_address,
            user_agent=user_agent,
            referrer=referrer,
            postback_data=PostbackData(
                player_id=request.player_id,
                amount=request.amount,
                currency=request.currency,
                timestamp=request.timestamp or received_at,
            ),
            metadata=EventMetadata(campaign_name=campaign.name, casino=campaign.casino),
        )
    )

    repo.increment_stat(campaign.id, stat_for_event(request.event_type))

    POSTBACKS_RECEIVED.labels(event_type=request.event_type.value).inc()
    logger.info(
        "postback_received",
        campaign_id=campaign.id,
        campaign=campaign.name,
        event_type=request.event_type.value,
        player_id=request.player_id,
        amount=str(request.amount),
        currency=request.currency,
        event_id=event.id,
    )
    return event


def send_test_postback(
    repo: CampaignRepository,
    campaign_id: str,
    *,
    ip_address: str | None = None,
    user_agent: str | None = None,
    referrer: str | None = None,
    now: datetime | None = None,
) -> Event:
    """Push a synthetic registration through the normal postback path.

    Used by operators to check a campaign's conversion wiring end to end.
    """
    received_at = now or datetime.now(tz=UTC)
    body = {
        "eventType": EventType.REGISTRATION.value,
        "playerId": f"test_player_{int(received_at.timestamp() * 1000)}",
        "amount": 100,
        "currency": DEFAULT_CURRENCY,
        "timestamp": received_at.isoformat(),
    }
    return attribute_conversion(
        repo,
        campaign_id,
        body,
        ip_address=ip_address,
        user_agent=user_agent,
        referrer=referrer,
        now=received_at,
    )


def postback_url(campaign: Campaign, api_base_url: str) -> str:
    """Return the URL a casino should call to report conversions for *campaign*."""
    return f"{api_base_url.rstrip('/')}/api/postbacks/{campaign.id}"


def postback_info(repo: CampaignRepository, campaign_id: str, api_base_url: str) -> dict[str, str]:
    """Describe where and for what a casino should send postbacks.

    Raises:
        NotFoundError: If the campaign is absent or inactive.
    """
    campaign = repo.find_active_campaign(campaign_id)
    if campaign is None:
        raise NotFoundError("Campaign not found")
    return {
        "postbackUrl": postback_url(campaign, api_base_url),
        "campaignName": campaign.name,
        "casino": campaign.casino,
    }
