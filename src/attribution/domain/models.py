"""Pydantic v2 models for campaigns, template configuration, and events.

Field names are snake_case in Python and camelCase on the wire
(``model_dump(by_alias=True)``), matching the payloads the tracking script
and casino postbacks send.  Monetary values are ``Decimal`` end to end.
"""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from attribution.domain.types import EventType, StatName, TemplateType


class _WireModel(BaseModel):
    """Base for models exchanged as camelCase JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


def _as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes and normalise aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class CookieSpec(_WireModel):
    """A cookie the tracking script plants on the visitor's browser."""

    name: str
    value: str
    domain: str
    expiry: datetime

    @field_validator("name", "value", "domain")
    @classmethod
    def must_not_be_empty(cls, v: str) -> str:
        """Ensure cookie fields are not empty or whitespace-only."""
        if not v.strip():
            raise ValueError("field must not be empty")
        return v

    @field_validator("expiry")
    @classmethod
    def expiry_in_utc(cls, v: datetime) -> datetime:
        return _as_utc(v)


class TemplateConfig(_WireModel):
    """Everything a script template needs to decide whether to plant cookies.

    ``template_type`` is kept as a plain string so that campaigns carrying a
    template the synthesizer does not know about can still be loaded and then
    rejected at render time.
    """

    template_type: str = TemplateType.MYAFFILIATES.value
    cookie_a: CookieSpec
    cookie_b: CookieSpec
    referrer_regex: str
    cookie_a_regex: str = Field(alias="cookieARegex")

    @field_validator("referrer_regex", "cookie_a_regex")
    @classmethod
    def regex_must_not_be_empty(cls, v: str) -> str:
        """Ensure both gating regexes are present."""
        if not v:
            raise ValueError("regex must not be empty")
        return v


class CampaignStats(_WireModel):
    """Derived counters approximating the event log for one campaign."""

    cookie_sets: int = 0
    registrations: int = 0
    ftds: int = 0

    def get(self, stat: StatName) -> int:
        """Return the counter named by *stat*."""
        return {
            StatName.COOKIE_SETS: self.cookie_sets,
            StatName.REGISTRATIONS: self.registrations,
            StatName.FTDS: self.ftds,
        }[stat]


class Campaign(_WireModel):
    """A campaign as read from the registry."""

    id: str
    name: str
    casino: str
    is_active: bool = True
    template_config: TemplateConfig
    stats: CampaignStats = CampaignStats()
    script_id: str
    postback_url: str | None = None
    created_by: str = "system"
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def created_at_in_utc(cls, v: datetime) -> datetime:
        return _as_utc(v)


class CookieData(_WireModel):
    """Cookie values echoed back by the tracking script."""

    cookie_a: str | None = None
    cookie_b: str | None = None


class PostbackData(_WireModel):
    """Conversion details reported by a casino postback."""

    player_id: str
    amount: Decimal = Decimal("0")
    currency: str = "USD"
    timestamp: datetime

    @field_validator("amount", mode="before")
    @classmethod
    def float_through_str(cls, v: object) -> object:
        """Convert floats via ``str`` so 10.1 stays 10.1 rather than its binary expansion."""
        if isinstance(v, float):
            return Decimal(str(v))
        return v

    @field_validator("timestamp")
    @classmethod
    def timestamp_in_utc(cls, v: datetime) -> datetime:
        return _as_utc(v)


class EventMetadata(_WireModel):
    """Context attached to every event."""

    session_id: str | None = None
    campaign_name: str | None = None
    casino: str | None = None


class Event(_WireModel):
    """An immutable entry in the event log.

    ``id`` is ``None`` until the repository assigns one on insert.
    """

    id: int | None = None
    campaign_id: str
    event_type: EventType
    created_at: datetime
    user_agent: str | None = None
    referrer: str | None = None
    ip_address: str | None = None
    cookie_data: CookieData | None = None
    postback_data: PostbackData | None = None
    metadata: EventMetadata = EventMetadata()

    @field_validator("created_at")
    @classmethod
    def created_at_in_utc(cls, v: datetime) -> datetime:
        return _as_utc(v)
