"""Repository interface shared by every storage backend.

The services and the reporting aggregator only ever talk to this protocol, so
the concrete backend (SQLite or in-memory) is a deployment choice made in
``attribution.app.initialize_services``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol, runtime_checkable

from attribution.domain.models import Campaign, Event, TemplateConfig
from attribution.domain.types import EventType, StatName


@runtime_checkable
class CampaignRepository(Protocol):
    """Campaign registry plus append-only event log."""

    # -- Campaign registry ----------------------------------------------------

    def create_campaign(
        self,
        name: str,
        casino: str,
        template_config: TemplateConfig,
        *,
        postback_url: str | None = None,
        created_by: str = "system",
        created_at: datetime | None = None,
    ) -> Campaign: ...

    def deactivate_campaign(self, campaign_id: str) -> bool: ...

    def find_campaign(self, campaign_id: str) -> Campaign | None: ...

    def find_active_campaign(self, campaign_id: str) -> Campaign | None: ...

    def find_active_campaign_by_script(self, script_id: str) -> Campaign | None: ...

    def list_active_campaigns(self) -> list[Campaign]: ...

    def increment_stat(self, campaign_id: str, stat: StatName, amount: int = 1) -> None: ...

    # -- Event log --------------------------------------------------------------

    def insert_event(self, event: Event) -> Event: ...

    def query_events_in_window(
        self,
        campaign_id: str | None,
        start: datetime,
        end: datetime,
        event_types: list[EventType] | None = None,
    ) -> list[Event]: ...

    def count_events(
        self,
        campaign_id: str | None,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> dict[EventType, int]: ...

    # -- Lifecycle --------------------------------------------------------------

    def ping(self) -> None: ...

    def close(self) -> None: ...
