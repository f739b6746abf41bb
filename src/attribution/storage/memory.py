"""In-process document-style backend.

Keeps campaigns and events as pydantic models in plain containers under a
single lock.  Intended for tests and throwaway local runs; state is lost when
the process exits.
"""

from __future__ import annotations

import secrets
import threading
import uuid
from datetime import UTC, datetime

from attribution.domain.models import Campaign, Event, TemplateConfig
from attribution.domain.types import EventType, StatName

_STAT_FIELDS: dict[StatName, str] = {
    StatName.COOKIE_SETS: "cookie_sets",
    StatName.REGISTRATIONS: "registrations",
    StatName.FTDS: "ftds",
}


class InMemoryRepository:
    """``CampaignRepository`` implementation backed by dicts and a list."""

    def __init__(self) -> None:
        self._campaigns: dict[str, Campaign] = {}
        self._events: list[Event] = []
        self._next_event_id = 1
        self._lock = threading.Lock()

    def create_campaign(
        self,
        name: str,
        casino: str,
        template_config: TemplateConfig,
        *,
        postback_url: str | None = None,
        created_by: str = "system",
        created_at: datetime | None = None,
    ) -> Campaign:
        campaign = Campaign(
            id=uuid.uuid4().hex,
            name=name,
            casino=casino,
            template_config=template_config,
            script_id=secrets.token_hex(16),
            postback_url=postback_url,
            created_by=created_by,
            created_at=created_at or datetime.now(tz=UTC),
        )
        with self._lock:
            self._campaigns[campaign.id] = campaign
        return campaign

    def deactivate_campaign(self, campaign_id: str) -> bool:
        with self._lock:
            campaign = self._campaigns.get(campaign_id)
            if campaign is None or not campaign.is_active:
                return False
            self._campaigns[campaign_id] = campaign.model_copy(update={"is_active": False})
            return True

    def find_campaign(self, campaign_id: str) -> Campaign | None:
        with self._lock:
            return self._campaigns.get(campaign_id)

    def find_active_campaign(self, campaign_id: str) -> Campaign | None:
        campaign = self.find_campaign(campaign_id)
        if campaign is None or not campaign.is_active:
            return None
        return campaign

    def find_active_campaign_by_script(self, script_id: str) -> Campaign | None:
        with self._lock:
            for campaign in self._campaigns.values():
                if campaign.script_id == script_id and campaign.is_active:
                    return campaign
        return None

    def list_active_campaigns(self) -> list[Campaign]:
        with self._lock:
            active = [c for c in self._campaigns.values() if c.is_active]
        return sorted(active, key=lambda c: c.created_at, reverse=True)

    def increment_stat(self, campaign_id: str, stat: StatName, amount: int = 1) -> None:
        # Read and replace happen under the same lock, so increments never interleave.
        with self._lock:
            campaign = self._campaigns.get(campaign_id)
            if campaign is None:
                return
            field = _STAT_FIELDS[stat]
            stats = campaign.stats.model_copy(
                update={field: getattr(campaign.stats, field) + amount}
            )
            self._campaigns[campaign_id] = campaign.model_copy(update={"stats": stats})

    def insert_event(self, event: Event) -> Event:
        with self._lock:
            stored = event.model_copy(update={"id": self._next_event_id})
            self._next_event_id += 1
            self._events.append(stored)
        return stored

    def query_events_in_window(
        self,
        campaign_id: str | None,
        start: datetime,
        end: datetime,
        event_types: list[EventType] | None = None,
    ) -> list[Event]:
        with self._lock:
            matches = [
                e
                for e in self._events
                if (campaign_id is None or e.campaign_id == campaign_id)
                and start <= e.created_at <= end
                and (not event_types or e.event_type in event_types)
            ]
        return sorted(matches, key=lambda e: (e.created_at, e.id or 0))

    def count_events(
        self,
        campaign_id: str | None,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> dict[EventType, int]:
        counts = dict.fromkeys(EventType, 0)
        with self._lock:
            for e in self._events:
                if campaign_id is not None and e.campaign_id != campaign_id:
                    continue
                if since is not None and e.created_at < since:
                    continue
                if until is not None and e.created_at > until:
                    continue
                counts[e.event_type] += 1
        return counts

    def ping(self) -> None:
        return None

    def close(self) -> None:
        return None
