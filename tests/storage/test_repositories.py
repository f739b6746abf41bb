"""Behaviour shared by every CampaignRepository backend.

Each test runs once against the in-memory backend and once against SQLite
through the parametrised ``repo`` fixture.
"""

from __future__ import annotations

import threading
from datetime import UTC, datetime, timedelta
from decimal import Decimal

from attribution.domain.models import (
    Campaign,
    CookieData,
    Event,
    EventMetadata,
    PostbackData,
    TemplateConfig,
)
from attribution.domain.types import EventType, StatName
from attribution.storage.base import CampaignRepository

T0 = datetime(2024, 1, 15, 12, 0, tzinfo=UTC)


def _event(campaign_id: str, event_type: EventType, at: datetime, **kwargs) -> Event:
    return Event(campaign_id=campaign_id, event_type=event_type, created_at=at, **kwargs)


# ---------------------------------------------------------------------------
# Campaign registry
# ---------------------------------------------------------------------------


class TestCampaignRegistry:
    def test_satisfies_protocol(self, repo: CampaignRepository) -> None:
        assert isinstance(repo, CampaignRepository)

    def test_create_and_find(self, repo: CampaignRepository, campaign: Campaign) -> None:
        found = repo.find_active_campaign(campaign.id)
        assert found is not None
        assert found.name == "Spring Push"
        assert found.casino == "Lucky Casino"
        assert found.template_config == campaign.template_config
        assert found.stats.cookie_sets == 0

    def test_ids_are_generated_and_distinct(
        self, repo: CampaignRepository, template_config: TemplateConfig
    ) -> None:
        a = repo.create_campaign("A", "K", template_config)
        b = repo.create_campaign("B", "K", template_config)
        assert a.id != b.id
        assert a.script_id != b.script_id
        assert len(a.script_id) == 32

    def test_find_by_script(self, repo: CampaignRepository, campaign: Campaign) -> None:
        found = repo.find_active_campaign_by_script(campaign.script_id)
        assert found is not None
        assert found.id == campaign.id
        assert repo.find_active_campaign_by_script("unknown") is None

    def test_deactivated_campaign_is_hidden_but_kept(
        self, repo: CampaignRepository, campaign: Campaign
    ) -> None:
        assert repo.deactivate_campaign(campaign.id) is True
        assert repo.find_active_campaign(campaign.id) is None
        assert repo.find_active_campaign_by_script(campaign.script_id) is None
        kept = repo.find_campaign(campaign.id)
        assert kept is not None
        assert kept.is_active is False

    def test_deactivate_twice_reports_nothing_changed(
        self, repo: CampaignRepository, campaign: Campaign
    ) -> None:
        repo.deactivate_campaign(campaign.id)
        assert repo.deactivate_campaign(campaign.id) is False
        assert repo.deactivate_campaign("missing") is False

    def test_list_active_newest_first(
        self, repo: CampaignRepository, template_config: TemplateConfig
    ) -> None:
        old = repo.create_campaign("Old", "K", template_config, created_at=T0 - timedelta(days=2))
        new = repo.create_campaign("New", "K", template_config, created_at=T0)
        gone = repo.create_campaign("Gone", "K", template_config, created_at=T0)
        repo.deactivate_campaign(gone.id)

        assert [c.id for c in repo.list_active_campaigns()] == [new.id, old.id]


# ---------------------------------------------------------------------------
# Counters
# ---------------------------------------------------------------------------


class TestIncrementStat:
    def test_increments_named_counter(self, repo: CampaignRepository, campaign: Campaign) -> None:
        repo.increment_stat(campaign.id, StatName.COOKIE_SETS)
        repo.increment_stat(campaign.id, StatName.COOKIE_SETS)
        repo.increment_stat(campaign.id, StatName.FTDS, amount=3)

        stats = repo.find_campaign(campaign.id).stats
        assert stats.cookie_sets == 2
        assert stats.registrations == 0
        assert stats.ftds == 3

    def test_concurrent_increments_are_not_lost(
        self, repo: CampaignRepository, campaign: Campaign
    ) -> None:
        def bump() -> None:
            for _ in range(50):
                repo.increment_stat(campaign.id, StatName.REGISTRATIONS)

        threads = [threading.Thread(target=bump) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert repo.find_campaign(campaign.id).stats.registrations == 400


# ---------------------------------------------------------------------------
# Event log
# ---------------------------------------------------------------------------


class TestEventLog:
    def test_insert_assigns_increasing_ids(
        self, repo: CampaignRepository, campaign: Campaign
    ) -> None:
        first = repo.insert_event(_event(campaign.id, EventType.COOKIE_SET, T0))
        second = repo.insert_event(_event(campaign.id, EventType.COOKIE_SET, T0))
        assert first.id is not None
        assert second.id > first.id

    def test_payloads_round_trip(self, repo: CampaignRepository, campaign: Campaign) -> None:
        repo.insert_event(
            _event(
                campaign.id,
                EventType.FTD,
                T0,
                user_agent="UA",
                referrer="https://partner.example/ref1",
                ip_address="203.0.113.9",
                cookie_data=CookieData(cookie_a="1", cookie_b="2"),
                postback_data=PostbackData(
                    player_id="p1", amount=Decimal("25.50"), currency="EUR", timestamp=T0
                ),
                metadata=EventMetadata(session_id="123", campaign_name="Spring Push"),
            )
        )
        [stored] = repo.query_events_in_window(campaign.id, T0, T0)
        assert stored.user_agent == "UA"
        assert stored.ip_address == "203.0.113.9"
        assert stored.cookie_data == CookieData(cookie_a="1", cookie_b="2")
        assert stored.postback_data.amount == Decimal("25.50")
        assert stored.postback_data.currency == "EUR"
        assert stored.metadata.session_id == "123"
        assert stored.created_at == T0

    def test_window_is_inclusive_and_ordered(
        self, repo: CampaignRepository, campaign: Campaign
    ) -> None:
        for offset in (3, 0, 1, 5):
            repo.insert_event(_event(campaign.id, EventType.COOKIE_SET, T0 + timedelta(hours=offset)))

        events = repo.query_events_in_window(campaign.id, T0, T0 + timedelta(hours=3))
        assert [e.created_at for e in events] == [
            T0,
            T0 + timedelta(hours=1),
            T0 + timedelta(hours=3),
        ]

    def test_window_filters_campaign_and_type(
        self, repo: CampaignRepository, campaign: Campaign, template_config: TemplateConfig
    ) -> None:
        other = repo.create_campaign("Other", "K", template_config)
        repo.insert_event(_event(campaign.id, EventType.COOKIE_SET, T0))
        repo.insert_event(_event(campaign.id, EventType.FTD, T0))
        repo.insert_event(_event(other.id, EventType.FTD, T0))

        mine = repo.query_events_in_window(campaign.id, T0, T0)
        assert len(mine) == 2
        ftds = repo.query_events_in_window(None, T0, T0, event_types=[EventType.FTD])
        assert {e.campaign_id for e in ftds} == {campaign.id, other.id}

    def test_count_events_reports_every_type(
        self, repo: CampaignRepository, campaign: Campaign
    ) -> None:
        repo.insert_event(_event(campaign.id, EventType.COOKIE_SET, T0))
        repo.insert_event(_event(campaign.id, EventType.COOKIE_SET, T0 + timedelta(days=2)))

        assert repo.count_events(campaign.id) == {
            EventType.COOKIE_SET: 2,
            EventType.REGISTRATION: 0,
            EventType.FTD: 0,
        }
        bounded = repo.count_events(None, since=T0 + timedelta(days=1))
        assert bounded[EventType.COOKIE_SET] == 1

    def test_count_events_on_empty_log(self, repo: CampaignRepository) -> None:
        assert repo.count_events(None) == dict.fromkeys(EventType, 0)

    def test_ping(self, repo: CampaignRepository) -> None:
        repo.ping()
