"""Tests for tracking-event ingestion."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from attribution.domain.errors import NotFoundError, ValidationError
from attribution.domain.models import Campaign
from attribution.domain.types import EventType
from attribution.ingestion.events import track_event
from attribution.storage.base import CampaignRepository

NOW = datetime(2024, 1, 15, 9, 30, tzinfo=UTC)


def _fields(exc: ValidationError) -> list[str]:
    return [d.field for d in exc.details]


class TestValidation:
    def test_missing_campaign_and_type_reported_together(
        self, repo: CampaignRepository
    ) -> None:
        with pytest.raises(ValidationError) as exc_info:
            track_event(repo, None, None)
        assert exc_info.value.message == "Missing required fields"
        assert _fields(exc_info.value) == ["campaignId", "eventType"]

    def test_blank_campaign_id(self, repo: CampaignRepository) -> None:
        with pytest.raises(ValidationError) as exc_info:
            track_event(repo, "   ", "cookie_set")
        assert _fields(exc_info.value) == ["campaignId"]

    def test_empty_event_type_with_known_campaign(
        self, repo: CampaignRepository, campaign: Campaign
    ) -> None:
        with pytest.raises(ValidationError) as exc_info:
            track_event(repo, campaign.id, "")
        assert _fields(exc_info.value) == ["eventType"]

    def test_unknown_event_type(self, repo: CampaignRepository, campaign: Campaign) -> None:
        with pytest.raises(ValidationError) as exc_info:
            track_event(repo, campaign.id, "page_view")
        assert _fields(exc_info.value) == ["eventType"]

    def test_non_string_referrer(self, repo: CampaignRepository, campaign: Campaign) -> None:
        with pytest.raises(ValidationError) as exc_info:
            track_event(repo, campaign.id, "cookie_set", {"referrer": 42})
        assert _fields(exc_info.value) == ["referrer"]

    def test_malformed_cookie_data(self, repo: CampaignRepository, campaign: Campaign) -> None:
        with pytest.raises(ValidationError) as exc_info:
            track_event(repo, campaign.id, "cookie_set", {"cookieData": "a=1"})
        assert _fields(exc_info.value) == ["cookieData"]

    def test_nothing_written_on_validation_failure(
        self, repo: CampaignRepository, campaign: Campaign
    ) -> None:
        with pytest.raises(ValidationError):
            track_event(repo, campaign.id, "bogus")
        assert repo.count_events(campaign.id) == dict.fromkeys(EventType, 0)


class TestTracking:
    def test_unknown_campaign(self, repo: CampaignRepository) -> None:
        with pytest.raises(NotFoundError, match="Campaign not found or inactive"):
            track_event(repo, "missing", "cookie_set")

    def test_inactive_campaign(self, repo: CampaignRepository, campaign: Campaign) -> None:
        repo.deactivate_campaign(campaign.id)
        with pytest.raises(NotFoundError):
            track_event(repo, campaign.id, "cookie_set")

    def test_cookie_set_recorded_and_counted(
        self, repo: CampaignRepository, campaign: Campaign
    ) -> None:
        event = track_event(
            repo,
            campaign.id,
            "cookie_set",
            {
                "userAgent": "Mozilla/5.0",
                "referrer": "https://partner.example/ref123",
                "cookieData": {"cookieA": "partner-123", "cookieB": "stuffed-456"},
                "metadata": {"sessionId": "1705311000000"},
            },
            ip_address="198.51.100.7",
            now=NOW,
        )

        assert event.id is not None
        assert event.event_type is EventType.COOKIE_SET
        assert event.created_at == NOW
        assert event.ip_address == "198.51.100.7"
        assert event.cookie_data.cookie_b == "stuffed-456"
        assert event.metadata.session_id == "1705311000000"
        assert repo.find_campaign(campaign.id).stats.cookie_sets == 1

    def test_campaign_metadata_overrides_client(
        self, repo: CampaignRepository, campaign: Campaign
    ) -> None:
        event = track_event(
            repo,
            campaign.id,
            "cookie_set",
            {"metadata": {"campaignName": "Spoofed", "casino": "Elsewhere"}},
        )
        assert event.metadata.campaign_name == "Spring Push"
        assert event.metadata.casino == "Lucky Casino"

    def test_conversion_types_do_not_bump_cookie_sets(
        self, repo: CampaignRepository, campaign: Campaign
    ) -> None:
        track_event(repo, campaign.id, "registration")
        stats = repo.find_campaign(campaign.id).stats
        assert stats.cookie_sets == 0
        assert repo.count_events(campaign.id)[EventType.REGISTRATION] == 1

    def test_duplicates_are_not_collapsed(
        self, repo: CampaignRepository, campaign: Campaign
    ) -> None:
        attrs = {"metadata": {"sessionId": "same"}}
        track_event(repo, campaign.id, "cookie_set", attrs, now=NOW)
        track_event(repo, campaign.id, "cookie_set", attrs, now=NOW)

        assert repo.find_campaign(campaign.id).stats.cookie_sets == 2
        assert repo.count_events(campaign.id)[EventType.COOKIE_SET] == 2

    def test_numeric_campaign_id_coerced(self, repo: CampaignRepository) -> None:
        with pytest.raises(NotFoundError):
            track_event(repo, 12345, "cookie_set")
