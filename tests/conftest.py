"""Shared pytest fixtures for the attribution test suite."""

from __future__ import annotations

from collections.abc import Iterator
from datetime import UTC, datetime

import pytest
from fastapi.testclient import TestClient

from attribution.app import create_app, initialize_services
from attribution.config import Settings
from attribution.domain.models import Campaign, CookieSpec, TemplateConfig
from attribution.storage.base import CampaignRepository
from attribution.storage.memory import InMemoryRepository
from attribution.storage.sqlite import SQLiteRepository, open_database

BASE_URL = "https://track.example.com"


@pytest.fixture
def template_config() -> TemplateConfig:
    """The partner/cookie gating used throughout the examples."""
    return TemplateConfig(
        cookie_a=CookieSpec(
            name="aff_a",
            value="partner-123",
            domain=".casino.example",
            expiry=datetime(2030, 1, 1, tzinfo=UTC),
        ),
        cookie_b=CookieSpec(
            name="aff_b",
            value="stuffed-456",
            domain=".casino.example",
            expiry=datetime(2030, 1, 1, tzinfo=UTC),
        ),
        referrer_regex=r"ref\d+",
        cookie_a_regex=r"\d+",
    )


@pytest.fixture
def memory_repo() -> InMemoryRepository:
    return InMemoryRepository()


@pytest.fixture
def sqlite_repo() -> Iterator[SQLiteRepository]:
    repo = SQLiteRepository(open_database(":memory:"))
    yield repo
    repo.close()


@pytest.fixture(params=["memory", "sqlite"])
def repo(request: pytest.FixtureRequest) -> Iterator[CampaignRepository]:
    """Each storage backend in turn."""
    if request.param == "memory":
        yield InMemoryRepository()
        return
    sqlite = SQLiteRepository(open_database(":memory:"))
    yield sqlite
    sqlite.close()


@pytest.fixture
def campaign(repo: CampaignRepository, template_config: TemplateConfig) -> Campaign:
    return repo.create_campaign(
        "Spring Push",
        "Lucky Casino",
        template_config,
        created_at=datetime(2024, 1, 1, tzinfo=UTC),
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(  # type: ignore[call-arg]
        _env_file=None,
        storage_backend="memory",
        api_base_url=BASE_URL,
    )


@pytest.fixture
def services(settings: Settings) -> dict:
    return initialize_services(settings)


@pytest.fixture
def client(services: dict) -> Iterator[TestClient]:
    with TestClient(create_app(services)) as test_client:
        yield test_client


@pytest.fixture
def api_repo(services: dict) -> CampaignRepository:
    """The repository behind ``client``."""
    return services["repo"]


@pytest.fixture
def api_campaign(api_repo: CampaignRepository, template_config: TemplateConfig) -> Campaign:
    return api_repo.create_campaign("Spring Push", "Lucky Casino", template_config)
