"""Request-scoped helpers shared by the routers."""

from __future__ import annotations

import json
from typing import Any

from fastapi import Request

from attribution.config import Settings
from attribution.domain.errors import ValidationError
from attribution.storage.base import CampaignRepository
from attribution.storage.stats import StatsReader


def get_repo(request: Request) -> CampaignRepository:
    return request.app.state.services["repo"]


def get_stats_reader(request: Request) -> StatsReader:
    return request.app.state.services["stats_reader"]


def get_settings_from(request: Request) -> Settings:
    return request.app.state.settings


def client_ip(request: Request) -> str | None:
    """Return the caller's address: first ``X-Forwarded-For`` hop, else the peer."""
    forwarded = request.headers.get("X-Forwarded-For", "")
    first_hop = forwarded.split(",")[0].strip()
    if first_hop:
        return first_hop
    return request.client.host if request.client else None


async def read_json_body(request: Request) -> Any:
    """Parse the raw request body as JSON.

    Bodies are read by hand so that field validation happens in the services
    and surfaces as a 400 with per-field details instead of FastAPI's 422.

    Raises:
        ValidationError: If the body is empty or not valid JSON.
    """
    raw = await request.body()
    if not raw.strip():
        raise ValidationError.for_field("body", "Request body is required")
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ValidationError.for_field("body", "Request body must be valid JSON") from None
