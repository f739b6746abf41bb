"""Campaign counters through the configured stats read path."""

from __future__ import annotations

import asyncio
from typing import Any

from fastapi import APIRouter, Request

from attribution.api.deps import get_repo, get_stats_reader
from attribution.domain.errors import NotFoundError
from attribution.reporting.rates import conversion_rates

router = APIRouter(prefix="/campaigns", tags=["campaigns"])


@router.get("/{campaign_id}/stats")
async def campaign_stats(campaign_id: str, request: Request) -> dict[str, Any]:
    campaign = await asyncio.to_thread(get_repo(request).find_active_campaign, campaign_id)
    if campaign is None:
        raise NotFoundError("Campaign not found")

    stats = await asyncio.to_thread(get_stats_reader(request).stats_for, campaign)
    return {
        "success": True,
        "data": {
            "campaignId": campaign.id,
            "stats": stats.model_dump(by_alias=True),
            "conversionRates": conversion_rates(
                stats.cookie_sets, stats.registrations, stats.ftds
            ),
        },
    }
