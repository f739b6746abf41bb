"""Read-only funnel reports."""

from __future__ import annotations

import asyncio
from typing import Any

from fastapi import APIRouter, Query, Request

from attribution.api.deps import get_repo, get_settings_from
from attribution.reporting.aggregator import overview_report, realtime_snapshot, report_for_campaign

router = APIRouter(prefix="/reports", tags=["reports"])


@router.get("/campaigns/{campaign_id}")
async def campaign_report(
    campaign_id: str,
    request: Request,
    period: str | None = None,
    start_date: str | None = Query(default=None, alias="startDate"),
    end_date: str | None = Query(default=None, alias="endDate"),
) -> dict[str, Any]:
    """Daily or monthly funnel for one active campaign."""
    settings = get_settings_from(request)
    data = await asyncio.to_thread(
        report_for_campaign,
        get_repo(request),
        campaign_id,
        period,
        start_date,
        end_date,
        default_days=settings.report_default_days,
    )
    return {"success": True, "data": data}


@router.get("/overview")
async def overview(
    request: Request,
    period: str | None = None,
    start_date: str | None = Query(default=None, alias="startDate"),
    end_date: str | None = Query(default=None, alias="endDate"),
) -> dict[str, Any]:
    """Per-campaign totals across every active campaign, plus grand totals."""
    settings = get_settings_from(request)
    data = await asyncio.to_thread(
        overview_report,
        get_repo(request),
        period,
        start_date,
        end_date,
        default_days=settings.report_default_days,
    )
    return {"success": True, "data": data}


@router.get("/realtime")
async def realtime(request: Request) -> dict[str, Any]:
    """Event counts by type over the trailing window, across all campaigns."""
    settings = get_settings_from(request)
    data = await asyncio.to_thread(
        realtime_snapshot,
        get_repo(request),
        window_hours=settings.realtime_window_hours,
    )
    return {"success": True, "data": data}
