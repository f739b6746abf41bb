"""Tracking endpoint called by rendered scripts from visitors' browsers."""

from __future__ import annotations

import asyncio
from typing import Any

from fastapi import APIRouter, Request

from attribution.api.deps import client_ip, get_repo, read_json_body
from attribution.domain.errors import ValidationError
from attribution.ingestion.events import track_event

router = APIRouter(prefix="/events", tags=["events"])


@router.post("/track")
async def track(request: Request) -> dict[str, Any]:
    """Record a ``cookie_set`` (or other) event for an active campaign.

    Body: ``{campaignId, eventType, userAgent?, referrer?, cookieData?, metadata?}``.
    """
    body = await read_json_body(request)
    if not isinstance(body, dict):
        raise ValidationError.for_field("body", "Request body must be a JSON object")

    attrs = {k: body.get(k) for k in ("userAgent", "referrer", "cookieData", "metadata")}
    await asyncio.to_thread(
        track_event,
        get_repo(request),
        body.get("campaignId"),
        body.get("eventType"),
        attrs,
        ip_address=client_ip(request),
    )
    return {"success": True, "message": "Event tracked successfully"}
