"""Server-to-server conversion postbacks from casino platforms."""

from __future__ import annotations

import asyncio
from typing import Any

from fastapi import APIRouter, Request

from attribution.api.deps import client_ip, get_repo, get_settings_from, read_json_body
from attribution.ingestion.postbacks import attribute_conversion, postback_info, send_test_postback

router = APIRouter(prefix="/postbacks", tags=["postbacks"])


@router.post("/{campaign_id}")
async def receive_postback(campaign_id: str, request: Request) -> dict[str, Any]:
    """Attribute a ``registration`` or ``ftd`` to *campaign_id*."""
    body = await read_json_body(request)
    event = await asyncio.to_thread(
        attribute_conversion,
        get_repo(request),
        campaign_id,
        body,
        ip_address=client_ip(request),
        user_agent=request.headers.get("User-Agent"),
        referrer=request.headers.get("Referer"),
    )
    return {"success": True, "message": "Postback processed successfully", "eventId": event.id}


@router.get("/{campaign_id}/url")
async def get_postback_url(campaign_id: str, request: Request) -> dict[str, Any]:
    """Tell a casino where to send conversions for *campaign_id*."""
    settings = get_settings_from(request)
    data = await asyncio.to_thread(
        postback_info, get_repo(request), campaign_id, settings.api_base_url
    )
    return {"success": True, "data": data}


@router.post("/{campaign_id}/test")
async def test_postback(campaign_id: str, request: Request) -> dict[str, Any]:
    """Record a synthetic registration to check the wiring end to end."""
    event = await asyncio.to_thread(
        send_test_postback,
        get_repo(request),
        campaign_id,
        ip_address=client_ip(request),
        user_agent=request.headers.get("User-Agent"),
        referrer=request.headers.get("Referer"),
    )
    data: dict[str, Any] = {"eventType": event.event_type.value}
    if event.postback_data is not None:
        data["playerId"] = event.postback_data.player_id
        data["amount"] = event.postback_data.amount
        data["currency"] = event.postback_data.currency
    return {
        "success": True,
        "message": "Test postback recorded",
        "eventId": event.id,
        "data": data,
    }
