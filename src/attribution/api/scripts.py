"""Serve rendered tracking scripts to host pages.

Host pages load these through ``<script src>``, so every response, including
failures, is JavaScript: errors are a single ``//`` comment line.
"""

from __future__ import annotations

import asyncio
from typing import Any

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import Response

from attribution.api.deps import get_repo, get_settings_from, get_stats_reader
from attribution.domain.errors import NotFoundError, PersistenceError, UnsupportedTemplateError
from attribution.observability.metrics import SCRIPTS_SERVED
from attribution.script.synthesizer import render

logger = structlog.get_logger()

router = APIRouter(prefix="/scripts", tags=["scripts"])

JS_MEDIA_TYPE = "application/javascript"


def _strip_extension(script_id: str) -> str:
    return script_id.removesuffix(".js")


def _js_error(status_code: int, comment: str) -> Response:
    return Response(
        content=comment,
        status_code=status_code,
        media_type=JS_MEDIA_TYPE,
        headers={"Access-Control-Allow-Origin": "*"},
    )


@router.get("/{script_id}")
async def serve_script(script_id: str, request: Request) -> Response:
    """Render the campaign script behind *script_id* (``.js`` suffix optional)."""
    script_id = _strip_extension(script_id)
    repo = get_repo(request)
    settings = get_settings_from(request)

    try:
        campaign = await asyncio.to_thread(repo.find_active_campaign_by_script, script_id)
    except PersistenceError:
        return _js_error(500, "// Script generation failed")

    if campaign is None:
        logger.info("script_not_found", script_id=script_id)
        return _js_error(404, "// Script not found")

    try:
        code = render(campaign, api_base_url=settings.api_base_url)
    except UnsupportedTemplateError as exc:
        logger.warning(
            "script_template_unsupported",
            campaign_id=campaign.id,
            template_type=exc.template_type,
        )
        return _js_error(400, "// Invalid template type")
    except Exception:
        logger.exception("script_render_failed", campaign_id=campaign.id)
        return _js_error(500, "// Script generation failed")

    SCRIPTS_SERVED.inc()
    logger.info("script_served", campaign_id=campaign.id, script_id=script_id)
    return Response(
        content=code,
        media_type=JS_MEDIA_TYPE,
        headers={
            "Cache-Control": f"public, max-age={settings.script_cache_seconds}",
            "Access-Control-Allow-Origin": "*",
        },
    )


@router.get("/{script_id}/info")
async def script_info(script_id: str, request: Request) -> dict[str, Any]:
    """Describe the campaign a script belongs to, for debugging deployments."""
    script_id = _strip_extension(script_id)
    repo = get_repo(request)
    campaign = await asyncio.to_thread(repo.find_active_campaign_by_script, script_id)
    if campaign is None:
        raise NotFoundError("Script not found")

    stats = await asyncio.to_thread(get_stats_reader(request).stats_for, campaign)
    return {
        "success": True,
        "data": {
            "campaignName": campaign.name,
            "casino": campaign.casino,
            "templateType": campaign.template_config.template_type,
            "stats": stats.model_dump(by_alias=True),
            "createdAt": campaign.created_at.isoformat(),
        },
    }
