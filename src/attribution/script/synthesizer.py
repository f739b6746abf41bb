"""Render per-campaign tracking scripts from Jinja2 templates."""

from __future__ import annotations

import random
from functools import lru_cache
from pathlib import Path
from typing import Any

import structlog
from jinja2 import Environment, FileSystemLoader, StrictUndefined

from attribution.domain.errors import UnsupportedTemplateError
from attribution.domain.models import Campaign, CookieSpec
from attribution.domain.types import TemplateType
from attribution.script.obfuscator import Obfuscator

logger = structlog.get_logger()

TEMPLATES_DIR = Path(__file__).parent / "templates"

# Template type -> template file under TEMPLATES_DIR.
TEMPLATES: dict[str, str] = {
    TemplateType.MYAFFILIATES: "myaffiliates.js.j2",
}

TRACK_PATH = "/api/events/track"


@lru_cache(maxsize=1)
def get_environment() -> Environment:
    """Return the shared Jinja2 environment for script templates."""
    return Environment(
        loader=FileSystemLoader(str(TEMPLATES_DIR)),
        autoescape=False,
        undefined=StrictUndefined,
        keep_trailing_newline=True,
    )


def track_url(api_base_url: str) -> str:
    return f"{api_base_url.rstrip('/')}{TRACK_PATH}"


def _cookie_context(spec: CookieSpec) -> dict[str, str]:
    return {
        "name": spec.name,
        "value": spec.value,
        "domain": spec.domain,
        "expiry": spec.expiry.isoformat(),
    }


def build_context(campaign: Campaign, api_base_url: str) -> dict[str, Any]:
    """Collect the values bound into a campaign's script."""
    config = campaign.template_config
    return {
        "campaign_id": campaign.id,
        "campaign_name": campaign.name,
        "casino": campaign.casino,
        "cookie_a": _cookie_context(config.cookie_a),
        "cookie_b": _cookie_context(config.cookie_b),
        "referrer_regex": config.referrer_regex,
        "cookie_a_regex": config.cookie_a_regex,
        "track_url": track_url(api_base_url),
    }


def render(
    campaign: Campaign,
    *,
    api_base_url: str,
    rng: random.Random | None = None,
    obfuscate: bool = True,
) -> str:
    """Render the browser script for *campaign*.

    Args:
        campaign: The campaign whose template configuration is embedded.
        api_base_url: Public base URL of this service; the script reports
                      successful plants to ``{api_base_url}/api/events/track``.
        rng: Random source for the obfuscator.  Each call builds a fresh
             :class:`Obfuscator`, so aliases differ between renders.
        obfuscate: Return the plain template output when ``False``.

    Raises:
        UnsupportedTemplateError: If the campaign's template type is unknown.
    """
    template_type = campaign.template_config.template_type
    template_name = TEMPLATES.get(template_type)
    if template_name is None:
        raise UnsupportedTemplateError(template_type)

    template = get_environment().get_template(template_name)
    code = template.render(**build_context(campaign, api_base_url))
    if not obfuscate:
        return code

    obfuscator = Obfuscator(rng)
    result = obfuscator.obfuscate(code)
    logger.debug(
        "script_rendered",
        campaign_id=campaign.id,
        template=template_type,
        aliases=len(obfuscator.aliases),
    )
    return result
