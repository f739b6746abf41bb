"""HTTP surface, mounted under ``/api``."""

from fastapi import APIRouter

from attribution.api import campaigns, events, postbacks, reports, scripts
from attribution.api.errors import register_error_handlers

API_PREFIX = "/api"


def build_router() -> APIRouter:
    """Return one router carrying every ``/api`` route."""
    router = APIRouter(prefix=API_PREFIX)
    for module in (scripts, events, postbacks, reports, campaigns):
        router.include_router(module.router)
    return router


__all__ = ["API_PREFIX", "build_router", "register_error_handlers"]
