"""Translate domain errors into the JSON error envelope.

Every failure answers ``{"success": false, "error": <message>}``; validation
failures add ``details``, one ``{field, message}`` entry per violated field.
Storage failures never leak driver detail: the message stays generic and the
cause is only logged.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from attribution.domain.errors import AttributionError, ValidationError

logger = structlog.get_logger()


def error_body(exc: AttributionError) -> dict[str, Any]:
    body: dict[str, Any] = {"success": False, "error": exc.message}
    if isinstance(exc, ValidationError):
        body["details"] = [d.to_dict() for d in exc.details]
    return body


async def handle_attribution_error(request: Request, exc: AttributionError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "request_failed",
            path=request.url.path,
            error=exc.message,
            exc_info=exc.__cause__ or exc,
        )
    else:
        logger.warning(
            "request_rejected",
            path=request.url.path,
            status=exc.status_code,
            error=exc.message,
        )
    return JSONResponse(status_code=exc.status_code, content=error_body(exc))


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error("request_crashed", path=request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": "Internal server error"},
    )


def register_error_handlers(app: FastAPI) -> None:
    """Install the domain and catch-all exception handlers on *app*."""
    app.add_exception_handler(AttributionError, handle_attribution_error)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, handle_unexpected_error)
