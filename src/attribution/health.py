"""Health and readiness endpoints for container orchestration.

- ``GET /health`` -- Liveness probe.  Returns 200 if the process is alive.
- ``GET /ready``  -- Readiness probe.  Returns 200 only when the storage
  backend answers a trivial query; 503 with per-check details otherwise.
"""

from __future__ import annotations

import asyncio
from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from attribution.domain.errors import PersistenceError

logger = structlog.get_logger()


def register_health_routes(app: FastAPI) -> None:
    """Register ``/health`` and ``/ready`` endpoints on *app*."""

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Liveness probe -- always returns 200 if the process is running."""
        return {"status": "healthy"}

    @app.get("/ready")
    async def ready(request: Request) -> JSONResponse:
        """Readiness probe -- checks that the repository answers."""
        services: dict[str, Any] = request.app.state.services
        checks: dict[str, str] = {}

        repo = services.get("repo")
        if repo is None:
            checks["storage"] = "fail"
        else:
            try:
                await asyncio.to_thread(repo.ping)
                checks["storage"] = "ok"
            except PersistenceError:
                logger.warning("readiness_storage_failed")
                checks["storage"] = "fail"

        all_ok = all(v == "ok" for v in checks.values())
        status = "ready" if all_ok else "not_ready"
        code = 200 if all_ok else 503

        return JSONResponse(content={"status": status, "checks": checks}, status_code=code)
