"""Application entry point for the attribution HTTP service.

Configures:
- **structlog** with JSON rendering (production) or colored console (development)
- **Sentry** error forwarding when a DSN is configured
- The storage backend and stats read path selected in settings
- The FastAPI app: ``/api`` routers, CORS, request IDs, error envelope,
  health probes and Prometheus metrics
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from attribution import __version__
from attribution.api import build_router, register_error_handlers
from attribution.config import Settings, get_settings, validate_settings
from attribution.health import register_health_routes
from attribution.observability.metrics import setup_metrics
from attribution.observability.middleware import SERVICE_NAME, RequestIdMiddleware
from attribution.observability.sentry import get_sentry_processor, init_sentry
from attribution.storage.base import CampaignRepository
from attribution.storage.memory import InMemoryRepository
from attribution.storage.sqlite import SQLiteRepository, open_database
from attribution.storage.stats import build_stats_reader

logger = structlog.get_logger()


def configure_logging(production: bool = False, sentry_enabled: bool = False) -> None:
    """Configure structlog for production (JSON) or development (console).

    Args:
        production: JSON rendering at INFO level when ``True``; colored
                    console rendering at DEBUG level otherwise.
        sentry_enabled: Forward ERROR-level events to Sentry.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
    ]
    if sentry_enabled:
        shared_processors.append(get_sentry_processor())
    shared_processors += [
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if production:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
        log_level = logging.INFO
    else:
        renderer = structlog.dev.ConsoleRenderer()
        log_level = logging.DEBUG

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(service=SERVICE_NAME)


def build_repository(settings: Settings) -> CampaignRepository:
    """Open the storage backend named by ``settings.storage_backend``."""
    if settings.storage_backend == "memory":
        logger.info("storage_backend_selected", backend="memory")
        return InMemoryRepository()

    db_path = settings.database_path
    db_path.parent.mkdir(parents=True, exist_ok=True)
    logger.info("storage_backend_selected", backend="sqlite", path=str(db_path))
    return SQLiteRepository(open_database(db_path))


def initialize_services(settings: Settings | None = None) -> dict[str, Any]:
    """Set up all shared services for the application.

    Args:
        settings: Application settings.  If ``None``, ``get_settings()`` is used.

    Returns:
        A dict of initialized service instances keyed by name: ``repo``,
        ``stats_reader`` and ``_settings``.
    """
    if settings is None:
        settings = get_settings()

    repo = build_repository(settings)
    stats_reader = build_stats_reader(settings.stats_strategy, repo)
    logger.info("stats_strategy_selected", strategy=settings.stats_strategy)

    return {"repo": repo, "stats_reader": stats_reader, "_settings": settings}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Close the repository on shutdown."""
    logger.info("FastAPI application starting")
    yield
    repo = app.state.services.get("repo")
    if repo is not None:
        repo.close()
        logger.info("Repository closed")


def create_app(services: dict[str, Any]) -> FastAPI:
    """Create the FastAPI app with lifespan, routers, middleware and probes.

    Args:
        services: The initialized services dict from ``initialize_services``.

    Returns:
        The configured FastAPI application.
    """
    fastapi_app = FastAPI(title="Cookie Attribution", version=__version__, lifespan=lifespan)
    fastapi_app.state.services = services
    fastapi_app.state.settings = services.get("_settings") or get_settings()

    # The tracking script posts to /api/events/track from arbitrary host pages.
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    fastapi_app.add_middleware(RequestIdMiddleware)

    register_error_handlers(fastapi_app)
    fastapi_app.include_router(build_router())
    register_health_routes(fastapi_app)
    setup_metrics(fastapi_app)
    return fastapi_app


def main() -> None:
    """Main entry point.

    1. Configure logging (and Sentry, when a DSN is set)
    2. Validate settings
    3. Initialize services and create the FastAPI app
    4. Serve with uvicorn until interrupted
    """
    settings = get_settings()
    sentry_enabled = init_sentry(settings.sentry_dsn.get_secret_value())
    configure_logging(production=settings.production, sentry_enabled=sentry_enabled)
    logger.info("Application starting", version=__version__)

    validate_settings(settings)

    services = initialize_services(settings)
    fastapi_app = create_app(services)

    uvicorn.run(
        fastapi_app,
        host=settings.http_host,
        port=settings.http_port,
        log_level="info",
    )


if __name__ == "__main__":
    main()
