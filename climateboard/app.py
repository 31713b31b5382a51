"""FastAPI application entry point for the climate dashboard API."""

import functools
import logging
import sys
import time
from collections.abc import Callable

import httpx
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from climateboard.config import Settings
from climateboard.errors import register_error_handlers
from climateboard.services import ai_client
from climateboard.services.cache import JsonFileStore, MemoryStore, ResponseCache
from climateboard.services.orchestrator import FetchOrchestrator
from climateboard.services.quota import QuotaTracker, default_limits

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    """Structured logging: JSON for production, human-readable for local."""
    if settings.is_production:
        logging.basicConfig(
            level=logging.INFO,
            format='{"time":"%(asctime)s","level":"%(levelname)s","logger":"%(name)s","message":"%(message)s"}',
            stream=sys.stdout,
        )
    else:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")


def _build_store(settings: Settings):
    if settings.cache_dir:
        try:
            return JsonFileStore(settings.cache_dir)
        except OSError as e:
            logger.warning("Cache dir %s unusable, falling back to memory: %s", settings.cache_dir, e)
    return MemoryStore()


def create_app(
    settings: Settings | None = None,
    clock: Callable[[], float] = time.time,
    http_transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    settings = settings or Settings()
    configure_logging(settings)

    app = FastAPI(title="Climate Board API", version="1.0.0")

    # Shared state: one quota tracker for all callers, one cache per payload shape
    store = _build_store(settings)
    quota = QuotaTracker(default_limits(settings), clock=clock)
    weather_cache = ResponseCache(settings.cache_ttl_seconds, store, payload_field="data", clock=clock)
    alerts_cache = ResponseCache(settings.cache_ttl_seconds, store, payload_field="alerts", clock=clock)

    app.state.settings = settings
    app.state.quota = quota
    app.state.weather_orchestrator = FetchOrchestrator(weather_cache, quota)
    app.state.alerts_orchestrator = FetchOrchestrator(alerts_cache, quota)
    app.state.ai_client = ai_client.build_client(settings)
    app.state.complete_fn = functools.partial(
        ai_client.complete, app.state.ai_client, settings.gemini_model
    )
    app.state.http_transport = http_transport

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Security headers
    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        response: Response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        if settings.is_production:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response

    # Centralized error handlers
    register_error_handlers(app)

    from climateboard.routes.alerts import router as alerts_router
    from climateboard.routes.health import router as health_router
    from climateboard.routes.weather import router as weather_router

    app.include_router(health_router)
    app.include_router(weather_router)
    app.include_router(alerts_router)

    @app.on_event("startup")
    async def _validate_config() -> None:
        missing = settings.validate()
        if missing:
            logger.warning("Missing env vars (weather/AI features may fail): %s", ", ".join(missing))

    return app


app = create_app()
