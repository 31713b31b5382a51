"""Request-scoped accessors for the singletons built in ``create_app``."""

from collections.abc import Callable

import httpx
from fastapi import Request

from climateboard.config import Settings
from climateboard.services.orchestrator import FetchOrchestrator
from climateboard.services.quota import QuotaTracker


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_quota(request: Request) -> QuotaTracker:
    return request.app.state.quota


def get_weather_orchestrator(request: Request) -> FetchOrchestrator:
    return request.app.state.weather_orchestrator


def get_alerts_orchestrator(request: Request) -> FetchOrchestrator:
    return request.app.state.alerts_orchestrator


def get_complete_fn(request: Request) -> Callable[..., str]:
    return request.app.state.complete_fn


def http_client(request: Request) -> httpx.AsyncClient:
    """New AsyncClient for one request; use as ``async with``."""
    state = request.app.state
    return httpx.AsyncClient(
        timeout=state.settings.http_timeout_seconds,
        transport=state.http_transport,
    )
