"""Shared fixtures for climateboard tests."""

import pytest

from climateboard.config import Settings
from climateboard.services.cache import ResponseCache
from climateboard.services.orchestrator import FetchOrchestrator
from climateboard.services.quota import QuotaTracker, default_limits


class FakeClock:
    """Manually advanced clock in seconds since the epoch."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings(monkeypatch):
    for var in (
        "MAX_OPENWEATHER_CALLS_PER_HOUR",
        "CACHE_TTL_SECONDS",
        "CACHE_DIR",
        "ENVIRONMENT",
    ):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("OPENWEATHER_API_KEY", "test-weather-key")
    monkeypatch.setenv("GEMINI_API_KEY", "test-gemini-key")
    return Settings()


@pytest.fixture
def quota(settings, clock):
    return QuotaTracker(default_limits(settings), clock=clock)


@pytest.fixture
def response_cache(clock):
    return ResponseCache(ttl_seconds=600, clock=clock)


@pytest.fixture
def orchestrator(response_cache, quota):
    return FetchOrchestrator(response_cache, quota)
