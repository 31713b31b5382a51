"""Sliding-window hourly quota for external APIs.

Counts calls per service over the trailing hour, so the free-tier limits of
the weather provider are never exceeded. Gemini is exempt: its provider-side
free tier is generous enough that throttling it here only hurts users.
"""

import enum
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from climateboard.config import Settings

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60 * 60

# Reported as "remaining" for exempt or unconfigured services.
UNLIMITED_REMAINING = 999


class Service(enum.Enum):
    OPENWEATHER = "openweather"
    GEMINI = "gemini"


RATE_LIMIT_MESSAGES = {
    Service.GEMINI: "AI service temporarily limited to preserve free tier. Please try again in a few minutes.",
    Service.OPENWEATHER: "Weather data temporarily limited to preserve free tier. Please try again in a few minutes.",
}


@dataclass(frozen=True)
class ServiceLimit:
    max_calls_per_hour: int
    display_name: str
    exempt: bool = False


@dataclass
class CallRecord:
    timestamp: float
    count: int = 1


@dataclass(frozen=True)
class QuotaStatus:
    allowed: bool
    remaining: int
    reset_ms: int


def default_limits(settings: Settings) -> dict[Service, ServiceLimit]:
    """Limit table for the known services."""
    return {
        Service.OPENWEATHER: ServiceLimit(
            max_calls_per_hour=settings.max_openweather_calls_per_hour,
            display_name="OpenWeather",
        ),
        Service.GEMINI: ServiceLimit(
            max_calls_per_hour=UNLIMITED_REMAINING,
            display_name="Google Gemini",
            exempt=True,
        ),
    }


class QuotaTracker:
    """Per-service call log, pruned to the trailing hour."""

    def __init__(
        self,
        limits: dict[Service, ServiceLimit],
        clock: Callable[[], float] = time.time,
    ):
        self._limits = dict(limits)
        self._clock = clock
        self._history: dict[Service, list[CallRecord]] = {}

    def limit_for(self, service: Service) -> ServiceLimit | None:
        return self._limits.get(service)

    def _is_throttled(self, service: Service) -> bool:
        limit = self._limits.get(service)
        return limit is not None and not limit.exempt

    def _live_records(self, service: Service) -> list[CallRecord]:
        window_start = self._clock() - WINDOW_SECONDS
        return [r for r in self._history.get(service, []) if r.timestamp > window_start]

    def _live_count(self, service: Service) -> int:
        return sum(r.count for r in self._live_records(service))

    def can_call(self, service: Service) -> bool:
        if not self._is_throttled(service):
            return True
        return self._live_count(service) < self._limits[service].max_calls_per_hour

    def record_call(self, service: Service, count: int = 1) -> None:
        if not self._is_throttled(service):
            return
        history = self._history.setdefault(service, [])
        history.append(CallRecord(timestamp=self._clock(), count=count))
        # Compact so the log never outgrows one window.
        self._history[service] = self._live_records(service)

    def remaining(self, service: Service) -> int:
        if not self._is_throttled(service):
            return UNLIMITED_REMAINING
        return max(0, self._limits[service].max_calls_per_hour - self._live_count(service))

    def time_until_reset(self, service: Service) -> int:
        """Milliseconds until the oldest live call leaves the window (0 if none)."""
        live = self._live_records(service)
        if not live:
            return 0
        oldest = min(r.timestamp for r in live)
        return max(0, int(round((oldest + WINDOW_SECONDS - self._clock()) * 1000)))

    def check(self, service: Service) -> QuotaStatus:
        return QuotaStatus(
            allowed=self.can_call(service),
            remaining=self.remaining(service),
            reset_ms=self.time_until_reset(service),
        )

    def usage(self) -> list[dict]:
        """Usage summary for every known service."""
        summary = []
        for service in Service:
            limit = self._limits.get(service)
            status = self.check(service)
            if limit is None or limit.exempt:
                state = "unlimited"
            elif status.remaining == 0:
                state = "limited"
            elif status.remaining <= max(1, limit.max_calls_per_hour // 4):
                state = "warning"
            else:
                state = "safe"
            summary.append({
                "service": service.value,
                "name": limit.display_name if limit else service.value,
                "used": self._live_count(service),
                "limit": None if limit is None or limit.exempt else limit.max_calls_per_hour,
                "remaining": status.remaining,
                "reset_ms": status.reset_ms,
                "status": state,
            })
        return summary
