"""Cache + quota glue around external fetches, with an in-flight guard.

All bookkeeping runs synchronously on the event loop; the only suspension
point is awaiting the fetch itself. The check-then-mark on the in-flight map
is safe for that reason alone and would need a lock under real threads.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from climateboard.errors import DuplicateRequestError, QuotaExceededError
from climateboard.services.cache import ResponseCache
from climateboard.services.quota import RATE_LIMIT_MESSAGES, QuotaTracker, Service

logger = logging.getLogger(__name__)


class FetchOrchestrator:
    def __init__(self, cache: ResponseCache, quota: QuotaTracker):
        self.cache = cache
        self.quota = quota
        self._in_flight: dict[str, asyncio.Task] = {}

    def in_flight(self, identity: str) -> bool:
        return identity in self._in_flight

    def cancel(self, identity: str) -> bool:
        """Cancel an outstanding fetch. Returns False if nothing was in flight."""
        task = self._in_flight.get(identity)
        if task is None or task.done():
            return False
        return task.cancel()

    async def fetch(
        self,
        key: str,
        fetch_fn: Callable[[], Awaitable[Any]],
        service: Service,
        identity: str | None = None,
        force_refresh: bool = False,
    ) -> Any:
        """Return a cached or freshly fetched payload for ``key``.

        A payload of None is cached like any other. Raises
        DuplicateRequestError when an identical request is already in flight;
        the duplicate is dropped, not queued. Raises QuotaExceededError without
        calling ``fetch_fn`` when the service's hourly quota is spent. Fetch
        errors propagate and are never cached.
        """
        if not force_refresh:
            found, cached = self.cache.lookup(key)
            if found:
                return cached

        identity = identity or key
        if identity in self._in_flight:
            logger.debug("Duplicate request dropped: %s", identity)
            raise DuplicateRequestError(identity)

        if not self.quota.can_call(service):
            status = self.quota.check(service)
            logger.warning(
                "Quota exhausted for %s (resets in %d ms)", service.value, status.reset_ms
            )
            raise QuotaExceededError(
                service.value, RATE_LIMIT_MESSAGES[service], reset_ms=status.reset_ms
            )

        task = asyncio.ensure_future(fetch_fn())
        self._in_flight[identity] = task
        try:
            payload = await task
        finally:
            self._in_flight.pop(identity, None)

        self.quota.record_call(service)
        self.cache.put(key, payload)
        return payload
