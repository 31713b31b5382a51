import asyncio

import pytest

from climateboard.errors import DuplicateRequestError, QuotaExceededError, UpstreamError
from climateboard.services.quota import Service


class CountingFetch:
    """Fetch function that can be held open until released."""

    def __init__(self, payload=None, error: Exception | None = None):
        self.payload = payload if payload is not None else {"temp": 25}
        self.error = error
        self.calls = 0
        self.release = asyncio.Event()
        self.release.set()

    def hold(self):
        self.release.clear()

    async def __call__(self):
        self.calls += 1
        await self.release.wait()
        if self.error:
            raise self.error
        return self.payload


@pytest.mark.asyncio
async def test_fresh_cache_hit_skips_fetch_and_quota(orchestrator, quota):
    orchestrator.cache.put("weather_10.000_20.000", {"temp": 25})
    fetch = CountingFetch()

    result = await orchestrator.fetch("weather_10.000_20.000", fetch, Service.OPENWEATHER)

    assert result == {"temp": 25}
    assert fetch.calls == 0
    assert quota.remaining(Service.OPENWEATHER) == 12


@pytest.mark.asyncio
async def test_miss_fetches_records_and_caches(orchestrator, quota):
    fetch = CountingFetch({"temp": 30})

    assert await orchestrator.fetch("k", fetch, Service.OPENWEATHER) == {"temp": 30}
    assert await orchestrator.fetch("k", fetch, Service.OPENWEATHER) == {"temp": 30}

    assert fetch.calls == 1
    assert quota.remaining(Service.OPENWEATHER) == 11
    assert orchestrator.cache.get("k") == {"temp": 30}
    assert not orchestrator.in_flight("k")


@pytest.mark.asyncio
async def test_force_refresh_bypasses_cache(orchestrator):
    orchestrator.cache.put("k", {"temp": 1})
    fetch = CountingFetch({"temp": 2})

    result = await orchestrator.fetch("k", fetch, Service.OPENWEATHER, force_refresh=True)

    assert result == {"temp": 2}
    assert fetch.calls == 1
    assert orchestrator.cache.get("k") == {"temp": 2}


@pytest.mark.asyncio
async def test_expired_entry_is_refetched(orchestrator, clock):
    fetch = CountingFetch()
    await orchestrator.fetch("k", fetch, Service.OPENWEATHER)
    clock.advance(601)
    await orchestrator.fetch("k", fetch, Service.OPENWEATHER)
    assert fetch.calls == 2


@pytest.mark.asyncio
async def test_duplicate_in_flight_request_is_dropped(orchestrator, quota):
    fetch = CountingFetch()
    fetch.hold()

    first = asyncio.create_task(orchestrator.fetch("k", fetch, Service.OPENWEATHER))
    await asyncio.sleep(0)
    assert orchestrator.in_flight("k")

    with pytest.raises(DuplicateRequestError) as exc_info:
        await orchestrator.fetch("k", fetch, Service.OPENWEATHER)
    assert exc_info.value.status_code == 409

    fetch.release.set()
    assert await first == {"temp": 25}
    assert fetch.calls == 1
    assert quota.remaining(Service.OPENWEATHER) == 11


@pytest.mark.asyncio
async def test_distinct_identities_proceed_independently(orchestrator):
    fetch = CountingFetch()
    fetch.hold()

    a = asyncio.create_task(orchestrator.fetch("k", fetch, Service.OPENWEATHER, identity="a"))
    b = asyncio.create_task(orchestrator.fetch("k", fetch, Service.OPENWEATHER, identity="b"))
    await asyncio.sleep(0)
    fetch.release.set()

    assert await asyncio.gather(a, b) == [{"temp": 25}, {"temp": 25}]
    assert fetch.calls == 2


@pytest.mark.asyncio
async def test_quota_denied_raises_without_fetching(orchestrator, quota):
    for _ in range(12):
        quota.record_call(Service.OPENWEATHER)
    fetch = CountingFetch()

    with pytest.raises(QuotaExceededError) as exc_info:
        await orchestrator.fetch("k", fetch, Service.OPENWEATHER)

    assert fetch.calls == 0
    assert exc_info.value.status_code == 429
    assert exc_info.value.service == "openweather"
    assert exc_info.value.reset_ms == 3600 * 1000
    assert not orchestrator.in_flight("k")


@pytest.mark.asyncio
async def test_exhausted_quota_still_serves_cache(orchestrator, quota):
    orchestrator.cache.put("k", {"temp": 5})
    for _ in range(12):
        quota.record_call(Service.OPENWEATHER)
    assert await orchestrator.fetch("k", CountingFetch(), Service.OPENWEATHER) == {"temp": 5}


@pytest.mark.asyncio
async def test_exempt_service_never_limited(orchestrator, quota):
    fetch = CountingFetch()
    for i in range(50):
        await orchestrator.fetch(f"alerts_{i}", fetch, Service.GEMINI)
    assert fetch.calls == 50
    assert quota.can_call(Service.GEMINI)


@pytest.mark.asyncio
async def test_failure_propagates_and_is_not_cached(orchestrator, quota):
    fetch = CountingFetch(error=UpstreamError("boom"))

    with pytest.raises(UpstreamError):
        await orchestrator.fetch("k", fetch, Service.OPENWEATHER)

    assert orchestrator.cache.get("k") is None
    assert not orchestrator.in_flight("k")
    assert quota.remaining(Service.OPENWEATHER) == 12

    fetch.error = None
    assert await orchestrator.fetch("k", fetch, Service.OPENWEATHER) == {"temp": 25}


@pytest.mark.asyncio
async def test_cancel_in_flight_request(orchestrator, quota):
    fetch = CountingFetch()
    fetch.hold()

    pending = asyncio.create_task(orchestrator.fetch("k", fetch, Service.OPENWEATHER))
    await asyncio.sleep(0)
    await asyncio.sleep(0)

    assert orchestrator.cancel("k")
    with pytest.raises(asyncio.CancelledError):
        await pending

    assert not orchestrator.in_flight("k")
    assert orchestrator.cache.get("k") is None
    assert quota.remaining(Service.OPENWEATHER) == 12
    assert not orchestrator.cancel("k")


@pytest.mark.asyncio
async def test_none_payload_is_cached_and_charged_once(orchestrator, quota):
    calls = 0

    async def not_found():
        nonlocal calls
        calls += 1
        return None

    for _ in range(3):
        assert await orchestrator.fetch("geo_reverse_0.000_0.000", not_found, Service.OPENWEATHER) is None

    assert calls == 1
    assert quota.remaining(Service.OPENWEATHER) == 11
    assert orchestrator.cache.lookup("geo_reverse_0.000_0.000") == (True, None)
