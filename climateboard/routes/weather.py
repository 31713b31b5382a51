"""Weather routes: dashboard conditions and geocoding via OpenWeather."""

import logging

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from climateboard.config import Settings
from climateboard.dependencies import get_settings, get_weather_orchestrator, http_client
from climateboard.errors import ClimateBoardError, UpstreamError
from climateboard.services import weather
from climateboard.services.cache import weather_cache_key
from climateboard.services.orchestrator import FetchOrchestrator
from climateboard.services.quota import Service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


class WeatherRequest(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    city: str | None = None
    force_refresh: bool = False


def _require_key(settings: Settings) -> str:
    if not settings.openweather_api_key:
        raise ClimateBoardError("OpenWeather API key not configured", status_code=500)
    return settings.openweather_api_key


@router.post("/weather")
async def climate_data(
    body: WeatherRequest,
    request: Request,
    settings: Settings = Depends(get_settings),
    orchestrator: FetchOrchestrator = Depends(get_weather_orchestrator),
):
    """Current conditions, air quality and forecast for a coordinate.

    Fresh cache entries are served even without an API key. Quota errors
    surface as 429, duplicates as 409. Provider failures fall back to default
    data so the dashboard still renders.
    """

    async def _fetch():
        api_key = _require_key(settings)
        async with http_client(request) as client:
            return await weather.fetch_climate_data(client, api_key, body.latitude, body.longitude)

    try:
        return await orchestrator.fetch(
            weather_cache_key(body.latitude, body.longitude),
            _fetch,
            Service.OPENWEATHER,
            force_refresh=body.force_refresh,
        )
    except UpstreamError as e:
        logger.warning("Serving fallback weather for %s,%s: %s", body.latitude, body.longitude, e)
        return {**weather.fallback_climate_data(body.city), "error": str(e)}


@router.get("/weather")
async def geocode(
    request: Request,
    action: str | None = Query(None),
    lat: float | None = Query(None, ge=-90, le=90),
    lon: float | None = Query(None, ge=-180, le=180),
    q: str | None = Query(None),
    settings: Settings = Depends(get_settings),
    orchestrator: FetchOrchestrator = Depends(get_weather_orchestrator),
):
    """Reverse geocoding (``action=reverse``) or city search (``action=search``)."""
    if action == "reverse" and lat is not None and lon is not None:
        async def _reverse():
            api_key = _require_key(settings)
            async with http_client(request) as client:
                return await weather.reverse_geocode(client, api_key, lat, lon)

        key = "geo_reverse_" + weather_cache_key(lat, lon).removeprefix("weather_")
        place = await orchestrator.fetch(key, _reverse, Service.OPENWEATHER)
        if place is None:
            return JSONResponse({"error": "Location not found"}, status_code=404)
        return place

    if action == "search" and q and q.strip():
        query = q.strip()

        async def _search():
            api_key = _require_key(settings)
            async with http_client(request) as client:
                return await weather.search_cities(client, api_key, query)

        return await orchestrator.fetch(f"geo_search_{query.lower()}", _search, Service.OPENWEATHER)

    return JSONResponse({"error": "Invalid action or missing parameters"}, status_code=400)
