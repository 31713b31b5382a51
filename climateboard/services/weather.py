"""OpenWeather client for the climate dashboard.

Current conditions, air pollution and the 5-day/3-hour forecast are merged
into one dashboard payload. Geocoding (reverse + city search) uses the same
API key and counts against the same hourly quota.
"""

import logging
from collections import OrderedDict
from datetime import datetime, timedelta, timezone

import httpx

from climateboard.errors import UpstreamError

logger = logging.getLogger(__name__)

DATA_URL = "https://api.openweathermap.org/data/2.5"
GEO_URL = "https://api.openweathermap.org/geo/1.0"


async def _get_json(client: httpx.AsyncClient, url: str, params: dict, what: str):
    """GET a JSON document, mapping every failure to UpstreamError."""
    try:
        resp = await client.get(url, params=params)
        resp.raise_for_status()
        return resp.json()
    except httpx.HTTPStatusError as e:
        logger.warning("%s request failed: HTTP %s", what, e.response.status_code)
        raise UpstreamError(f"Failed to fetch {what} data: HTTP {e.response.status_code}") from e
    except httpx.HTTPError as e:
        logger.warning("%s request failed: %s", what, e)
        raise UpstreamError(f"Failed to fetch {what} data") from e
    except ValueError as e:
        raise UpstreamError(f"Invalid {what} response") from e


def _local_time(ts: int, offset_seconds: int) -> datetime:
    return datetime.fromtimestamp(ts, tz=timezone(timedelta(seconds=offset_seconds)))


def _hourly_forecast(forecast: dict, offset: int) -> list[dict]:
    """Next 24 hours (8 three-hour slots)."""
    return [
        {
            "time": _local_time(item["dt"], offset).strftime("%H:%M"),
            "temp": round(item["main"]["temp"]),
            "feels_like": round(item["main"]["feels_like"]),
            "humidity": item["main"]["humidity"],
            "precipitation": round(item.get("pop", 0) * 100),
            "weather": item["weather"][0]["description"],
            "icon": item["weather"][0]["icon"],
        }
        for item in forecast.get("list", [])[:8]
    ]


def _daily_forecast(forecast: dict, offset: int) -> list[dict]:
    """Group 3-hour slots by local calendar day, at most 7 days."""
    days: OrderedDict = OrderedDict()
    for item in forecast.get("list", []):
        day = _local_time(item["dt"], offset).date()
        days.setdefault(day, []).append(item)

    result = []
    for day, items in list(days.items())[:7]:
        temps = [i["main"]["temp"] for i in items]
        pop = sum(i.get("pop", 0) for i in items) / len(items) * 100
        midday = items[len(items) // 2]
        result.append({
            "day": day.strftime("%a"),
            "date": day.isoformat(),
            "temp_high": round(max(temps)),
            "temp_low": round(min(temps)),
            "precipitation": round(pop),
            "weather": midday["weather"][0]["description"],
            "icon": midday["weather"][0]["icon"],
        })
    return result


def _temperature_trend(forecast: dict) -> float:
    items = forecast.get("list", [])
    if len(items) < 2:
        return 0.0
    return round(items[1]["main"]["temp"] - items[0]["main"]["temp"], 1)


async def fetch_climate_data(
    client: httpx.AsyncClient, api_key: str, lat: float, lon: float
) -> dict:
    """Current weather + air quality + forecast as one dashboard payload."""
    params = {"lat": lat, "lon": lon, "appid": api_key}

    current = await _get_json(client, f"{DATA_URL}/weather", {**params, "units": "metric"}, "current weather")
    air = await _get_json(client, f"{DATA_URL}/air_pollution", params, "air quality")
    forecast = await _get_json(client, f"{DATA_URL}/forecast", {**params, "units": "metric"}, "forecast")

    try:
        offset = forecast.get("city", {}).get("timezone", current.get("timezone", 0))
        pollution = air["list"][0]
        components = pollution["components"]
        visibility = current.get("visibility")
        name = current.get("name") or f"{lat:.2f}, {lon:.2f}"
        country = current.get("sys", {}).get("country")

        return {
            "location": f"{name}, {country}" if country else name,
            "date": datetime.now(timezone.utc).isoformat(),
            "temperature": round(current["main"]["temp"]),
            "feels_like": round(current["main"]["feels_like"]),
            "humidity": current["main"]["humidity"],
            "pressure": current["main"]["pressure"],
            "wind_speed": current.get("wind", {}).get("speed", 0),
            "wind_direction": current.get("wind", {}).get("deg", 0),
            "visibility": visibility / 1000 if visibility else None,
            "weather_description": current["weather"][0]["description"],
            "weather_icon": current["weather"][0]["icon"],
            "air_quality": pollution["main"]["aqi"],
            "air_quality_components": {
                "pm2_5": components.get("pm2_5"),
                "pm10": components.get("pm10"),
                "no2": components.get("no2"),
                "o3": components.get("o3"),
                "co": components.get("co"),
            },
            "predictions": {
                "temperature_trend": _temperature_trend(forecast),
                # Needs historical air quality to compute a real trend
                "air_quality_trend": 0,
                "precipitation_probability": current.get("clouds", {}).get("all", 0),
            },
            "hourly_forecast": _hourly_forecast(forecast, offset),
            "daily_forecast": _daily_forecast(forecast, offset),
            "source": "OpenWeather API",
        }
    except (KeyError, IndexError, TypeError) as e:
        logger.warning("Unexpected OpenWeather payload for %s,%s: %s", lat, lon, e)
        raise UpstreamError("Unexpected weather data format") from e


async def reverse_geocode(
    client: httpx.AsyncClient, api_key: str, lat: float, lon: float
) -> dict | None:
    """Nearest place name for a coordinate, or None if nothing is found."""
    data = await _get_json(
        client,
        f"{GEO_URL}/reverse",
        {"lat": lat, "lon": lon, "limit": 1, "appid": api_key},
        "reverse geocoding",
    )
    if not data:
        return None
    return {
        "name": data[0].get("name"),
        "country": data[0].get("country"),
        "state": data[0].get("state"),
    }


async def search_cities(
    client: httpx.AsyncClient, api_key: str, query: str, limit: int = 5
) -> list[dict]:
    data = await _get_json(
        client,
        f"{GEO_URL}/direct",
        {"q": query, "limit": limit, "appid": api_key},
        "city search",
    )
    return [
        {
            "name": c.get("name"),
            "country": c.get("country"),
            "state": c.get("state"),
            "lat": c.get("lat"),
            "lon": c.get("lon"),
        }
        for c in data
    ]


def fallback_climate_data(city: str | None = None) -> dict:
    """Hardcoded dashboard payload shown when the weather provider is unreachable."""
    return {
        "location": city or "Alice Springs",
        "date": datetime.now(timezone.utc).isoformat(),
        "temperature": 28,
        "feels_like": 32,
        "humidity": 75,
        "pressure": 1013,
        "wind_speed": 3.2,
        "wind_direction": 180,
        "visibility": 8,
        "weather_description": "partly cloudy",
        "weather_icon": "02d",
        "air_quality": 3,
        "air_quality_components": {
            "pm2_5": 35.5,
            "pm10": 48.2,
            "no2": 25.1,
            "o3": 45.3,
            "co": 0.8,
        },
        "predictions": {
            "temperature_trend": 1.2,
            "air_quality_trend": -5,
            "precipitation_probability": 25,
        },
        "hourly_forecast": [],
        "daily_forecast": [],
        "source": "Fallback Data",
    }
