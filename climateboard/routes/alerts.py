"""Climate alert route: AI advisories for the current weather."""

import asyncio
import logging
from collections.abc import Callable

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from climateboard.dependencies import get_alerts_orchestrator, get_complete_fn
from climateboard.errors import DuplicateRequestError, QuotaExceededError, UpstreamError
from climateboard.services.alerts import FALLBACK_ALERTS, generate_alerts
from climateboard.services.cache import alerts_cache_key
from climateboard.services.orchestrator import FetchOrchestrator
from climateboard.services.quota import Service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


class AlertsRequest(BaseModel):
    weather_data: dict = Field(alias="weatherData")
    force_refresh: bool = False


@router.post("/climate-alerts")
async def climate_alerts(
    body: AlertsRequest,
    orchestrator: FetchOrchestrator = Depends(get_alerts_orchestrator),
    complete_fn: Callable[..., str] = Depends(get_complete_fn),
):
    """AI-generated alerts, cached per temperature/air quality/humidity.

    Any model or parsing failure falls back to a general advisory.
    """
    weather = body.weather_data
    key = alerts_cache_key(
        weather.get("temperature"), weather.get("air_quality"), weather.get("humidity")
    )

    async def _fetch():
        return await asyncio.to_thread(generate_alerts, weather, complete_fn)

    try:
        alerts = await orchestrator.fetch(
            key, _fetch, Service.GEMINI, force_refresh=body.force_refresh
        )
    except (QuotaExceededError, DuplicateRequestError):
        raise
    except (UpstreamError, ValueError) as e:
        logger.warning("Serving fallback climate alerts: %s", e)
        return {"alerts": FALLBACK_ALERTS, "source": "Fallback"}
    except Exception:
        logger.exception("Climate alert generation failed")
        return {"alerts": FALLBACK_ALERTS, "source": "Fallback"}

    return {"alerts": alerts, "source": "Gemini"}
