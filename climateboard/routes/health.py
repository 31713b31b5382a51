"""Health, readiness and API usage routes."""

import asyncio
import logging
from collections.abc import Callable

from fastapi import APIRouter, Depends

from climateboard.config import Settings
from climateboard.dependencies import get_complete_fn, get_quota, get_settings
from climateboard.services.quota import QuotaTracker

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/ready")
async def ready(settings: Settings = Depends(get_settings)) -> dict:
    """Lightweight readiness check, no external calls."""
    return {"status": "ok", "service": "climateboard-api", "commit": settings.git_sha}


@router.get("/health")
async def health(
    settings: Settings = Depends(get_settings),
    complete_fn: Callable[..., str] = Depends(get_complete_fn),
) -> dict:
    """Deep health check that verifies Gemini connectivity."""
    result = {"status": "ok", "service": "climateboard-api", "commit": settings.git_sha, "ai": "not_tested"}

    try:
        response = await asyncio.to_thread(
            complete_fn,
            messages=[{"role": "user", "content": "Say 'hello' and nothing else."}],
            max_tokens=10,
        )
        result["ai"] = "connected"
        result["ai_response"] = response.strip()
    except Exception as e:
        logger.exception("Gemini health check failed")
        result["ai"] = "error"
        result["ai_error"] = str(e)

    return result


@router.get("/usage")
async def usage(quota: QuotaTracker = Depends(get_quota)) -> dict:
    """Per-service quota usage over the trailing hour."""
    return {"services": quota.usage()}
