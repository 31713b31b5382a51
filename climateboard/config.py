"""Centralized configuration: all env vars in one place."""

import logging
import os

logger = logging.getLogger(__name__)

DEFAULT_OPENWEATHER_CALLS_PER_HOUR = 12
DEFAULT_GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"


def _positive_int(name: str, default: int) -> int:
    """Read a positive integer env var. Missing or invalid values use the default."""
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r, using %d", name, raw, default)
        return default
    if value <= 0:
        logger.warning("Ignoring non-positive %s=%d, using %d", name, value, default)
        return default
    return value


class Settings:
    """Application settings loaded from environment variables."""

    def __init__(self):
        self.cors_origins: list[str] = os.getenv("CORS_ORIGINS", "*").split(",")
        self.git_sha: str = os.getenv("GIT_SHA", "unknown")
        self.environment: str = os.getenv("ENVIRONMENT", "local")

        # OpenWeather
        self.openweather_api_key: str | None = os.getenv("OPENWEATHER_API_KEY")
        self.max_openweather_calls_per_hour: int = _positive_int(
            "MAX_OPENWEATHER_CALLS_PER_HOUR", DEFAULT_OPENWEATHER_CALLS_PER_HOUR
        )

        # Gemini (OpenAI-compatible endpoint)
        self.gemini_api_key: str | None = os.getenv("GEMINI_API_KEY")
        self.gemini_model: str = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
        self.gemini_base_url: str = os.getenv("GEMINI_BASE_URL", DEFAULT_GEMINI_BASE_URL)

        # Response cache
        self.cache_ttl_seconds: int = _positive_int("CACHE_TTL_SECONDS", 600)
        self.cache_dir: str | None = os.getenv("CACHE_DIR") or None

        self.http_timeout_seconds: int = _positive_int("HTTP_TIMEOUT_SECONDS", 10)

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def validate(self) -> list[str]:
        """Return list of missing env vars for weather and AI features."""
        required = ["OPENWEATHER_API_KEY", "GEMINI_API_KEY"]
        return [var for var in required if not getattr(self, _attr_for(var))]


def _attr_for(env_var: str) -> str:
    """Map env var name to Settings attribute name."""
    mapping = {
        "OPENWEATHER_API_KEY": "openweather_api_key",
        "GEMINI_API_KEY": "gemini_api_key",
    }
    return mapping.get(env_var, env_var.lower())
