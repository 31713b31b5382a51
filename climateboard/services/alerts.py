"""AI-generated climate alerts from current weather conditions."""

import json
import logging
from collections.abc import Callable

from climateboard.errors import MalformedResponseError
from climateboard.services.json_repair import Decoder, lenient_decode

logger = logging.getLogger(__name__)

ALERT_TYPES = {"health", "environmental", "safety"}
ALERT_SEVERITIES = {"low", "moderate", "high"}
MAX_ALERTS = 4

FALLBACK_ALERTS = [
    {
        "type": "environmental",
        "severity": "low",
        "title": "General Advisory",
        "description": "Monitor weather conditions and plan your activities accordingly.",
        "icon": "AlertTriangle",
    },
]

SYSTEM_PROMPT = (
    "You are a climate and public health advisor. Given current weather and air "
    "quality readings, produce short, practical alerts for residents.\n\n"
    "Respond in JSON with this exact structure:\n"
    "{\n"
    '  "alerts": [\n'
    '    {"type": "health|environmental|safety", "severity": "low|moderate|high", '
    '"title": "short title", "description": "1-2 sentences of advice", '
    '"icon": "lucide icon name, e.g. Thermometer, Wind, Droplets, AlertTriangle"}\n'
    "  ]\n"
    "}\n"
    f"Return between 1 and {MAX_ALERTS} alerts. Only flag conditions that matter."
)

WEATHER_FIELDS = (
    "location",
    "temperature",
    "feels_like",
    "air_quality",
    "humidity",
    "wind_speed",
    "pressure",
    "visibility",
    "uv_index",
)


def weather_summary(weather: dict) -> dict:
    """The subset of the dashboard payload the model is shown."""
    summary = {field: weather.get(field) for field in WEATHER_FIELDS if weather.get(field) is not None}
    forecast = weather.get("daily_forecast") or []
    if forecast:
        summary["forecast"] = [
            {
                "temp_min": day.get("temp_low"),
                "temp_max": day.get("temp_high"),
                "description": day.get("weather"),
            }
            for day in forecast[:3]
        ]
    return summary


def _clean_alert(raw) -> dict | None:
    if not isinstance(raw, dict):
        return None
    title = str(raw.get("title") or "").strip()
    description = str(raw.get("description") or "").strip()
    if not title or not description:
        return None
    alert_type = str(raw.get("type", "")).lower()
    severity = str(raw.get("severity", "")).lower()
    return {
        "type": alert_type if alert_type in ALERT_TYPES else "environmental",
        "severity": severity if severity in ALERT_SEVERITIES else "moderate",
        "title": title,
        "description": description,
        "icon": str(raw.get("icon") or "AlertTriangle"),
    }


def parse_alerts(text: str, decode: Decoder = lenient_decode) -> list[dict]:
    """Decode a model reply into validated alerts.

    Raises MalformedResponseError if no usable alert list comes back.
    """
    parsed = decode(text)
    raw_alerts = parsed.get("alerts") if isinstance(parsed, dict) else parsed
    if not isinstance(raw_alerts, list):
        raise MalformedResponseError("AI response has no alert list")

    alerts = [a for a in (_clean_alert(r) for r in raw_alerts) if a is not None]
    if not alerts:
        raise MalformedResponseError("AI response contained no usable alerts")
    return alerts[:MAX_ALERTS]


def generate_alerts(
    weather: dict,
    complete_fn: Callable[..., str],
    decode: Decoder = lenient_decode,
) -> list[dict]:
    """Ask the model for alerts. Blocking; run it in a worker thread."""
    response = complete_fn(
        messages=[
            {"role": "system", "content": SYSTEM_PROMPT},
            {
                "role": "user",
                "content": f"Current conditions:\n{json.dumps(weather_summary(weather), indent=2)}",
            },
        ],
        max_tokens=600,
    )
    alerts = parse_alerts(response, decode)
    logger.info("Generated %d climate alerts for %s", len(alerts), weather.get("location"))
    return alerts
