"""
Gemini Chat Client

Uses the OpenAI SDK against Gemini's OpenAI-compatible endpoint.

Endpoint pattern:
    https://generativelanguage.googleapis.com/v1beta/openai/

Auth:
    GEMINI_API_KEY passed as the SDK api_key
"""

import logging

from openai import OpenAI

from climateboard.config import Settings
from climateboard.errors import MalformedResponseError

logger = logging.getLogger(__name__)


def build_client(settings: Settings) -> OpenAI | None:
    """Create the app's OpenAI client, or None when no Gemini key is configured."""
    if not settings.gemini_api_key:
        logger.info("GEMINI_API_KEY not set; AI features disabled")
        return None
    return OpenAI(
        base_url=settings.gemini_base_url,
        api_key=settings.gemini_api_key,
    )


def complete(
    client: OpenAI | None,
    model: str,
    messages: list[dict],
    temperature: float = 0.7,
    max_tokens: int = 1000,
) -> str:
    """
    Call the Gemini model with chat messages, return assistant response text.
    """
    if client is None:
        raise ValueError("GEMINI_API_KEY environment variable is required")

    completion = client.chat.completions.create(
        model=model,
        messages=messages,
        temperature=temperature,
        max_tokens=max_tokens,
    )

    content = completion.choices[0].message.content
    if content is None:
        raise MalformedResponseError("Model returned empty response (no content)")
    return content
