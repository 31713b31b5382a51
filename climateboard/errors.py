"""Custom exceptions and centralized FastAPI error handlers."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ClimateBoardError(Exception):
    """Base exception with HTTP status code."""

    def __init__(self, message: str, status_code: int = 500):
        super().__init__(message)
        self.status_code = status_code


class QuotaExceededError(ClimateBoardError):
    """The hourly call ceiling for an external service has been reached."""

    def __init__(self, service: str, message: str, reset_ms: int = 0):
        super().__init__(message, status_code=429)
        self.service = service
        self.reset_ms = reset_ms


class DuplicateRequestError(ClimateBoardError):
    """An identical request is already in flight; this one was dropped."""

    def __init__(self, identity: str):
        super().__init__("An identical request is already in progress", status_code=409)
        self.identity = identity


class UpstreamError(ClimateBoardError):
    """An external API call failed or returned a non-success status."""

    def __init__(self, message: str, status_code: int = 502):
        super().__init__(message, status_code=status_code)


class MalformedResponseError(UpstreamError):
    """The AI provider replied with text that holds no parseable JSON."""


def register_error_handlers(app: FastAPI) -> None:
    """Register centralized exception handlers on the FastAPI app."""

    @app.exception_handler(QuotaExceededError)
    async def handle_quota_exceeded(_request: Request, exc: QuotaExceededError):
        headers = {}
        if exc.reset_ms:
            headers["Retry-After"] = str(max(1, exc.reset_ms // 1000))
        return JSONResponse(
            {"error": str(exc), "service": exc.service, "reset_ms": exc.reset_ms},
            status_code=exc.status_code,
            headers=headers,
        )

    @app.exception_handler(ClimateBoardError)
    async def handle_climateboard_error(_request: Request, exc: ClimateBoardError):
        return JSONResponse({"error": str(exc)}, status_code=exc.status_code)

    @app.exception_handler(ValueError)
    async def handle_value_error(_request: Request, exc: ValueError):
        return JSONResponse({"error": str(exc)}, status_code=400)

    @app.exception_handler(Exception)
    async def handle_unexpected(_request: Request, exc: Exception):
        logger.exception("Unhandled error: %s", exc)
        return JSONResponse(
            {"error": "Internal server error"},
            status_code=500,
        )
