"""Error taxonomy for calendar sync and OAuth handlers."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class CalendarSyncError(Exception):
    """Base error rendered to API callers as {"error": message}."""

    status_code = 500
    default_message = "Unknown error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ConfigurationMissing(CalendarSyncError):
    """No OAuth client credentials are stored for the provider."""

    status_code = 400

    def __init__(self, provider: str):
        self.provider = provider
        super().__init__(f"{provider} credentials not configured")


class Unauthorized(CalendarSyncError):
    status_code = 401
    default_message = "Unauthorized"


class Forbidden(CalendarSyncError):
    status_code = 403
    default_message = "Forbidden"


class NotConnected(CalendarSyncError):
    """The caller has no stored connection for the provider."""

    status_code = 400

    def __init__(self, provider: str):
        self.provider = provider
        super().__init__(f"Not connected to {provider}")


class TokenRefreshFailed(CalendarSyncError):
    """No valid access token could be obtained. Terminal for the current sync."""

    status_code = 401
    default_message = "Failed to refresh token. Please reconnect."


class ProviderRequestFailed(CalendarSyncError):
    """A provider HTTP call returned a failure status or could not be sent."""

    status_code = 502

    def __init__(self, message: str, status: int | None = None):
        self.status = status
        super().__init__(message)


class UnknownAction(CalendarSyncError):
    status_code = 400
    default_message = "Unknown action"


class UnknownProvider(CalendarSyncError):
    status_code = 400
    default_message = "Unknown provider"


async def calendar_sync_error_handler(request: Request, exc: CalendarSyncError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


def register_exception_handlers(app: FastAPI) -> None:
    """Render CalendarSyncError subclasses as JSON error bodies."""
    app.add_exception_handler(CalendarSyncError, calendar_sync_error_handler)
