"""Shared HTTP client for outbound provider calls."""

from typing import AsyncGenerator

import httpx

from app.core.config import get_settings


def create_http_client() -> httpx.AsyncClient:
    """Build the async client used for OAuth and calendar API requests."""
    settings = get_settings()
    return httpx.AsyncClient(timeout=settings.http_timeout)


async def get_http_client() -> AsyncGenerator[httpx.AsyncClient, None]:
    """Dependency for FastAPI to get a request-scoped HTTP client."""
    async with create_http_client() as client:
        yield client
