"""Base client for provider calendar APIs with bounded retries."""

import asyncio
import logging
from typing import Any, Optional

import httpx

from app.core.errors import ProviderRequestFailed

logger = logging.getLogger(__name__)

# Retried with exponential backoff: 1, 2, 4 seconds
RETRY_STATUS_CODES = {429, 503}
MAX_RETRIES = 3
BASE_BACKOFF_SECONDS = 1.0
MAX_RETRY_AFTER_SECONDS = 60.0

# POST is never retried
IDEMPOTENT_METHODS = {"GET", "PATCH", "PUT", "DELETE"}


class CalendarApiClient:
    """Authenticated async client for one provider calendar API."""

    base_url: str = ""

    def __init__(
        self,
        http: httpx.AsyncClient,
        access_token: str,
        backoff_seconds: float = BASE_BACKOFF_SECONDS,
    ):
        self.http = http
        self.access_token = access_token
        self.backoff_seconds = backoff_seconds

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
        }

    def _retry_delay(self, response: Optional[httpx.Response], attempt: int) -> float:
        wait_time = self.backoff_seconds * (2 ** attempt)
        if response is not None and response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            if retry_after is not None:
                try:
                    wait_time = min(float(retry_after), MAX_RETRY_AFTER_SECONDS)
                except ValueError:
                    pass
        return wait_time

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict[str, Any]] = None,
        json: Optional[dict[str, Any]] = None,
    ) -> httpx.Response:
        """
        Send one API request.

        Idempotent methods are retried on 429/503 and transport errors, up to
        MAX_RETRIES times. The final response is returned whatever its status;
        callers decide which statuses count as failure.
        """
        url = f"{self.base_url}{path}"
        retries = MAX_RETRIES if method in IDEMPOTENT_METHODS else 0

        for attempt in range(retries + 1):
            try:
                response = await self.http.request(
                    method, url, params=params, json=json, headers=self._headers()
                )
            except httpx.TransportError as e:
                if attempt >= retries:
                    raise ProviderRequestFailed(f"{method} {path} failed: {e}")
                wait_time = self._retry_delay(None, attempt)
                logger.warning(
                    f"{method} {path} connection error, waiting {wait_time}s (attempt {attempt + 1}/{retries})"
                )
                await asyncio.sleep(wait_time)
                continue

            if response.status_code in RETRY_STATUS_CODES and attempt < retries:
                wait_time = self._retry_delay(response, attempt)
                logger.warning(
                    f"{method} {path} returned {response.status_code}, "
                    f"waiting {wait_time}s (attempt {attempt + 1}/{retries})"
                )
                await asyncio.sleep(wait_time)
                continue

            return response

    @staticmethod
    def _raise_for_failure(response: httpx.Response, context: str) -> None:
        if response.is_error:
            raise ProviderRequestFailed(
                f"{context} failed: HTTP {response.status_code} {response.text[:200]}",
                status=response.status_code,
            )
