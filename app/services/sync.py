"""Sync orchestration - pushes bookings to connected provider calendars."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import CalendarSyncError, NotConnected, TokenRefreshFailed
from app.models.database import Booking, CalendarConnection
from app.models.sync_log import CalendarSyncLog
from app.services.connections import get_connection, list_connections
from app.services.events import build_event
from app.services.google_calendar import GoogleCalendarClient
from app.services.oauth import GOOGLE, OAuthClient, get_provider_config
from app.services.outlook_calendar import OutlookCalendarClient
from app.services.provider_http import BASE_BACKOFF_SECONDS, CalendarApiClient
from app.services.tokens import get_valid_token

logger = logging.getLogger(__name__)

# Past sessions stay visible briefly; the forward horizon bounds API volume
SYNC_LOOKBACK = timedelta(days=30)
SYNC_LOOKAHEAD = timedelta(days=90)
SYNCED_STATUSES = ("confirmed", "pending")
SYNC_DIRECTION = "push"


@dataclass
class SyncResult:
    """Outcome of one sync invocation."""
    pushed: int = 0
    errors: int = 0

    @property
    def status(self) -> str:
        return "error" if self.errors > 0 else "success"

    @property
    def details(self) -> str:
        return f"Pushed {self.pushed} events, {self.errors} errors"


def sync_window(now: datetime) -> tuple[datetime, datetime]:
    return now - SYNC_LOOKBACK, now + SYNC_LOOKAHEAD


async def bookings_in_window(session: AsyncSession, now: datetime) -> list[Booking]:
    """Confirmed and pending bookings within [now - 30 days, now + 90 days]."""
    start, end = sync_window(now)
    result = await session.execute(
        select(Booking)
        .where(
            Booking.session_date >= start,
            Booking.session_date <= end,
            Booking.status.in_(SYNCED_STATUSES),
        )
        .order_by(Booking.session_date)
    )
    return list(result.scalars().all())


class CalendarSyncService:
    """Pushes a window of bookings to a user's Google or Outlook calendar."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        event_timezone: str,
        backoff_seconds: float = BASE_BACKOFF_SECONDS,
    ):
        self.http = http
        self.event_timezone = event_timezone
        self.backoff_seconds = backoff_seconds
        self.oauth = OAuthClient(http)

    def _calendar_client(self, provider: str, access_token: str) -> CalendarApiClient:
        client_class = GoogleCalendarClient if provider == GOOGLE else OutlookCalendarClient
        return client_class(self.http, access_token, backoff_seconds=self.backoff_seconds)

    async def _write_log(
        self,
        session: AsyncSession,
        connection: CalendarConnection,
        status: str,
        details: str,
        result: SyncResult,
    ) -> None:
        session.add(CalendarSyncLog(
            connection_id=connection.id,
            provider=connection.provider,
            direction=SYNC_DIRECTION,
            status=status,
            details=details,
            pushed=result.pushed,
            errors=result.errors,
        ))
        await session.commit()

    async def sync(
        self,
        session: AsyncSession,
        user_id: str,
        provider: str,
        now: Optional[datetime] = None,
    ) -> SyncResult:
        """
        Push the booking window to one provider calendar.

        Raises:
            UnknownProvider: provider is not supported.
            NotConnected: the user has no connection for the provider.
            TokenRefreshFailed: no valid access token; the user must reconnect.
        """
        get_provider_config(provider)
        connection = await get_connection(session, user_id, provider)
        if connection is None:
            raise NotConnected(provider)
        return await self.sync_connection(session, connection, now)

    async def sync_connection(
        self,
        session: AsyncSession,
        connection: CalendarConnection,
        now: Optional[datetime] = None,
    ) -> SyncResult:
        now = now or datetime.utcnow()
        provider = connection.provider
        logger.info(f"Syncing bookings to {provider} for user {connection.user_id}")

        token = await get_valid_token(session, connection, self.oauth, now)
        if token is None:
            await self._write_log(
                session, connection, "error", "Token refresh failed, reconnect required", SyncResult()
            )
            raise TokenRefreshFailed()

        client = self._calendar_client(provider, token)
        bookings = await bookings_in_window(session, now)
        result = SyncResult()

        # One failing booking must not stop the others
        for booking in bookings:
            try:
                await client.upsert_event(build_event(booking, self.event_timezone))
                result.pushed += 1
            except Exception as e:
                logger.error(f"Failed to push booking {booking.id} to {provider}: {e}")
                result.errors += 1

        await self._write_log(session, connection, result.status, result.details, result)
        logger.info(f"{provider} sync completed for user {connection.user_id}: {result.details}")
        return result

    async def sync_connected_providers(
        self,
        session: AsyncSession,
        user_id: str,
        now: Optional[datetime] = None,
    ) -> dict[str, SyncResult | CalendarSyncError]:
        """Sync every provider the user has connected, used after a booking changes."""
        results: dict[str, SyncResult | CalendarSyncError] = {}
        for connection in await list_connections(session, user_id):
            try:
                results[connection.provider] = await self.sync_connection(session, connection, now)
            except CalendarSyncError as e:
                logger.warning(f"{connection.provider} sync failed for user {user_id}: {e.message}")
                results[connection.provider] = e
        return results

    async def sync_all_connections(
        self,
        session: AsyncSession,
        now: Optional[datetime] = None,
    ) -> dict[str, int]:
        """Sync every stored connection. Returns counts of synced and failed connections."""
        result = await session.execute(select(CalendarConnection).order_by(CalendarConnection.id))
        connections = list(result.scalars().all())

        summary = {"synced": 0, "failed": 0}
        for connection in connections:
            try:
                await self.sync_connection(session, connection, now)
                summary["synced"] += 1
            except CalendarSyncError as e:
                logger.warning(
                    f"Scheduled {connection.provider} sync failed for user {connection.user_id}: {e.message}"
                )
                summary["failed"] += 1
        return summary
