"""Calendar sync action endpoint."""

import logging

import httpx
from fastapi import APIRouter, Depends
from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import get_db
from app.core.errors import UnknownAction
from app.core.http import get_http_client
from app.core.security import CurrentUser, create_oauth_state, get_current_user
from app.models.database import CalendarConnection
from app.models.sync_log import CalendarSyncLog
from app.schemas.responses import (
    AuthUrlResponse,
    CalendarSyncRequest,
    ConnectionStatus,
    ProviderSyncOutcome,
    StatusResponse,
    SuccessResponse,
    SyncAllResponse,
    SyncHistoryResponse,
    SyncLogEntry,
    SyncResponse,
)
from app.services.connections import delete_connection, list_connections
from app.services.oauth import (
    build_authorization_url,
    get_provider_config,
    redirect_uri,
    require_credentials,
)
from app.services.sync import CalendarSyncService, SyncResult

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["calendar-sync"])

HISTORY_LIMIT = 20


def get_sync_service(http: httpx.AsyncClient = Depends(get_http_client)) -> CalendarSyncService:
    settings = get_settings()
    return CalendarSyncService(http, settings.event_timezone)


async def _get_auth_url(db: AsyncSession, provider: str | None, user: CurrentUser) -> AuthUrlResponse:
    config = get_provider_config(provider)
    credentials = await require_credentials(db, config.name)
    settings = get_settings()

    url = build_authorization_url(
        config,
        client_id=credentials.client_id,
        redirect_to=redirect_uri(config.name, settings.public_base_url),
        state=create_oauth_state(user.id, config.name),
    )
    return AuthUrlResponse(url=url)


async def _sync(
    db: AsyncSession,
    provider: str | None,
    user: CurrentUser,
    sync_service: CalendarSyncService,
) -> SyncResponse:
    config = get_provider_config(provider)
    result = await sync_service.sync(db, user.id, config.name)
    return SyncResponse(pushed=result.pushed, errors=result.errors)


async def _sync_all(db: AsyncSession, user: CurrentUser, sync_service: CalendarSyncService) -> SyncAllResponse:
    outcomes = await sync_service.sync_connected_providers(db, user.id)
    results = {}
    for provider, outcome in outcomes.items():
        if isinstance(outcome, SyncResult):
            results[provider] = ProviderSyncOutcome(pushed=outcome.pushed, errors=outcome.errors)
        else:
            results[provider] = ProviderSyncOutcome(error=outcome.message)
    return SyncAllResponse(results=results)


async def _disconnect(db: AsyncSession, provider: str | None, user: CurrentUser) -> SuccessResponse:
    config = get_provider_config(provider)
    # Nothing to delete is still a success
    await delete_connection(db, user.id, config.name)
    return SuccessResponse()


async def _status(db: AsyncSession, user: CurrentUser) -> StatusResponse:
    connections = await list_connections(db, user.id)
    return StatusResponse(
        connections=[ConnectionStatus.model_validate(c) for c in connections]
    )


async def _history(db: AsyncSession, user: CurrentUser) -> SyncHistoryResponse:
    result = await db.execute(
        select(CalendarSyncLog)
        .join(CalendarConnection, CalendarSyncLog.connection_id == CalendarConnection.id)
        .where(CalendarConnection.user_id == user.id)
        .order_by(desc(CalendarSyncLog.created_at), desc(CalendarSyncLog.id))
        .limit(HISTORY_LIMIT)
    )
    return SyncHistoryResponse(
        logs=[SyncLogEntry.model_validate(log) for log in result.scalars().all()]
    )


@router.post("/calendar-sync")
async def calendar_sync(
    request: CalendarSyncRequest,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    sync_service: CalendarSyncService = Depends(get_sync_service),
):
    """
    Dispatch a calendar action for the authenticated caller.

    Actions: `sync`, `sync-all`, `get-auth-url`, `disconnect`, `status`,
    `history`. Failures are returned as `{"error": message}` with a non-200
    status.
    """
    action = request.action

    if action == "get-auth-url":
        return await _get_auth_url(db, request.provider, user)
    if action == "sync":
        return await _sync(db, request.provider, user, sync_service)
    if action == "sync-all":
        return await _sync_all(db, user, sync_service)
    if action == "disconnect":
        return await _disconnect(db, request.provider, user)
    if action == "status":
        return await _status(db, user)
    if action == "history":
        return await _history(db, user)

    raise UnknownAction()
