"""Admin endpoints for provider OAuth credentials."""

import logging
from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.security import CurrentUser, require_admin
from app.models.database import CalendarCredentials
from app.schemas.responses import CredentialsResponse, CredentialsUpdate
from app.services.oauth import get_credentials, get_provider_config

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/calendar-credentials", tags=["calendar-credentials"])


def _to_response(credentials: CalendarCredentials) -> CredentialsResponse:
    return CredentialsResponse(
        provider=credentials.provider,
        client_id=credentials.client_id,
        has_secret=bool(credentials.client_secret),
        updated_at=credentials.updated_at,
    )


@router.get("", response_model=list[CredentialsResponse])
async def list_credentials(
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Return the stored OAuth app registration of each provider."""
    result = await db.execute(select(CalendarCredentials).order_by(CalendarCredentials.provider))
    return [_to_response(c) for c in result.scalars().all()]


@router.put("/{provider}", response_model=CredentialsResponse)
async def upsert_credentials(
    provider: str,
    body: CredentialsUpdate,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Create or replace the OAuth client id and secret for a provider."""
    config = get_provider_config(provider)
    credentials = await get_credentials(db, config.name)

    if credentials is None:
        credentials = CalendarCredentials(provider=config.name)
        db.add(credentials)

    credentials.client_id = body.client_id
    credentials.client_secret = body.client_secret

    await db.commit()
    await db.refresh(credentials)
    logger.info(f"{config.name} calendar credentials updated by {admin.id}")

    return _to_response(credentials)
