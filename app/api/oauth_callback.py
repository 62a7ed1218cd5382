"""OAuth redirect targets for calendar providers.

These endpoints are reached by a browser navigation, without a session.
The signed `state` parameter identifies the user. Every outcome is a
redirect back to the admin UI; provider errors are only logged.
"""

import logging
from typing import Optional
from urllib.parse import urlencode

import httpx
from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse, RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import get_db
from app.core.errors import ProviderRequestFailed
from app.core.http import get_http_client
from app.core.security import verify_oauth_state
from app.services.connections import upsert_connection
from app.services.oauth import (
    GOOGLE,
    OUTLOOK,
    OAuthClient,
    callback_path,
    get_provider_config,
    redirect_uri,
    require_credentials,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="", tags=["oauth"])


def _admin_redirect(params: dict[str, str]) -> RedirectResponse:
    settings = get_settings()
    return RedirectResponse(
        url=f"{settings.site_url.rstrip('/')}/admin?{urlencode(params)}",
        status_code=302,
    )


async def handle_callback(
    provider: str,
    code: Optional[str],
    state: Optional[str],
    error: Optional[str],
    db: AsyncSession,
    http: httpx.AsyncClient,
):
    if error:
        logger.error(f"{provider} OAuth denied: {error}")
        return _admin_redirect({"tab": "settings", "error": f"{provider}_oauth_failed"})

    if not code or not state:
        return PlainTextResponse("Missing code or state", status_code=400)

    settings = get_settings()
    config = get_provider_config(provider)
    oauth = OAuthClient(http)

    try:
        user_id = verify_oauth_state(state, provider)
        credentials = await require_credentials(db, provider)
        grant = await oauth.exchange_code(
            config,
            credentials,
            code,
            redirect_uri(provider, settings.public_base_url),
        )
        try:
            email = await oauth.fetch_account_email(config, grant.access_token)
        except ProviderRequestFailed as e:
            # The code is spent; keep the grant without an email
            logger.warning(f"{provider} account lookup failed, storing connection without email: {e}")
            email = None
        await upsert_connection(db, user_id, provider, grant, email)
    except Exception as e:
        logger.error(f"{provider} OAuth callback failed: {e}")
        await db.rollback()
        return _admin_redirect({"tab": "settings", "error": f"{provider}_oauth_failed"})

    return _admin_redirect({"tab": "calendar", "connected": provider})


@router.get(callback_path(GOOGLE))
async def google_calendar_callback(
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    http: httpx.AsyncClient = Depends(get_http_client),
):
    """Complete the Google authorization code flow."""
    return await handle_callback(GOOGLE, code, state, error, db, http)


@router.get(callback_path(OUTLOOK))
async def outlook_calendar_callback(
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    http: httpx.AsyncClient = Depends(get_http_client),
):
    """Complete the Microsoft identity platform authorization code flow."""
    return await handle_callback(OUTLOOK, code, state, error, db, http)
