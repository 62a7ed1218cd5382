"""Access token validity checks and refresh."""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ProviderRequestFailed
from app.models.database import CalendarConnection
from app.services.oauth import OAuthClient, get_credentials, get_provider_config

logger = logging.getLogger(__name__)


async def get_valid_token(
    session: AsyncSession,
    connection: CalendarConnection,
    oauth: OAuthClient,
    now: Optional[datetime] = None,
) -> Optional[str]:
    """
    Return an access token that has not expired yet.

    A stored token whose expiry lies in the future is returned without any
    network call. Otherwise the refresh token is exchanged for a new access
    token, which is persisted along with its expiry and, when the provider
    rotates it, the new refresh token.

    Returns:
        The access token, or None when no valid token could be obtained
        (no refresh token, no provider credentials, or the provider rejected
        the refresh). Callers must treat None as "reconnect required".
    """
    now = now or datetime.utcnow()

    if connection.token_expires_at is not None and connection.token_expires_at > now:
        return connection.access_token

    if not connection.refresh_token:
        logger.warning(
            f"{connection.provider} token expired for user {connection.user_id} and no refresh token is stored"
        )
        return None

    credentials = await get_credentials(session, connection.provider)
    if credentials is None:
        logger.error(f"Cannot refresh {connection.provider} token: credentials not configured")
        return None

    config = get_provider_config(connection.provider)
    try:
        grant = await oauth.refresh(config, credentials, connection.refresh_token)
    except ProviderRequestFailed as e:
        logger.error(f"Token refresh failed for user {connection.user_id}: {e}")
        return None

    connection.access_token = grant.access_token
    connection.token_expires_at = grant.expires_at(now)
    if grant.refresh_token:
        # Microsoft may rotate the refresh token on every use; Google usually keeps it
        connection.refresh_token = grant.refresh_token
    await session.commit()

    logger.info(f"Refreshed {connection.provider} token for user {connection.user_id}")
    return grant.access_token
