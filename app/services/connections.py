"""Calendar connection store."""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.database import CalendarConnection
from app.services.oauth import TokenGrant

logger = logging.getLogger(__name__)


async def get_connection(session: AsyncSession, user_id: str, provider: str) -> Optional[CalendarConnection]:
    result = await session.execute(
        select(CalendarConnection).where(
            CalendarConnection.user_id == user_id,
            CalendarConnection.provider == provider,
        )
    )
    return result.scalar_one_or_none()


async def list_connections(session: AsyncSession, user_id: str) -> list[CalendarConnection]:
    result = await session.execute(
        select(CalendarConnection)
        .where(CalendarConnection.user_id == user_id)
        .order_by(CalendarConnection.provider)
    )
    return list(result.scalars().all())


async def upsert_connection(
    session: AsyncSession,
    user_id: str,
    provider: str,
    grant: TokenGrant,
    email: str | None,
    now: Optional[datetime] = None,
) -> CalendarConnection:
    """Store a fresh grant for (user, provider), replacing any previous one."""
    now = now or datetime.utcnow()
    connection = await get_connection(session, user_id, provider)

    if connection is None:
        connection = CalendarConnection(user_id=user_id, provider=provider, connected_at=now)
        session.add(connection)

    connection.access_token = grant.access_token
    connection.refresh_token = grant.refresh_token
    connection.token_expires_at = grant.expires_at(now)
    connection.email = email

    await session.commit()
    await session.refresh(connection)
    logger.info(f"Stored {provider} connection for user {user_id}")
    return connection


async def delete_connection(session: AsyncSession, user_id: str, provider: str) -> bool:
    """Remove the connection. Returns False when there was nothing to remove."""
    result = await session.execute(
        delete(CalendarConnection).where(
            CalendarConnection.user_id == user_id,
            CalendarConnection.provider == provider,
        )
    )
    await session.commit()
    removed = result.rowcount > 0
    if removed:
        logger.info(f"Disconnected {provider} for user {user_id}")
    return removed
