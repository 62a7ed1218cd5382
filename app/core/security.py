"""Caller authentication and OAuth state signing."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from app.core.config import get_settings
from app.core.errors import Forbidden, Unauthorized

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False, description="Caller access token")

OAUTH_STATE_TYPE = "oauth_state"


@dataclass
class CurrentUser:
    """Identity extracted from a verified caller token."""
    id: str
    email: str | None = None
    role: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def decode_access_token(token: str) -> dict[str, Any]:
    """Verify a caller token and return its claims."""
    settings = get_settings()
    try:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
        )
    except JWTError as e:
        logger.warning(f"Rejected caller token: {e}")
        raise Unauthorized()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> CurrentUser:
    """Dependency resolving the authenticated caller, or raising Unauthorized."""
    if credentials is None or not credentials.credentials:
        raise Unauthorized()

    payload = decode_access_token(credentials.credentials)
    user_id = payload.get("sub")
    if not user_id:
        raise Unauthorized()

    app_metadata = payload.get("app_metadata") or {}
    return CurrentUser(
        id=user_id,
        email=payload.get("email"),
        role=app_metadata.get("role"),
    )


async def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not user.is_admin:
        raise Forbidden("Admin access required")
    return user


def create_oauth_state(user_id: str, provider: str, now: datetime | None = None) -> str:
    """
    Sign the OAuth `state` parameter.

    The state carries the requesting user's id so the callback, which has no
    session, can attach the new connection to that user. It expires after
    `oauth_state_ttl_minutes` and is only valid for the provider it was
    issued for.
    """
    settings = get_settings()
    now = now or datetime.now(timezone.utc)
    claims = {
        "sub": user_id,
        "provider": provider,
        "type": OAUTH_STATE_TYPE,
        "iat": now,
        "exp": now + timedelta(minutes=settings.oauth_state_ttl_minutes),
    }
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_oauth_state(state: str, provider: str) -> str:
    """Return the user id carried by a signed state, or raise Unauthorized."""
    settings = get_settings()
    try:
        claims = jwt.decode(state, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        raise Unauthorized(f"Invalid OAuth state: {e}")

    if claims.get("type") != OAUTH_STATE_TYPE or claims.get("provider") != provider:
        raise Unauthorized("OAuth state was not issued for this provider")

    user_id = claims.get("sub")
    if not user_id:
        raise Unauthorized("OAuth state carries no user")
    return user_id
