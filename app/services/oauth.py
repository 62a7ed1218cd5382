"""OAuth authorization, code exchange and token refresh for calendar providers."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Optional
from urllib.parse import urlencode

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ConfigurationMissing, ProviderRequestFailed, UnknownProvider
from app.models.database import CalendarCredentials

logger = logging.getLogger(__name__)

GOOGLE = "google"
OUTLOOK = "outlook"
PROVIDERS = (GOOGLE, OUTLOOK)


@dataclass(frozen=True)
class ProviderConfig:
    """Endpoints and scopes of one OAuth provider."""
    name: str
    authorize_url: str
    token_url: str
    userinfo_url: str
    scopes: tuple[str, ...]
    extra_auth_params: dict[str, str] = field(default_factory=dict)
    # Microsoft identity platform wants the scope repeated on token requests
    scope_on_token_request: bool = False

    @property
    def scope(self) -> str:
        return " ".join(self.scopes)


PROVIDER_CONFIGS: dict[str, ProviderConfig] = {
    GOOGLE: ProviderConfig(
        name=GOOGLE,
        authorize_url="https://accounts.google.com/o/oauth2/v2/auth",
        token_url="https://oauth2.googleapis.com/token",
        userinfo_url="https://www.googleapis.com/oauth2/v2/userinfo",
        scopes=(
            "https://www.googleapis.com/auth/calendar",
            "https://www.googleapis.com/auth/userinfo.email",
        ),
        # offline + consent makes Google return a refresh token
        extra_auth_params={"access_type": "offline", "prompt": "consent"},
    ),
    OUTLOOK: ProviderConfig(
        name=OUTLOOK,
        authorize_url="https://login.microsoftonline.com/common/oauth2/v2.0/authorize",
        token_url="https://login.microsoftonline.com/common/oauth2/v2.0/token",
        userinfo_url="https://graph.microsoft.com/v1.0/me",
        scopes=("Calendars.ReadWrite", "User.Read", "offline_access"),
        scope_on_token_request=True,
    ),
}


def get_provider_config(provider: str | None) -> ProviderConfig:
    """Look up a provider, raising UnknownProvider for anything else."""
    config = PROVIDER_CONFIGS.get(provider or "")
    if config is None:
        raise UnknownProvider()
    return config


def callback_path(provider: str) -> str:
    return f"/api/{provider}-calendar-callback"


def redirect_uri(provider: str, public_base_url: str) -> str:
    """Callback URL registered with the provider; identical for authorize and exchange."""
    return f"{public_base_url.rstrip('/')}{callback_path(provider)}"


def build_authorization_url(config: ProviderConfig, client_id: str, redirect_to: str, state: str) -> str:
    params = {
        "client_id": client_id,
        "redirect_uri": redirect_to,
        "response_type": "code",
        "scope": config.scope,
        **config.extra_auth_params,
        "state": state,
    }
    return f"{config.authorize_url}?{urlencode(params)}"


async def get_credentials(session: AsyncSession, provider: str) -> Optional[CalendarCredentials]:
    result = await session.execute(
        select(CalendarCredentials).where(CalendarCredentials.provider == provider)
    )
    return result.scalar_one_or_none()


async def require_credentials(session: AsyncSession, provider: str) -> CalendarCredentials:
    """Load provider credentials or raise ConfigurationMissing."""
    credentials = await get_credentials(session, provider)
    if credentials is None:
        raise ConfigurationMissing(provider)
    return credentials


@dataclass
class TokenGrant:
    """Tokens returned by a provider token endpoint."""
    access_token: str
    refresh_token: str | None = None
    expires_in: int | None = None

    def expires_at(self, now: datetime) -> datetime | None:
        if self.expires_in is None:
            return None
        return now + timedelta(seconds=self.expires_in)


class OAuthClient:
    """Async client for provider token and identity endpoints."""

    def __init__(self, http: httpx.AsyncClient):
        self.http = http

    async def _post_token(self, config: ProviderConfig, form: dict[str, str], context: str) -> TokenGrant:
        if config.scope_on_token_request:
            form["scope"] = config.scope

        try:
            response = await self.http.post(
                config.token_url,
                data=form,
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as e:
            raise ProviderRequestFailed(f"{config.name} {context} request failed: {e}")

        if response.is_error:
            # Body holds the provider's error code, never the secret
            raise ProviderRequestFailed(
                f"{config.name} {context} failed: HTTP {response.status_code} {response.text[:200]}",
                status=response.status_code,
            )

        payload = response.json()
        access_token = payload.get("access_token")
        if not access_token:
            raise ProviderRequestFailed(f"{config.name} {context} returned no access token")

        expires_in = payload.get("expires_in")
        return TokenGrant(
            access_token=access_token,
            refresh_token=payload.get("refresh_token"),
            expires_in=int(expires_in) if expires_in is not None else None,
        )

    async def exchange_code(
        self,
        config: ProviderConfig,
        credentials: CalendarCredentials,
        code: str,
        redirect_to: str,
    ) -> TokenGrant:
        """Trade an authorization code for tokens (grant_type=authorization_code)."""
        return await self._post_token(
            config,
            {
                "code": code,
                "client_id": credentials.client_id,
                "client_secret": credentials.client_secret,
                "redirect_uri": redirect_to,
                "grant_type": "authorization_code",
            },
            "token exchange",
        )

    async def refresh(
        self,
        config: ProviderConfig,
        credentials: CalendarCredentials,
        refresh_token: str,
    ) -> TokenGrant:
        """Obtain a new access token (grant_type=refresh_token)."""
        return await self._post_token(
            config,
            {
                "client_id": credentials.client_id,
                "client_secret": credentials.client_secret,
                "refresh_token": refresh_token,
                "grant_type": "refresh_token",
            },
            "token refresh",
        )

    async def fetch_account_email(self, config: ProviderConfig, access_token: str) -> str | None:
        """Return the email of the account that granted access."""
        try:
            response = await self.http.get(
                config.userinfo_url,
                headers={"Authorization": f"Bearer {access_token}"},
            )
        except httpx.HTTPError as e:
            raise ProviderRequestFailed(f"{config.name} userinfo request failed: {e}")

        if response.is_error:
            raise ProviderRequestFailed(
                f"{config.name} userinfo failed: HTTP {response.status_code}",
                status=response.status_code,
            )

        info: dict[str, Any] = response.json()
        if config.name == OUTLOOK:
            return info.get("mail") or info.get("userPrincipalName")
        return info.get("email")
