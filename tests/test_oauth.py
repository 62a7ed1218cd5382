"""Tests for OAuth URL building, code exchange and signed state."""

from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlparse

import pytest
from jose import jwt

from app.core.errors import ConfigurationMissing, ProviderRequestFailed, Unauthorized, UnknownProvider
from app.core.security import create_oauth_state, verify_oauth_state
from app.models.database import CalendarCredentials
from app.services.oauth import (
    OAuthClient,
    build_authorization_url,
    get_provider_config,
    redirect_uri,
    require_credentials,
)


def _query(url: str) -> dict[str, str]:
    return {k: v[0] for k, v in parse_qs(urlparse(url).query).items()}


class TestBuildAuthorizationUrl:

    def test_google_url_requests_calendar_and_email_offline(self):
        config = get_provider_config("google")
        url = build_authorization_url(
            config, "gid", "https://api.example.test/api/google-calendar-callback", "signed-state"
        )

        assert url.startswith("https://accounts.google.com/o/oauth2/v2/auth?")
        params = _query(url)
        assert params["client_id"] == "gid"
        assert params["redirect_uri"] == "https://api.example.test/api/google-calendar-callback"
        assert params["response_type"] == "code"
        assert params["scope"] == (
            "https://www.googleapis.com/auth/calendar "
            "https://www.googleapis.com/auth/userinfo.email"
        )
        assert params["access_type"] == "offline"
        assert params["prompt"] == "consent"
        assert params["state"] == "signed-state"

    def test_outlook_url_requests_offline_access(self):
        config = get_provider_config("outlook")
        url = build_authorization_url(config, "oid", "https://cb", "st")

        assert url.startswith("https://login.microsoftonline.com/common/oauth2/v2.0/authorize?")
        params = _query(url)
        assert params["scope"] == "Calendars.ReadWrite User.Read offline_access"
        assert params["state"] == "st"
        assert "access_type" not in params

    def test_redirect_uri_points_at_provider_callback(self):
        assert redirect_uri("outlook", "https://api.example.test/") == (
            "https://api.example.test/api/outlook-calendar-callback"
        )

    def test_unknown_provider_rejected(self):
        with pytest.raises(UnknownProvider):
            get_provider_config("icloud")
        with pytest.raises(UnknownProvider):
            get_provider_config(None)


class TestRequireCredentials:

    @pytest.mark.asyncio
    async def test_missing_credentials_names_provider(self, async_session):
        with pytest.raises(ConfigurationMissing) as exc_info:
            await require_credentials(async_session, "google")
        assert exc_info.value.status_code == 400
        assert "google" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_returns_stored_credentials(self, async_session):
        async_session.add(CalendarCredentials(provider="outlook", client_id="oid", client_secret="osecret"))
        await async_session.commit()

        credentials = await require_credentials(async_session, "outlook")
        assert credentials.client_id == "oid"


class TestOAuthClient:

    @pytest.mark.asyncio
    async def test_exchange_code_posts_authorization_code_grant(self, provider_api):
        credentials = CalendarCredentials(provider="google", client_id="gid", client_secret="gsecret")
        provider_api.token_payload = {"access_token": "at", "refresh_token": "rt", "expires_in": 3599}

        async with provider_api.client() as http:
            grant = await OAuthClient(http).exchange_code(
                get_provider_config("google"), credentials, "the-code", "https://cb"
            )

        assert grant.access_token == "at"
        assert grant.refresh_token == "rt"
        assert grant.expires_in == 3599

        [request] = provider_api.requests
        form = parse_qs(request.content.decode())
        assert form["grant_type"] == ["authorization_code"]
        assert form["code"] == ["the-code"]
        assert form["redirect_uri"] == ["https://cb"]
        assert form["client_secret"] == ["gsecret"]
        assert "scope" not in form

    @pytest.mark.asyncio
    async def test_outlook_refresh_sends_scope(self, provider_api):
        credentials = CalendarCredentials(provider="outlook", client_id="oid", client_secret="osecret")

        async with provider_api.client() as http:
            await OAuthClient(http).refresh(get_provider_config("outlook"), credentials, "old-rt")

        form = parse_qs(provider_api.requests[0].content.decode())
        assert form["grant_type"] == ["refresh_token"]
        assert form["refresh_token"] == ["old-rt"]
        assert form["scope"] == ["Calendars.ReadWrite User.Read offline_access"]

    @pytest.mark.asyncio
    async def test_rejected_exchange_raises(self, provider_api):
        credentials = CalendarCredentials(provider="google", client_id="gid", client_secret="gsecret")
        provider_api.token_status = 400
        provider_api.token_payload = {"error": "invalid_grant"}

        async with provider_api.client() as http:
            with pytest.raises(ProviderRequestFailed):
                await OAuthClient(http).exchange_code(
                    get_provider_config("google"), credentials, "used-code", "https://cb"
                )

    @pytest.mark.asyncio
    async def test_outlook_email_falls_back_to_principal_name(self, provider_api):
        provider_api.userinfo["mail"] = None

        async with provider_api.client() as http:
            email = await OAuthClient(http).fetch_account_email(get_provider_config("outlook"), "at")

        assert email == "upn@outlook.test"


class TestOAuthState:

    def test_round_trip_returns_user(self):
        state = create_oauth_state("user-42", "google")
        assert verify_oauth_state(state, "google") == "user-42"

    def test_state_for_other_provider_rejected(self):
        state = create_oauth_state("user-42", "google")
        with pytest.raises(Unauthorized):
            verify_oauth_state(state, "outlook")

    def test_state_signed_with_other_key_rejected(self):
        forged = jwt.encode(
            {"sub": "user-42", "provider": "google", "type": "oauth_state"},
            "not-the-secret",
            algorithm="HS256",
        )
        with pytest.raises(Unauthorized):
            verify_oauth_state(forged, "google")

    def test_raw_user_id_rejected(self):
        with pytest.raises(Unauthorized):
            verify_oauth_state("user-42", "google")

    def test_expired_state_rejected(self):
        issued = datetime.now(timezone.utc) - timedelta(hours=1)
        state = create_oauth_state("user-42", "google", now=issued)
        with pytest.raises(Unauthorized):
            verify_oauth_state(state, "google")
