"""Shared test fixtures for the calendar sync test suite."""

import os

# Settings are read when app.core.database is imported
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("DB_PATH", ":memory:")
os.environ.setdefault("PUBLIC_BASE_URL", "https://api.example.test")
os.environ.setdefault("SITE_URL", "https://coach.example.test")

import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI
from jose import jwt
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession

from app.core.database import Base, get_db
from app.core.errors import register_exception_handlers
from app.core.http import get_http_client
# Import all models so their metadata is registered on Base
import app.models.database  # noqa: F401
import app.models.sync_log  # noqa: F401
from app.services.google_calendar import derive_event_id


@pytest_asyncio.fixture
async def async_session():
    """
    Provide an in-memory SQLite async session for tests.

    Creates all tables before the test, drops them after. Each test gets
    a clean database.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with session_factory() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


def make_access_token(user_id: str = "user-1", role: str | None = None, audience: str = "authenticated") -> str:
    """Sign a caller token the way the auth provider would."""
    now = datetime.now(timezone.utc)
    claims = {
        "sub": user_id,
        "aud": audience,
        "email": f"{user_id}@example.test",
        "iat": now,
        "exp": now + timedelta(hours=1),
    }
    if role:
        claims["app_metadata"] = {"role": role}
    return jwt.encode(claims, os.environ["JWT_SECRET"], algorithm="HS256")


@pytest.fixture
def auth_headers():
    """Return a function building a bearer header for a user."""
    def _auth_headers(user_id: str = "user-1", role: str | None = None) -> dict[str, str]:
        return {"Authorization": f"Bearer {make_access_token(user_id, role)}"}

    return _auth_headers


@pytest.fixture
def make_app(async_session):
    """Return a function building a minimal app with the given routers and a mocked DB."""
    def _make_app(routers, http_client=None) -> FastAPI:
        app = FastAPI()
        register_exception_handlers(app)
        for router in routers:
            app.include_router(router)

        async def override_get_db():
            yield async_session

        app.dependency_overrides[get_db] = override_get_db

        if http_client is not None:
            async def override_get_http_client():
                yield http_client

            app.dependency_overrides[get_http_client] = override_get_http_client

        return app

    return _make_app


class FakeProviderApi:
    """
    In-memory stand-in for Google Calendar, Microsoft Graph and their OAuth
    token endpoints, served through httpx.MockTransport.

    Every request is recorded in `requests`. Booking ids listed in
    `failing_bookings` get a 500 from the event endpoints.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.google_events: dict[str, dict] = {}
        self.outlook_events: dict[str, dict] = {}
        self.failing_bookings: set[str] = set()
        self.token_status = 200
        self.token_payload = {"access_token": "fresh-access", "expires_in": 3600}
        self.userinfo = {"email": "coach@gmail.test", "mail": "coach@outlook.test"}
        self.userinfo_status = 200

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    def calls(self, method: str, host: str | None = None) -> list[httpx.Request]:
        return [
            r for r in self.requests
            if r.method == method and (host is None or r.url.host == host)
        ]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        host = request.url.host

        if host in ("oauth2.googleapis.com", "login.microsoftonline.com"):
            return httpx.Response(self.token_status, json=self.token_payload)
        if host == "www.googleapis.com" and request.url.path == "/oauth2/v2/userinfo":
            return httpx.Response(self.userinfo_status, json={"email": self.userinfo["email"]})
        if host == "www.googleapis.com":
            return self._google(request)
        if host == "graph.microsoft.com" and request.url.path == "/v1.0/me":
            return httpx.Response(self.userinfo_status, json={"mail": self.userinfo["mail"], "userPrincipalName": "upn@outlook.test"})
        if host == "graph.microsoft.com":
            return self._graph(request)
        return httpx.Response(404)

    def _google_failing(self, event_id: str) -> bool:
        return any(derive_event_id(b) == event_id for b in self.failing_bookings)

    def _google(self, request: httpx.Request) -> httpx.Response:
        prefix = "/calendar/v3/calendars/primary/events"
        path = request.url.path
        if request.method == "PATCH" and path.startswith(prefix + "/"):
            event_id = path.rsplit("/", 1)[1]
            if self._google_failing(event_id):
                return httpx.Response(500, json={"error": "backend"})
            if event_id not in self.google_events:
                return httpx.Response(404, json={"error": "notFound"})
            self.google_events[event_id].update(json.loads(request.content))
            return httpx.Response(200, json=self.google_events[event_id])
        if request.method == "POST" and path == prefix:
            body = json.loads(request.content)
            if self._google_failing(body["id"]):
                return httpx.Response(500, json={"error": "backend"})
            if body["id"] in self.google_events:
                return httpx.Response(409, json={"error": "duplicate"})
            self.google_events[body["id"]] = body
            return httpx.Response(200, json=body)
        return httpx.Response(400)

    def _graph(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if request.method == "GET" and path == "/v1.0/me/events":
            flt = request.url.params.get("$filter", "")
            transaction_id = flt.split("'", 1)[1].rsplit("'", 1)[0].replace("''", "'")
            matches = [
                {"id": event_id, **body}
                for event_id, body in self.outlook_events.items()
                if body.get("transactionId") == transaction_id
            ]
            return httpx.Response(200, json={"value": matches})
        if request.method == "POST" and path == "/v1.0/me/events":
            body = json.loads(request.content)
            if body.get("transactionId") in self.failing_bookings:
                return httpx.Response(500, json={"error": "backend"})
            event_id = f"evt-{len(self.outlook_events) + 1}"
            self.outlook_events[event_id] = body
            return httpx.Response(201, json={"id": event_id, **body})
        if request.method == "PATCH" and path.startswith("/v1.0/me/events/"):
            event_id = path.rsplit("/", 1)[1]
            if event_id not in self.outlook_events:
                return httpx.Response(404)
            body = json.loads(request.content)
            if body.get("transactionId") in self.failing_bookings:
                return httpx.Response(500, json={"error": "backend"})
            self.outlook_events[event_id].update(body)
            return httpx.Response(200, json={"id": event_id, **self.outlook_events[event_id]})
        return httpx.Response(400)


@pytest.fixture
def provider_api():
    return FakeProviderApi()
