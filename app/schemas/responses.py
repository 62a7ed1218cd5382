"""Pydantic request and response models for API endpoints."""

from datetime import datetime
from pydantic import BaseModel, Field


class CalendarSyncRequest(BaseModel):
    """Body of POST /api/calendar-sync."""
    action: str
    provider: str | None = None


class SyncResponse(BaseModel):
    success: bool = True
    pushed: int
    errors: int


class ProviderSyncOutcome(BaseModel):
    """Per-provider result of a sync-all request."""
    pushed: int | None = None
    errors: int | None = None
    error: str | None = None


class SyncAllResponse(BaseModel):
    success: bool = True
    results: dict[str, ProviderSyncOutcome]


class AuthUrlResponse(BaseModel):
    url: str


class SuccessResponse(BaseModel):
    success: bool = True


class ConnectionStatus(BaseModel):
    """A connection as shown to its owner. Tokens are never included."""
    provider: str
    email: str | None
    connected_at: datetime
    token_expires_at: datetime | None

    class Config:
        from_attributes = True


class StatusResponse(BaseModel):
    connections: list[ConnectionStatus]


class SyncLogEntry(BaseModel):
    provider: str
    direction: str
    status: str
    details: str | None
    pushed: int
    errors: int
    created_at: datetime

    class Config:
        from_attributes = True


class SyncHistoryResponse(BaseModel):
    logs: list[SyncLogEntry]


class CredentialsResponse(BaseModel):
    """Stored OAuth app registration. The secret itself is never returned."""
    provider: str
    client_id: str
    has_secret: bool
    updated_at: datetime | None


class CredentialsUpdate(BaseModel):
    client_id: str = Field(min_length=1)
    client_secret: str = Field(min_length=1)
