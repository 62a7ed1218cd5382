from fastapi import APIRouter
from pydantic import BaseModel

from app.core.config import get_settings

router = APIRouter(prefix="/api", tags=["config"])


class HealthResponse(BaseModel):
    status: str
    version: str


class ConfigResponse(BaseModel):
    public_base_url: str
    site_url: str
    event_timezone: str
    http_timeout: float
    scheduled_sync_enabled: bool
    sync_hour: int
    debug: bool


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(status="ok", version="0.1.0")


@router.get("/config", response_model=ConfigResponse)
async def get_config() -> ConfigResponse:
    """Get current configuration (excluding secrets)."""
    settings = get_settings()
    return ConfigResponse(
        public_base_url=settings.public_base_url,
        site_url=settings.site_url,
        event_timezone=settings.event_timezone,
        http_timeout=settings.http_timeout,
        scheduled_sync_enabled=settings.scheduled_sync_enabled,
        sync_hour=settings.sync_hour,
        debug=settings.debug,
    )
