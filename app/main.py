import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import get_settings
from app.core.database import init_db
from app.core.errors import register_exception_handlers
from app.api import config, calendar_sync, credentials, oauth_callback
from app.services.scheduler import start_scheduler, stop_scheduler

logging.basicConfig(
    level=logging.DEBUG if get_settings().debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown events."""
    # Startup
    await init_db()
    start_scheduler()
    yield
    # Shutdown
    stop_scheduler()


# Create FastAPI application
app = FastAPI(
    title="Coaching Calendar Sync",
    description="Pushes coaching bookings to connected Google and Outlook calendars",
    version="0.1.0",
    lifespan=lifespan,
)

# The admin front-end calls the sync endpoint from the browser
app.add_middleware(
    CORSMiddleware,
    allow_origins=[get_settings().site_url],
    allow_methods=["GET", "POST", "PUT", "OPTIONS"],
    allow_headers=["authorization", "content-type"],
)

register_exception_handlers(app)

# Include routers
app.include_router(config.router)
app.include_router(calendar_sync.router)
app.include_router(oauth_callback.router)
app.include_router(credentials.router)
