"""APScheduler setup for the daily calendar sync job."""

import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from app.core.config import get_settings
from app.core.database import async_session_maker
from app.core.http import create_http_client
from app.services.sync import CalendarSyncService

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler: AsyncIOScheduler | None = None


async def run_scheduled_sync():
    """Push bookings to every connected calendar."""
    settings = get_settings()
    logger.info("Starting scheduled calendar sync job")

    async with create_http_client() as http:
        sync_service = CalendarSyncService(http, settings.event_timezone)
        async with async_session_maker() as session:
            try:
                summary = await sync_service.sync_all_connections(session)
                logger.info(f"Scheduled calendar sync completed: {summary}")
            except Exception as e:
                logger.error(f"Scheduled calendar sync failed: {e}")
                await session.rollback()


def start_scheduler():
    """Start the APScheduler when scheduled sync is enabled."""
    global scheduler

    settings = get_settings()
    if not settings.scheduled_sync_enabled:
        logger.info("Scheduled calendar sync disabled")
        return

    if scheduler is not None:
        logger.warning("Scheduler already started")
        return

    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        run_scheduled_sync,
        CronTrigger(hour=settings.sync_hour, minute=0),
        id="daily_calendar_sync",
        name="Daily booking push to connected calendars",
        replace_existing=True
    )

    scheduler.start()
    logger.info(f"Scheduler started - daily calendar sync at {settings.sync_hour}:00")


def stop_scheduler():
    """Stop the APScheduler."""
    global scheduler

    if scheduler is not None:
        scheduler.shutdown()
        scheduler = None
        logger.info("Scheduler stopped")
