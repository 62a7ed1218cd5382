# Database models
from app.models.database import (
    Profile,
    Booking,
    CalendarCredentials,
    CalendarConnection,
)
from app.models.sync_log import CalendarSyncLog

__all__ = [
    "Profile",
    "Booking",
    "CalendarCredentials",
    "CalendarConnection",
    "CalendarSyncLog",
]
