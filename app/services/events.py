"""Remote calendar event representation of a booking."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from app.models.database import Booking

# Sessions are assumed to last one hour
EVENT_DURATION = timedelta(hours=1)
DEFAULT_CLIENT_NAME = "Client"


@dataclass
class CalendarEvent:
    """Provider-neutral event content for one booking."""
    booking_id: str
    title: str
    description: str
    start: datetime
    end: datetime
    timezone: str

    def time_payload(self) -> dict[str, dict[str, str]]:
        """start/end objects shared by Google Calendar and Microsoft Graph."""
        return {
            "start": {"dateTime": _isoformat_utc(self.start), "timeZone": self.timezone},
            "end": {"dateTime": _isoformat_utc(self.end), "timeZone": self.timezone},
        }


def _isoformat_utc(value: datetime) -> str:
    # Stored timestamps are naive UTC
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def describe_booking(booking: Booking) -> str:
    description = f"Type: {booking.session_type}\n"
    if booking.goals:
        description += f"Objectif: {booking.goals}"
    return description


def build_event(booking: Booking, event_timezone: str) -> CalendarEvent:
    client_name = (booking.client.name if booking.client else None) or DEFAULT_CLIENT_NAME
    return CalendarEvent(
        booking_id=booking.id,
        title=f"Coaching - {client_name}",
        description=describe_booking(booking),
        start=booking.session_date,
        end=booking.session_date + EVENT_DURATION,
        timezone=event_timezone,
    )
