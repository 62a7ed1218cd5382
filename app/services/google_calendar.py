"""Google Calendar event upsert."""

import logging

from app.services.events import CalendarEvent
from app.services.provider_http import CalendarApiClient

logger = logging.getLogger(__name__)

GOOGLE_CALENDAR_API = "https://www.googleapis.com/calendar/v3"
GOOGLE_EVENT_ID_LENGTH = 32


def derive_event_id(booking_id: str) -> str:
    """
    Deterministic Google event id for a booking.

    Google event ids are limited to lowercase base32hex characters, so the
    uuid separators are dropped. The first 32 characters of a uuid are its
    whole hex payload.
    """
    return booking_id.replace("-", "").lower()[:GOOGLE_EVENT_ID_LENGTH]


class GoogleCalendarClient(CalendarApiClient):
    """Pushes booking events to the user's primary Google calendar."""

    base_url = GOOGLE_CALENDAR_API
    calendar_id = "primary"

    @staticmethod
    def event_body(event: CalendarEvent) -> dict:
        return {
            "summary": event.title,
            "description": event.description,
            **event.time_payload(),
        }

    async def upsert_event(self, event: CalendarEvent) -> str:
        """
        Create or update the event for a booking.

        PATCH the derived id first; a 404 means the booking was never pushed,
        so it is created with that same id for later syncs to find.

        Returns:
            "updated" or "created".
        """
        event_id = derive_event_id(event.booking_id)
        body = self.event_body(event)

        response = await self._request(
            "PATCH", f"/calendars/{self.calendar_id}/events/{event_id}", json=body
        )
        if response.status_code != 404:
            self._raise_for_failure(response, "Google patch")
            return "updated"

        response = await self._request(
            "POST", f"/calendars/{self.calendar_id}/events", json={**body, "id": event_id}
        )
        self._raise_for_failure(response, "Google create")
        logger.debug(f"Created Google event {event_id} for booking {event.booking_id}")
        return "created"
