"""Microsoft Graph (Outlook) calendar event upsert."""

import logging
from typing import Optional

from app.services.events import CalendarEvent
from app.services.provider_http import CalendarApiClient

logger = logging.getLogger(__name__)

GRAPH_API = "https://graph.microsoft.com/v1.0"


def transaction_filter(booking_id: str) -> str:
    """OData filter matching events created for a booking."""
    escaped = booking_id.replace("'", "''")
    return f"transactionId eq '{escaped}'"


class OutlookCalendarClient(CalendarApiClient):
    """Pushes booking events to the user's default Outlook calendar."""

    base_url = GRAPH_API

    @staticmethod
    def event_body(event: CalendarEvent) -> dict:
        return {
            "subject": event.title,
            "body": {"contentType": "Text", "content": event.description},
            **event.time_payload(),
            "transactionId": event.booking_id,
        }

    async def find_event_id(self, booking_id: str) -> Optional[str]:
        """Id of the event carrying this booking's transactionId, if any."""
        response = await self._request(
            "GET", "/me/events", params={"$filter": transaction_filter(booking_id)}
        )
        self._raise_for_failure(response, "Outlook search")
        events = response.json().get("value") or []
        return events[0]["id"] if events else None

    async def upsert_event(self, event: CalendarEvent) -> str:
        """
        Create or update the event for a booking.

        Returns:
            "updated" or "created".
        """
        body = self.event_body(event)
        existing_id = await self.find_event_id(event.booking_id)

        if existing_id:
            response = await self._request("PATCH", f"/me/events/{existing_id}", json=body)
            self._raise_for_failure(response, "Outlook update")
            return "updated"

        response = await self._request("POST", "/me/events", json=body)
        self._raise_for_failure(response, "Outlook create")
        logger.debug(f"Created Outlook event for booking {event.booking_id}")
        return "created"
