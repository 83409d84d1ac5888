"""
Google Meet Provider

Creates a Google Calendar event with Meet conference data and returns its
hangout link. Needs an OAuth access token with the calendar.events scope.
"""

import logging
from datetime import timedelta
from uuid import uuid4

import httpx

from coach_scheduling.core.errors import MeetingProviderFailure
from coach_scheduling.services.meetings.base import MeetingDetails, MeetingProvider, MeetingRequest

logger = logging.getLogger(__name__)

GOOGLE_CALENDAR_EVENTS_URL = "https://www.googleapis.com/calendar/v3/calendars/{calendar_id}/events"


class GoogleMeetProvider(MeetingProvider):
    name = "google"

    def __init__(
        self,
        access_token: str,
        calendar_id: str = "primary",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.access_token = access_token
        self.calendar_id = calendar_id
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=self._transport,
            timeout=10.0,
            headers={"Authorization": f"Bearer {self.access_token}"},
        )

    async def create_meeting(self, request: MeetingRequest) -> MeetingDetails:
        end_time = request.start_time + timedelta(minutes=request.duration_minutes)
        body = {
            "summary": request.title,
            "start": {"dateTime": request.start_time.isoformat() + "Z", "timeZone": "UTC"},
            "end": {"dateTime": end_time.isoformat() + "Z", "timeZone": "UTC"},
            "attendees": [{"email": email} for email in request.participants],
            "conferenceData": {
                "createRequest": {
                    "requestId": str(uuid4()),
                    "conferenceSolutionKey": {"type": "hangoutsMeet"},
                }
            },
        }
        url = GOOGLE_CALENDAR_EVENTS_URL.format(calendar_id=self.calendar_id)
        try:
            async with self._client() as client:
                resp = await client.post(url, params={"conferenceDataVersion": 1}, json=body)
        except httpx.HTTPError as e:
            raise MeetingProviderFailure(f"Google Calendar unreachable: {e}") from e
        if resp.status_code not in (200, 201):
            logger.warning(
                "Google Meet creation failed: status=%s body=%s",
                resp.status_code,
                resp.text[:500],
            )
            raise MeetingProviderFailure(f"Google Calendar returned {resp.status_code}")
        data = resp.json()
        join_url = data.get("hangoutLink")
        if not join_url:
            raise MeetingProviderFailure("Google Calendar event has no Meet link")
        return MeetingDetails(meeting_id=data["id"], join_url=join_url, provider=self.name)

    async def delete_meeting(self, meeting_id: str) -> bool:
        url = f"{GOOGLE_CALENDAR_EVENTS_URL.format(calendar_id=self.calendar_id)}/{meeting_id}"
        try:
            async with self._client() as client:
                resp = await client.delete(url)
        except httpx.HTTPError as e:
            logger.warning("Google Meet deletion failed for %s: %s", meeting_id, e)
            return False
        # 410: already deleted
        return resp.status_code in (200, 204, 410)