"""
Zoom Provider

Server-to-server OAuth (account credentials grant) plus the meetings API.
"""

import logging

import httpx

from coach_scheduling.core.errors import MeetingProviderFailure
from coach_scheduling.services.meetings.base import MeetingDetails, MeetingProvider, MeetingRequest

logger = logging.getLogger(__name__)

ZOOM_TOKEN_URL = "https://zoom.us/oauth/token"
ZOOM_API_URL = "https://api.zoom.us/v2"


class ZoomProvider(MeetingProvider):
    name = "zoom"

    def __init__(
        self,
        account_id: str,
        client_id: str,
        client_secret: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.account_id = account_id
        self.client_id = client_id
        self.client_secret = client_secret
        self._transport = transport

    async def _access_token(self, client: httpx.AsyncClient) -> str:
        resp = await client.post(
            ZOOM_TOKEN_URL,
            params={"grant_type": "account_credentials", "account_id": self.account_id},
            auth=(self.client_id, self.client_secret),
        )
        if resp.status_code != 200:
            logger.warning("Zoom token request failed: status=%s body=%s", resp.status_code, resp.text[:500])
            raise MeetingProviderFailure(f"Zoom OAuth returned {resp.status_code}")
        return resp.json()["access_token"]

    async def create_meeting(self, request: MeetingRequest) -> MeetingDetails:
        body = {
            "topic": request.title,
            "type": 2,  # scheduled
            "start_time": request.start_time.strftime("%Y-%m-%dT%H:%M:%SZ"),
            "duration": request.duration_minutes,
            "timezone": "UTC",
            "settings": {"join_before_host": False, "waiting_room": True},
        }
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=10.0) as client:
                token = await self._access_token(client)
                resp = await client.post(
                    f"{ZOOM_API_URL}/users/me/meetings",
                    json=body,
                    headers={"Authorization": f"Bearer {token}"},
                )
        except httpx.HTTPError as e:
            raise MeetingProviderFailure(f"Zoom unreachable: {e}") from e
        if resp.status_code != 201:
            logger.warning("Zoom meeting creation failed: status=%s body=%s", resp.status_code, resp.text[:500])
            raise MeetingProviderFailure(f"Zoom returned {resp.status_code}")
        data = resp.json()
        return MeetingDetails(
            meeting_id=str(data["id"]),
            join_url=data["join_url"],
            password=data.get("password"),
            provider=self.name,
        )

    async def delete_meeting(self, meeting_id: str) -> bool:
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=10.0) as client:
                token = await self._access_token(client)
                resp = await client.delete(
                    f"{ZOOM_API_URL}/meetings/{meeting_id}",
                    headers={"Authorization": f"Bearer {token}"},
                )
        except (httpx.HTTPError, MeetingProviderFailure) as e:
            logger.warning("Zoom meeting deletion failed for %s: %s", meeting_id, e)
            return False
        return resp.status_code == 204
