"""
Simple Meet Provider

Room links under our own meeting base URL. No external calls, so it is the
default and the fallback when a configured provider is missing or failing.
"""

import secrets

from coach_scheduling.services.meetings.base import MeetingDetails, MeetingProvider, MeetingRequest

ROOM_WORDS = ("care", "love", "hope", "grow", "heal", "bond", "trust", "peace")


class SimpleMeetProvider(MeetingProvider):
    name = "simple"

    def __init__(self, base_url: str) -> None:
        self.base_url = base_url.rstrip("/")

    async def create_meeting(self, request: MeetingRequest) -> MeetingDetails:
        room = f"{secrets.choice(ROOM_WORDS)}-{secrets.randbelow(900) + 100}-{secrets.token_hex(3)}"
        return MeetingDetails(
            meeting_id=room,
            join_url=f"{self.base_url}/room/{room}",
            provider=self.name,
        )

    async def delete_meeting(self, meeting_id: str) -> bool:
        # Rooms expire on their own after the session
        return True
