"""
Base Meeting Provider

Defines the interface that all meeting providers must implement.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class MeetingRequest:
    title: str
    start_time: datetime  # naive UTC
    duration_minutes: int
    participants: list[str] = field(default_factory=list)  # attendee emails


@dataclass
class MeetingDetails:
    meeting_id: str
    join_url: str
    password: str | None = None
    provider: str = ""


class MeetingProvider(ABC):
    """Allocates and releases joinable meetings."""

    name = "base"

    @abstractmethod
    async def create_meeting(self, request: MeetingRequest) -> MeetingDetails:
        """
        Create a meeting with the provider.

        Raises:
            MeetingProviderFailure: if the provider rejects or cannot be reached
        """

    @abstractmethod
    async def delete_meeting(self, meeting_id: str) -> bool:
        """Cancel a meeting. Returns False if the provider did not confirm it."""
