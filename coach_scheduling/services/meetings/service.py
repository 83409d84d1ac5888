import logging
from datetime import datetime

from coach_scheduling.core.errors import MeetingProviderFailure
from coach_scheduling.services.meetings.base import MeetingDetails, MeetingProvider, MeetingRequest

logger = logging.getLogger(__name__)


class MeetingService:
    """Configured provider first, the no-dependency fallback if it fails."""

    def __init__(
        self,
        provider: MeetingProvider,
        fallback: MeetingProvider | None = None,
        title_prefix: str = "SOS Coaching Session",
    ) -> None:
        self.provider = provider
        self.fallback = fallback if fallback is not None and fallback.name != provider.name else None
        self.title_prefix = title_prefix

    async def create_for_appointment(
        self,
        appointment_id: int,
        start_time: datetime,
        duration_minutes: int,
        participants: list[str] | None = None,
    ) -> MeetingDetails:
        request = MeetingRequest(
            title=f"{self.title_prefix} - {appointment_id}",
            start_time=start_time,
            duration_minutes=duration_minutes,
            participants=[p for p in (participants or []) if p],
        )
        try:
            meeting = await self.provider.create_meeting(request)
        except Exception as e:
            if self.fallback is None:
                raise MeetingProviderFailure(f"{self.provider.name}: {e}") from e
            logger.warning(
                "Meeting provider %s failed for appointment %s (%s); using %s",
                self.provider.name,
                appointment_id,
                e,
                self.fallback.name,
            )
            try:
                meeting = await self.fallback.create_meeting(request)
            except Exception as fallback_error:
                raise MeetingProviderFailure(f"{self.fallback.name}: {fallback_error}") from fallback_error
        logger.info(
            "Meeting created for appointment %s: provider=%s meeting_id=%s",
            appointment_id,
            meeting.provider,
            meeting.meeting_id,
        )
        return meeting

    async def cancel_meeting(self, meeting_id: str, provider_name: str | None = None) -> bool:
        provider = self.provider
        if self.fallback is not None and provider_name == self.fallback.name:
            provider = self.fallback
        try:
            return await provider.delete_meeting(meeting_id)
        except Exception as e:
            logger.warning("Failed to cancel meeting %s: %s", meeting_id, e)
            return False
