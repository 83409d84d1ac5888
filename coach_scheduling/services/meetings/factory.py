"""
Meeting Provider Factory

Picks the provider named by settings.meeting_provider. A provider that is
selected but not configured falls back to simple rooms with a warning.
"""

import logging

from coach_scheduling.core.config import Settings
from coach_scheduling.services.meetings.base import MeetingProvider
from coach_scheduling.services.meetings.simple import SimpleMeetProvider

logger = logging.getLogger(__name__)


def get_provider(settings: Settings) -> MeetingProvider:
    """
    Args:
        settings: application settings ("simple", "google" or "zoom")

    Raises:
        ValueError: if the provider name is not supported
    """
    provider = (settings.meeting_provider or "simple").strip().lower()
    if provider == "google":
        if settings.google_meet_configured:
            from coach_scheduling.services.meetings.google_meet import GoogleMeetProvider

            return GoogleMeetProvider(
                access_token=settings.google_calendar_access_token,
                calendar_id=settings.google_calendar_id,
            )
        logger.warning("MEETING_PROVIDER=google but GOOGLE_CALENDAR_ACCESS_TOKEN is not set; using simple rooms")
    elif provider == "zoom":
        if settings.zoom_configured:
            from coach_scheduling.services.meetings.zoom import ZoomProvider

            return ZoomProvider(
                account_id=settings.zoom_account_id,
                client_id=settings.zoom_client_id,
                client_secret=settings.zoom_client_secret,
            )
        logger.warning("MEETING_PROVIDER=zoom but Zoom credentials are incomplete; using simple rooms")
    elif provider != "simple":
        raise ValueError(f"Unsupported meeting provider: {provider}")
    return SimpleMeetProvider(settings.meet_base_url)
