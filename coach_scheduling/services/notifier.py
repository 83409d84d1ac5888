import asyncio
import logging
from abc import ABC, abstractmethod

from coach_scheduling.core.config import Settings
from coach_scheduling.core.errors import NotifierFailure
from coach_scheduling.models.reminder import ReminderDetails, ReminderKind
from coach_scheduling.services.email_service import REMINDER_SUBJECTS, compose_reminder, send_email_sync

logger = logging.getLogger(__name__)


class Notifier(ABC):
    """Delivers one reminder. Returns True when the transport accepted it, False or NotifierFailure when not."""

    @abstractmethod
    async def send(self, kind: ReminderKind, contact_address: str, details: ReminderDetails) -> bool: ...


class EmailNotifier(Notifier):
    def __init__(self, session_duration_minutes: int = 60) -> None:
        self.session_duration_minutes = session_duration_minutes

    async def send(self, kind: ReminderKind, contact_address: str, details: ReminderDetails) -> bool:
        subject, html = compose_reminder(
            kind,
            recipient_name=details.display_name,
            session_time=details.session_time,
            duration_minutes=self.session_duration_minutes,
            meeting_link=details.meeting_link,
        )
        # smtplib blocks; keep it off the event loop
        if not await asyncio.to_thread(send_email_sync, contact_address, subject, html):
            raise NotifierFailure(f"SMTP did not accept the {kind.value} reminder for {contact_address}")
        return True


class LogNotifier(Notifier):
    """Used when SMTP is not configured: the reminder only shows up in the logs."""

    async def send(self, kind: ReminderKind, contact_address: str, details: ReminderDetails) -> bool:
        logger.info(
            "Reminder (%s) for appointment %s to %s: %s (session %s, link %s)",
            kind.value,
            details.appointment_id,
            contact_address,
            REMINDER_SUBJECTS[kind],
            details.session_time.isoformat(),
            details.meeting_link or "-",
        )
        return True


def get_notifier(settings: Settings) -> Notifier:
    if settings.email_enabled:
        return EmailNotifier(session_duration_minutes=settings.session_duration_minutes)
    logger.warning("SMTP not configured; reminders will be logged, not emailed")
    return LogNotifier()
