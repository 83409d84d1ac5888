from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum


class ReminderKind(str, Enum):
    H24 = "24h"
    H1 = "1h"
    M15 = "15m"


# Largest lead time first
REMINDER_OFFSETS: dict[ReminderKind, timedelta] = {
    ReminderKind.H24: timedelta(hours=24),
    ReminderKind.H1: timedelta(hours=1),
    ReminderKind.M15: timedelta(minutes=15),
}


@dataclass
class Reminder:
    fire_at: datetime
    sent: bool = False

    def mark_sent(self) -> None:
        # Never reset: a reminder goes out at most once
        self.sent = True


@dataclass
class ReminderSchedule:
    appointment_id: int
    user_id: str
    display_name: str
    contact_address: str
    session_time: datetime
    meeting_link: str | None = None
    reminders: dict[ReminderKind, Reminder] = field(default_factory=dict)
    skipped: dict[ReminderKind, str] = field(default_factory=dict)

    def due(self, now: datetime) -> list[ReminderKind]:
        return [kind for kind, r in self.reminders.items() if not r.sent and r.fire_at <= now]


@dataclass
class ReminderDetails:
    """What a notifier needs to render one reminder."""

    appointment_id: int
    display_name: str
    session_time: datetime
    meeting_link: str | None = None
