"""
Reminder Scheduler

Holds one ReminderSchedule per upcoming appointment in process memory and
sends the 24h / 1h / 15m reminders from a periodic tick.

State is rebuilt from the appointments table by rehydrate() on startup;
nothing here is persisted. Each reminder goes out at most once: its sent flag
is set after the notifier call whatever the outcome, and ticks never overlap.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from coach_scheduling.core.errors import NotifierFailure
from coach_scheduling.core.timeutil import utc_naive_now
from coach_scheduling.models.appointment import Appointment
from coach_scheduling.models.reminder import (
    REMINDER_OFFSETS,
    Reminder,
    ReminderDetails,
    ReminderKind,
    ReminderSchedule,
)
from coach_scheduling.services.appointment_store import AppointmentStore
from coach_scheduling.services.notifier import Notifier

logger = logging.getLogger(__name__)

MISSED_DURING_DOWNTIME = "missed during downtime"


@dataclass
class TickResult:
    sent: int = 0
    failed: int = 0
    removed: int = 0


class ReminderScheduler:
    def __init__(
        self,
        appointments: AppointmentStore,
        notifier: Notifier,
        grace_period: timedelta = timedelta(minutes=90),
        catch_up_on_recovery: bool = True,
        clock: Callable[[], datetime] = utc_naive_now,
    ) -> None:
        self._appointments = appointments
        self._notifier = notifier
        self.grace_period = grace_period
        self.catch_up_on_recovery = catch_up_on_recovery
        self._clock = clock
        self._schedules: dict[int, ReminderSchedule] = {}
        self._tick_lock = asyncio.Lock()
        self._task: asyncio.Task | None = None

    # --- schedule state ---

    def schedule(self, appointment: Appointment) -> ReminderSchedule:
        """Arm every reminder whose fire time is still ahead; past ones are never sent."""
        now = self._clock()
        reminders = {
            kind: Reminder(fire_at=appointment.session_time - offset)
            for kind, offset in REMINDER_OFFSETS.items()
            if appointment.session_time - offset > now
        }
        schedule = self._new_schedule(appointment, reminders)
        self._schedules[appointment.id] = schedule
        logger.info(
            "Scheduled reminders for appointment %s at %s: %s",
            appointment.id,
            appointment.session_time.isoformat(),
            ", ".join(f"{k.value}@{r.fire_at.isoformat()}" for k, r in reminders.items()) or "none",
        )
        return schedule

    def cancel(self, appointment_id: int) -> bool:
        removed = self._schedules.pop(appointment_id, None) is not None
        if removed:
            logger.info("Cancelled reminders for appointment %s", appointment_id)
        return removed

    def get(self, appointment_id: int) -> ReminderSchedule | None:
        return self._schedules.get(appointment_id)

    def schedules(self) -> list[ReminderSchedule]:
        return list(self._schedules.values())

    def stats(self) -> dict[str, int]:
        schedules = self.schedules()
        out = {"total_scheduled": len(schedules)}
        for kind in ReminderKind:
            out[f"pending_{kind.value}"] = sum(
                1 for s in schedules if kind in s.reminders and not s.reminders[kind].sent
            )
        return out

    # --- recovery ---

    async def rehydrate(self) -> int:
        """
        Rebuild schedules from Upcoming appointments whose session is ahead or
        still inside the grace window. Appointments already held are left alone
        so their sent flags survive.
        """
        now = self._clock()
        appointments = await self._appointments.list_upcoming(since=now - self.grace_period)
        restored = 0
        for appointment in appointments:
            if appointment.id in self._schedules:
                continue
            self._schedules[appointment.id] = self._recovered_schedule(appointment, now)
            restored += 1
        logger.info("Reminder scheduler rehydrated %d schedule(s)", restored)
        return restored

    def _recovered_schedule(self, appointment: Appointment, now: datetime) -> ReminderSchedule:
        reminders: dict[ReminderKind, Reminder] = {}
        missed: list[ReminderKind] = []
        for kind, offset in REMINDER_OFFSETS.items():
            fire_at = appointment.session_time - offset
            if fire_at > now:
                reminders[kind] = Reminder(fire_at=fire_at)
            else:
                missed.append(kind)
        skipped: dict[ReminderKind, str] = {}
        if missed and self.catch_up_on_recovery and appointment.session_time > now:
            # REMINDER_OFFSETS runs longest lead first, so the last miss is the most imminent
            latest = missed.pop()
            reminders[latest] = Reminder(fire_at=now)
            logger.info(
                "Appointment %s: %s reminder missed during downtime, sending on next tick",
                appointment.id,
                latest.value,
            )
        for kind in missed:
            skipped[kind] = MISSED_DURING_DOWNTIME
        if skipped:
            logger.warning(
                "Appointment %s: dropped reminder(s) %s (%s)",
                appointment.id,
                ", ".join(k.value for k in skipped),
                MISSED_DURING_DOWNTIME,
            )
        schedule = self._new_schedule(appointment, reminders)
        schedule.skipped = skipped
        return schedule

    @staticmethod
    def _new_schedule(appointment: Appointment, reminders: dict[ReminderKind, Reminder]) -> ReminderSchedule:
        return ReminderSchedule(
            appointment_id=appointment.id,
            user_id=appointment.user_id,
            display_name=appointment.display_name,
            contact_address=appointment.contact_address,
            session_time=appointment.session_time,
            meeting_link=appointment.meeting_link,
            reminders=reminders,
        )

    # --- delivery ---

    async def tick(self, now: datetime | None = None) -> TickResult:
        """Send due reminders, then drop schedules past their grace window. Calls queue, never overlap."""
        async with self._tick_lock:
            now = now or self._clock()
            result = TickResult()
            for appointment_id, schedule in list(self._schedules.items()):
                for kind in schedule.due(now):
                    # A cancel can land while an earlier send is awaited
                    if self._schedules.get(appointment_id) is not schedule:
                        break
                    if await self._send(schedule, kind):
                        result.sent += 1
                    else:
                        result.failed += 1
                    schedule.reminders[kind].mark_sent()
                if self._schedules.get(appointment_id) is not schedule:
                    continue
                if now >= schedule.session_time + self.grace_period:
                    self._schedules.pop(appointment_id, None)
                    result.removed += 1
                    logger.info("Cleaned up reminders for completed session: %s", appointment_id)
            if result.sent or result.failed or result.removed:
                logger.info(
                    "Reminder tick: sent=%d failed=%d removed=%d", result.sent, result.failed, result.removed
                )
            return result

    async def _send(self, schedule: ReminderSchedule, kind: ReminderKind) -> bool:
        details = ReminderDetails(
            appointment_id=schedule.appointment_id,
            display_name=schedule.display_name,
            session_time=schedule.session_time,
            meeting_link=schedule.meeting_link,
        )
        try:
            ok = await self._notifier.send(kind, schedule.contact_address, details)
        except NotifierFailure as e:
            logger.warning("%s reminder for appointment %s not delivered: %s", kind.value, schedule.appointment_id, e)
            return False
        except Exception as e:
            logger.exception(
                "Failed to send %s reminder for appointment %s: %s", kind.value, schedule.appointment_id, e
            )
            return False
        if not ok:
            logger.warning("Notifier did not deliver %s reminder for appointment %s", kind.value, schedule.appointment_id)
        return bool(ok)

    # --- timer loop ---

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, interval_seconds: float) -> None:
        if self.running:
            return
        logger.info("Starting reminder processor (checking every %s seconds)", interval_seconds)
        self._task = asyncio.create_task(self._loop(interval_seconds))

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _loop(self, interval_seconds: float) -> None:
        while True:
            try:
                await self.tick()
            except Exception as e:
                logger.exception("Reminder processing failed: %s", e)
            await asyncio.sleep(interval_seconds)
