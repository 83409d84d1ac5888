"""
Scheduling Core

Transport-agnostic entry point: the caller-facing booking operations plus
the admin operations, wired once at startup by build_core().
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from coach_scheduling.core.config import Settings
from coach_scheduling.core.errors import InvalidState, NotFound
from coach_scheduling.core.timeutil import SLOT_KEY_FORMAT, utc_naive_now
from coach_scheduling.models.appointment import Appointment, AppointmentStatus, Requester
from coach_scheduling.models.schedule import DailySchedule, Slot, SlotStatus
from coach_scheduling.services.appointment_store import AppointmentStore
from coach_scheduling.services.availability_service import AvailabilityResolver
from coach_scheduling.services.booking_service import BookingService
from coach_scheduling.services.cancellation_service import CancellationService
from coach_scheduling.services.meetings.factory import get_provider
from coach_scheduling.services.meetings.service import MeetingService
from coach_scheduling.services.meetings.simple import SimpleMeetProvider
from coach_scheduling.services.notifier import Notifier, get_notifier
from coach_scheduling.services.reminder_scheduler import ReminderScheduler
from coach_scheduling.services.schedule_store import ScheduleStore

logger = logging.getLogger(__name__)


@dataclass
class SchedulingCore:
    schedules: ScheduleStore
    appointments: AppointmentStore
    availability: AvailabilityResolver
    booking: BookingService
    cancellation: CancellationService
    reminders: ReminderScheduler
    default_window_days: int = 7
    max_window_days: int = 60

    # --- caller-facing ---

    async def list_availability(self, window_days: int | None = None) -> list[datetime]:
        days = self.default_window_days if window_days is None else window_days
        if days < 1:
            raise ValueError("window_days must be at least 1")
        return await self.availability.list_available(min(days, self.max_window_days))

    async def book_slot(self, time: datetime, requester: Requester) -> Appointment:
        return await self.booking.book(time, requester)

    async def cancel_appointment(self, appointment_id: int, requester_id: str) -> Appointment:
        return await self.cancellation.cancel(appointment_id, requester_id)

    async def list_user_appointments(self, user_id: str) -> list[Appointment]:
        return await self.appointments.list_by_user(user_id)

    # --- admin ---

    async def get_schedule(self, day: date) -> DailySchedule | None:
        return await self.schedules.get(day)

    async def set_slot_status(self, day: date, slot_time: time, status: SlotStatus) -> dict[str, Slot]:
        """Open or close a slot. Booked slots only change through booking and cancellation."""
        if status == SlotStatus.BOOKED:
            raise InvalidState("Slots are booked through the booking flow")
        key = slot_time.strftime(SLOT_KEY_FORMAT)

        def apply(slots: dict[str, Slot]) -> dict[str, Slot]:
            current = slots.get(key)
            if current is not None and current.status == SlotStatus.BOOKED:
                raise InvalidState(f"Slot {key} is booked; cancel the appointment first")
            slots[key] = Slot(time=key, status=status)
            return slots

        updated = await self.schedules.transact(day, apply)
        logger.info("Schedule %s: slot %s set to %s", day, key, status.value)
        return updated

    async def complete_appointment(self, appointment_id: int) -> Appointment:
        appointment = await self.appointments.get(appointment_id)
        if appointment is None:
            raise NotFound()
        if appointment.status != AppointmentStatus.UPCOMING:
            raise InvalidState("Only upcoming appointments can be completed")
        try:
            # Guarded on status so a cancel committed since the read wins
            updated = await self.appointments.change_status(appointment_id, AppointmentStatus.COMPLETED)
        except InvalidState as e:
            raise InvalidState("Only upcoming appointments can be completed") from e
        self.reminders.cancel(appointment_id)
        return updated or appointment

    async def list_appointments_between(self, start: datetime, end: datetime) -> list[Appointment]:
        return await self.appointments.list_between(start, end)

    def reminder_stats(self) -> dict[str, int]:
        return self.reminders.stats()

    # --- lifecycle ---

    async def start(self, tick_seconds: float) -> None:
        await self.reminders.rehydrate()
        self.reminders.start(tick_seconds)

    async def stop(self) -> None:
        await self.reminders.stop()


def build_core(
    settings: Settings,
    session_maker: async_sessionmaker[AsyncSession],
    notifier: Notifier | None = None,
    meetings: MeetingService | None = None,
    clock: Callable[[], datetime] = utc_naive_now,
) -> SchedulingCore:
    schedules = ScheduleStore(
        session_maker,
        max_attempts=settings.store_max_attempts,
        retry_backoff_seconds=settings.store_retry_backoff_seconds,
    )
    appointments = AppointmentStore(session_maker)
    if meetings is None:
        meetings = MeetingService(
            get_provider(settings),
            fallback=SimpleMeetProvider(settings.meet_base_url),
            title_prefix=settings.meeting_title_prefix,
        )
    reminders = ReminderScheduler(
        appointments,
        notifier or get_notifier(settings),
        grace_period=timedelta(minutes=settings.reminder_grace_minutes),
        catch_up_on_recovery=settings.reminder_catch_up_on_recovery,
        clock=clock,
    )
    return SchedulingCore(
        schedules=schedules,
        appointments=appointments,
        availability=AvailabilityResolver(schedules, clock=clock),
        booking=BookingService(
            schedules,
            appointments,
            meetings,
            reminders,
            session_duration_minutes=settings.session_duration_minutes,
        ),
        cancellation=CancellationService(schedules, appointments, reminders, meetings),
        reminders=reminders,
        default_window_days=settings.availability_window_days,
        max_window_days=settings.max_availability_window_days,
    )
