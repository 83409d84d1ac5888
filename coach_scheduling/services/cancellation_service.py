import logging

from sqlalchemy.ext.asyncio import AsyncSession

from coach_scheduling.core.errors import Forbidden, InvalidState, NotFound
from coach_scheduling.core.timeutil import slot_key
from coach_scheduling.models.appointment import Appointment, AppointmentStatus
from coach_scheduling.models.schedule import Slot, SlotStatus
from coach_scheduling.services.appointment_store import AppointmentStore
from coach_scheduling.services.meetings.service import MeetingService
from coach_scheduling.services.reminder_scheduler import ReminderScheduler
from coach_scheduling.services.schedule_store import ScheduleStore

logger = logging.getLogger(__name__)


class CancellationService:
    def __init__(
        self,
        schedules: ScheduleStore,
        appointments: AppointmentStore,
        reminders: ReminderScheduler,
        meetings: MeetingService | None = None,
    ) -> None:
        self._schedules = schedules
        self._appointments = appointments
        self._reminders = reminders
        self._meetings = meetings

    async def cancel(self, appointment_id: int, requester_id: str) -> Appointment:
        """
        Cancel an upcoming appointment and free its slot in one transaction.

        Raises:
            NotFound: no such appointment
            Forbidden: it belongs to someone else
            InvalidState: it is not Upcoming (already cancelled or completed)
            StoreError: persistence unavailable
        """
        appointment = await self._appointments.get(appointment_id)
        if appointment is None:
            raise NotFound()
        if appointment.user_id != requester_id:
            raise Forbidden()
        if appointment.status != AppointmentStatus.UPCOMING:
            raise InvalidState()

        day, key = slot_key(appointment.session_time)

        def release(slots: dict[str, Slot]) -> dict[str, Slot]:
            slot = slots.get(key)
            if slot is None or slot.status != SlotStatus.BOOKED or slot.booked_by_user_id != appointment.user_id:
                logger.warning(
                    "Appointment %s: slot %s %s is not booked by %s, leaving it as is",
                    appointment_id,
                    day,
                    key,
                    appointment.user_id,
                )
                return slots
            slots[key] = Slot(time=key, status=SlotStatus.AVAILABLE)
            return slots

        async def mark_cancelled(session: AsyncSession) -> None:
            # Guarded on status so a concurrent cancel commits once and the other gets InvalidState
            await self._appointments.transition_status(session, appointment_id, AppointmentStatus.CANCELLED)

        await self._schedules.transact(day, release, before_commit=mark_cancelled)
        appointment.status = AppointmentStatus.CANCELLED
        logger.info("Cancelled appointment %s and released slot %s %s", appointment_id, day, key)

        try:
            self._reminders.cancel(appointment_id)
        except Exception as e:
            logger.exception("Failed to cancel reminders for appointment %s: %s", appointment_id, e)

        if self._meetings is not None and appointment.meeting_id:
            try:
                await self._meetings.cancel_meeting(appointment.meeting_id, appointment.meeting_provider)
            except Exception as e:
                logger.exception("Failed to cancel meeting for appointment %s: %s", appointment_id, e)
        return appointment
