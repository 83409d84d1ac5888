import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from coach_scheduling.core.errors import SlotUnavailable
from coach_scheduling.core.timeutil import slot_key, to_naive_utc
from coach_scheduling.models.appointment import Appointment, AppointmentStatus, Requester
from coach_scheduling.models.schedule import Slot, SlotStatus
from coach_scheduling.services.appointment_store import AppointmentStore
from coach_scheduling.services.meetings.service import MeetingService
from coach_scheduling.services.reminder_scheduler import ReminderScheduler
from coach_scheduling.services.schedule_store import ScheduleStore

logger = logging.getLogger(__name__)


class BookingService:
    def __init__(
        self,
        schedules: ScheduleStore,
        appointments: AppointmentStore,
        meetings: MeetingService,
        reminders: ReminderScheduler,
        session_duration_minutes: int = 60,
    ) -> None:
        self._schedules = schedules
        self._appointments = appointments
        self._meetings = meetings
        self._reminders = reminders
        self.session_duration_minutes = session_duration_minutes

    async def book(self, time: datetime, requester: Requester) -> Appointment:
        """
        Reserve the slot at `time` for `requester` and create the appointment.

        The slot write and the appointment insert commit together. Meeting link
        and reminders come afterwards and never undo the booking.

        Raises:
            SlotUnavailable: the slot does not exist or is not Available (pick another)
            StoreError: persistence unavailable (retry)
        """
        session_time = to_naive_utc(time)
        if session_time.second or session_time.microsecond:
            raise SlotUnavailable("Slots start on whole minutes (HH:MM UTC). Please pick a listed slot.")
        day, key = slot_key(session_time)

        def reserve(slots: dict[str, Slot]) -> dict[str, Slot]:
            slot = slots.get(key)
            if slot is None or slot.status != SlotStatus.AVAILABLE:
                raise SlotUnavailable()
            slots[key] = Slot(
                time=key,
                status=SlotStatus.BOOKED,
                booked_by_user_id=requester.user_id,
                booked_by_name=requester.display_name,
            )
            return slots

        created: list[Appointment] = []

        async def insert_appointment(session: AsyncSession) -> None:
            # A retried attempt rolls back and inserts again; only the committed one counts
            created.clear()
            appointment = Appointment(
                user_id=requester.user_id,
                display_name=requester.display_name,
                contact_address=requester.contact_address,
                session_time=session_time,
                status=AppointmentStatus.UPCOMING,
            )
            created.append(await self._appointments.create(appointment, session=session))

        await self._schedules.transact(day, reserve, before_commit=insert_appointment)
        appointment = created[0]
        logger.info(
            "Booked slot %s %s for user %s (appointment %s)", day, key, requester.user_id, appointment.id
        )

        appointment = await self._attach_meeting(appointment)

        try:
            self._reminders.schedule(appointment)
        except Exception as e:
            logger.exception("Failed to schedule reminders for appointment %s: %s", appointment.id, e)
        return appointment

    async def _attach_meeting(self, appointment: Appointment) -> Appointment:
        try:
            meeting = await self._meetings.create_for_appointment(
                appointment.id,
                appointment.session_time,
                self.session_duration_minutes,
                participants=[appointment.contact_address],
            )
        except Exception as e:
            logger.error("Failed to create meeting link for appointment %s: %s", appointment.id, e)
            return appointment
        try:
            updated = await self._appointments.update(
                appointment.id,
                meeting_link=meeting.join_url,
                meeting_id=meeting.meeting_id,
                meeting_provider=meeting.provider,
            )
        except Exception as e:
            logger.exception("Failed to store meeting link for appointment %s: %s", appointment.id, e)
            return appointment
        return updated or appointment
