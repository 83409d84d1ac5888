"""Tests for booking: slot reservation, appointment creation, meeting link and reminders."""

import asyncio
from datetime import UTC, date, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from coach_scheduling.core.errors import MeetingProviderFailure, SlotUnavailable
from coach_scheduling.models.appointment import AppointmentStatus, Requester
from coach_scheduling.models.reminder import ReminderKind
from coach_scheduling.models.schedule import SlotStatus
from coach_scheduling.services.booking_service import BookingService
from coach_scheduling.services.meetings.service import MeetingService
from coach_scheduling.services.reminder_scheduler import ReminderScheduler
from tests.conftest import open_slots

DAY = date(2025, 3, 1)
SESSION = datetime(2025, 3, 1, 10, 0)


@pytest.fixture
def reminders(appointment_store, notifier, clock):
    return ReminderScheduler(appointment_store, notifier, clock=clock)


@pytest.fixture
def booking(schedule_store, appointment_store, meetings, reminders):
    return BookingService(schedule_store, appointment_store, meetings, reminders)


class TestBook:
    @pytest.mark.asyncio
    async def test_books_open_slot(self, booking, schedule_store, appointment_store, reminders, alice):
        await open_slots(schedule_store, DAY, "10:00", "11:00")

        appointment = await booking.book(SESSION, alice)

        assert appointment.id is not None
        assert appointment.user_id == "user-a"
        assert appointment.status == AppointmentStatus.UPCOMING
        assert appointment.session_time == SESSION
        assert appointment.meeting_link.startswith("https://meet.test/room/")
        assert appointment.meeting_provider == "simple"

        slot = (await schedule_store.get(DAY)).slot_map()["10:00"]
        assert slot.status == SlotStatus.BOOKED
        assert slot.booked_by_user_id == "user-a"
        assert slot.booked_by_name == "Alice"

        stored = await appointment_store.get(appointment.id)
        assert stored.meeting_link == appointment.meeting_link

        schedule = reminders.get(appointment.id)
        assert set(schedule.reminders) == {ReminderKind.H24, ReminderKind.H1, ReminderKind.M15}
        assert schedule.meeting_link == appointment.meeting_link

    @pytest.mark.asyncio
    async def test_aware_time_is_normalized_to_utc(self, booking, schedule_store, alice):
        await open_slots(schedule_store, DAY, "10:00")

        appointment = await booking.book(datetime(2025, 3, 1, 10, 0, tzinfo=UTC), alice)

        assert appointment.session_time == SESSION

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [SlotStatus.UNAVAILABLE, SlotStatus.BOOKED])
    async def test_closed_slot_is_unavailable(self, booking, schedule_store, appointment_store, alice, status):
        await open_slots(schedule_store, DAY, "10:00", status=status)

        with pytest.raises(SlotUnavailable):
            await booking.book(SESSION, alice)

        assert await appointment_store.list_by_user("user-a") == []
        assert (await schedule_store.get(DAY)).version == 1

    @pytest.mark.asyncio
    async def test_time_off_the_minute_is_unavailable(self, booking, schedule_store, appointment_store, alice):
        await open_slots(schedule_store, DAY, "10:00")

        with pytest.raises(SlotUnavailable):
            await booking.book(datetime(2025, 3, 1, 10, 0, 45), alice)

        assert await appointment_store.list_by_user("user-a") == []
        assert (await schedule_store.get(DAY)).slot_map()["10:00"].status == SlotStatus.AVAILABLE

    @pytest.mark.asyncio
    async def test_missing_slot_is_unavailable(self, booking, schedule_store, alice):
        await open_slots(schedule_store, DAY, "11:00")

        with pytest.raises(SlotUnavailable):
            await booking.book(SESSION, alice)

    @pytest.mark.asyncio
    async def test_missing_day_is_unavailable(self, booking, schedule_store, alice):
        with pytest.raises(SlotUnavailable):
            await booking.book(SESSION, alice)

        assert await schedule_store.get(DAY) is None

    @pytest.mark.asyncio
    async def test_second_booking_of_same_slot_fails(self, booking, schedule_store, alice, bob):
        await open_slots(schedule_store, DAY, "10:00")
        await booking.book(SESSION, alice)

        with pytest.raises(SlotUnavailable):
            await booking.book(SESSION, bob)

        slot = (await schedule_store.get(DAY)).slot_map()["10:00"]
        assert slot.booked_by_user_id == "user-a"

    @pytest.mark.asyncio
    async def test_concurrent_bookings_have_one_winner(self, booking, schedule_store, appointment_store):
        await open_slots(schedule_store, DAY, "10:00")
        requesters = [
            Requester(user_id=f"user-{i}", display_name=f"User {i}", contact_address=f"u{i}@example.com")
            for i in range(5)
        ]

        results = await asyncio.gather(
            *(booking.book(SESSION, r) for r in requesters), return_exceptions=True
        )

        winners = [r for r in results if not isinstance(r, Exception)]
        losers = [r for r in results if isinstance(r, Exception)]
        assert len(winners) == 1
        assert all(isinstance(e, SlotUnavailable) for e in losers)

        slot = (await schedule_store.get(DAY)).slot_map()["10:00"]
        assert slot.status == SlotStatus.BOOKED
        assert slot.booked_by_user_id == winners[0].user_id
        upcoming = await appointment_store.list_upcoming()
        assert [a.id for a in upcoming] == [winners[0].id]


class TestBookSideEffects:
    @pytest.mark.asyncio
    async def test_meeting_failure_keeps_booking(self, schedule_store, appointment_store, reminders, alice):
        await open_slots(schedule_store, DAY, "10:00")
        meetings = AsyncMock(spec=MeetingService)
        meetings.create_for_appointment.side_effect = MeetingProviderFailure("zoom: 500")
        booking = BookingService(schedule_store, appointment_store, meetings, reminders)

        appointment = await booking.book(SESSION, alice)

        assert appointment.meeting_link is None
        assert (await appointment_store.get(appointment.id)).status == AppointmentStatus.UPCOMING
        assert reminders.get(appointment.id) is not None

    @pytest.mark.asyncio
    async def test_reminder_failure_keeps_booking(self, schedule_store, appointment_store, meetings, alice):
        await open_slots(schedule_store, DAY, "10:00")
        reminders = MagicMock(spec=ReminderScheduler)
        reminders.schedule.side_effect = RuntimeError("scheduler down")
        booking = BookingService(schedule_store, appointment_store, meetings, reminders)

        appointment = await booking.book(SESSION, alice)

        assert (await appointment_store.get(appointment.id)) is not None
        reminders.schedule.assert_called_once()

    @pytest.mark.asyncio
    async def test_close_booking_skips_past_reminders(self, booking, schedule_store, reminders, clock, alice):
        # Session two hours out: the 24h reminder is already in the past
        clock.now = datetime(2025, 3, 1, 8, 0)
        await open_slots(schedule_store, DAY, "10:00")

        appointment = await booking.book(SESSION, alice)

        schedule = reminders.get(appointment.id)
        assert set(schedule.reminders) == {ReminderKind.H1, ReminderKind.M15}
        assert schedule.reminders[ReminderKind.H1].fire_at == datetime(2025, 3, 1, 9, 0)
        assert schedule.reminders[ReminderKind.M15].fire_at == datetime(2025, 3, 1, 9, 45)
