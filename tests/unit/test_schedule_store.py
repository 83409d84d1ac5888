"""Tests for ScheduleStore transactions."""

from datetime import date
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from coach_scheduling.core.errors import SlotUnavailable, StoreError
from coach_scheduling.models.schedule import Slot, SlotStatus
from tests.conftest import open_slots

DAY = date(2025, 3, 1)


class TestScheduleStore:
    @pytest.mark.asyncio
    async def test_get_absent_day_returns_none(self, schedule_store):
        assert await schedule_store.get(DAY) is None

    @pytest.mark.asyncio
    async def test_transact_creates_day_lazily(self, schedule_store):
        await open_slots(schedule_store, DAY, "10:00", "11:00")

        schedule = await schedule_store.get(DAY)

        assert schedule is not None
        assert schedule.version == 1
        assert set(schedule.slot_map()) == {"10:00", "11:00"}
        assert schedule.slot_map()["10:00"].status == SlotStatus.AVAILABLE

    @pytest.mark.asyncio
    async def test_transact_bumps_version(self, schedule_store):
        await open_slots(schedule_store, DAY, "10:00")
        await open_slots(schedule_store, DAY, "11:00")

        schedule = await schedule_store.get(DAY)

        assert schedule.version == 2
        assert set(schedule.slot_map()) == {"10:00", "11:00"}

    @pytest.mark.asyncio
    async def test_empty_result_on_absent_day_writes_nothing(self, schedule_store):
        await schedule_store.transact(DAY, lambda slots: slots)

        assert await schedule_store.get(DAY) is None

    @pytest.mark.asyncio
    async def test_function_error_aborts_without_writing(self, schedule_store):
        await open_slots(schedule_store, DAY, "10:00")

        def fail(slots):
            slots["10:00"] = Slot(time="10:00", status=SlotStatus.BOOKED, booked_by_user_id="x")
            raise SlotUnavailable()

        with pytest.raises(SlotUnavailable):
            await schedule_store.transact(DAY, fail)

        schedule = await schedule_store.get(DAY)
        assert schedule.version == 1
        assert schedule.slot_map()["10:00"].status == SlotStatus.AVAILABLE

    @pytest.mark.asyncio
    async def test_before_commit_error_rolls_back_slot_write(self, schedule_store):
        await open_slots(schedule_store, DAY, "10:00")

        def book(slots):
            slots["10:00"] = Slot(time="10:00", status=SlotStatus.BOOKED, booked_by_user_id="x")
            return slots

        async def explode(session):
            raise SlotUnavailable("boom")

        with pytest.raises(SlotUnavailable):
            await schedule_store.transact(DAY, book, before_commit=explode)

        schedule = await schedule_store.get(DAY)
        assert schedule.slot_map()["10:00"].status == SlotStatus.AVAILABLE

    @pytest.mark.asyncio
    async def test_retries_after_version_conflict(self, schedule_store):
        committed = {"10:00": Slot(time="10:00")}
        attempt = AsyncMock(side_effect=[None, committed])

        with patch.object(schedule_store, "_attempt", attempt):
            result = await schedule_store.transact(DAY, lambda slots: slots)

        assert result == committed
        assert attempt.await_count == 2

    @pytest.mark.asyncio
    async def test_gives_up_with_store_error(self, schedule_store):
        locked = OperationalError("UPDATE daily_schedules", {}, Exception("database is locked"))
        attempt = AsyncMock(side_effect=locked)

        with patch.object(schedule_store, "_attempt", attempt):
            with pytest.raises(StoreError):
                await schedule_store.transact(DAY, lambda slots: slots)

        assert attempt.await_count == 8
