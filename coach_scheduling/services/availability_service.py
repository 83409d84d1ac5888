import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from coach_scheduling.core.errors import StoreError
from coach_scheduling.core.timeutil import slot_instant, utc_naive_now
from coach_scheduling.models.schedule import SlotStatus
from coach_scheduling.services.schedule_store import ScheduleStore

logger = logging.getLogger(__name__)


class AvailabilityResolver:
    def __init__(self, schedules: ScheduleStore, clock: Callable[[], datetime] = utc_naive_now) -> None:
        self._schedules = schedules
        self._clock = clock

    async def list_available(self, window_days: int) -> list[datetime]:
        """Open slot start times (naive UTC) strictly after now, over today and the next window_days - 1 days."""
        now = self._clock()
        today = now.date()
        out: list[datetime] = []
        for offset in range(max(window_days, 0)):
            day = today + timedelta(days=offset)
            try:
                schedule = await self._schedules.get(day)
            except StoreError as e:
                logger.warning("Availability: skipping %s, schedule could not be read: %s", day, e)
                continue
            if schedule is None:
                continue
            for key, slot in schedule.slot_map().items():
                if slot.status != SlotStatus.AVAILABLE:
                    continue
                start = slot_instant(day, key)
                if start > now:
                    out.append(start)
        out.sort()
        return out
