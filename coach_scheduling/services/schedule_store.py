import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import date

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from coach_scheduling.core.errors import StoreError
from coach_scheduling.models.schedule import DailySchedule, Slot, dump_slots

logger = logging.getLogger(__name__)

SlotMutation = Callable[[dict[str, Slot]], dict[str, Slot]]
BeforeCommit = Callable[[AsyncSession], Awaitable[None]]


class ScheduleStore:
    """
    Per-day slot maps with an atomic read-modify-write.

    transact() reads the day (FOR UPDATE where the database supports it), applies
    the caller's function to a copy and writes it back only if the row's version
    is still the one it read. A lost race, an insert race on a new day or a lock
    error rolls back and retries against fresh state; the loser then sees the
    winner's write. Anything the function raises aborts without retrying.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        max_attempts: int = 5,
        retry_backoff_seconds: float = 0.05,
    ) -> None:
        self._session_maker = session_maker
        self._max_attempts = max(1, max_attempts)
        self._retry_backoff_seconds = retry_backoff_seconds

    async def get(self, day: date) -> DailySchedule | None:
        try:
            async with self._session_maker() as session:
                result = await session.execute(select(DailySchedule).where(DailySchedule.day == day))
                return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to read schedule for {day.isoformat()}") from e

    async def transact(
        self,
        day: date,
        fn: SlotMutation,
        before_commit: BeforeCommit | None = None,
    ) -> dict[str, Slot]:
        """
        Atomically replace the slot map of `day` with fn(current slots).

        before_commit runs inside the same database transaction after the slot
        write, so other rows can change in the same unit (cancellation flips the
        appointment status there). Returns the committed slot map.
        """
        last_error: Exception | None = None
        for attempt in range(1, self._max_attempts + 1):
            try:
                committed = await self._attempt(day, fn, before_commit)
            except (IntegrityError, OperationalError) as e:
                last_error = e
                logger.debug("Schedule %s: conflict on attempt %d (%s)", day, attempt, type(e).__name__)
            except SQLAlchemyError as e:
                raise StoreError(f"Failed to update schedule for {day.isoformat()}") from e
            else:
                if committed is not None:
                    return committed
                logger.debug("Schedule %s: version changed underneath attempt %d, retrying", day, attempt)
            await asyncio.sleep(self._retry_backoff_seconds * attempt)
        logger.warning("Schedule %s: giving up after %d attempts", day, self._max_attempts)
        raise StoreError(
            f"Schedule for {day.isoformat()} is too contended, please retry"
        ) from last_error

    async def _attempt(
        self, day: date, fn: SlotMutation, before_commit: BeforeCommit | None
    ) -> dict[str, Slot] | None:
        async with self._session_maker() as session:
            try:
                result = await session.execute(
                    select(DailySchedule.slots, DailySchedule.version)
                    .where(DailySchedule.day == day)
                    .with_for_update()
                )
                row = result.one_or_none()
                current = (
                    {key: Slot.model_validate(value) for key, value in (row.slots or {}).items()}
                    if row
                    else {}
                )
                updated = fn({key: slot.model_copy() for key, slot in current.items()})
                if row is None:
                    if updated:
                        session.add(DailySchedule(day=day, slots=dump_slots(updated), version=1))
                        await session.flush()
                else:
                    written = await session.execute(
                        update(DailySchedule)
                        .where(DailySchedule.day == day, DailySchedule.version == row.version)
                        .values(slots=dump_slots(updated), version=row.version + 1)
                        .execution_options(synchronize_session=False)
                    )
                    if written.rowcount != 1:
                        await session.rollback()
                        return None
                if before_commit is not None:
                    await before_commit(session)
                await session.commit()
                return updated
            except Exception:
                await session.rollback()
                raise
