from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from coach_scheduling.core.errors import InvalidState, StoreError
from coach_scheduling.models.appointment import Appointment, AppointmentStatus


class AppointmentStore:
    def __init__(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        self._session_maker = session_maker

    async def create(self, appointment: Appointment, session: AsyncSession | None = None) -> Appointment:
        """Insert an appointment. With `session`, joins the caller's transaction instead of committing."""
        if session is not None:
            session.add(appointment)
            await session.flush()
            await session.refresh(appointment)
            return appointment
        try:
            async with self._session_maker() as own:
                own.add(appointment)
                await own.commit()
                await own.refresh(appointment)
                return appointment
        except SQLAlchemyError as e:
            raise StoreError("Failed to save appointment") from e

    async def get(self, appointment_id: int) -> Appointment | None:
        try:
            async with self._session_maker() as session:
                return await session.get(Appointment, appointment_id)
        except SQLAlchemyError as e:
            raise StoreError("Failed to load appointment") from e

    async def update(self, appointment_id: int, **patch) -> Appointment | None:
        try:
            async with self._session_maker() as session:
                appointment = await session.get(Appointment, appointment_id)
                if appointment is None:
                    return None
                for field, value in patch.items():
                    setattr(appointment, field, value)
                session.add(appointment)
                await session.commit()
                await session.refresh(appointment)
                return appointment
        except SQLAlchemyError as e:
            raise StoreError("Failed to update appointment") from e

    async def transition_status(
        self,
        session: AsyncSession,
        appointment_id: int,
        new_status: AppointmentStatus,
        expected: AppointmentStatus = AppointmentStatus.UPCOMING,
    ) -> None:
        """Compare-and-set the status inside the caller's transaction; InvalidState if it moved on."""
        result = await session.execute(
            update(Appointment)
            .where(Appointment.id == appointment_id, Appointment.status == expected)
            .values(status=new_status)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise InvalidState(f"Only {expected.value.lower()} appointments can be changed")

    async def change_status(
        self,
        appointment_id: int,
        new_status: AppointmentStatus,
        expected: AppointmentStatus = AppointmentStatus.UPCOMING,
    ) -> Appointment | None:
        """transition_status in a transaction of its own; returns the updated appointment."""
        try:
            async with self._session_maker() as session:
                try:
                    await self.transition_status(session, appointment_id, new_status, expected)
                    await session.commit()
                except Exception:
                    await session.rollback()
                    raise
                return await session.get(Appointment, appointment_id)
        except SQLAlchemyError as e:
            raise StoreError("Failed to update appointment status") from e

    async def list_by_user(self, user_id: str) -> list[Appointment]:
        q = select(Appointment).where(Appointment.user_id == user_id).order_by(Appointment.session_time.desc())
        return await self._all(q)

    async def list_upcoming(self, since: datetime | None = None) -> list[Appointment]:
        """Upcoming appointments, optionally only those with session_time >= since (naive UTC)."""
        q = select(Appointment).where(Appointment.status == AppointmentStatus.UPCOMING)
        if since is not None:
            q = q.where(Appointment.session_time >= since)
        return await self._all(q.order_by(Appointment.session_time))

    async def list_between(self, start: datetime, end: datetime) -> list[Appointment]:
        q = (
            select(Appointment)
            .where(Appointment.session_time >= start, Appointment.session_time <= end)
            .order_by(Appointment.session_time)
        )
        return await self._all(q)

    async def _all(self, q) -> list[Appointment]:
        try:
            async with self._session_maker() as session:
                result = await session.execute(q)
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise StoreError("Failed to list appointments") from e
