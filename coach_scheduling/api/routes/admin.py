from datetime import date, datetime, timedelta

from fastapi import APIRouter, Depends, HTTPException, Query, status

from coach_scheduling.api.deps import get_admin, get_core
from coach_scheduling.api.schemas.appointment import (
    DailySchedulePublic,
    ReminderStatsResponse,
    SetSlotStatusRequest,
    SlotPublic,
    parse_slot_time,
)
from coach_scheduling.core.timeutil import to_naive_utc, utc_naive_now
from coach_scheduling.models.appointment import AppointmentAdminPublic
from coach_scheduling.models.schedule import Slot
from coach_scheduling.services.scheduling_core import SchedulingCore

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(get_admin)])


def _schedule_public(day: date, slots: dict[str, Slot]) -> DailySchedulePublic:
    return DailySchedulePublic(
        day=day,
        slots=[SlotPublic(**slot.model_dump()) for _, slot in sorted(slots.items())],
    )


@router.get("/schedule/{day}", response_model=DailySchedulePublic)
async def get_schedule(day: date, core: SchedulingCore = Depends(get_core)) -> DailySchedulePublic:
    schedule = await core.get_schedule(day)
    return _schedule_public(day, schedule.slot_map() if schedule else {})


@router.put("/schedule/{day}/slots/{slot_time}", response_model=DailySchedulePublic)
async def set_slot_status(
    day: date,
    slot_time: str,
    body: SetSlotStatusRequest,
    core: SchedulingCore = Depends(get_core),
) -> DailySchedulePublic:
    try:
        parsed = parse_slot_time(slot_time)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e
    slots = await core.set_slot_status(day, parsed, body.status)
    return _schedule_public(day, slots)


@router.get("/appointments", response_model=list[AppointmentAdminPublic])
async def list_appointments(
    start: datetime | None = Query(None),
    end: datetime | None = Query(None),
    core: SchedulingCore = Depends(get_core),
) -> list[AppointmentAdminPublic]:
    """Appointments with sessions in [start, end]; defaults to the coming week."""
    start_utc = to_naive_utc(start) if start else utc_naive_now()
    end_utc = to_naive_utc(end) if end else start_utc + timedelta(days=7)
    appointments = await core.list_appointments_between(start_utc, end_utc)
    return [AppointmentAdminPublic.model_validate(a, from_attributes=True) for a in appointments]


@router.post("/appointments/{appointment_id}/complete", response_model=AppointmentAdminPublic)
async def complete_appointment(
    appointment_id: int, core: SchedulingCore = Depends(get_core)
) -> AppointmentAdminPublic:
    appointment = await core.complete_appointment(appointment_id)
    return AppointmentAdminPublic.model_validate(appointment, from_attributes=True)


@router.get("/reminders/stats", response_model=ReminderStatsResponse)
async def reminder_stats(core: SchedulingCore = Depends(get_core)) -> ReminderStatsResponse:
    return ReminderStatsResponse(**core.reminder_stats())
