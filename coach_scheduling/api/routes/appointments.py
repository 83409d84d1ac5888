import logging

from fastapi import APIRouter, Depends, status

from coach_scheduling.api.deps import get_core, get_current_requester
from coach_scheduling.api.schemas.appointment import BookAppointmentRequest, BookAppointmentResponse
from coach_scheduling.models.appointment import Appointment, AppointmentPublic, Requester
from coach_scheduling.services.scheduling_core import SchedulingCore

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/appointments", tags=["appointments"])


def _to_public(a: Appointment) -> AppointmentPublic:
    return AppointmentPublic.model_validate(a, from_attributes=True)


@router.post("", response_model=BookAppointmentResponse, status_code=status.HTTP_201_CREATED)
async def book_appointment(
    body: BookAppointmentRequest,
    core: SchedulingCore = Depends(get_core),
    requester: Requester = Depends(get_current_requester),
) -> BookAppointmentResponse:
    # SlotUnavailable -> 409: the client should offer another slot, not retry this one
    appointment = await core.book_slot(body.slot_start_utc, requester)
    return BookAppointmentResponse(
        appointment_id=appointment.id,
        session_time=appointment.session_time,
        meeting_link=appointment.meeting_link,
    )


@router.get("", response_model=list[AppointmentPublic])
async def list_my_appointments(
    core: SchedulingCore = Depends(get_core),
    requester: Requester = Depends(get_current_requester),
) -> list[AppointmentPublic]:
    appointments = await core.list_user_appointments(requester.user_id)
    return [_to_public(a) for a in appointments]


@router.delete("/{appointment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_my_appointment(
    appointment_id: int,
    core: SchedulingCore = Depends(get_core),
    requester: Requester = Depends(get_current_requester),
) -> None:
    await core.cancel_appointment(appointment_id, requester.user_id)
