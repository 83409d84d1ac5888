from fastapi import APIRouter, Depends, Query

from coach_scheduling.api.deps import get_core
from coach_scheduling.api.schemas.appointment import AvailableSlotsResponse
from coach_scheduling.core.config import settings
from coach_scheduling.services.scheduling_core import SchedulingCore

router = APIRouter(prefix="/slots", tags=["slots"])


@router.get("/available", response_model=AvailableSlotsResponse)
async def available_slots(
    days: int = Query(settings.availability_window_days, ge=1, le=settings.max_availability_window_days),
    core: SchedulingCore = Depends(get_core),
) -> AvailableSlotsResponse:
    """Open slot start times (UTC) from now through the next `days` calendar days, ascending."""
    slots = await core.list_availability(days)
    return AvailableSlotsResponse(days=days, slots=slots)
