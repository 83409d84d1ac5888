from datetime import date, datetime, time

from pydantic import BaseModel, Field, field_validator

from coach_scheduling.models.schedule import SlotStatus


class AvailableSlotsResponse(BaseModel):
    days: int
    slots: list[datetime]  # UTC start times, ascending


class BookAppointmentRequest(BaseModel):
    slot_start_utc: datetime


class BookAppointmentResponse(BaseModel):
    appointment_id: int
    session_time: datetime
    meeting_link: str | None = None


class SlotPublic(BaseModel):
    time: str
    status: SlotStatus
    booked_by_user_id: str | None = None
    booked_by_name: str | None = None


class DailySchedulePublic(BaseModel):
    day: date
    slots: list[SlotPublic]


class SetSlotStatusRequest(BaseModel):
    status: SlotStatus = Field(description="Available or Unavailable")

    @field_validator("status")
    @classmethod
    def not_booked(cls, v: SlotStatus) -> SlotStatus:
        if v == SlotStatus.BOOKED:
            raise ValueError("Slots are booked through POST /appointments")
        return v


class ReminderStatsResponse(BaseModel):
    total_scheduled: int
    pending_24h: int
    pending_1h: int
    pending_15m: int


def parse_slot_time(value: str) -> time:
    """Accept HH:MM (UTC)."""
    parsed = time.fromisoformat(value)
    if parsed.second or parsed.microsecond:
        raise ValueError("Slot times are whole minutes (HH:MM)")
    return parsed
