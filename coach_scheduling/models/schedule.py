from datetime import date
from enum import Enum

from pydantic import BaseModel
from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel


class SlotStatus(str, Enum):
    AVAILABLE = "Available"
    BOOKED = "Booked"
    UNAVAILABLE = "Unavailable"


class Slot(BaseModel):
    time: str  # HH:MM, UTC
    status: SlotStatus = SlotStatus.AVAILABLE
    booked_by_user_id: str | None = None
    booked_by_name: str | None = None


class DailySchedule(SQLModel, table=True):
    """One row per calendar date; the unit of locking for booking and cancellation."""

    __tablename__ = "daily_schedules"
    day: date = Field(primary_key=True)
    # {"10:00": {"time": "10:00", "status": "Booked", ...}}
    slots: dict = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    # Bumped on every write; writers compare-and-set against the value they read
    version: int = Field(default=0, nullable=False)

    def slot_map(self) -> dict[str, Slot]:
        return {key: Slot.model_validate(value) for key, value in (self.slots or {}).items()}


def dump_slots(slots: dict[str, Slot]) -> dict:
    return {key: slot.model_dump(mode="json") for key, slot in sorted(slots.items())}
