from datetime import datetime
from enum import Enum

from pydantic import BaseModel
from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from coach_scheduling.core.timeutil import utc_naive_now


class AppointmentStatus(str, Enum):
    UPCOMING = "Upcoming"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class Appointment(SQLModel, table=True):
    __tablename__ = "appointments"
    id: int | None = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)
    display_name: str
    contact_address: str
    # Naive UTC columns (TIMESTAMP WITHOUT TIME ZONE)
    session_time: datetime = Field(sa_type=DateTime(), index=True)
    status: AppointmentStatus = Field(default=AppointmentStatus.UPCOMING, index=True)
    meeting_link: str | None = None
    meeting_id: str | None = None
    meeting_provider: str | None = None
    created_at: datetime = Field(default_factory=utc_naive_now, sa_type=DateTime())


class AppointmentPublic(SQLModel):
    id: int
    user_id: str
    display_name: str
    session_time: datetime
    status: AppointmentStatus
    meeting_link: str | None = None
    created_at: datetime


class AppointmentAdminPublic(AppointmentPublic):
    contact_address: str


class Requester(BaseModel):
    """Identity of whoever is booking, taken from the verified bearer token."""

    user_id: str
    display_name: str
    contact_address: str
