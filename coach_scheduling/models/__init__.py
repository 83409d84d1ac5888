from coach_scheduling.models.appointment import (
    Appointment,
    AppointmentAdminPublic,
    AppointmentPublic,
    AppointmentStatus,
    Requester,
)
from coach_scheduling.models.schedule import DailySchedule, Slot, SlotStatus

__all__ = [
    "Appointment",
    "AppointmentAdminPublic",
    "AppointmentPublic",
    "AppointmentStatus",
    "Requester",
    "DailySchedule",
    "Slot",
    "SlotStatus",
]
