"""
Scheduling errors.

Errors raised by the booking/cancellation transaction reach the caller as one
of these types. Notifier and meeting provider failures are caught, logged and
absorbed by the services; those two exist so adapters have something
precise to raise.
"""


class SchedulingError(Exception):
    """Base class; status_code is the HTTP status the API answers with."""

    status_code = 400
    default_detail = "Scheduling error"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class SlotUnavailable(SchedulingError):
    status_code = 409
    default_detail = "This slot is no longer available. Please pick another time."


class NotFound(SchedulingError):
    status_code = 404
    default_detail = "Appointment not found"


class Forbidden(SchedulingError):
    status_code = 403
    default_detail = "This appointment does not belong to you"


class InvalidState(SchedulingError):
    status_code = 409
    default_detail = "Only upcoming appointments can be cancelled"


class StoreError(SchedulingError):
    """Persistence layer unavailable or too contended; safe to retry."""

    status_code = 503
    default_detail = "Scheduling storage is temporarily unavailable. Please retry."


class NotifierFailure(SchedulingError):
    default_detail = "Failed to deliver notification"


class MeetingProviderFailure(SchedulingError):
    default_detail = "Failed to create meeting link"
