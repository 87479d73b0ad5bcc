from enum import Enum
from typing import Any, Optional


class ErrorCode(str, Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    PAST_SHOWTIME = "PAST_SHOWTIME"
    SEAT_UNAVAILABLE = "SEAT_UNAVAILABLE"
    CONFLICT = "CONFLICT"
    BOOKING_LIMIT = "BOOKING_LIMIT"
    ALREADY_CANCELLED = "ALREADY_CANCELLED"
    LEAD_TIME = "LEAD_TIME"
    FORBIDDEN = "FORBIDDEN"
    SHOWTIME_CONFLICT = "SHOWTIME_CONFLICT"
    SHOWTIME_IN_USE = "SHOWTIME_IN_USE"


class BookingError(Exception):
    """Base error for every business-rule failure.

    Carries a stable machine readable ``code`` and a user-safe ``message``.
    The API layer turns it into a JSON response with ``status_code``.
    """
    code: ErrorCode = ErrorCode.VALIDATION_ERROR
    status_code: int = 400

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None, status_code: Optional[int] = None):
        self.message = message
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code.value, "message": self.message, "details": self.details}


class ValidationError(BookingError):
    code = ErrorCode.VALIDATION_ERROR
    status_code = 422


class NotFoundError(BookingError):
    code = ErrorCode.NOT_FOUND
    status_code = 404

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(f"{entity} not found", details={"entity": entity.lower(), "id": entity_id})


class PastShowtimeError(BookingError):
    code = ErrorCode.PAST_SHOWTIME
    status_code = 400

    def __init__(self, showtime_id: int):
        super().__init__("Showtime has already started", details={"showtime_id": showtime_id})


class SeatUnavailableError(BookingError):
    code = ErrorCode.SEAT_UNAVAILABLE
    status_code = 409

    def __init__(self, unavailable=(), invalid=(), message: str = "One or more seats are not available"):
        super().__init__(message, details={
            "unavailable": sorted(unavailable),
            "invalid": sorted(invalid),
        })


class ConflictError(SeatUnavailableError):
    """Lost a race at the storage layer, another booking took the seat first."""
    code = ErrorCode.CONFLICT

    def __init__(self, message: str = "Seat was booked by a concurrent request, please pick another seat"):
        super().__init__(message=message)


class BookingLimitError(BookingError):
    code = ErrorCode.BOOKING_LIMIT
    status_code = 400


class AlreadyCancelledError(BookingError):
    code = ErrorCode.ALREADY_CANCELLED
    status_code = 409

    def __init__(self, reservation_id: int):
        super().__init__("Reservation is already cancelled", details={"reservation_id": reservation_id})


class LeadTimeError(BookingError):
    code = ErrorCode.LEAD_TIME
    status_code = 400


class ForbiddenError(BookingError):
    code = ErrorCode.FORBIDDEN
    status_code = 403


class ShowtimeConflictError(BookingError):
    code = ErrorCode.SHOWTIME_CONFLICT
    status_code = 409


class ShowtimeInUseError(BookingError):
    code = ErrorCode.SHOWTIME_IN_USE
    status_code = 409

    def __init__(self, showtime_id: int):
        super().__init__("Showtime has active reservations", details={"showtime_id": showtime_id})
