"""Booking rules as pure functions.

Nothing in here touches the database or the clock: callers pass in the
current time and the counts they have read, and get back a ``PolicyResult``.
The reservation service turns a failed result into the matching error.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Optional

from cinema_booking.core.config import Settings, get_settings


class PolicyReason(str, Enum):
    INVALID_USER_ID = "INVALID_USER_ID"
    INVALID_SHOWTIME_ID = "INVALID_SHOWTIME_ID"
    INVALID_SEAT_IDS = "INVALID_SEAT_IDS"
    NO_SEATS = "NO_SEATS"
    DUPLICATE_SEATS = "DUPLICATE_SEATS"
    TOO_MANY_SEATS = "TOO_MANY_SEATS"
    SHOWTIME_STARTED = "SHOWTIME_STARTED"
    ACTIVE_CAP_REACHED = "ACTIVE_CAP_REACHED"
    INSIDE_LEAD_TIME = "INSIDE_LEAD_TIME"


@dataclass(frozen=True)
class PolicyResult:
    allowed: bool
    reason: Optional[PolicyReason] = None
    message: str = ""

    def __bool__(self) -> bool:
        return self.allowed


PASS = PolicyResult(allowed=True)


def _fail(reason: PolicyReason, message: str) -> PolicyResult:
    return PolicyResult(allowed=False, reason=reason, message=message)


@dataclass(frozen=True)
class BookingPolicy:
    max_seats_per_request: int = 5
    max_active_reservations_per_showtime: int = 5
    cancellation_lead_time: timedelta = timedelta(hours=1)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "BookingPolicy":
        settings = settings or get_settings()
        return cls(
            max_seats_per_request=settings.MAX_SEATS_PER_REQUEST,
            max_active_reservations_per_showtime=settings.MAX_ACTIVE_RESERVATIONS_PER_SHOWTIME,
            cancellation_lead_time=timedelta(minutes=settings.CANCELLATION_LEAD_TIME_MINUTES),
        )


def _is_positive_int(value: Any) -> bool:
    # bool is an int subclass, True must not pass as id 1
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def validate_seat_count(seat_count: int, max_seats: int) -> PolicyResult:
    if seat_count < 1:
        return _fail(PolicyReason.NO_SEATS, "At least one seat must be selected")
    if seat_count > max_seats:
        return _fail(PolicyReason.TOO_MANY_SEATS, f"At most {max_seats} seats can be booked per request")
    return PASS


def validate_request_shape(user_id: Any, showtime_id: Any, seat_ids: Any, max_seats: int) -> PolicyResult:
    if not _is_positive_int(user_id):
        return _fail(PolicyReason.INVALID_USER_ID, "user_id must be a positive integer")
    if not _is_positive_int(showtime_id):
        return _fail(PolicyReason.INVALID_SHOWTIME_ID, "showtime_id must be a positive integer")
    if not isinstance(seat_ids, (list, tuple)):
        return _fail(PolicyReason.INVALID_SEAT_IDS, "seat_ids must be a list of positive integers")
    if not all(_is_positive_int(seat_id) for seat_id in seat_ids):
        return _fail(PolicyReason.INVALID_SEAT_IDS, "seat_ids must be a list of positive integers")
    count_result = validate_seat_count(len(seat_ids), max_seats)
    if not count_result:
        return count_result
    if len(set(seat_ids)) != len(seat_ids):
        return _fail(PolicyReason.DUPLICATE_SEATS, "A seat can appear only once in a booking")
    return PASS


def validate_showtime_is_future(start_time: datetime, now: datetime) -> PolicyResult:
    if start_time <= now:
        return _fail(PolicyReason.SHOWTIME_STARTED, "Showtime has already started")
    return PASS


def validate_active_cap(active_count: int, max_active: int) -> PolicyResult:
    """``active_count`` is the user's active reservations for the showtime, this booking included."""
    if active_count > max_active:
        return _fail(PolicyReason.ACTIVE_CAP_REACHED,
                     f"At most {max_active} active reservations per showtime are allowed")
    return PASS


def validate_cancellation_window(start_time: datetime, now: datetime, lead_time: timedelta) -> PolicyResult:
    # exactly lead_time before the start is still allowed
    if start_time - now < lead_time:
        minutes = int(lead_time.total_seconds() // 60)
        return _fail(PolicyReason.INSIDE_LEAD_TIME,
                     f"Reservations can only be cancelled at least {minutes} minutes before the showtime")
    return PASS
