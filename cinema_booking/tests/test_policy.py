from datetime import datetime, timedelta, timezone

import pytest

from cinema_booking.core.config import Settings
from cinema_booking.services.policy import (
    BookingPolicy,
    PolicyReason,
    validate_active_cap,
    validate_cancellation_window,
    validate_request_shape,
    validate_seat_count,
    validate_showtime_is_future,
)

NOW = datetime(2026, 3, 1, 18, 0, tzinfo=timezone.utc)


def test_policy_from_settings():
    policy = BookingPolicy.from_settings(Settings(
        MAX_SEATS_PER_REQUEST=3,
        MAX_ACTIVE_RESERVATIONS_PER_SHOWTIME=2,
        CANCELLATION_LEAD_TIME_MINUTES=30,
    ))
    assert policy.max_seats_per_request == 3
    assert policy.max_active_reservations_per_showtime == 2
    assert policy.cancellation_lead_time == timedelta(minutes=30)


@pytest.mark.parametrize("seat_count, reason", [
    (0, PolicyReason.NO_SEATS),
    (6, PolicyReason.TOO_MANY_SEATS),
])
def test_seat_count_rejected(seat_count, reason):
    result = validate_seat_count(seat_count, 5)
    assert not result
    assert result.reason == reason


def test_seat_count_at_limit_passes():
    assert validate_seat_count(5, 5)
    assert validate_seat_count(1, 5)


@pytest.mark.parametrize("user_id, showtime_id, seat_ids, reason", [
    (0, 1, [1], PolicyReason.INVALID_USER_ID),
    (True, 1, [1], PolicyReason.INVALID_USER_ID),
    ("1", 1, [1], PolicyReason.INVALID_USER_ID),
    (1, -3, [1], PolicyReason.INVALID_SHOWTIME_ID),
    (1, 1, "1,2", PolicyReason.INVALID_SEAT_IDS),
    (1, 1, [1, 0], PolicyReason.INVALID_SEAT_IDS),
    (1, 1, [], PolicyReason.NO_SEATS),
    (1, 1, [1, 2, 3, 4, 5, 6], PolicyReason.TOO_MANY_SEATS),
    (1, 1, [1, 2, 1], PolicyReason.DUPLICATE_SEATS),
])
def test_request_shape_rejected(user_id, showtime_id, seat_ids, reason):
    result = validate_request_shape(user_id, showtime_id, seat_ids, max_seats=5)
    assert result.allowed is False
    assert result.reason == reason
    assert result.message


def test_request_shape_passes():
    assert validate_request_shape(7, 3, [1, 2, 3, 4, 5], max_seats=5)
    assert validate_request_shape(7, 3, (9,), max_seats=5)


def test_showtime_must_be_in_the_future():
    assert validate_showtime_is_future(NOW + timedelta(seconds=1), NOW)
    assert validate_showtime_is_future(NOW, NOW).reason == PolicyReason.SHOWTIME_STARTED
    assert not validate_showtime_is_future(NOW - timedelta(hours=1), NOW)


def test_active_cap_counts_the_new_booking():
    assert validate_active_cap(5, 5)
    result = validate_active_cap(6, 5)
    assert not result
    assert result.reason == PolicyReason.ACTIVE_CAP_REACHED


def test_cancellation_window_boundary():
    lead_time = timedelta(hours=1)
    start = NOW + lead_time
    # exactly one hour before the start is still allowed
    assert validate_cancellation_window(start, NOW, lead_time)
    assert validate_cancellation_window(start + timedelta(minutes=5), NOW, lead_time)

    result = validate_cancellation_window(start - timedelta(seconds=1), NOW, lead_time)
    assert not result
    assert result.reason == PolicyReason.INSIDE_LEAD_TIME
    assert "60 minutes" in result.message
