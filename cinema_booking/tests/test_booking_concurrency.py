import asyncio

import pytest
from sqlalchemy import func, select

from cinema_booking.core.exceptions import ConflictError, ErrorCode, SeatUnavailableError
from cinema_booking.models.reservation import ReservationSeat, ReservationStatus
from cinema_booking.services import reservation as reservation_module
from cinema_booking.services.availability import SeatAvailability
from cinema_booking.services.reservation import reservation_service


@pytest.fixture
def test_showtime_id(seeded_test_data):
    """Get the showtime ID from seeded test data."""
    return seeded_test_data["showtime_id"]


@pytest.fixture
def test_seat_ids(seeded_test_data):
    return seeded_test_data["seat_ids"]


async def make_request(db_session_factory, user_id, showtime_id, seat_ids):
    """Make a booking request with its own session."""
    async with db_session_factory() as session:
        try:
            reservation = await reservation_service.create(session, user_id, showtime_id, seat_ids)
            return {"success": True, "reservation_id": reservation.id, "user_id": user_id}
        except SeatUnavailableError:
            return {"success": False, "error": "unavailable", "user_id": user_id}
        except Exception as e:
            return {"success": False, "error": str(e), "user_id": user_id}


async def count_active_seats(db_session_factory, showtime_id):
    async with db_session_factory() as session:
        result = await session.execute(
            select(ReservationSeat.seat_id, func.count(ReservationSeat.id))
            .where(ReservationSeat.showtime_id == showtime_id)
            .where(ReservationSeat.status == ReservationStatus.ACTIVE)
            .group_by(ReservationSeat.seat_id)
        )
        return dict(result.all())


async def test_storage_rejects_double_booking_past_the_checker(
        db_session_factory, test_showtime_id, test_seat_ids, monkeypatch):
    """A stale availability read must still lose to the active-seat unique index."""
    seat_id = test_seat_ids["A1"]
    first = await make_request(db_session_factory, 1, test_showtime_id, [seat_id])
    assert first["success"]

    async def everything_free(db, showtime, seat_ids, lock=False):
        return SeatAvailability(available=frozenset(seat_ids))

    monkeypatch.setattr(reservation_module, "seats_availability", everything_free)

    async with db_session_factory() as session:
        with pytest.raises(ConflictError) as exc_info:
            await reservation_service.create(session, 2, test_showtime_id, [seat_id])
    assert isinstance(exc_info.value, SeatUnavailableError)
    assert exc_info.value.code == ErrorCode.CONFLICT
    assert exc_info.value.status_code == 409
    assert await count_active_seats(db_session_factory, test_showtime_id) == {seat_id: 1}


async def test_concurrent_same_seat_booking(db_session_factory, test_showtime_id, test_seat_ids):
    """Concurrent booking attempts on the same seat, only one should succeed."""
    num_of_concurrent_requests = 10
    seat_id = test_seat_ids["A1"]

    coros = [
        make_request(db_session_factory, user_id, test_showtime_id, [seat_id])
        for user_id in range(1, num_of_concurrent_requests + 1)
    ]
    results = await asyncio.gather(*coros)

    successful_bookings = [r for r in results if r["success"]]
    failed_bookings = [r for r in results if not r["success"]]

    assert len(successful_bookings) == 1, f"Expected 1 success, got {len(successful_bookings)}. Results: {results}"
    assert len(failed_bookings) == num_of_concurrent_requests - 1
    assert all(r["error"] == "unavailable" for r in failed_bookings), f"Not all failures were conflicts: {failed_bookings}"
    assert await count_active_seats(db_session_factory, test_showtime_id) == {seat_id: 1}


async def test_concurrent_different_seats(db_session_factory, test_showtime_id, test_seat_ids):
    """Disjoint seat sets never block each other."""
    seat_sets = [
        [test_seat_ids["A1"], test_seat_ids["A2"]],
        [test_seat_ids["A3"], test_seat_ids["A4"]],
        [test_seat_ids["A5"], test_seat_ids["A6"]],
    ]

    coros = [
        make_request(db_session_factory, user_id, test_showtime_id, seat_ids)
        for user_id, seat_ids in enumerate(seat_sets, start=1)
    ]
    results = await asyncio.gather(*coros)

    assert all(r["success"] for r in results), f"expected only successes. Results: {results}"
    assert len(await count_active_seats(db_session_factory, test_showtime_id)) == 6


async def test_concurrent_overlapping_seats(db_session_factory, test_showtime_id, test_seat_ids):
    """
    Overlapping sets: every seat ends up booked at most once and a rejected
    request leaves none of its seats behind.
    """
    seat_sets = [
        [test_seat_ids["A1"], test_seat_ids["A2"]],
        [test_seat_ids["A2"], test_seat_ids["A3"]],
        [test_seat_ids["A3"], test_seat_ids["A4"]],
        [test_seat_ids["A4"], test_seat_ids["A5"]],
    ]

    coros = [
        make_request(db_session_factory, user_id, test_showtime_id, seat_ids)
        for user_id, seat_ids in enumerate(seat_sets, start=1)
    ]
    results = await asyncio.gather(*coros)

    successful_bookings = [r for r in results if r["success"]]
    failed_bookings = [r for r in results if not r["success"]]
    assert successful_bookings, f"expected at least one success. Results: {results}"
    assert all(r["error"] == "unavailable" for r in failed_bookings)

    active = await count_active_seats(db_session_factory, test_showtime_id)
    assert all(count == 1 for count in active.values())
    assert len(active) == 2 * len(successful_bookings)
