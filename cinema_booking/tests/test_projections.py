from datetime import timedelta
from decimal import Decimal

import pytest

from cinema_booking.core.exceptions import NotFoundError
from cinema_booking.models.reservation import ReservationStatus
from cinema_booking.models.theater import TheaterType
from cinema_booking.services import projections
from cinema_booking.services.reservation import reservation_service

USER_ID = 7


@pytest.fixture
async def booked(db_session, seeded_test_data):
    """Three bookings of USER_ID: two active on different theaters, one cancelled."""
    seats = seeded_test_data["seat_ids"]
    showtime_id = seeded_test_data["showtime_id"]
    pair = await reservation_service.create(db_session, USER_ID, showtime_id, [seats["A1"], seats["A2"]])
    single = await reservation_service.create(
        db_session, USER_ID, seeded_test_data["soon_showtime_id"], seeded_test_data["other_seat_ids"][:1])
    cancelled = await reservation_service.create(db_session, USER_ID, showtime_id, [seats["A3"]])
    await reservation_service.cancel(db_session, cancelled.id, USER_ID)
    await reservation_service.create(db_session, USER_ID + 1, showtime_id, [seats["A9"]])
    return {"pair": pair, "single": single, "cancelled": cancelled}


async def test_find_by_user(db_session, booked):
    page = await projections.find_by_user(db_session, USER_ID)
    assert page.total == 3
    assert {r.id for r in page.items} == {booked["pair"].id, booked["single"].id, booked["cancelled"].id}
    # latest showtime first
    assert page.items[-1].id == booked["single"].id


async def test_find_by_user_filters_and_pages(db_session, seeded_test_data, booked):
    active = await projections.find_by_user(db_session, USER_ID, status=ReservationStatus.ACTIVE)
    assert {r.id for r in active.items} == {booked["pair"].id, booked["single"].id}

    cancelled = await projections.find_by_user(db_session, USER_ID, status=ReservationStatus.CANCELLED)
    assert [r.id for r in cancelled.items] == [booked["cancelled"].id]

    # once the soon showtime has started it is no longer upcoming
    later = seeded_test_data["showtime_start"] - timedelta(hours=1)
    upcoming = await projections.find_by_user(db_session, USER_ID, upcoming=True, now=later)
    assert booked["single"].id not in {r.id for r in upcoming.items}
    past = await projections.find_by_user(db_session, USER_ID, upcoming=False, now=later)
    assert [r.id for r in past.items] == [booked["single"].id]

    first_page = await projections.find_by_user(db_session, USER_ID, limit=2, offset=0)
    second_page = await projections.find_by_user(db_session, USER_ID, limit=2, offset=2)
    assert first_page.total == second_page.total == 3
    assert len(first_page.items) == 2
    assert len(second_page.items) == 1


async def test_find_by_showtime(db_session, seeded_test_data, booked):
    showtime_id = seeded_test_data["showtime_id"]
    every = await projections.find_by_showtime(db_session, showtime_id)
    assert len(every) == 3

    active = await projections.find_by_showtime(db_session, showtime_id, status=ReservationStatus.ACTIVE)
    assert {r.user_id for r in active} == {USER_ID, USER_ID + 1}

    with pytest.raises(NotFoundError):
        await projections.find_by_showtime(db_session, 999999)


async def test_get_stats(db_session, seeded_test_data, booked):
    stats = await projections.get_stats(db_session, USER_ID)
    assert stats.upcoming == 2
    assert stats.past == 0
    assert stats.cancelled == 1
    assert stats.total_spent == Decimal("28.00")
    assert stats.favorite_theater_types == [TheaterType.IMAX, TheaterType.STANDARD]

    later = seeded_test_data["showtime_start"] - timedelta(hours=1)
    stats = await projections.get_stats(db_session, USER_ID, now=later)
    assert stats.upcoming == 1
    assert stats.past == 1


async def test_stats_of_user_without_bookings(db_session, seeded_test_data):
    stats = await projections.get_stats(db_session, 999)
    assert stats.upcoming == stats.past == stats.cancelled == 0
    assert stats.total_spent == Decimal("0.00")
    assert stats.favorite_theater_types == []


async def test_revenue_report(db_session, seeded_test_data, booked):
    rows = await projections.revenue_report(db_session)
    assert sum(row.total_reservations for row in rows) == 3
    assert sum(row.total_seats for row in rows) == 4
    assert sum(row.total_revenue for row in rows) == Decimal("38.00")
    assert [row.date for row in rows] == sorted((row.date for row in rows), reverse=True)
