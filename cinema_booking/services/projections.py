"""Read-side views over reservations.

Every function opens its own short transaction so it only ever sees
committed rows, and eagerly loads what the response schemas need.
"""
from collections import Counter, defaultdict
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import Select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.sql import func, select

from cinema_booking.core.exceptions import NotFoundError
from cinema_booking.db.base import utcnow
from cinema_booking.models.reservation import Reservation, ReservationSeat, ReservationStatus
from cinema_booking.models.showtime import Showtime
from cinema_booking.models.theater import Theater
from cinema_booking.schemas.reservation import ReservationStats, RevenueRow

FAVORITE_THEATER_TYPES_LIMIT = 3


def joined_reservation_query() -> Select:
    return select(Reservation).options(
        selectinload(Reservation.showtime).selectinload(Showtime.movie),
        selectinload(Reservation.showtime).selectinload(Showtime.theater),
        selectinload(Reservation.seats).selectinload(ReservationSeat.seat),
    )


@dataclass
class ReservationPage:
    items: list[Reservation]
    total: int
    limit: int
    offset: int


async def find_by_user(
        db: AsyncSession,
        user_id: int,
        status: Optional[ReservationStatus] = None,
        upcoming: Optional[bool] = None,
        limit: int = 20,
        offset: int = 0,
        now: Optional[datetime] = None) -> ReservationPage:
    """
    Reservations of a user, latest showtime first.

    ``upcoming=True`` keeps showtimes that have not started yet,
    ``upcoming=False`` the ones that have, ``None`` keeps both.
    """
    now = now or utcnow()
    filters = [Reservation.user_id == user_id]
    if status is not None:
        filters.append(Reservation.status == status)
    if upcoming is True:
        filters.append(Showtime.start_time > now)
    elif upcoming is False:
        filters.append(Showtime.start_time <= now)

    async with db.begin():
        total = (await db.execute(
            select(func.count(Reservation.id))
            .join(Showtime, Reservation.showtime_id == Showtime.id)
            .where(*filters)
        )).scalar_one()
        result = await db.scalars(
            joined_reservation_query()
            .join(Showtime, Reservation.showtime_id == Showtime.id)
            .where(*filters)
            .order_by(Showtime.start_time.desc(), Reservation.id.desc())
            .limit(limit)
            .offset(offset)
        )
        items = list(result.all())
    return ReservationPage(items=items, total=total, limit=limit, offset=offset)


async def find_by_showtime(
        db: AsyncSession,
        showtime_id: int,
        status: Optional[ReservationStatus] = None) -> list[Reservation]:
    async with db.begin():
        if await db.get(Showtime, showtime_id) is None:
            raise NotFoundError("Showtime", showtime_id)
        stmt = joined_reservation_query().where(Reservation.showtime_id == showtime_id)
        if status is not None:
            stmt = stmt.where(Reservation.status == status)
        result = await db.scalars(stmt.order_by(Reservation.id))
        return list(result.all())


async def get_stats(db: AsyncSession, user_id: int, now: Optional[datetime] = None) -> ReservationStats:
    now = now or utcnow()
    async with db.begin():
        result = await db.execute(
            select(Reservation.status, Reservation.total_price, Showtime.start_time, Theater.type)
            .join(Showtime, Reservation.showtime_id == Showtime.id)
            .join(Theater, Showtime.theater_id == Theater.id)
            .where(Reservation.user_id == user_id)
            .order_by(Reservation.id)
        )
        rows = result.all()

    stats = ReservationStats()
    theater_types: Counter = Counter()
    total_spent = Decimal("0.00")
    for status, total_price, start_time, theater_type in rows:
        if status == ReservationStatus.CANCELLED:
            stats.cancelled += 1
            continue
        if start_time > now:
            stats.upcoming += 1
        else:
            stats.past += 1
        total_spent += total_price
        theater_types[theater_type] += 1

    stats.total_spent = total_spent
    # ties keep the order of first booking
    stats.favorite_theater_types = [t for t, _ in theater_types.most_common(FAVORITE_THEATER_TYPES_LIMIT)]
    return stats


async def revenue_report(db: AsyncSession) -> list[RevenueRow]:
    """Active bookings grouped by showtime day (UTC), newest day first."""
    async with db.begin():
        seat_counts = (
            select(ReservationSeat.reservation_id, func.count(ReservationSeat.id).label("seat_count"))
            .group_by(ReservationSeat.reservation_id)
            .subquery()
        )
        result = await db.execute(
            select(Showtime.start_time, Reservation.total_price, seat_counts.c.seat_count)
            .join(Showtime, Reservation.showtime_id == Showtime.id)
            .join(seat_counts, seat_counts.c.reservation_id == Reservation.id)
            .where(Reservation.status == ReservationStatus.ACTIVE)
        )
        rows = result.all()

    days: dict[date, dict] = defaultdict(lambda: {
        "total_reservations": 0,
        "total_seats": 0,
        "total_revenue": Decimal("0.00"),
    })
    for start_time, total_price, seat_count in rows:
        day = days[start_time.date()]
        day["total_reservations"] += 1
        day["total_seats"] += seat_count
        day["total_revenue"] += total_price

    return [RevenueRow(date=day, **values) for day, values in sorted(days.items(), reverse=True)]
