import json
import logging
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.sql import func, select

from cinema_booking.core.config import get_settings
from cinema_booking.core.exceptions import (
    NotFoundError,
    ShowtimeConflictError,
    ShowtimeInUseError,
    ValidationError,
)
from cinema_booking.db.base import utcnow
from cinema_booking.models.movie import Movie
from cinema_booking.models.reservation import Reservation, ReservationSeat, ReservationStatus
from cinema_booking.models.showtime import Showtime
from cinema_booking.models.theater import Seat, Theater
from cinema_booking.schemas.showtime import ShowtimeBatchCreate, ShowtimeCreate, ShowtimeUpdate

logger = logging.getLogger(__name__)


def seat_layout_key(showtime_id: int) -> str:
    return f"seat_layout:showtime:{showtime_id}"


async def invalidate_seat_layout(redis: Optional[Redis], showtime_id: int) -> None:
    if redis is None:
        return
    try:
        await redis.delete(seat_layout_key(showtime_id))
    except RedisError:
        logger.warning("could not invalidate seat layout of showtime %s", showtime_id, exc_info=True)


class CRUDShowtime:
    def _with_details(self):
        return select(Showtime).options(
            selectinload(Showtime.movie),
            selectinload(Showtime.theater),
        ).execution_options(populate_existing=True)

    async def _get_or_404(self, db: AsyncSession, showtime_id: int, lock: bool = False) -> Showtime:
        stmt = self._with_details().where(Showtime.id == showtime_id)
        if lock:
            stmt = stmt.with_for_update()
        result = await db.execute(stmt)
        showtime = result.scalar_one_or_none()
        if showtime is None:
            raise NotFoundError("Showtime", showtime_id)
        return showtime

    async def _ensure_no_overlap(
            self,
            db: AsyncSession,
            theater_id: int,
            start_time: datetime,
            duration_mins: int,
            exclude_id: Optional[int] = None) -> None:
        """Raise when [start, start + duration) overlaps another showtime in the theater."""
        end_time = start_time + timedelta(minutes=duration_mins)
        stmt = (
            select(Showtime.id, Showtime.start_time, Movie.duration_mins)
            .join(Movie, Showtime.movie_id == Movie.id)
            .where(Showtime.theater_id == theater_id)
            .where(Showtime.start_time < end_time)
        )
        if exclude_id is not None:
            stmt = stmt.where(Showtime.id != exclude_id)
        for other_id, other_start, other_duration in (await db.execute(stmt)).all():
            if other_start + timedelta(minutes=other_duration) > start_time:
                raise ShowtimeConflictError(
                    "Theater already has a showtime in this time slot",
                    details={"theater_id": theater_id, "conflicting_showtime_id": other_id},
                )

    async def _schedule(
            self,
            db: AsyncSession,
            movie: Movie,
            theater_id: int,
            start_time: datetime,
            price: Decimal,
            now: datetime) -> Showtime:
        if start_time <= now:
            raise ValidationError("Showtime must start in the future", details={"start_time": start_time.isoformat()})
        await self._ensure_no_overlap(db, theater_id, start_time, movie.duration_mins)
        showtime = Showtime(movie_id=movie.id, theater_id=theater_id, start_time=start_time, price=price)
        db.add(showtime)
        # flush so the next overlap check of a batch sees this one
        await db.flush()
        return showtime

    async def _load_refs(self, db: AsyncSession, movie_id: int, theater_id: int) -> Movie:
        movie = await db.get(Movie, movie_id)
        if movie is None:
            raise NotFoundError("Movie", movie_id)
        # lock the theater so concurrent scheduling in it runs one at a time
        theater = (await db.execute(
            select(Theater).where(Theater.id == theater_id).with_for_update()
        )).scalar_one_or_none()
        if theater is None:
            raise NotFoundError("Theater", theater_id)
        return movie

    async def get_upcoming_showtimes(
            self,
            db: AsyncSession,
            movie_id: Optional[int] = None,
            now: Optional[datetime] = None) -> list[Showtime]:
        now = now or utcnow()
        stmt = self._with_details().where(Showtime.start_time > now)
        if movie_id is not None:
            stmt = stmt.where(Showtime.movie_id == movie_id)
        async with db.begin():
            result = await db.scalars(stmt.order_by(Showtime.start_time, Showtime.id))
            return list(result.all())

    async def get_showtime(self, db: AsyncSession, showtime_id: int) -> Showtime:
        async with db.begin():
            return await self._get_or_404(db, showtime_id)

    async def create_showtime(self, db: AsyncSession, data: ShowtimeCreate, now: Optional[datetime] = None) -> Showtime:
        now = now or utcnow()
        async with db.begin():
            movie = await self._load_refs(db, data.movie_id, data.theater_id)
            showtime = await self._schedule(db, movie, data.theater_id, data.start_time, data.price, now)
            showtime = await self._get_or_404(db, showtime.id)
        logger.info("showtime.created id=%s movie=%s theater=%s start=%s",
                    showtime.id, showtime.movie_id, showtime.theater_id, showtime.start_time.isoformat())
        return showtime

    async def create_batch(self, db: AsyncSession, data: ShowtimeBatchCreate, now: Optional[datetime] = None) -> list[Showtime]:
        """
        Schedule the movie on every ``date x time`` combination.
        All showtimes are created or, on the first conflict, none is.
        """
        now = now or utcnow()
        starts = sorted({
            # times without an offset are UTC
            datetime.combine(day, start).astimezone(timezone.utc) if start.tzinfo is not None
            else datetime.combine(day, start, tzinfo=timezone.utc)
            for day in data.dates
            for start in data.times
        })
        async with db.begin():
            movie = await self._load_refs(db, data.movie_id, data.theater_id)
            created = [
                await self._schedule(db, movie, data.theater_id, start_time, data.price, now)
                for start_time in starts
            ]
            ids = [showtime.id for showtime in created]
            result = await db.scalars(self._with_details().where(Showtime.id.in_(ids)).order_by(Showtime.start_time))
            showtimes = list(result.all())
        logger.info("showtime.batch_created movie=%s theater=%s count=%s",
                    data.movie_id, data.theater_id, len(showtimes))
        return showtimes

    async def update_showtime(
            self,
            db: AsyncSession,
            showtime_id: int,
            data: ShowtimeUpdate,
            now: Optional[datetime] = None) -> Showtime:
        """Price and start time edits. Existing reservations keep their snapshot price."""
        now = now or utcnow()
        async with db.begin():
            showtime = await self._get_or_404(db, showtime_id, lock=True)
            if data.start_time is not None and data.start_time != showtime.start_time:
                if data.start_time <= now:
                    raise ValidationError("Showtime must start in the future",
                                          details={"start_time": data.start_time.isoformat()})
                await self._ensure_no_overlap(
                    db, showtime.theater_id, data.start_time, showtime.movie.duration_mins, exclude_id=showtime.id)
                showtime.start_time = data.start_time
            if data.price is not None:
                showtime.price = data.price
        logger.info("showtime.updated id=%s price=%s start=%s",
                    showtime.id, showtime.price, showtime.start_time.isoformat())
        return showtime

    async def delete_showtime(self, db: AsyncSession, showtime_id: int) -> None:
        async with db.begin():
            showtime = await self._get_or_404(db, showtime_id, lock=True)
            active = (await db.execute(
                select(func.count(Reservation.id))
                .where(Reservation.showtime_id == showtime_id)
                .where(Reservation.status == ReservationStatus.ACTIVE)
            )).scalar_one()
            if active:
                raise ShowtimeInUseError(showtime_id)
            # cancelled bookings go with the showtime, their seat rows cascade
            await db.execute(delete(Reservation).where(Reservation.showtime_id == showtime_id))
            await db.delete(showtime)
        logger.info("showtime.deleted id=%s", showtime_id)

    async def get_showtime_seat_layout(self, db: AsyncSession, showtime_id: int, redis: Optional[Redis]) -> dict:
        key = seat_layout_key(showtime_id)
        if redis is not None:
            try:
                cached_layout = await redis.get(key)
            except RedisError:
                logger.warning("seat layout cache read failed for showtime %s", showtime_id, exc_info=True)
                cached_layout = None
            if cached_layout:
                return json.loads(cached_layout)

        async with db.begin():
            showtime = await self._get_or_404(db, showtime_id)
            result = await db.execute(
                select(
                    Seat.id,
                    Seat.row_label,
                    Seat.seat_number,
                    ReservationSeat.id.label("reservation_seat_id"),
                )
                .outerjoin(ReservationSeat, (ReservationSeat.seat_id == Seat.id)
                           & (ReservationSeat.showtime_id == showtime_id)
                           & (ReservationSeat.status == ReservationStatus.ACTIVE))
                .where(Seat.theater_id == showtime.theater_id)
                .order_by(Seat.row_label, Seat.seat_number)
            )
            rows = result.mappings().all()

        layout = defaultdict(lambda: {"row": None, "seats": []})
        available = 0
        for seat in rows:
            row_label = seat["row_label"]
            reserved = seat["reservation_seat_id"] is not None
            available += not reserved
            layout[row_label]["row"] = row_label
            layout[row_label]["seats"].append({
                "id": seat["id"],
                "seat_number": seat["seat_number"],
                "status": "RESERVED" if reserved else "AVAILABLE",
            })

        seat_layout = {
            "showtime_id": showtime_id,
            "theater_id": showtime.theater_id,
            "price": str(showtime.price),
            "available_seats": available,
            "total_seats": len(rows),
            "layout": list(layout.values()),
        }
        if redis is not None:
            try:
                await redis.set(key, json.dumps(seat_layout), ex=get_settings().SEAT_LAYOUT_CACHE_TTL_SECONDS)
            except RedisError:
                logger.warning("seat layout cache write failed for showtime %s", showtime_id, exc_info=True)
        return seat_layout


crud_showtime = CRUDShowtime()
