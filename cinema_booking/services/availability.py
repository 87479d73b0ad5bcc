from dataclasses import dataclass, field
from typing import Iterable

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import select

from cinema_booking.core.exceptions import NotFoundError
from cinema_booking.models.reservation import ReservationSeat, ReservationStatus
from cinema_booking.models.showtime import Showtime
from cinema_booking.models.theater import Seat


@dataclass(frozen=True)
class SeatAvailability:
    available: frozenset[int] = field(default_factory=frozenset)
    unavailable: frozenset[int] = field(default_factory=frozenset)
    invalid: frozenset[int] = field(default_factory=frozenset)

    @property
    def all_available(self) -> bool:
        return not self.unavailable and not self.invalid


async def seats_availability(
        db: AsyncSession,
        showtime: Showtime,
        seat_ids: Iterable[int],
        lock: bool = False) -> SeatAvailability:
    """
    Classify ``seat_ids`` for an already loaded showtime.

    With ``lock=True`` the active seat rows are read ``FOR UPDATE``; the caller
    must be inside the transaction that will write the reservation.
    """
    requested = frozenset(seat_ids)
    if not requested:
        return SeatAvailability()

    valid_result = await db.scalars(
        select(Seat.id)
        .where(Seat.theater_id == showtime.theater_id)
        .where(Seat.id.in_(requested))
    )
    valid = frozenset(valid_result.all())

    taken_stmt = (
        select(ReservationSeat.seat_id)
        .where(ReservationSeat.showtime_id == showtime.id)
        .where(ReservationSeat.seat_id.in_(valid))
        .where(ReservationSeat.status == ReservationStatus.ACTIVE)
    )
    if lock:
        taken_stmt = taken_stmt.with_for_update()
    taken = frozenset((await db.scalars(taken_stmt)).all()) if valid else frozenset()

    return SeatAvailability(
        available=valid - taken,
        unavailable=taken,
        invalid=requested - valid,
    )


async def check_availability(db: AsyncSession, showtime_id: int, seat_ids: Iterable[int]) -> SeatAvailability:
    """Read-only availability check for a showtime, runs in its own transaction."""
    async with db.begin():
        showtime = await db.get(Showtime, showtime_id)
        if showtime is None:
            raise NotFoundError("Showtime", showtime_id)
        return await seats_availability(db, showtime, seat_ids)
