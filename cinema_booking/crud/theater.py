import string
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import select

from cinema_booking.core.exceptions import NotFoundError
from cinema_booking.models.theater import Seat, Theater
from cinema_booking.schemas.theater import TheaterCreate


class CRUDTheater:
    async def get_theater(self, db: AsyncSession, theater_id: int) -> Theater:
        async with db.begin():
            theater = await db.get(Theater, theater_id)
        if theater is None:
            raise NotFoundError("Theater", theater_id)
        return theater

    async def get_all_theaters(self, db: AsyncSession) -> list[Theater]:
        async with db.begin():
            result = await db.scalars(select(Theater).order_by(Theater.id))
            return list(result.all())

    async def create_theater(self, db: AsyncSession, data: TheaterCreate) -> Theater:
        """Creates the theater and its seat grid, rows labelled A, B, C ..."""
        async with db.begin():
            theater = Theater(
                name=data.name,
                type=data.type,
                capacity=data.rows * data.seats_per_row,
            )
            theater.seats = [
                Seat(row_label=row_label, seat_number=number)
                for row_label in string.ascii_uppercase[:data.rows]
                for number in range(1, data.seats_per_row + 1)
            ]
            db.add(theater)
        return theater

    async def get_seats(self, db: AsyncSession, theater_id: int) -> list[Seat]:
        async with db.begin():
            if await db.get(Theater, theater_id) is None:
                raise NotFoundError("Theater", theater_id)
            result = await db.scalars(
                select(Seat)
                .where(Seat.theater_id == theater_id)
                .order_by(Seat.row_label, Seat.seat_number)
            )
            return list(result.all())


crud_theater = CRUDTheater()
