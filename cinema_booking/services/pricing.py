from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import select

from cinema_booking.core.exceptions import NotFoundError
from cinema_booking.models.showtime import Showtime

CENTS = Decimal("0.01")


async def resolve_price(db: AsyncSession, showtime_id: int) -> Decimal:
    """Current per-seat price of a showtime.

    The value is copied onto the reservation when it is created and is not
    looked up again afterwards, so later price edits leave bookings alone.
    """
    result = await db.execute(select(Showtime.price).where(Showtime.id == showtime_id))
    price = result.scalar_one_or_none()
    if price is None:
        raise NotFoundError("Showtime", showtime_id)
    return Decimal(price).quantize(CENTS, rounding=ROUND_HALF_UP)


def compute_total(unit_price: Decimal, seat_count: int) -> Decimal:
    return (unit_price * seat_count).quantize(CENTS, rounding=ROUND_HALF_UP)
