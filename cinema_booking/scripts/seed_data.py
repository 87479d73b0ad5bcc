"""
Seed script to populate a demo theater, movies and a week of showtimes.

Run with: python -m cinema_booking.scripts.seed_data
"""
import asyncio
import logging
from datetime import date, time, timedelta
from decimal import Decimal

from sqlalchemy import select

from cinema_booking.core.config import settings
from cinema_booking.core.logger import setup_logging
from cinema_booking.crud.movie import crud_movie
from cinema_booking.crud.showtime import crud_showtime
from cinema_booking.crud.theater import crud_theater
from cinema_booking.db.session import async_session, engine, init_db
from cinema_booking.models.theater import Theater, TheaterType
from cinema_booking.schemas.movie import MovieCreate
from cinema_booking.schemas.showtime import ShowtimeBatchCreate
from cinema_booking.schemas.theater import TheaterCreate

logger = logging.getLogger(__name__)

SAMPLE_THEATERS = [
    TheaterCreate(name="Hall 1", type=TheaterType.STANDARD, rows=8, seats_per_row=12),
    TheaterCreate(name="IMAX Hall", type=TheaterType.IMAX, rows=10, seats_per_row=16),
]

SAMPLE_MOVIES = [
    MovieCreate(title="The Long Night", description="A lighthouse keeper waits out a storm.",
                duration_mins=118, rating="PG-13", genres=["Drama", "Thriller"]),
    MovieCreate(title="Orbit", description="Two astronauts, one capsule, no way home.",
                duration_mins=132, rating="PG-13", genres=["Sci-Fi", "Adventure"]),
    MovieCreate(title="Paper Moons", description="An animated tale of a girl who folds the sky.",
                duration_mins=94, rating="G", genres=["Animation", "Family"]),
]

SHOW_TIMES = [time(12, 0), time(16, 0), time(20, 0)]


async def seed_data():
    """Seed the database, skips when a theater already exists."""
    async with async_session() as db:
        async with db.begin():
            existing = (await db.execute(select(Theater.id).limit(1))).scalar_one_or_none()
        if existing is not None:
            logger.info("Data already exists. Skipping seed.")
            return

        theaters = [await crud_theater.create_theater(db, data) for data in SAMPLE_THEATERS]
        movies = [await crud_movie.create_movie(db, data) for data in SAMPLE_MOVIES]

        tomorrow = date.today() + timedelta(days=1)
        days = [tomorrow + timedelta(days=offset) for offset in range(7)]
        # one movie per theater, three screenings a day
        for index, theater in enumerate(theaters):
            movie = movies[index]
            await crud_showtime.create_batch(db, ShowtimeBatchCreate(
                movie_id=movie.id,
                theater_id=theater.id,
                dates=days,
                times=SHOW_TIMES,
                price=Decimal("12.50") if theater.type == TheaterType.STANDARD else Decimal("18.00"),
            ))
        logger.info("Seeded %s theaters, %s movies, %s showtimes",
                    len(theaters), len(movies), len(theaters) * len(days) * len(SHOW_TIMES))


async def main():
    setup_logging(settings.LOG_LEVEL)
    await init_db()
    await seed_data()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
