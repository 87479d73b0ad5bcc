from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from redis.asyncio import Redis
from redis.exceptions import RedisError

import cinema_booking.models  # noqa: F401  registers every table on Base.metadata
from cinema_booking.core.config import settings
from cinema_booking.db.base import Base
from cinema_booking.db.session import build_engine, build_session_factory
from cinema_booking.models import Movie, Seat, Showtime, Theater, TheaterType


@pytest.fixture
async def db_engine(tmp_path):
    """Create a database engine for the tests.

    Uses TEST_DATABASE_URL when set, otherwise a fresh sqlite file per test.
    """
    test_db_url = settings.TEST_DATABASE_URL or f"sqlite+aiosqlite:///{tmp_path / 'cinema_test.db'}"
    engine = build_engine(test_db_url, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)  # Clean slate
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def db_session_factory(db_engine):
    """Factory to create multiple sessions for concurrent tests."""
    return build_session_factory(db_engine)


@pytest.fixture
async def db_session(db_session_factory):
    async with db_session_factory() as session:
        yield session


@pytest.fixture
async def redis_client():
    """Real Redis, the test is skipped when none is reachable."""
    redis = Redis.from_url(
        settings.REDIS_URL,
        decode_responses=False,
        socket_connect_timeout=2
    )
    try:
        await redis.ping()
    except (RedisError, OSError):
        await redis.aclose()
        pytest.skip("Redis is not reachable")
    try:
        yield redis
    finally:
        keys = await redis.keys("idempotency:*") + await redis.keys("seat_layout:*")
        if keys:
            await redis.delete(*keys)
        await redis.aclose()


@pytest.fixture
def now():
    return datetime.now(timezone.utc)


@pytest.fixture
async def seeded_test_data(db_session_factory, now):
    """
    One theater with seats A1..A10, a second theater with its own seats, a
    movie and three showtimes: in 3 hours, in 30 minutes and one that
    already started.
    """
    async with db_session_factory() as session:
        async with session.begin():
            theater = Theater(name="Test Theater", type=TheaterType.IMAX, capacity=10)
            theater.seats = [Seat(row_label="A", seat_number=number) for number in range(1, 11)]
            other_theater = Theater(name="Other Theater", type=TheaterType.STANDARD, capacity=2)
            other_theater.seats = [Seat(row_label="A", seat_number=number) for number in range(1, 3)]
            movie = Movie(title="Test Movie", description="A test movie for testing", duration_mins=120)
            session.add_all([theater, other_theater, movie])
            await session.flush()

            showtime = Showtime(movie_id=movie.id, theater_id=theater.id,
                                start_time=now + timedelta(hours=3), price=Decimal("10.00"))
            soon_showtime = Showtime(movie_id=movie.id, theater_id=other_theater.id,
                                     start_time=now + timedelta(minutes=30), price=Decimal("8.00"))
            past_showtime = Showtime(movie_id=movie.id, theater_id=theater.id,
                                     start_time=now - timedelta(hours=3), price=Decimal("9.00"))
            session.add_all([showtime, soon_showtime, past_showtime])
            await session.flush()

            seat_ids = {seat.label: seat.id for seat in theater.seats}
            other_seat_ids = [seat.id for seat in other_theater.seats]
            data = {
                "movie_id": movie.id,
                "theater_id": theater.id,
                "other_theater_id": other_theater.id,
                "showtime_id": showtime.id,
                "showtime_start": showtime.start_time,
                "soon_showtime_id": soon_showtime.id,
                "past_showtime_id": past_showtime.id,
                "seat_ids": seat_ids,
                "other_seat_ids": other_seat_ids,
            }
    return data
