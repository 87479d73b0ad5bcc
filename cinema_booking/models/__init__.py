from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column

from cinema_booking.db.base import UTCDateTime, utcnow


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=utcnow,
        nullable=False
    )

    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=utcnow,
        onupdate=utcnow,
        nullable=False
    )


from .movie import Movie, Genre, movie_genre
from .theater import Theater, TheaterType, Seat
from .showtime import Showtime
from .reservation import Reservation, ReservationSeat, ReservationStatus

__all__ = [
    "TimestampMixin",
    "Movie", "Genre", "movie_genre",
    "Theater", "TheaterType", "Seat",
    "Showtime",
    "Reservation", "ReservationSeat", "ReservationStatus",
]
