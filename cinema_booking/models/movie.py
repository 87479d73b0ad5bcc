from typing import Optional
from sqlalchemy import BigInteger, Column, ForeignKey, Integer, String, Table, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from cinema_booking.db.base import Base, BigIntPK
from cinema_booking.models import TimestampMixin


movie_genre = Table(
    "movie_genre",
    Base.metadata,
    Column("movie_id", BigInteger, ForeignKey("movie.id", ondelete="CASCADE"), primary_key=True),
    Column("genre_id", BigInteger, ForeignKey("genre.id", ondelete="CASCADE"), primary_key=True),
)


class Genre(Base):
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)


class Movie(Base, TimestampMixin):
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    duration_mins: Mapped[int] = mapped_column(Integer, nullable=False)
    rating: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    poster_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    genres: Mapped[list[Genre]] = relationship(secondary=movie_genre, lazy="selectin")
    showtimes: Mapped[list["Showtime"]] = relationship(back_populates="movie")
