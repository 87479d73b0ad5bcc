from datetime import datetime, timedelta
from decimal import Decimal
from sqlalchemy import BigInteger, ForeignKey, Numeric
from sqlalchemy.orm import Mapped, mapped_column, relationship
from cinema_booking.db.base import Base, BigIntPK, UTCDateTime
from cinema_booking.models import TimestampMixin


class Showtime(Base, TimestampMixin):
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, index=True)
    movie_id: Mapped[int] = mapped_column(BigInteger, ForeignKey(
        "movie.id", ondelete="RESTRICT"), nullable=False, index=True)
    theater_id: Mapped[int] = mapped_column(BigInteger, ForeignKey(
        "theater.id", ondelete="RESTRICT"), nullable=False, index=True)
    start_time: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, index=True)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    movie: Mapped["Movie"] = relationship(back_populates="showtimes")
    theater: Mapped["Theater"] = relationship(back_populates="showtimes")

    @property
    def end_time(self) -> datetime:
        # needs movie loaded
        return self.start_time + timedelta(minutes=self.movie.duration_mins)
