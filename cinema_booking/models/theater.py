from enum import Enum
from sqlalchemy import BigInteger, ForeignKey, Integer, String, UniqueConstraint, Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship
from cinema_booking.db.base import Base, BigIntPK
from cinema_booking.models import TimestampMixin


class TheaterType(str, Enum):
    STANDARD = "STANDARD"
    PREMIUM = "PREMIUM"
    IMAX = "IMAX"
    THREE_D = "3D"


class Theater(Base, TimestampMixin):
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[TheaterType] = mapped_column(
        SAEnum(TheaterType, name="theater_type_enum"), nullable=False, default=TheaterType.STANDARD)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    seats: Mapped[list["Seat"]] = relationship(
        back_populates="theater", cascade="all, delete-orphan",
        order_by="Seat.id")
    showtimes: Mapped[list["Showtime"]] = relationship(back_populates="theater")


class Seat(Base):
    __table_args__ = (
        UniqueConstraint("theater_id", "row_label", "seat_number", name="uix_theater_seat_position"),
    )
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, index=True)
    theater_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("theater.id", ondelete="CASCADE"), index=True, nullable=False)
    row_label: Mapped[str] = mapped_column(String(5), nullable=False)
    seat_number: Mapped[int] = mapped_column(Integer, nullable=False)
    theater: Mapped["Theater"] = relationship(back_populates="seats")

    @property
    def label(self) -> str:
        return f"{self.row_label}{self.seat_number}"
