from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional
from sqlalchemy import BigInteger, ForeignKey, Index, Numeric, UniqueConstraint, Enum as SAEnum, text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from cinema_booking.db.base import Base, BigIntPK, UTCDateTime
from cinema_booking.models import TimestampMixin


class ReservationStatus(str, Enum):
    ACTIVE = "ACTIVE"
    CANCELLED = "CANCELLED"


class Reservation(Base, TimestampMixin):
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    showtime_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("showtime.id", ondelete="RESTRICT"), nullable=False, index=True)
    status: Mapped[ReservationStatus] = mapped_column(
        SAEnum(ReservationStatus, name="reservation_status_enum"), nullable=False, default=ReservationStatus.ACTIVE)
    # price snapshot taken at booking time, never recomputed
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    showtime: Mapped["Showtime"] = relationship()
    seats: Mapped[List["ReservationSeat"]] = relationship(
        back_populates="reservation", cascade="all, delete-orphan", passive_deletes=True)


class ReservationSeat(Base):
    __table_args__ = (
        UniqueConstraint("reservation_id", "seat_id", name="uix_reservation_seat"),
        # at most one active booking of a seat per showtime
        Index(
            "uix_active_showtime_seat",
            "showtime_id", "seat_id",
            unique=True,
            postgresql_where=text("status = 'ACTIVE'"),
            sqlite_where=text("status = 'ACTIVE'"),
        ),
    )
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    reservation_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("reservation.id", ondelete="CASCADE"), nullable=False, index=True)
    showtime_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("showtime.id", ondelete="RESTRICT"), nullable=False)
    seat_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("seat.id", ondelete="RESTRICT"), nullable=False)
    status: Mapped[ReservationStatus] = mapped_column(
        SAEnum(ReservationStatus, name="reservation_status_enum"), nullable=False, default=ReservationStatus.ACTIVE)
    reservation: Mapped["Reservation"] = relationship(back_populates="seats")
    seat: Mapped["Seat"] = relationship()
