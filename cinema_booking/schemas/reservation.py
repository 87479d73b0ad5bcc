from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field

from cinema_booking.models.reservation import ReservationStatus
from cinema_booking.models.theater import TheaterType


class ReservationCreate(BaseModel):
    showtime_id: int
    seat_ids: list[int]


class ReservedSeat(BaseModel):
    seat_id: int
    row_label: str
    seat_number: int


class ReservationResponse(BaseModel):
    id: int
    user_id: int
    showtime_id: int
    status: ReservationStatus
    unit_price: Decimal
    total_price: Decimal
    created_at: datetime
    cancelled_at: Optional[datetime] = None
    start_time: datetime
    movie_id: int
    movie_title: str
    theater_id: int
    theater_name: str
    theater_type: TheaterType
    seats: list[ReservedSeat]

    @classmethod
    def from_reservation(cls, reservation) -> "ReservationResponse":
        # reservation must be loaded with showtime.movie, showtime.theater and seats.seat
        showtime = reservation.showtime
        return cls(
            id=reservation.id,
            user_id=reservation.user_id,
            showtime_id=reservation.showtime_id,
            status=reservation.status,
            unit_price=reservation.unit_price,
            total_price=reservation.total_price,
            created_at=reservation.created_at,
            cancelled_at=reservation.cancelled_at,
            start_time=showtime.start_time,
            movie_id=showtime.movie_id,
            movie_title=showtime.movie.title,
            theater_id=showtime.theater_id,
            theater_name=showtime.theater.name,
            theater_type=showtime.theater.type,
            seats=[
                ReservedSeat(seat_id=rs.seat_id, row_label=rs.seat.row_label, seat_number=rs.seat.seat_number)
                for rs in sorted(reservation.seats, key=lambda rs: (rs.seat.row_label, rs.seat.seat_number))
            ],
        )


class ReservationPageResponse(BaseModel):
    items: list[ReservationResponse]
    total: int
    limit: int
    offset: int


class ReservationStats(BaseModel):
    upcoming: int = 0
    past: int = 0
    cancelled: int = 0
    total_spent: Decimal = Decimal("0.00")
    favorite_theater_types: list[TheaterType] = []


class RevenueRow(BaseModel):
    date: date
    total_reservations: int
    total_seats: int
    total_revenue: Decimal
