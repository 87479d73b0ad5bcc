from datetime import date, datetime, time
from decimal import Decimal
from typing import Optional
from pydantic import AwareDatetime, BaseModel, Field

from cinema_booking.schemas.movie import MovieResponse
from cinema_booking.schemas.theater import TheaterResponse


class ShowtimeBase(BaseModel):
    start_time: AwareDatetime
    price: Decimal = Field(gt=0, max_digits=10, decimal_places=2)


class ShowtimeCreate(ShowtimeBase):
    movie_id: int = Field(gt=0)
    theater_id: int = Field(gt=0)


class ShowtimeBatchCreate(BaseModel):
    movie_id: int = Field(gt=0)
    theater_id: int = Field(gt=0)
    dates: list[date] = Field(min_length=1, description="Days to schedule")
    times: list[time] = Field(min_length=1, description="Start times, UTC unless an offset is given")
    price: Decimal = Field(gt=0, max_digits=10, decimal_places=2)


class ShowtimeUpdate(BaseModel):
    start_time: Optional[AwareDatetime] = None
    price: Optional[Decimal] = Field(default=None, gt=0, max_digits=10, decimal_places=2)


class ShowtimeResponse(ShowtimeBase):
    id: int
    movie_id: int
    theater_id: int

    class Config:
        from_attributes = True  # orm_mode


class ShowtimeDetailResponse(ShowtimeResponse):
    end_time: datetime
    movie: MovieResponse
    theater: TheaterResponse


class AvailabilityRequest(BaseModel):
    seat_ids: list[int] = Field(min_length=1)


class AvailabilityResponse(BaseModel):
    showtime_id: int
    available: list[int]
    unavailable: list[int]
    invalid: list[int]
