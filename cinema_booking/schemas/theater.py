from pydantic import BaseModel, Field

from cinema_booking.models.theater import TheaterType


class SeatResponse(BaseModel):
    id: int
    row_label: str
    seat_number: int

    class Config:
        from_attributes = True


class TheaterBase(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    type: TheaterType = TheaterType.STANDARD


class TheaterCreate(TheaterBase):
    rows: int = Field(gt=0, le=26, description="Number of seat rows, labelled A, B, C ...")
    seats_per_row: int = Field(gt=0, le=100)


class TheaterResponse(TheaterBase):
    id: int
    capacity: int

    class Config:
        from_attributes = True  # Previously orm_mode
