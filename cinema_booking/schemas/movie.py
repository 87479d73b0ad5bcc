from typing import Optional
from pydantic import BaseModel, Field


class GenreResponse(BaseModel):
    id: int
    name: str

    class Config:
        from_attributes = True


class MovieBase(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str = ""
    duration_mins: int = Field(gt=0)
    rating: Optional[str] = None
    poster_url: Optional[str] = None


class MovieCreate(MovieBase):
    genres: list[str] = []


class MovieUpdate(MovieBase):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    duration_mins: Optional[int] = Field(default=None, gt=0)
    genres: Optional[list[str]] = None


class MovieResponse(MovieBase):
    id: int
    genres: list[GenreResponse] = []

    class Config:
        from_attributes = True  # orm_mode
