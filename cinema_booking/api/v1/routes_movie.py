from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from cinema_booking.core.security import Principal, require_admin
from cinema_booking.crud.movie import crud_movie
from cinema_booking.db.session import get_db_session
from cinema_booking.schemas.movie import GenreResponse, MovieCreate, MovieResponse, MovieUpdate

router = APIRouter(
    prefix="/movie"
)

genre_router = APIRouter(
    prefix="/genre"
)


@router.get("", response_model=list[MovieResponse])
async def get_movies(db: AsyncSession = Depends(get_db_session)):
    return await crud_movie.get_all_movies(db)


@router.get("/{movie_id}", response_model=MovieResponse)
async def get_movie(movie_id: int, db: AsyncSession = Depends(get_db_session)):
    return await crud_movie.get_movie(db, movie_id)


@router.post("", response_model=MovieResponse, status_code=201)
async def create_movie(
        movie: MovieCreate,
        db: AsyncSession = Depends(get_db_session),
        admin: Principal = Depends(require_admin)):
    return await crud_movie.create_movie(db, movie)


@router.put("/{movie_id}", response_model=MovieResponse)
async def update_movie(
        movie_id: int,
        movie: MovieUpdate,
        db: AsyncSession = Depends(get_db_session),
        admin: Principal = Depends(require_admin)):
    return await crud_movie.update_movie(db, movie_id, movie)


@router.delete("/{movie_id}", status_code=204)
async def delete_movie(
        movie_id: int,
        db: AsyncSession = Depends(get_db_session),
        admin: Principal = Depends(require_admin)):
    await crud_movie.delete_movie(db, movie_id)


@genre_router.get("", response_model=list[GenreResponse])
async def get_genres(db: AsyncSession = Depends(get_db_session)):
    return await crud_movie.get_all_genres(db)
