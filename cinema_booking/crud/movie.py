from typing import Iterable
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import func, select

from cinema_booking.core.exceptions import NotFoundError, ValidationError
from cinema_booking.models.movie import Genre, Movie
from cinema_booking.models.showtime import Showtime
from cinema_booking.schemas.movie import MovieCreate, MovieUpdate


class CRUDMovie:
    async def _upsert_genres(self, db: AsyncSession, names: Iterable[str]) -> list[Genre]:
        names = sorted({name.strip() for name in names if name and name.strip()})
        if not names:
            return []
        existing = (await db.scalars(select(Genre).where(Genre.name.in_(names)))).all()
        by_name = {genre.name: genre for genre in existing}
        for name in names:
            if name not in by_name:
                genre = Genre(name=name)
                db.add(genre)
                by_name[name] = genre
        await db.flush()
        return [by_name[name] for name in names]

    async def get_movie(self, db: AsyncSession, movie_id: int) -> Movie:
        async with db.begin():
            movie = await db.get(Movie, movie_id)
        if movie is None:
            raise NotFoundError("Movie", movie_id)
        return movie

    async def get_all_movies(self, db: AsyncSession) -> list[Movie]:
        async with db.begin():
            result = await db.scalars(select(Movie).order_by(Movie.title))
            return list(result.all())

    async def get_all_genres(self, db: AsyncSession) -> list[Genre]:
        async with db.begin():
            result = await db.scalars(select(Genre).order_by(Genre.name))
            return list(result.all())

    async def create_movie(self, db: AsyncSession, data: MovieCreate) -> Movie:
        async with db.begin():
            movie = Movie(**data.model_dump(exclude={"genres"}))
            movie.genres = await self._upsert_genres(db, data.genres)
            db.add(movie)
        return movie

    async def update_movie(self, db: AsyncSession, movie_id: int, data: MovieUpdate) -> Movie:
        async with db.begin():
            movie = await db.get(Movie, movie_id)
            if movie is None:
                raise NotFoundError("Movie", movie_id)
            for field, value in data.model_dump(exclude_unset=True, exclude={"genres"}).items():
                if value is not None:
                    setattr(movie, field, value)
            if data.genres is not None:
                movie.genres = await self._upsert_genres(db, data.genres)
        return movie

    async def delete_movie(self, db: AsyncSession, movie_id: int) -> None:
        async with db.begin():
            movie = await db.get(Movie, movie_id)
            if movie is None:
                raise NotFoundError("Movie", movie_id)
            showtimes = (await db.execute(
                select(func.count(Showtime.id)).where(Showtime.movie_id == movie_id)
            )).scalar_one()
            if showtimes:
                raise ValidationError("Movie still has scheduled showtimes",
                                      details={"movie_id": movie_id, "showtimes": showtimes}, status_code=409)
            await db.delete(movie)


crud_movie = CRUDMovie()
