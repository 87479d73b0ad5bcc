from typing import Optional

from fastapi import APIRouter, Depends
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from cinema_booking.core.security import Principal, require_admin
from cinema_booking.crud.showtime import crud_showtime, invalidate_seat_layout
from cinema_booking.db.session import get_db_session
from cinema_booking.redis import get_redis
from cinema_booking.schemas.showtime import (
    AvailabilityRequest,
    AvailabilityResponse,
    ShowtimeBatchCreate,
    ShowtimeCreate,
    ShowtimeDetailResponse,
    ShowtimeResponse,
    ShowtimeUpdate,
)
from cinema_booking.services.availability import check_availability

router = APIRouter(
    prefix="/showtime"
)


@router.get("", response_model=list[ShowtimeDetailResponse])
async def get_upcoming_showtimes(movie_id: Optional[int] = None, db: AsyncSession = Depends(get_db_session)):
    return await crud_showtime.get_upcoming_showtimes(db, movie_id=movie_id)


@router.get("/{showtime_id}", response_model=ShowtimeDetailResponse)
async def get_showtime(showtime_id: int, db: AsyncSession = Depends(get_db_session)):
    return await crud_showtime.get_showtime(db, showtime_id)


@router.get("/{showtime_id}/seats")
async def get_showtime_seat_layout(
        showtime_id: int,
        db: AsyncSession = Depends(get_db_session),
        redis: Redis = Depends(get_redis)):
    return await crud_showtime.get_showtime_seat_layout(db, showtime_id, redis)


@router.post("/{showtime_id}/availability", response_model=AvailabilityResponse)
async def get_seat_availability(
        showtime_id: int,
        data: AvailabilityRequest,
        db: AsyncSession = Depends(get_db_session)):
    availability = await check_availability(db, showtime_id, data.seat_ids)
    return AvailabilityResponse(
        showtime_id=showtime_id,
        available=sorted(availability.available),
        unavailable=sorted(availability.unavailable),
        invalid=sorted(availability.invalid),
    )


@router.post("", response_model=ShowtimeDetailResponse, status_code=201)
async def create_showtime(
        showtime: ShowtimeCreate,
        db: AsyncSession = Depends(get_db_session),
        admin: Principal = Depends(require_admin)):
    return await crud_showtime.create_showtime(db, showtime)


@router.post("/batch", response_model=list[ShowtimeDetailResponse], status_code=201)
async def create_showtime_batch(
        batch: ShowtimeBatchCreate,
        db: AsyncSession = Depends(get_db_session),
        admin: Principal = Depends(require_admin)):
    return await crud_showtime.create_batch(db, batch)


@router.put("/{showtime_id}", response_model=ShowtimeResponse)
async def update_showtime(
        showtime_id: int,
        showtime: ShowtimeUpdate,
        db: AsyncSession = Depends(get_db_session),
        redis: Redis = Depends(get_redis),
        admin: Principal = Depends(require_admin)):
    updated = await crud_showtime.update_showtime(db, showtime_id, showtime)
    await invalidate_seat_layout(redis, showtime_id)
    return updated


@router.delete("/{showtime_id}", status_code=204)
async def delete_showtime(
        showtime_id: int,
        db: AsyncSession = Depends(get_db_session),
        redis: Redis = Depends(get_redis),
        admin: Principal = Depends(require_admin)):
    await crud_showtime.delete_showtime(db, showtime_id)
    await invalidate_seat_layout(redis, showtime_id)
