from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from cinema_booking.core.config import get_settings
from cinema_booking.core.idempotency import check_idempotency, save_idempotency
from cinema_booking.core.security import Principal, get_current_principal
from cinema_booking.crud.showtime import invalidate_seat_layout
from cinema_booking.db.session import get_db_session
from cinema_booking.models.reservation import ReservationStatus
from cinema_booking.redis import get_redis
from cinema_booking.schemas.reservation import (
    ReservationCreate,
    ReservationPageResponse,
    ReservationResponse,
    ReservationStats,
)
from cinema_booking.services import projections
from cinema_booking.services.reservation import reservation_service

router = APIRouter(
    prefix="/reservation"
)


@router.post("", response_model=ReservationResponse, status_code=201)
async def create_reservation(
        data: ReservationCreate,
        request: Request,
        principal: Principal = Depends(get_current_principal),
        db: AsyncSession = Depends(get_db_session),
        redis: Redis = Depends(get_redis)):
    redis_key, cached, is_repeat = await check_idempotency(request, redis, "reservation", principal.user_id)
    if is_repeat:
        return JSONResponse(status_code=201, content=cached)

    reservation = await reservation_service.create(db, principal.user_id, data.showtime_id, data.seat_ids)
    await invalidate_seat_layout(redis, reservation.showtime_id)
    response = ReservationResponse.from_reservation(reservation)
    await save_idempotency(redis, redis_key, response.model_dump(mode="json"), get_settings().IDEMPOTENCY_TTL_SECONDS)
    return response


@router.get("", response_model=ReservationPageResponse)
async def get_my_reservations(
        status: Optional[ReservationStatus] = None,
        upcoming: Optional[bool] = None,
        limit: int = Query(default=20, ge=1, le=100),
        offset: int = Query(default=0, ge=0),
        principal: Principal = Depends(get_current_principal),
        db: AsyncSession = Depends(get_db_session)):
    page = await projections.find_by_user(
        db, principal.user_id, status=status, upcoming=upcoming, limit=limit, offset=offset)
    return ReservationPageResponse(
        items=[ReservationResponse.from_reservation(reservation) for reservation in page.items],
        total=page.total,
        limit=page.limit,
        offset=page.offset,
    )


@router.get("/stats", response_model=ReservationStats)
async def get_my_stats(
        principal: Principal = Depends(get_current_principal),
        db: AsyncSession = Depends(get_db_session)):
    return await projections.get_stats(db, principal.user_id)


@router.post("/showtime/{showtime_id}/cancel", response_model=list[ReservationResponse])
async def cancel_showtime_reservations(
        showtime_id: int,
        principal: Principal = Depends(get_current_principal),
        db: AsyncSession = Depends(get_db_session),
        redis: Redis = Depends(get_redis)):
    reservations = await reservation_service.cancel_for_showtime(db, showtime_id, principal.user_id)
    await invalidate_seat_layout(redis, showtime_id)
    return [ReservationResponse.from_reservation(reservation) for reservation in reservations]


@router.delete("/showtime/{showtime_id}", response_model=list[ReservationResponse])
async def delete_showtime_reservations(
        showtime_id: int,
        principal: Principal = Depends(get_current_principal),
        db: AsyncSession = Depends(get_db_session),
        redis: Redis = Depends(get_redis)):
    return await cancel_showtime_reservations(showtime_id, principal, db, redis)


@router.get("/{reservation_id}", response_model=ReservationResponse)
async def get_reservation(
        reservation_id: int,
        principal: Principal = Depends(get_current_principal),
        db: AsyncSession = Depends(get_db_session)):
    reservation = await reservation_service.get(db, reservation_id, principal.user_id)
    return ReservationResponse.from_reservation(reservation)


@router.post("/{reservation_id}/cancel", response_model=ReservationResponse)
async def cancel_reservation(
        reservation_id: int,
        principal: Principal = Depends(get_current_principal),
        db: AsyncSession = Depends(get_db_session),
        redis: Redis = Depends(get_redis)):
    reservation = await reservation_service.cancel(db, reservation_id, principal.user_id)
    await invalidate_seat_layout(redis, reservation.showtime_id)
    return ReservationResponse.from_reservation(reservation)


@router.delete("/{reservation_id}", response_model=ReservationResponse)
async def delete_reservation(
        reservation_id: int,
        principal: Principal = Depends(get_current_principal),
        db: AsyncSession = Depends(get_db_session),
        redis: Redis = Depends(get_redis)):
    """Users never hard delete, DELETE cancels under the same lead-time rule."""
    return await cancel_reservation(reservation_id, principal, db, redis)
