from typing import Optional

from fastapi import APIRouter, Depends
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from cinema_booking.core.security import Principal, require_admin
from cinema_booking.crud.showtime import invalidate_seat_layout
from cinema_booking.db.session import get_db_session
from cinema_booking.models.reservation import ReservationStatus
from cinema_booking.redis import get_redis
from cinema_booking.schemas.reservation import ReservationResponse, RevenueRow
from cinema_booking.services import projections
from cinema_booking.services.reservation import reservation_service

router = APIRouter(
    prefix="/admin"
)


@router.get("/reservations", response_model=list[ReservationResponse])
async def get_showtime_reservations(
        showtime_id: int,
        status: Optional[ReservationStatus] = None,
        db: AsyncSession = Depends(get_db_session),
        admin: Principal = Depends(require_admin)):
    reservations = await projections.find_by_showtime(db, showtime_id, status=status)
    return [ReservationResponse.from_reservation(reservation) for reservation in reservations]


@router.delete("/reservations/{reservation_id}", status_code=204)
async def hard_delete_reservation(
        reservation_id: int,
        db: AsyncSession = Depends(get_db_session),
        redis: Redis = Depends(get_redis),
        admin: Principal = Depends(require_admin)):
    showtime_id = await reservation_service.delete(db, reservation_id, admin)
    await invalidate_seat_layout(redis, showtime_id)


@router.get("/reports/revenue", response_model=list[RevenueRow])
async def get_revenue_report(
        db: AsyncSession = Depends(get_db_session),
        admin: Principal = Depends(require_admin)):
    return await projections.revenue_report(db)
