from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from cinema_booking.core.security import Principal, require_admin
from cinema_booking.crud.theater import crud_theater
from cinema_booking.db.session import get_db_session
from cinema_booking.schemas.theater import SeatResponse, TheaterCreate, TheaterResponse

router = APIRouter(
    prefix="/theater"
)


@router.get("", response_model=list[TheaterResponse])
async def get_theaters(db: AsyncSession = Depends(get_db_session)):
    return await crud_theater.get_all_theaters(db)


@router.get("/{theater_id}", response_model=TheaterResponse)
async def get_theater(theater_id: int, db: AsyncSession = Depends(get_db_session)):
    return await crud_theater.get_theater(db, theater_id)


@router.post("", response_model=TheaterResponse, status_code=201)
async def create_theater(
        theater: TheaterCreate,
        db: AsyncSession = Depends(get_db_session),
        admin: Principal = Depends(require_admin)):
    return await crud_theater.create_theater(db, theater)


@router.get("/{theater_id}/seats", response_model=list[SeatResponse])
async def get_theater_seats(theater_id: int, db: AsyncSession = Depends(get_db_session)):
    return await crud_theater.get_seats(db, theater_id)
