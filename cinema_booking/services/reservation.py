import logging
from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import func, select, update

from cinema_booking.core.exceptions import (
    AlreadyCancelledError,
    BookingError,
    BookingLimitError,
    ConflictError,
    ForbiddenError,
    LeadTimeError,
    NotFoundError,
    PastShowtimeError,
    SeatUnavailableError,
    ValidationError,
)
from cinema_booking.core.security import Principal
from cinema_booking.db.base import utcnow
from cinema_booking.models.reservation import Reservation, ReservationSeat, ReservationStatus
from cinema_booking.models.showtime import Showtime
from cinema_booking.services.availability import seats_availability
from cinema_booking.services.policy import (
    BookingPolicy,
    PolicyReason,
    PolicyResult,
    validate_active_cap,
    validate_cancellation_window,
    validate_request_shape,
    validate_showtime_is_future,
)
from cinema_booking.services.pricing import compute_total, resolve_price
from cinema_booking.services.projections import joined_reservation_query

logger = logging.getLogger(__name__)

REASON_ERRORS: dict[PolicyReason, type[BookingError]] = {
    PolicyReason.INVALID_USER_ID: ValidationError,
    PolicyReason.INVALID_SHOWTIME_ID: ValidationError,
    PolicyReason.INVALID_SEAT_IDS: ValidationError,
    PolicyReason.NO_SEATS: ValidationError,
    PolicyReason.DUPLICATE_SEATS: ValidationError,
    PolicyReason.TOO_MANY_SEATS: ValidationError,
    PolicyReason.ACTIVE_CAP_REACHED: BookingLimitError,
    PolicyReason.INSIDE_LEAD_TIME: LeadTimeError,
}


def raise_for_policy(result: PolicyResult, **details) -> None:
    if result.allowed:
        return
    error_cls = REASON_ERRORS[result.reason]
    raise error_cls(result.message, details={"reason": result.reason.value, **details})


class ReservationService:
    """
    Creates, cancels and deletes reservations.

    Every operation takes the caller's session and runs as one transaction on
    it, so either everything it wrote is committed or nothing is.
    """

    def __init__(self, policy: Optional[BookingPolicy] = None):
        self.policy = policy or BookingPolicy.from_settings()

    async def _load(self, db: AsyncSession, reservation_id: int, user_id: Optional[int] = None) -> Optional[Reservation]:
        stmt = joined_reservation_query().where(Reservation.id == reservation_id)
        if user_id is not None:
            stmt = stmt.where(Reservation.user_id == user_id)
        result = await db.execute(stmt.execution_options(populate_existing=True))
        return result.scalar_one_or_none()

    async def _count_active(self, db: AsyncSession, user_id: int, showtime_id: int) -> int:
        result = await db.execute(
            select(func.count(Reservation.id))
            .where(Reservation.user_id == user_id)
            .where(Reservation.showtime_id == showtime_id)
            .where(Reservation.status == ReservationStatus.ACTIVE)
        )
        return result.scalar_one()

    async def create(
            self,
            db: AsyncSession,
            user_id: int,
            showtime_id: int,
            seat_ids: Sequence[int],
            now: Optional[datetime] = None) -> Reservation:
        now = now or utcnow()
        try:
            raise_for_policy(validate_request_shape(
                user_id, showtime_id, seat_ids, self.policy.max_seats_per_request))
            seat_ids = list(seat_ids)

            async with db.begin():
                # row lock on the showtime serializes every booking for it
                result = await db.execute(
                    select(Showtime).where(Showtime.id == showtime_id).with_for_update()
                )
                showtime = result.scalar_one_or_none()
                if showtime is None:
                    raise NotFoundError("Showtime", showtime_id)
                if not validate_showtime_is_future(showtime.start_time, now):
                    raise PastShowtimeError(showtime_id)

                availability = await seats_availability(db, showtime, seat_ids, lock=True)
                if not availability.all_available:
                    raise SeatUnavailableError(unavailable=availability.unavailable, invalid=availability.invalid)

                active_count = await self._count_active(db, user_id, showtime_id)
                raise_for_policy(
                    validate_active_cap(active_count + 1, self.policy.max_active_reservations_per_showtime),
                    active_reservations=active_count,
                )

                unit_price = await resolve_price(db, showtime_id)
                reservation = Reservation(
                    user_id=user_id,
                    showtime_id=showtime_id,
                    status=ReservationStatus.ACTIVE,
                    unit_price=unit_price,
                    total_price=compute_total(unit_price, len(seat_ids)),
                    seats=[
                        ReservationSeat(showtime_id=showtime_id, seat_id=seat_id, status=ReservationStatus.ACTIVE)
                        for seat_id in seat_ids
                    ],
                )
                db.add(reservation)
                await db.flush()
                reservation = await self._load(db, reservation.id)
        except IntegrityError as e:
            logger.info("reservation.conflict user=%s showtime=%s seats=%s: %s",
                        user_id, showtime_id, seat_ids, e.orig)
            raise ConflictError() from e
        except BookingError as e:
            logger.info("reservation.rejected user=%s showtime=%s code=%s", user_id, showtime_id, e.code.value)
            raise

        logger.info("reservation.created id=%s user=%s showtime=%s seats=%s total=%s",
                    reservation.id, user_id, showtime_id, seat_ids, reservation.total_price)
        return reservation

    async def cancel(
            self,
            db: AsyncSession,
            reservation_id: int,
            user_id: int,
            now: Optional[datetime] = None) -> Reservation:
        now = now or utcnow()
        async with db.begin():
            result = await db.execute(
                select(Reservation)
                .where(Reservation.id == reservation_id)
                .where(Reservation.user_id == user_id)
                .with_for_update()
            )
            reservation = result.scalar_one_or_none()
            if reservation is None:
                raise NotFoundError("Reservation", reservation_id)
            if reservation.status == ReservationStatus.CANCELLED:
                raise AlreadyCancelledError(reservation_id)

            showtime = await db.get(Showtime, reservation.showtime_id)
            raise_for_policy(
                validate_cancellation_window(showtime.start_time, now, self.policy.cancellation_lead_time),
                reservation_id=reservation_id,
            )

            reservation.status = ReservationStatus.CANCELLED
            reservation.cancelled_at = now
            await db.execute(
                update(ReservationSeat)
                .where(ReservationSeat.reservation_id == reservation_id)
                .values(status=ReservationStatus.CANCELLED)
            )
            await db.flush()
            reservation = await self._load(db, reservation_id)

        logger.info("reservation.cancelled id=%s user=%s showtime=%s",
                    reservation_id, user_id, reservation.showtime_id)
        return reservation

    async def cancel_for_showtime(
            self,
            db: AsyncSession,
            showtime_id: int,
            user_id: int,
            now: Optional[datetime] = None) -> list[Reservation]:
        """Cancel every active reservation the user holds for one showtime, all or none."""
        now = now or utcnow()
        async with db.begin():
            result = await db.scalars(
                select(Reservation)
                .where(Reservation.showtime_id == showtime_id)
                .where(Reservation.user_id == user_id)
                .where(Reservation.status == ReservationStatus.ACTIVE)
                .order_by(Reservation.id)
                .with_for_update()
            )
            reservations = list(result.all())
            if not reservations:
                raise NotFoundError("Active reservation for showtime", showtime_id)

            showtime = await db.get(Showtime, showtime_id)
            raise_for_policy(
                validate_cancellation_window(showtime.start_time, now, self.policy.cancellation_lead_time),
                showtime_id=showtime_id,
            )

            ids = [reservation.id for reservation in reservations]
            for reservation in reservations:
                reservation.status = ReservationStatus.CANCELLED
                reservation.cancelled_at = now
            await db.execute(
                update(ReservationSeat)
                .where(ReservationSeat.reservation_id.in_(ids))
                .values(status=ReservationStatus.CANCELLED)
            )
            await db.flush()
            result = await db.scalars(
                joined_reservation_query()
                .where(Reservation.id.in_(ids))
                .order_by(Reservation.id)
                .execution_options(populate_existing=True)
            )
            cancelled = list(result.all())

        logger.info("reservation.cancelled_for_showtime showtime=%s user=%s ids=%s", showtime_id, user_id, ids)
        return cancelled

    async def delete(self, db: AsyncSession, reservation_id: int, principal: Principal) -> int:
        """Hard delete, admin cleanup only. Users cancel instead."""
        if not principal.is_admin:
            raise ForbiddenError("Only admins can delete reservations, cancel it instead")
        async with db.begin():
            reservation = await self._load(db, reservation_id)
            if reservation is None:
                raise NotFoundError("Reservation", reservation_id)
            showtime_id = reservation.showtime_id
            await db.delete(reservation)
        logger.info("reservation.deleted id=%s by admin=%s", reservation_id, principal.user_id)
        return showtime_id

    async def get(self, db: AsyncSession, reservation_id: int, user_id: int) -> Reservation:
        async with db.begin():
            reservation = await self._load(db, reservation_id, user_id=user_id)
        if reservation is None:
            raise NotFoundError("Reservation", reservation_id)
        return reservation


reservation_service = ReservationService()
