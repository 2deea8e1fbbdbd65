"""
Booking status transitions.

A booking holds its seats while pending or confirmed and releases them when
cancelled. Each allowed transition names the seat bookkeeping it needs;
anything missing from ALLOWED_TRANSITIONS is rejected before any write.
"""
from enum import Enum

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import transaction
from ..exceptions import (
    BadRequestError,
    ForbiddenError,
    InsufficientSeatsError,
    InvalidTransitionError,
    NotFoundError,
    SeatUnavailableError,
)
from ..logger_config import logger
from ..models import Booking, BookingStatus, Event, Payment, User
from ..notifications import notify_booking
from ..schemas import BookingResponse
from . import seat_ledger
from .bookings import get_booking


class SeatAction(Enum):
    NONE = "none"
    RELEASE = "release"
    RESERVE = "reserve"


ALLOWED_TRANSITIONS = {
    (BookingStatus.PENDING, BookingStatus.CONFIRMED): SeatAction.NONE,
    (BookingStatus.PENDING, BookingStatus.CANCELLED): SeatAction.RELEASE,
    (BookingStatus.CONFIRMED, BookingStatus.CANCELLED): SeatAction.RELEASE,
    (BookingStatus.CANCELLED, BookingStatus.CONFIRMED): SeatAction.RESERVE,
}


def resolve_transition(current: BookingStatus, target: BookingStatus) -> SeatAction:
    if current == target:
        return SeatAction.NONE
    try:
        return ALLOWED_TRANSITIONS[(current, target)]
    except KeyError:
        raise InvalidTransitionError(
            f"Cannot change booking status from {current.value} to {target.value}"
        ) from None


async def _release(session: AsyncSession, booking: Booking, event: Event, seat_ids):
    seat_count = len(seat_ids)
    if event.available_seats + seat_count > event.total_seats:
        raise BadRequestError("Cannot cancel booking: would exceed total seats limit")
    if await seat_ledger.return_availability(session, event.event_id, seat_count) is None:
        raise BadRequestError("Cannot cancel booking: would exceed total seats limit")
    await seat_ledger.release_seats(session, seat_ids)
    await session.execute(delete(Payment).where(Payment.booking_id == booking.booking_id))


async def _reserve(session: AsyncSession, booking: Booking, event: Event, seat_ids):
    seat_count = len(seat_ids)
    if event.available_seats < seat_count:
        raise InsufficientSeatsError("Not enough available seats to confirm this booking")
    if await seat_ledger.take_availability(session, event.event_id, seat_count) is None:
        raise InsufficientSeatsError("Not enough available seats to confirm this booking")
    if await seat_ledger.mark_seats_booked(session, seat_ids) != seat_count:
        raise SeatUnavailableError("One or more seats of this booking have been booked by someone else")
    await _ensure_payment(session, booking)


async def _ensure_payment(session: AsyncSession, booking: Booking):
    existing = await session.execute(select(Payment.payment_id).where(Payment.booking_id == booking.booking_id))
    if existing.scalar_one_or_none() is None:
        session.add(Payment(booking_id=booking.booking_id, amount=booking.total_amount))


async def update_booking_status(booking_id: int, target: BookingStatus, session: AsyncSession) -> BookingResponse:
    """Move a booking to `target` and reconcile seats, availability and payment."""
    async with transaction(session, "Update booking status"):
        booking = (
            await session.execute(
                select(Booking)
                .where(Booking.booking_id == booking_id)
                .execution_options(populate_existing=True)
            )
        ).scalar_one_or_none()
        if not booking:
            raise NotFoundError("No booking found with that ID")

        current = BookingStatus(booking.status)
        action = resolve_transition(current, target)

        if action is not SeatAction.NONE:
            event = (
                await session.execute(
                    select(Event)
                    .where(Event.event_id == booking.event_id)
                    .execution_options(populate_existing=True)
                )
            ).scalar_one()
            seat_ids = await seat_ledger.get_booking_seat_ids(session, booking.booking_id)

            if action is SeatAction.RELEASE:
                await _release(session, booking, event, seat_ids)
            else:
                await _reserve(session, booking, event, seat_ids)
        elif current == BookingStatus.PENDING and target == BookingStatus.CONFIRMED:
            await _ensure_payment(session, booking)

        booking.status = target.value

    logger.info(f"Booking {booking_id} status {current.value} -> {target.value} ({action.value})")
    response = await get_booking(booking_id, session)
    if current != target:
        await notify_booking("booking_status_changed", response.model_dump(mode="json"))
    return response


async def cancel_own_booking(booking_id: int, user: User, session: AsyncSession) -> BookingResponse:
    owner_id = (
        await session.execute(select(Booking.user_id).where(Booking.booking_id == booking_id))
    ).scalar_one_or_none()
    if owner_id is None:
        raise NotFoundError("No booking found with that ID")
    if owner_id != user.user_id:
        raise ForbiddenError("You can only cancel your own bookings")
    return await update_booking_status(booking_id, BookingStatus.CANCELLED, session)
