from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import transaction
from ..exceptions import (
    BadRequestError,
    ForbiddenError,
    InsufficientSeatsError,
    NotFoundError,
    SeatUnavailableError,
)
from ..logger_config import logger
from ..models import BookedSeat, Booking, BookingStatus, Event, Payment, User, UserRole
from ..notifications import notify_booking
from ..schemas import BookingRequest, BookingResponse
from . import seat_ledger


async def create_booking(req: BookingRequest, user: User, session: AsyncSession) -> BookingResponse:
    """
    Reserve the requested seats for the current user.

    Booking row, booked-seat rows, payment, seat flags and the event's
    availability counter are written in one transaction; any failure rolls
    all of them back.
    """
    seat_count = len(req.seat_ids)
    user_id = user.user_id

    async with transaction(session, "Create booking"):
        event = (
            await session.execute(
                select(Event)
                .where(Event.event_id == req.event_id)
                .execution_options(populate_existing=True)
            )
        ).scalar_one_or_none()
        if not event:
            raise NotFoundError("No event found with that ID")
        if not event.is_active:
            raise BadRequestError("Event is not open for booking")

        seats = await seat_ledger.get_event_seats(session, event.event_id, req.seat_ids)
        if len(seats) != seat_count:
            raise BadRequestError("Invalid seat selection for this event")

        remaining = await seat_ledger.take_availability(session, event.event_id, seat_count)
        if remaining is None:
            raise InsufficientSeatsError(
                f"Not enough available seats: requested {seat_count}, available {event.available_seats}"
            )

        if await seat_ledger.mark_seats_booked(session, req.seat_ids) != seat_count:
            raise SeatUnavailableError("One or more selected seats are already booked")

        booking = Booking(
            event_id=event.event_id,
            user_id=user_id,
            total_amount=Decimal(str(req.total_amount)),
            status=BookingStatus.CONFIRMED.value,
        )
        session.add(booking)
        await session.flush()

        session.add_all([BookedSeat(booking_id=booking.booking_id, seat_id=seat_id) for seat_id in req.seat_ids])
        session.add(Payment(booking_id=booking.booking_id, amount=booking.total_amount))

    logger.info(
        f"Booking {booking.booking_id} created: event={booking.event_id} user={user_id} "
        f"seats={seat_count} remaining={remaining}"
    )
    response = to_response(booking, sorted(req.seat_ids), event_title=event.title)
    await notify_booking("booking_created", response.model_dump(mode="json"))
    return response


def to_response(booking: Booking, seat_ids: List[int], **extra) -> BookingResponse:
    return BookingResponse(
        booking_id=booking.booking_id,
        event_id=booking.event_id,
        user_id=booking.user_id,
        total_amount=booking.total_amount,
        status=booking.status,
        booking_date=booking.booking_date,
        seat_ids=seat_ids,
        **extra,
    )


def _booking_query():
    return (
        select(
            Booking,
            Event.title.label("event_title"),
            User.name.label("user_name"),
            User.email.label("user_email"),
        )
        .join(Event, Booking.event_id == Event.event_id)
        .join(User, Booking.user_id == User.user_id)
        .execution_options(populate_existing=True)
    )


async def _with_seats(rows, session: AsyncSession) -> List[BookingResponse]:
    booking_ids = [row.Booking.booking_id for row in rows]
    seats_by_booking = {booking_id: [] for booking_id in booking_ids}
    if booking_ids:
        stmt = (
            select(BookedSeat.booking_id, BookedSeat.seat_id)
            .where(BookedSeat.booking_id.in_(booking_ids))
            .order_by(BookedSeat.seat_id)
        )
        for booking_id, seat_id in (await session.execute(stmt)).all():
            seats_by_booking[booking_id].append(seat_id)

    return [
        to_response(
            row.Booking,
            seats_by_booking[row.Booking.booking_id],
            event_title=row.event_title,
            user_name=row.user_name,
            user_email=row.user_email,
        )
        for row in rows
    ]


async def list_bookings(
    session: AsyncSession,
    user_id: Optional[int] = None,
    event_id: Optional[int] = None,
    status: Optional[BookingStatus] = None,
    page: int = 1,
    limit: Optional[int] = None,
) -> List[BookingResponse]:
    stmt = _booking_query().order_by(Booking.booking_date.desc(), Booking.booking_id.desc())
    if user_id is not None:
        stmt = stmt.where(Booking.user_id == user_id)
    if event_id is not None:
        stmt = stmt.where(Booking.event_id == event_id)
    if status is not None:
        stmt = stmt.where(Booking.status == status.value)
    if limit:
        stmt = stmt.offset((page - 1) * limit).limit(limit)

    rows = (await session.execute(stmt)).all()
    return await _with_seats(rows, session)


async def get_booking(booking_id: int, session: AsyncSession) -> BookingResponse:
    rows = (await session.execute(_booking_query().where(Booking.booking_id == booking_id))).all()
    if not rows:
        raise NotFoundError("No booking found with that ID")
    return (await _with_seats(rows, session))[0]


async def get_booking_for_user(booking_id: int, user: User, session: AsyncSession) -> BookingResponse:
    booking = await get_booking(booking_id, session)
    if booking.user_id != user.user_id and user.role != UserRole.ADMIN.value:
        raise ForbiddenError("You do not have access to this booking")
    return booking
