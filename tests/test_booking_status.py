from sqlalchemy import func, select, update

import pytest

from ticketing.exceptions import (
    BadRequestError,
    ForbiddenError,
    InsufficientSeatsError,
    InvalidTransitionError,
    NotFoundError,
    SeatUnavailableError,
)
from ticketing.models import BookedSeat, BookingStatus, Event, Payment, Seat
from ticketing.schemas import BookingRequest
from ticketing.services import booking_status
from ticketing.services import bookings as booking_service
from ticketing.services import events as event_service
from ticketing.services.booking_status import SeatAction, resolve_transition


async def _payments(session, booking_id):
    stmt = select(func.count()).select_from(Payment).where(Payment.booking_id == booking_id)
    return (await session.execute(stmt)).scalar_one()


async def _seat_flags(session, seat_ids):
    stmt = select(Seat.is_booked).where(Seat.seat_id.in_(seat_ids)).execution_options(populate_existing=True)
    return list((await session.execute(stmt)).scalars().all())


async def _book(session, user, event, seats, count=3):
    seat_ids = [seat.seat_id for seat in seats[:count]]
    return await booking_service.create_booking(
        BookingRequest(event_id=event.event_id, seat_ids=seat_ids, total_amount=25 * count), user, session
    )


@pytest.mark.parametrize(
    "current,target,expected",
    [
        (BookingStatus.PENDING, BookingStatus.CONFIRMED, SeatAction.NONE),
        (BookingStatus.PENDING, BookingStatus.CANCELLED, SeatAction.RELEASE),
        (BookingStatus.CONFIRMED, BookingStatus.CANCELLED, SeatAction.RELEASE),
        (BookingStatus.CANCELLED, BookingStatus.CONFIRMED, SeatAction.RESERVE),
        (BookingStatus.CONFIRMED, BookingStatus.CONFIRMED, SeatAction.NONE),
        (BookingStatus.CANCELLED, BookingStatus.CANCELLED, SeatAction.NONE),
    ],
)
def test_resolve_transition(current, target, expected):
    assert resolve_transition(current, target) is expected


@pytest.mark.parametrize("current", [BookingStatus.CONFIRMED, BookingStatus.CANCELLED])
def test_moving_back_to_pending_is_rejected(current):
    with pytest.raises(InvalidTransitionError):
        resolve_transition(current, BookingStatus.PENDING)


@pytest.mark.asyncio
async def test_cancel_restores_availability_and_seats(session, customer, event, seats):
    booking = await _book(session, customer, event, seats)

    cancelled = await booking_status.update_booking_status(booking.booking_id, BookingStatus.CANCELLED, session)

    assert cancelled.status == BookingStatus.CANCELLED
    refreshed = await event_service.get_event(event.event_id, session)
    assert refreshed.available_seats == 10
    assert await _seat_flags(session, booking.seat_ids) == [False, False, False]
    assert await _payments(session, booking.booking_id) == 0
    # booked-seat rows stay so the booking can be confirmed again
    assert cancelled.seat_ids == booking.seat_ids


@pytest.mark.asyncio
async def test_reconfirm_cancelled_booking_reserves_seats_again(session, customer, event, seats):
    booking = await _book(session, customer, event, seats)
    await booking_status.update_booking_status(booking.booking_id, BookingStatus.CANCELLED, session)

    confirmed = await booking_status.update_booking_status(booking.booking_id, BookingStatus.CONFIRMED, session)

    assert confirmed.status == BookingStatus.CONFIRMED
    refreshed = await event_service.get_event(event.event_id, session)
    assert refreshed.available_seats == 7
    assert await _seat_flags(session, booking.seat_ids) == [True, True, True]
    assert await _payments(session, booking.booking_id) == 1


@pytest.mark.asyncio
async def test_reconfirm_fails_without_enough_availability(session, customer, event, seats):
    booking = await _book(session, customer, event, seats)
    await booking_status.update_booking_status(booking.booking_id, BookingStatus.CANCELLED, session)
    await session.execute(update(Event).where(Event.event_id == event.event_id).values(available_seats=2))
    await session.commit()

    with pytest.raises(InsufficientSeatsError):
        await booking_status.update_booking_status(booking.booking_id, BookingStatus.CONFIRMED, session)

    current = await booking_service.get_booking(booking.booking_id, session)
    assert current.status == BookingStatus.CANCELLED
    refreshed = await event_service.get_event(event.event_id, session)
    assert refreshed.available_seats == 2
    assert await _payments(session, booking.booking_id) == 0


@pytest.mark.asyncio
async def test_reconfirm_fails_when_a_seat_was_taken(session, customer, make_user, event, seats):
    booking = await _book(session, customer, event, seats, count=2)
    await booking_status.update_booking_status(booking.booking_id, BookingStatus.CANCELLED, session)
    other = await make_user()
    await booking_service.create_booking(
        BookingRequest(event_id=event.event_id, seat_ids=[seats[0].seat_id], total_amount=25), other, session
    )

    with pytest.raises(SeatUnavailableError, match="booked by someone else"):
        await booking_status.update_booking_status(booking.booking_id, BookingStatus.CONFIRMED, session)

    refreshed = await event_service.get_event(event.event_id, session)
    assert refreshed.available_seats == 9


@pytest.mark.asyncio
async def test_pending_booking_confirm_creates_payment(session, customer, event, seats, add_pending_booking):
    pending = await add_pending_booking(customer, event, [seats[0].seat_id, seats[1].seat_id])
    assert await _payments(session, pending.booking_id) == 0

    confirmed = await booking_status.update_booking_status(pending.booking_id, BookingStatus.CONFIRMED, session)

    assert confirmed.status == BookingStatus.CONFIRMED
    assert await _payments(session, pending.booking_id) == 1
    refreshed = await event_service.get_event(event.event_id, session)
    assert refreshed.available_seats == 8


@pytest.mark.asyncio
async def test_pending_booking_cancel_releases_seats(session, customer, event, seats, add_pending_booking):
    pending = await add_pending_booking(customer, event, [seats[0].seat_id])

    await booking_status.update_booking_status(pending.booking_id, BookingStatus.CANCELLED, session)

    refreshed = await event_service.get_event(event.event_id, session)
    assert refreshed.available_seats == 10
    assert await _seat_flags(session, [seats[0].seat_id]) == [False]


@pytest.mark.asyncio
async def test_same_status_is_a_noop(session, customer, event, seats):
    booking = await _book(session, customer, event, seats)

    result = await booking_status.update_booking_status(booking.booking_id, BookingStatus.CONFIRMED, session)

    assert result.status == BookingStatus.CONFIRMED
    refreshed = await event_service.get_event(event.event_id, session)
    assert refreshed.available_seats == 7
    assert await _payments(session, booking.booking_id) == 1


@pytest.mark.asyncio
async def test_confirmed_to_pending_is_rejected_without_writes(session, customer, event, seats):
    booking = await _book(session, customer, event, seats)

    with pytest.raises(InvalidTransitionError):
        await booking_status.update_booking_status(booking.booking_id, BookingStatus.PENDING, session)

    current = await booking_service.get_booking(booking.booking_id, session)
    assert current.status == BookingStatus.CONFIRMED


@pytest.mark.asyncio
async def test_cancel_refused_when_it_would_exceed_capacity(session, customer, event, seats):
    booking = await _book(session, customer, event, seats)
    await session.execute(update(Event).where(Event.event_id == event.event_id).values(available_seats=9))
    await session.commit()

    with pytest.raises(BadRequestError, match="exceed total seats"):
        await booking_status.update_booking_status(booking.booking_id, BookingStatus.CANCELLED, session)

    current = await booking_service.get_booking(booking.booking_id, session)
    assert current.status == BookingStatus.CONFIRMED
    assert await _seat_flags(session, booking.seat_ids) == [True, True, True]


@pytest.mark.asyncio
async def test_unknown_booking(session):
    with pytest.raises(NotFoundError):
        await booking_status.update_booking_status(404, BookingStatus.CANCELLED, session)


@pytest.mark.asyncio
async def test_only_owner_cancels_own_booking(session, customer, make_user, event, seats):
    booking = await _book(session, customer, event, seats)
    stranger = await make_user()

    with pytest.raises(ForbiddenError):
        await booking_status.cancel_own_booking(booking.booking_id, stranger, session)

    cancelled = await booking_status.cancel_own_booking(booking.booking_id, customer, session)
    assert cancelled.status == BookingStatus.CANCELLED


@pytest.mark.asyncio
async def test_booked_seat_rows_survive_cancellation(session, customer, event, seats):
    booking = await _book(session, customer, event, seats, count=2)
    await booking_status.update_booking_status(booking.booking_id, BookingStatus.CANCELLED, session)

    stmt = select(func.count()).select_from(BookedSeat).where(BookedSeat.booking_id == booking.booking_id)
    assert (await session.execute(stmt)).scalar_one() == 2
