"""
Seat ledger and availability counter statements.

Every mutation here is a single conditional UPDATE, so two sessions racing
for the same seats or the last units of availability cannot both succeed.
Callers run these inside the booking transaction and treat a short row
count as a failed reservation.
"""
from typing import List, Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import BookedSeat, Event, Seat


async def get_event_seats(session: AsyncSession, event_id: int, seat_ids: Sequence[int]) -> List[Seat]:
    stmt = select(Seat).where(Seat.event_id == event_id, Seat.seat_id.in_(seat_ids))
    return list((await session.execute(stmt)).scalars().all())


async def get_booking_seat_ids(session: AsyncSession, booking_id: int) -> List[int]:
    stmt = select(BookedSeat.seat_id).where(BookedSeat.booking_id == booking_id).order_by(BookedSeat.seat_id)
    return list((await session.execute(stmt)).scalars().all())


async def mark_seats_booked(session: AsyncSession, seat_ids: Sequence[int]) -> int:
    """Flip free seats to booked; returns how many rows actually changed."""
    stmt = (
        update(Seat)
        .where(Seat.seat_id.in_(seat_ids), Seat.is_booked.is_(False))
        .values(is_booked=True)
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    return result.rowcount


async def release_seats(session: AsyncSession, seat_ids: Sequence[int]) -> int:
    stmt = (
        update(Seat)
        .where(Seat.seat_id.in_(seat_ids), Seat.is_booked.is_(True))
        .values(is_booked=False)
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    return result.rowcount


async def take_availability(session: AsyncSession, event_id: int, count: int) -> Optional[int]:
    # Atomic decrement: only succeeds while enough seats remain
    stmt = (
        update(Event)
        .where(Event.event_id == event_id, Event.available_seats >= count)
        .values(
            available_seats=Event.available_seats - count,
            version=Event.version + 1,
        )
        .returning(Event.available_seats)
        .execution_options(synchronize_session=False)
    )
    return (await session.execute(stmt)).scalar()


async def return_availability(session: AsyncSession, event_id: int, count: int) -> Optional[int]:
    stmt = (
        update(Event)
        .where(Event.event_id == event_id, Event.available_seats + count <= Event.total_seats)
        .values(
            available_seats=Event.available_seats + count,
            version=Event.version + 1,
        )
        .returning(Event.available_seats)
        .execution_options(synchronize_session=False)
    )
    return (await session.execute(stmt)).scalar()


async def grow_capacity(session: AsyncSession, event_id: int, expected_total: int, added: int) -> Optional[int]:
    """
    Add `added` seats of capacity, all of them available.

    Relative to whatever the counter holds at write time, so bookings that
    commit in between are kept. Returns None when the capacity itself changed
    since `expected_total` was read.
    """
    stmt = (
        update(Event)
        .where(Event.event_id == event_id, Event.total_seats == expected_total)
        .values(
            total_seats=Event.total_seats + added,
            available_seats=Event.available_seats + added,
            version=Event.version + 1,
        )
        .returning(Event.available_seats)
        .execution_options(synchronize_session=False)
    )
    return (await session.execute(stmt)).scalar()
