import datetime as dt
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import transaction
from ..exceptions import BadRequestError, ForbiddenError, NotFoundError
from ..logger_config import logger
from ..models import BookedSeat, Booking, Category, Event, Payment, Seat, User, UserRole
from ..schemas import EventRequest, EventResponse, SeatResponse
from . import seat_ledger

SORT_OPTIONS = {
    "date": (Event.date.asc(), Event.time.asc()),
    "-date": (Event.date.desc(), Event.time.desc()),
    "price": (Event.price.asc(),),
    "-price": (Event.price.desc(),),
    "title": (Event.title.asc(),),
    "newest": (Event.created_at.desc(),),
}


def _event_query():
    return (
        select(
            Event,
            Category.name.label("category_name"),
            User.name.label("organizer_name"),
        )
        .outerjoin(Category, Event.category_id == Category.category_id)
        .outerjoin(User, Event.organizer_id == User.user_id)
        .execution_options(populate_existing=True)
    )


def _to_response(row) -> EventResponse:
    response = EventResponse.model_validate(row.Event)
    response.category_name = row.category_name
    response.organizer_name = row.organizer_name
    return response


async def list_events(
    session: AsyncSession,
    search: Optional[str] = None,
    category_id: Optional[int] = None,
    date_from: Optional[dt.date] = None,
    date_to: Optional[dt.date] = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    sort_by: str = "date",
    page: int = 1,
    limit: int = 10,
    organizer_id: Optional[int] = None,
    include_inactive: bool = False,
) -> List[EventResponse]:
    stmt = _event_query()
    if not include_inactive:
        stmt = stmt.where(Event.is_active.is_(True))
    if organizer_id is not None:
        stmt = stmt.where(Event.organizer_id == organizer_id)
    if search:
        pattern = f"%{search.strip()}%"
        stmt = stmt.where(or_(Event.title.ilike(pattern), Event.description.ilike(pattern)))
    if category_id is not None:
        stmt = stmt.where(Event.category_id == category_id)
    if date_from:
        stmt = stmt.where(Event.date >= date_from)
    if date_to:
        stmt = stmt.where(Event.date <= date_to)
    if min_price is not None:
        stmt = stmt.where(Event.price >= min_price)
    if max_price is not None:
        stmt = stmt.where(Event.price <= max_price)

    if sort_by not in SORT_OPTIONS:
        raise BadRequestError(f"Invalid sortBy value: {sort_by}")
    stmt = stmt.order_by(*SORT_OPTIONS[sort_by], Event.event_id.asc())
    if limit:
        stmt = stmt.offset((page - 1) * limit).limit(limit)

    rows = (await session.execute(stmt)).all()
    return [_to_response(row) for row in rows]


async def get_event(event_id: int, session: AsyncSession) -> EventResponse:
    row = (await session.execute(_event_query().where(Event.event_id == event_id))).first()
    if not row:
        raise NotFoundError("No event found with that ID")
    return _to_response(row)


async def list_seats(event_id: int, session: AsyncSession) -> List[SeatResponse]:
    await _load_event(event_id, session)
    stmt = (
        select(Seat)
        .where(Seat.event_id == event_id)
        .order_by(Seat.seat_id)
        .execution_options(populate_existing=True)
    )
    seats = (await session.execute(stmt)).scalars().all()
    return [SeatResponse.model_validate(seat) for seat in seats]


async def _load_event(event_id: int, session: AsyncSession) -> Event:
    stmt = select(Event).where(Event.event_id == event_id).execution_options(populate_existing=True)
    event = (await session.execute(stmt)).scalar_one_or_none()
    if not event:
        raise NotFoundError("No event found with that ID")
    return event


async def _check_category(category_id: Optional[int], session: AsyncSession):
    if category_id is None:
        return
    found = await session.execute(select(Category.category_id).where(Category.category_id == category_id))
    if found.scalar_one_or_none() is None:
        raise BadRequestError("No category found with that ID")


def _check_owner(event: Event, user: User):
    if user.role != UserRole.ADMIN.value and event.organizer_id != user.user_id:
        raise ForbiddenError("You can only manage your own events")


def _seat_rows(event: Event, start: int, stop: int) -> List[Seat]:
    return [
        Seat(event_id=event.event_id, seat_number=str(number), seat_type="standard", price=event.price)
        for number in range(start, stop + 1)
    ]


async def create_event(req: EventRequest, user: User, session: AsyncSession) -> EventResponse:
    """Create an event together with one seat row per unit of capacity."""
    organizer_id = user.user_id
    async with transaction(session, "Create event"):
        await _check_category(req.category_id, session)
        event = Event(
            **req.model_dump(exclude={"price"}),
            price=Decimal(str(req.price)),
            organizer_id=organizer_id,
            available_seats=req.total_seats,
        )
        session.add(event)
        await session.flush()
        session.add_all(_seat_rows(event, 1, req.total_seats))

    logger.info(f"Event {event.event_id} created by organizer {organizer_id} with {req.total_seats} seats")
    return await get_event(event.event_id, session)


async def update_event(event_id: int, req: EventRequest, user: User, session: AsyncSession) -> EventResponse:
    """
    Update event details.

    Capacity may grow (new seats are appended and become available) but never
    shrink, since existing seat rows may already be referenced by bookings.
    """
    async with transaction(session, "Update event"):
        event = await _load_event(event_id, session)
        _check_owner(event, user)
        await _check_category(req.category_id, session)

        current_total = event.total_seats
        if req.total_seats < current_total:
            raise BadRequestError("Total seats cannot be reduced")
        added = req.total_seats - current_total

        for field, value in req.model_dump(exclude={"price", "total_seats"}).items():
            setattr(event, field, value)
        event.price = Decimal(str(req.price))

        if added:
            if await seat_ledger.grow_capacity(session, event_id, current_total, added) is None:
                raise BadRequestError("Event capacity was changed by another request, please retry")
            session.add_all(_seat_rows(event, current_total + 1, req.total_seats))

    return await get_event(event_id, session)


async def purge_events(event_ids: List[int], session: AsyncSession):
    """Delete events with their seats, bookings, booked seats and payments."""
    if not event_ids:
        return
    booking_ids = select(Booking.booking_id).where(Booking.event_id.in_(event_ids))
    await session.execute(delete(Payment).where(Payment.booking_id.in_(booking_ids)))
    await session.execute(delete(BookedSeat).where(BookedSeat.booking_id.in_(booking_ids)))
    await session.execute(delete(Booking).where(Booking.event_id.in_(event_ids)))
    await session.execute(delete(Seat).where(Seat.event_id.in_(event_ids)))
    await session.execute(delete(Event).where(Event.event_id.in_(event_ids)))


async def delete_event(event_id: int, user: User, session: AsyncSession):
    async with transaction(session, "Delete event"):
        event = await _load_event(event_id, session)
        _check_owner(event, user)
        await purge_events([event_id], session)
    logger.info(f"Event {event_id} deleted by user {user.user_id}")


async def toggle_event_status(event_id: int, session: AsyncSession) -> bool:
    async with transaction(session, "Toggle event status"):
        event = await _load_event(event_id, session)
        event.is_active = not event.is_active
        is_active = event.is_active
    return is_active
