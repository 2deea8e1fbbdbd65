import datetime as dt
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_session
from ..dependencies import require_organizer
from ..models import User
from ..schemas import EventList, EventRequest, EventResult, SeatList
from ..services import events as event_service

router = APIRouter(prefix="/events", tags=["Events"])


@router.get("", response_model=EventList)
async def list_events(
    search: Optional[str] = None,
    category: Optional[int] = None,
    date_from: Optional[dt.date] = Query(None, alias="dateFrom"),
    date_to: Optional[dt.date] = Query(None, alias="dateTo"),
    min_price: Optional[float] = Query(None, alias="minPrice", ge=0),
    max_price: Optional[float] = Query(None, alias="maxPrice", ge=0),
    sort_by: str = Query("date", alias="sortBy"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    session: AsyncSession = Depends(get_session),
):
    events = await event_service.list_events(
        session,
        search=search,
        category_id=category,
        date_from=date_from,
        date_to=date_to,
        min_price=min_price,
        max_price=max_price,
        sort_by=sort_by,
        page=page,
        limit=limit,
    )
    return {"results": len(events), "page": page, "events": events}


@router.get("/{event_id}", response_model=EventResult)
async def get_event(event_id: int, session: AsyncSession = Depends(get_session)):
    return {"event": await event_service.get_event(event_id, session)}


@router.get("/{event_id}/seats", response_model=SeatList)
async def list_event_seats(event_id: int, session: AsyncSession = Depends(get_session)):
    seats = await event_service.list_seats(event_id, session)
    return {"results": len(seats), "seats": seats}


@router.post("", response_model=EventResult, status_code=status.HTTP_201_CREATED)
async def create_event(
    req: EventRequest,
    user: User = Depends(require_organizer),
    session: AsyncSession = Depends(get_session),
):
    return {"event": await event_service.create_event(req, user, session)}


@router.put("/{event_id}", response_model=EventResult)
async def update_event(
    event_id: int,
    req: EventRequest,
    user: User = Depends(require_organizer),
    session: AsyncSession = Depends(get_session),
):
    return {"event": await event_service.update_event(event_id, req, user, session)}


@router.delete("/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_event(
    event_id: int,
    user: User = Depends(require_organizer),
    session: AsyncSession = Depends(get_session),
):
    await event_service.delete_event(event_id, user, session)
