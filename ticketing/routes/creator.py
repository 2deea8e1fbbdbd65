from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_session
from ..dependencies import require_organizer
from ..models import User
from ..schemas import EventList
from ..services import events as event_service

router = APIRouter(prefix="/creator", tags=["Organizer"])


@router.get("/events", response_model=EventList)
async def my_events(user: User = Depends(require_organizer), session: AsyncSession = Depends(get_session)):
    """All events of the current organizer, including deactivated ones."""
    events = await event_service.list_events(
        session,
        organizer_id=user.user_id,
        include_inactive=True,
        sort_by="newest",
        limit=0,
    )
    return {"results": len(events), "events": events}


@router.delete("/events/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_my_event(
    event_id: int,
    user: User = Depends(require_organizer),
    session: AsyncSession = Depends(get_session),
):
    await event_service.delete_event(event_id, user, session)
