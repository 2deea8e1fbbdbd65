from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_session
from ..dependencies import get_current_user
from ..models import User
from ..schemas import BookingList, BookingRequest, BookingResult
from ..services import booking_status
from ..services import bookings as booking_service

router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post("", response_model=BookingResult, status_code=status.HTTP_201_CREATED)
async def book_seats(
    req: BookingRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return {"booking": await booking_service.create_booking(req, user, session)}


@router.get("", response_model=BookingList)
async def my_bookings(user: User = Depends(get_current_user), session: AsyncSession = Depends(get_session)):
    bookings = await booking_service.list_bookings(session, user_id=user.user_id)
    return {"results": len(bookings), "bookings": bookings}


@router.get("/{booking_id}", response_model=BookingResult)
async def get_booking(
    booking_id: int,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return {"booking": await booking_service.get_booking_for_user(booking_id, user, session)}


@router.patch("/{booking_id}/cancel", response_model=BookingResult)
async def cancel_booking(
    booking_id: int,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return {"booking": await booking_status.cancel_own_booking(booking_id, user, session)}
