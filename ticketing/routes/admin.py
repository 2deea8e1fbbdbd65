import datetime as dt
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_session
from ..dependencies import require_admin
from ..models import BookingStatus, User
from ..schemas import (
    AdminCreateUserRequest,
    AdminUpdateUserRequest,
    BookingList,
    BookingResult,
    BookingStatusRequest,
    CategoryList,
    CategoryRequest,
    CategoryResult,
    DashboardResult,
    EventList,
    MessageResult,
    ReportResult,
    UserList,
    UserResponse,
    UserResult,
)
from ..services import booking_status
from ..services import bookings as booking_service
from ..services import categories as category_service
from ..services import events as event_service
from ..services import reports as report_service
from ..services import users as user_service

router = APIRouter(prefix="/admin", tags=["Admin"], dependencies=[Depends(require_admin)])


# Users

@router.get("/users", response_model=UserList)
async def list_users(session: AsyncSession = Depends(get_session)):
    users = await user_service.list_users(session)
    return {"results": len(users), "users": users}


@router.post("/users", response_model=UserResult, status_code=status.HTTP_201_CREATED)
async def create_user(req: AdminCreateUserRequest, session: AsyncSession = Depends(get_session)):
    user = await user_service.create_user(req, session, role=req.role)
    return {"user": UserResponse.model_validate(user)}


@router.get("/users/{user_id}", response_model=UserResult)
async def get_user(user_id: int, session: AsyncSession = Depends(get_session)):
    return {"user": await user_service.get_user(user_id, session)}


@router.patch("/users/{user_id}", response_model=UserResult)
async def update_user(
    user_id: int,
    req: AdminUpdateUserRequest,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    return {"user": await user_service.admin_update_user(user_id, req, admin, session)}


@router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: int,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    await user_service.delete_user(user_id, admin, session)


# Events

@router.get("/events", response_model=EventList)
async def list_events(session: AsyncSession = Depends(get_session)):
    events = await event_service.list_events(session, include_inactive=True, sort_by="newest", limit=0)
    return {"results": len(events), "events": events}


@router.patch("/events/{event_id}/toggle-status", response_model=MessageResult)
async def toggle_event_status(event_id: int, session: AsyncSession = Depends(get_session)):
    is_active = await event_service.toggle_event_status(event_id, session)
    return {"message": f"Event {'activated' if is_active else 'deactivated'} successfully"}


@router.delete("/events/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_event(
    event_id: int,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    await event_service.delete_event(event_id, admin, session)


@router.get("/events/{event_id}/bookings", response_model=BookingList)
async def event_bookings(event_id: int, session: AsyncSession = Depends(get_session)):
    await event_service.get_event(event_id, session)
    bookings = await booking_service.list_bookings(session, event_id=event_id)
    return {"results": len(bookings), "bookings": bookings}


# Bookings

@router.get("/bookings", response_model=BookingList)
async def list_bookings(
    status: Optional[BookingStatus] = None,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1, le=500),
    session: AsyncSession = Depends(get_session),
):
    bookings = await booking_service.list_bookings(session, status=status, page=page, limit=limit)
    return {"results": len(bookings), "bookings": bookings}


@router.patch("/bookings/{booking_id}", response_model=BookingResult)
async def update_booking_status(
    booking_id: int,
    req: BookingStatusRequest,
    session: AsyncSession = Depends(get_session),
):
    return {"booking": await booking_status.update_booking_status(booking_id, req.status, session)}


# Categories

@router.get("/categories", response_model=CategoryList)
async def list_categories(session: AsyncSession = Depends(get_session)):
    categories = await category_service.list_categories(session, active_only=False)
    return {"results": len(categories), "categories": categories}


@router.post("/categories", response_model=CategoryResult, status_code=status.HTTP_201_CREATED)
async def create_category(req: CategoryRequest, session: AsyncSession = Depends(get_session)):
    return {"category": await category_service.create_category(req, session)}


@router.get("/categories/{category_id}", response_model=CategoryResult)
async def get_category(category_id: int, session: AsyncSession = Depends(get_session)):
    return {"category": await category_service.get_category(category_id, session)}


@router.put("/categories/{category_id}", response_model=CategoryResult)
async def update_category(category_id: int, req: CategoryRequest, session: AsyncSession = Depends(get_session)):
    return {"category": await category_service.update_category(category_id, req, session)}


@router.delete("/categories/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_category(category_id: int, session: AsyncSession = Depends(get_session)):
    await category_service.delete_category(category_id, session)


@router.patch("/categories/{category_id}/toggle-status", response_model=MessageResult)
async def toggle_category_status(category_id: int, session: AsyncSession = Depends(get_session)):
    is_active = await category_service.toggle_category_status(category_id, session)
    return {"message": f"Category {'activated' if is_active else 'deactivated'} successfully"}


# Reporting

@router.get("/dashboard", response_model=DashboardResult)
async def dashboard(session: AsyncSession = Depends(get_session)):
    return await report_service.get_dashboard(session)


@router.get("/reports", response_model=ReportResult)
async def reports(
    start_date: Optional[dt.date] = Query(None, alias="startDate"),
    end_date: Optional[dt.date] = Query(None, alias="endDate"),
    session: AsyncSession = Depends(get_session),
):
    return await report_service.get_reports(session, start_date, end_date)
