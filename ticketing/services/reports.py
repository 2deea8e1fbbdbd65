import datetime as dt
from typing import Optional

from sqlalchemy import and_, extract, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..exceptions import BadRequestError
from ..models import Booking, BookingStatus, Category, Event, User, UserRole
from ..schemas import (
    CategoryRevenue,
    DashboardResult,
    DashboardStats,
    EventRevenue,
    MonthlyRevenue,
    OrganizerRevenue,
    ReportResult,
)
from .bookings import list_bookings

DEFAULT_REPORT_DAYS = 30
TOP_N = 10

CONFIRMED = BookingStatus.CONFIRMED.value


async def get_dashboard(session: AsyncSession) -> DashboardResult:
    users = (await session.execute(select(func.count()).select_from(User))).scalar_one()
    events = (await session.execute(select(func.count()).select_from(Event))).scalar_one()
    bookings = (
        await session.execute(select(func.count()).select_from(Booking).where(Booking.status == CONFIRMED))
    ).scalar_one()
    revenue = (
        await session.execute(
            select(func.coalesce(func.sum(Booking.total_amount), 0)).where(Booking.status == CONFIRMED)
        )
    ).scalar_one()
    recent = await list_bookings(session, status=BookingStatus.CONFIRMED, limit=5)

    return DashboardResult(
        stats=DashboardStats(users=users, events=events, bookings=bookings, revenue=revenue),
        recent_bookings=recent,
    )


def resolve_period(start_date: Optional[dt.date], end_date: Optional[dt.date]):
    """Both bounds or neither; missing bounds mean the last 30 days."""
    if not start_date or not end_date:
        end_date = dt.date.today()
        start_date = end_date - dt.timedelta(days=DEFAULT_REPORT_DAYS)
    if start_date > end_date:
        raise BadRequestError("startDate must not be after endDate")
    start = dt.datetime.combine(start_date, dt.time.min, tzinfo=dt.timezone.utc)
    end = dt.datetime.combine(end_date + dt.timedelta(days=1), dt.time.min, tzinfo=dt.timezone.utc)
    return start_date, end_date, start, end


async def get_reports(
    session: AsyncSession, start_date: Optional[dt.date] = None, end_date: Optional[dt.date] = None
) -> ReportResult:
    start_date, end_date, start, end = resolve_period(start_date, end_date)
    in_period = and_(
        Booking.status == CONFIRMED,
        Booking.booking_date >= start,
        Booking.booking_date < end,
    )
    revenue = func.coalesce(func.sum(Booking.total_amount), 0)
    booking_count = func.count(func.distinct(Booking.booking_id))

    year = extract("year", Booking.booking_date)
    month = extract("month", Booking.booking_date)
    monthly = await session.execute(
        select(year.label("year"), month.label("month"), booking_count.label("bookings"), revenue.label("revenue"))
        .where(in_period)
        .group_by(year, month)
        .order_by(year, month)
    )
    revenue_by_month = [
        MonthlyRevenue(month=f"{int(row.year):04d}-{int(row.month):02d}", bookings=row.bookings, revenue=row.revenue)
        for row in monthly
    ]

    by_category = await session.execute(
        select(
            Category.name.label("category"),
            func.count(func.distinct(Event.event_id)).label("events"),
            booking_count.label("bookings"),
            revenue.label("revenue"),
        )
        .select_from(Category)
        .outerjoin(Event, Event.category_id == Category.category_id)
        .outerjoin(Booking, and_(Booking.event_id == Event.event_id, in_period))
        .group_by(Category.category_id, Category.name)
        .order_by(revenue.desc(), Category.name)
    )
    bookings_by_category = [CategoryRevenue(**row._mapping) for row in by_category]

    top_events = await session.execute(
        select(
            Event.event_id,
            Event.title,
            booking_count.label("bookings"),
            revenue.label("revenue"),
        )
        .join(Booking, Booking.event_id == Event.event_id)
        .where(in_period)
        .group_by(Event.event_id, Event.title)
        .order_by(revenue.desc(), Event.event_id)
        .limit(TOP_N)
    )

    top_organizers = await session.execute(
        select(
            User.user_id,
            User.name,
            func.count(func.distinct(Event.event_id)).label("total_events"),
            booking_count.label("total_bookings"),
            revenue.label("total_revenue"),
        )
        .join(Event, Event.organizer_id == User.user_id)
        .join(Booking, Booking.event_id == Event.event_id)
        .where(User.role == UserRole.ORGANIZER.value, in_period)
        .group_by(User.user_id, User.name)
        .order_by(revenue.desc(), User.user_id)
        .limit(TOP_N)
    )

    return ReportResult(
        start_date=start_date,
        end_date=end_date,
        revenue_by_month=revenue_by_month,
        bookings_by_category=bookings_by_category,
        top_events=[EventRevenue(**row._mapping) for row in top_events],
        top_organizers=[OrganizerRevenue(**row._mapping) for row in top_organizers],
    )
