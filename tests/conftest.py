import datetime as dt
from decimal import Decimal
import os
import tempfile

_DB_DIR = tempfile.mkdtemp(prefix="ticketing-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_DIR}/test.db"
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from ticketing.database import AsyncSessionLocal, Base, engine, get_session
from ticketing.main import app
from ticketing.models import BookedSeat, Booking, BookingStatus, Category, UserRole
from ticketing.schemas import EventRequest, RegisterRequest
from ticketing.security import create_access_token
from ticketing.services import events as event_service
from ticketing.services import seat_ledger
from ticketing.services import users as user_service


@pytest_asyncio.fixture(autouse=True)
async def database():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def session(database):
    async with AsyncSessionLocal() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def client(session):
    async def override_get_session():
        yield session

    app.dependency_overrides[get_session] = override_get_session
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(session):
    counter = {"n": 0}

    async def _make_user(role: UserRole = UserRole.USER, password: str = "password123", **fields):
        counter["n"] += 1
        req = RegisterRequest(
            name=fields.get("name", f"{role.value.title()} {counter['n']}"),
            email=fields.get("email", f"{role.value}{counter['n']}@example.com"),
            password=password,
        )
        return await user_service.create_user(req, session, role=role)

    return _make_user


@pytest.fixture
def auth_header():
    def _auth_header(user) -> dict:
        return {"Authorization": f"Bearer {create_access_token(user.user_id, user.role)}"}

    return _auth_header


@pytest_asyncio.fixture
async def customer(make_user):
    return await make_user(UserRole.USER)


@pytest_asyncio.fixture
async def organizer(make_user):
    return await make_user(UserRole.ORGANIZER)


@pytest_asyncio.fixture
async def admin(make_user):
    return await make_user(UserRole.ADMIN)


@pytest_asyncio.fixture
async def category(session):
    category = Category(name="Concerts", description="Live music")
    session.add(category)
    await session.commit()
    return category


def build_event_request(**overrides) -> EventRequest:
    data = {
        "title": "Spring Concert",
        "description": "An evening of live music",
        "location": "Main Hall",
        "date": dt.date.today() + dt.timedelta(days=30),
        "time": dt.time(19, 30),
        "price": 25.0,
        "total_seats": 10,
    }
    data.update(overrides)
    return EventRequest(**data)


@pytest.fixture
def event_request():
    return build_event_request


@pytest_asyncio.fixture
async def event(session, organizer, category):
    return await event_service.create_event(build_event_request(category_id=category.category_id), organizer, session)


@pytest_asyncio.fixture
async def seats(session, event):
    return await event_service.list_seats(event.event_id, session)


@pytest.fixture
def add_pending_booking(session):
    """Insert a pending booking holding the given seats, as a legacy import would."""
    async def _add(user, event, seat_ids, total_amount=Decimal("50.00")):
        await seat_ledger.take_availability(session, event.event_id, len(seat_ids))
        await seat_ledger.mark_seats_booked(session, seat_ids)
        booking = Booking(
            event_id=event.event_id,
            user_id=user.user_id,
            total_amount=total_amount,
            status=BookingStatus.PENDING.value,
        )
        session.add(booking)
        await session.flush()
        session.add_all([BookedSeat(booking_id=booking.booking_id, seat_id=seat_id) for seat_id in seat_ids])
        await session.commit()
        return booking

    return _add
