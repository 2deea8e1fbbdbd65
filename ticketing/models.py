from datetime import datetime, timezone
from enum import Enum

import sqlalchemy as sa

from .database import Base


class UserRole(str, Enum):
    USER = "user"
    ORGANIZER = "organizer"
    ADMIN = "admin"


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


def utcnow():
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"
    user_id = sa.Column(sa.Integer, primary_key=True, autoincrement=True)
    name = sa.Column(sa.String(100), nullable=False)
    email = sa.Column(sa.String(255), nullable=False, unique=True, index=True)
    phone = sa.Column(sa.String(20))
    password = sa.Column(sa.String(255), nullable=False)
    role = sa.Column(sa.String(20), nullable=False, default="user", server_default="user")
    is_active = sa.Column(sa.Boolean, nullable=False, default=True, server_default=sa.true())
    failed_login_attempts = sa.Column(sa.Integer, nullable=False, default=0, server_default="0")
    lockout_time = sa.Column(sa.DateTime(timezone=True))
    password_reset_token = sa.Column(sa.String(64), index=True)
    password_reset_expires = sa.Column(sa.DateTime(timezone=True))
    created_at = sa.Column(sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now())

    __table_args__ = (
        sa.CheckConstraint("role IN ('user', 'organizer', 'admin')", name="ck_users_role"),
    )


class RefreshToken(Base):
    __tablename__ = "refresh_tokens"
    id = sa.Column(sa.Integer, primary_key=True, autoincrement=True)
    user_id = sa.Column(sa.Integer, sa.ForeignKey("users.user_id"), nullable=False, index=True)
    token_hash = sa.Column(sa.String(64), nullable=False, unique=True)
    expires_at = sa.Column(sa.DateTime(timezone=True), nullable=False)
    created_at = sa.Column(sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now())


class Category(Base):
    __tablename__ = "categories"
    category_id = sa.Column(sa.Integer, primary_key=True, autoincrement=True)
    name = sa.Column(sa.String(100), nullable=False, unique=True)
    description = sa.Column(sa.Text)
    image_url = sa.Column(sa.String(500))
    is_active = sa.Column(sa.Boolean, nullable=False, default=True, server_default=sa.true())
    created_at = sa.Column(sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now())


class Event(Base):
    __tablename__ = "events"
    event_id = sa.Column(sa.Integer, primary_key=True, autoincrement=True)
    title = sa.Column(sa.String(200), nullable=False)
    description = sa.Column(sa.Text)
    short_description = sa.Column(sa.String(500))
    location = sa.Column(sa.String(255), nullable=False)
    venue_details = sa.Column(sa.Text)
    date = sa.Column(sa.Date, nullable=False)
    time = sa.Column(sa.Time, nullable=False)
    end_date = sa.Column(sa.Date)
    end_time = sa.Column(sa.Time)
    category_id = sa.Column(sa.Integer, sa.ForeignKey("categories.category_id"), index=True)
    organizer_id = sa.Column(sa.Integer, sa.ForeignKey("users.user_id"), nullable=False, index=True)
    price = sa.Column(sa.Numeric(10, 2), nullable=False, server_default="0")
    total_seats = sa.Column(sa.Integer, nullable=False)
    available_seats = sa.Column(sa.Integer, nullable=False)
    version = sa.Column(sa.Integer, nullable=False, default=1, server_default="1")
    image_url = sa.Column(sa.String(500))
    is_active = sa.Column(sa.Boolean, nullable=False, default=True, server_default=sa.true())
    created_at = sa.Column(sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now())

    __table_args__ = (
        sa.CheckConstraint(
            "available_seats >= 0 AND available_seats <= total_seats",
            name="ck_events_available_seats",
        ),
    )


class Seat(Base):
    __tablename__ = "seats"
    seat_id = sa.Column(sa.Integer, primary_key=True, autoincrement=True)
    event_id = sa.Column(sa.Integer, sa.ForeignKey("events.event_id"), nullable=False, index=True)
    seat_number = sa.Column(sa.String(20), nullable=False)
    seat_type = sa.Column(sa.String(20), nullable=False, default="standard", server_default="standard")
    price = sa.Column(sa.Numeric(10, 2), nullable=False)
    is_booked = sa.Column(sa.Boolean, nullable=False, default=False, server_default=sa.false())

    __table_args__ = (
        sa.UniqueConstraint("event_id", "seat_number", name="uq_seats_event_seat_number"),
    )


class Booking(Base):
    __tablename__ = "bookings"
    booking_id = sa.Column(sa.Integer, primary_key=True, autoincrement=True)
    event_id = sa.Column(sa.Integer, sa.ForeignKey("events.event_id"), nullable=False, index=True)
    user_id = sa.Column(sa.Integer, sa.ForeignKey("users.user_id"), nullable=False, index=True)
    total_amount = sa.Column(sa.Numeric(10, 2), nullable=False)
    status = sa.Column(sa.String(20), nullable=False)
    booking_date = sa.Column(sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now())
    created_at = sa.Column(sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now())

    __table_args__ = (
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled')", name="ck_bookings_status"
        ),
    )


class BookedSeat(Base):
    __tablename__ = "booked_seats"
    booking_id = sa.Column(sa.Integer, sa.ForeignKey("bookings.booking_id"), primary_key=True)
    seat_id = sa.Column(sa.Integer, sa.ForeignKey("seats.seat_id"), primary_key=True)


class Payment(Base):
    __tablename__ = "payments"
    payment_id = sa.Column(sa.Integer, primary_key=True, autoincrement=True)
    booking_id = sa.Column(
        sa.Integer, sa.ForeignKey("bookings.booking_id"), nullable=False, unique=True
    )
    amount = sa.Column(sa.Numeric(10, 2), nullable=False)
    payment_method = sa.Column(sa.String(50), nullable=False, default="card", server_default="card")
    status = sa.Column(sa.String(20), nullable=False, default="completed", server_default="completed")
    payment_date = sa.Column(sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now())
