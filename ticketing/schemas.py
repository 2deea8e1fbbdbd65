import datetime as dt
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from .models import BookingStatus, UserRole


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# Auth / users

class RegisterRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(min_length=8, max_length=72)
    phone: Optional[str] = Field(default=None, max_length=20)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class UpdateMeRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=20)


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str = Field(min_length=8, max_length=72)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    new_password: str = Field(min_length=8, max_length=72)


class UserResponse(ORMModel):
    user_id: int
    name: str
    email: str
    phone: Optional[str] = None
    role: UserRole
    is_active: bool
    created_at: Optional[dt.datetime] = None


class UserResult(BaseModel):
    user: UserResponse


class AuthResult(BaseModel):
    user: UserResponse
    token: str


class TokenResult(BaseModel):
    token: str


class ForgotPasswordResult(BaseModel):
    message: str
    reset_url: str


class UserList(BaseModel):
    results: int
    users: List[UserResponse]


class AdminCreateUserRequest(RegisterRequest):
    role: UserRole = UserRole.USER


class AdminUpdateUserRequest(BaseModel):
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None


# Categories

class CategoryRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    image_url: Optional[str] = Field(default=None, max_length=500)


class CategoryResponse(ORMModel):
    category_id: int
    name: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    is_active: bool
    created_at: Optional[dt.datetime] = None


class CategoryResult(BaseModel):
    category: CategoryResponse


class CategoryList(BaseModel):
    results: int
    categories: List[CategoryResponse]


# Events and seats

class EventRequest(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    short_description: Optional[str] = Field(default=None, max_length=500)
    location: str = Field(min_length=1, max_length=255)
    venue_details: Optional[str] = None
    date: dt.date
    time: dt.time
    end_date: Optional[dt.date] = None
    end_time: Optional[dt.time] = None
    category_id: Optional[int] = None
    price: float = Field(ge=0)
    total_seats: int = Field(gt=0, le=10000)
    image_url: Optional[str] = Field(default=None, max_length=500)


class EventResponse(ORMModel):
    event_id: int
    title: str
    description: Optional[str] = None
    short_description: Optional[str] = None
    location: str
    venue_details: Optional[str] = None
    date: dt.date
    time: dt.time
    end_date: Optional[dt.date] = None
    end_time: Optional[dt.time] = None
    category_id: Optional[int] = None
    category_name: Optional[str] = None
    organizer_id: int
    organizer_name: Optional[str] = None
    price: float
    total_seats: int
    available_seats: int
    image_url: Optional[str] = None
    is_active: bool
    created_at: Optional[dt.datetime] = None


class EventResult(BaseModel):
    event: EventResponse


class EventList(BaseModel):
    results: int
    page: Optional[int] = None
    events: List[EventResponse]


class SeatResponse(ORMModel):
    seat_id: int
    event_id: int
    seat_number: str
    seat_type: str
    price: float
    is_booked: bool


class SeatList(BaseModel):
    results: int
    seats: List[SeatResponse]


class MessageResult(BaseModel):
    message: str


# Bookings

class BookingRequest(BaseModel):
    event_id: int
    seat_ids: List[int] = Field(min_length=1)
    total_amount: float = Field(ge=0)

    @field_validator("seat_ids")
    @classmethod
    def validate_distinct_seats(cls, v):
        if len(set(v)) != len(v):
            raise ValueError("seat_ids must be distinct")
        return v


class BookingStatusRequest(BaseModel):
    status: BookingStatus


class BookingResponse(ORMModel):
    booking_id: int
    event_id: int
    user_id: int
    total_amount: float
    status: BookingStatus
    booking_date: Optional[dt.datetime] = None
    seat_ids: List[int] = []
    event_title: Optional[str] = None
    user_name: Optional[str] = None
    user_email: Optional[str] = None


class BookingResult(BaseModel):
    booking: BookingResponse


class BookingList(BaseModel):
    results: int
    bookings: List[BookingResponse]


# Admin views

class DashboardStats(BaseModel):
    users: int
    events: int
    bookings: int
    revenue: float


class DashboardResult(BaseModel):
    stats: DashboardStats
    recent_bookings: List[BookingResponse]


class MonthlyRevenue(BaseModel):
    month: str
    bookings: int
    revenue: float


class CategoryRevenue(BaseModel):
    category: str
    events: int
    bookings: int
    revenue: float


class EventRevenue(BaseModel):
    event_id: int
    title: str
    bookings: int
    revenue: float


class OrganizerRevenue(BaseModel):
    user_id: int
    name: str
    total_events: int
    total_bookings: int
    total_revenue: float


class ReportResult(BaseModel):
    start_date: dt.date
    end_date: dt.date
    revenue_by_month: List[MonthlyRevenue]
    bookings_by_category: List[CategoryRevenue]
    top_events: List[EventRevenue]
    top_organizers: List[OrganizerRevenue]
