"""
Accounts: registration, login with lockout, refresh tokens, password reset
and admin-side user management.
"""
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import (
    FRONTEND_URL,
    LOCKOUT_MINUTES,
    MAX_FAILED_LOGINS,
    PASSWORD_RESET_EXPIRE_MINUTES,
    REFRESH_TOKEN_EXPIRE_DAYS,
)
from ..database import transaction
from ..exceptions import BadRequestError, NotFoundError, UnauthorizedError
from ..logger_config import logger
from ..models import BookedSeat, Booking, BookingStatus, Event, Payment, RefreshToken, User, UserRole
from ..schemas import AdminUpdateUserRequest, RegisterRequest, UpdateMeRequest, UserResponse
from ..security import (
    create_access_token,
    ensure_utc,
    generate_opaque_token,
    hash_password,
    hash_token,
    verify_password,
)
from . import seat_ledger
from .events import purge_events


def _now() -> datetime:
    return datetime.now(timezone.utc)


async def get_user_by_email(email: str, session: AsyncSession) -> Optional[User]:
    stmt = select(User).where(func.lower(User.email) == email.lower()).execution_options(populate_existing=True)
    return (await session.execute(stmt)).scalar_one_or_none()


async def get_user_by_id(user_id: int, session: AsyncSession) -> Optional[User]:
    stmt = select(User).where(User.user_id == user_id).execution_options(populate_existing=True)
    return (await session.execute(stmt)).scalar_one_or_none()


async def _load_user(user_id: int, session: AsyncSession) -> User:
    user = await get_user_by_id(user_id, session)
    if not user:
        raise NotFoundError("No user found with that ID")
    return user


async def create_user(req: RegisterRequest, session: AsyncSession, role: UserRole = UserRole.USER) -> User:
    async with transaction(session, "Create user"):
        if await get_user_by_email(req.email, session):
            raise BadRequestError("Email already in use")
        user = User(
            name=req.name,
            email=req.email.lower(),
            phone=req.phone,
            password=hash_password(req.password),
            role=role.value,
        )
        session.add(user)
        await session.flush()
    logger.info(f"User {user.user_id} registered with role {user.role}")
    return user


async def issue_tokens(user: User, session: AsyncSession) -> Tuple[str, str]:
    """Return a fresh (access token, refresh token) pair for the user."""
    refresh_token = generate_opaque_token()
    async with transaction(session, "Issue refresh token"):
        session.add(
            RefreshToken(
                user_id=user.user_id,
                token_hash=hash_token(refresh_token),
                expires_at=_now() + timedelta(days=REFRESH_TOKEN_EXPIRE_DAYS),
            )
        )
    return create_access_token(user.user_id, user.role), refresh_token


async def authenticate(email: str, password: str, session: AsyncSession) -> User:
    # Lockout bookkeeping must persist even though the login fails
    async with transaction(session, "Login"):
        user = await get_user_by_email(email, session)
        if user is None:
            failure = "Incorrect email or password"
        elif user.lockout_time and ensure_utc(user.lockout_time) > _now():
            failure = "Account is temporarily locked. Try again later."
        elif not verify_password(password, user.password):
            user.failed_login_attempts = (user.failed_login_attempts or 0) + 1
            if user.failed_login_attempts >= MAX_FAILED_LOGINS:
                user.lockout_time = _now() + timedelta(minutes=LOCKOUT_MINUTES)
                user.failed_login_attempts = 0
                failure = "Account locked due to too many failed attempts. Try again later."
                logger.warning(f"User {user.user_id} locked out after {MAX_FAILED_LOGINS} failed logins")
            else:
                failure = "Incorrect email or password"
        elif not user.is_active:
            failure = "This account has been deactivated"
        else:
            failure = None
            user.failed_login_attempts = 0
            user.lockout_time = None

    if failure:
        raise UnauthorizedError(failure)
    return user


async def refresh_access_token(refresh_token: Optional[str], session: AsyncSession) -> str:
    if not refresh_token:
        raise UnauthorizedError("No refresh token provided")
    stmt = select(RefreshToken).where(RefreshToken.token_hash == hash_token(refresh_token))
    stored = (await session.execute(stmt)).scalar_one_or_none()
    if not stored or ensure_utc(stored.expires_at) <= _now():
        raise UnauthorizedError("Invalid or expired refresh token")
    user = await get_user_by_id(stored.user_id, session)
    if not user or not user.is_active:
        raise UnauthorizedError("User not found")
    return create_access_token(user.user_id, user.role)


async def revoke_refresh_token(refresh_token: Optional[str], session: AsyncSession):
    if not refresh_token:
        return
    async with transaction(session, "Logout"):
        await session.execute(delete(RefreshToken).where(RefreshToken.token_hash == hash_token(refresh_token)))


async def update_profile(user: User, req: UpdateMeRequest, session: AsyncSession) -> User:
    async with transaction(session, "Update profile"):
        for field, value in req.model_dump(exclude_unset=True).items():
            setattr(user, field, value)
    return user


async def change_password(user: User, current_password: str, new_password: str, session: AsyncSession):
    if not verify_password(current_password, user.password):
        raise UnauthorizedError("Your current password is wrong")
    async with transaction(session, "Change password"):
        user.password = hash_password(new_password)
        # Existing sessions on other devices end with the old password
        await session.execute(delete(RefreshToken).where(RefreshToken.user_id == user.user_id))


async def start_password_reset(email: str, session: AsyncSession) -> str:
    """Store a reset token digest and return the reset URL for the mail service."""
    user = await get_user_by_email(email, session)
    if not user:
        raise NotFoundError("There is no user with this email address")
    reset_token = generate_opaque_token()
    async with transaction(session, "Forgot password"):
        user.password_reset_token = hash_token(reset_token)
        user.password_reset_expires = _now() + timedelta(minutes=PASSWORD_RESET_EXPIRE_MINUTES)
    reset_url = f"{FRONTEND_URL}/reset-password/{reset_token}"
    logger.info(f"Password reset requested for user {user.user_id}")
    return reset_url


async def reset_password(token: str, new_password: str, session: AsyncSession) -> User:
    stmt = (
        select(User)
        .where(User.password_reset_token == hash_token(token))
        .execution_options(populate_existing=True)
    )
    user = (await session.execute(stmt)).scalar_one_or_none()
    if not user or not user.password_reset_expires or ensure_utc(user.password_reset_expires) <= _now():
        raise BadRequestError("Token is invalid or has expired")
    async with transaction(session, "Reset password"):
        user.password = hash_password(new_password)
        user.password_reset_token = None
        user.password_reset_expires = None
        user.failed_login_attempts = 0
        user.lockout_time = None
    return user


# Admin-side management

async def list_users(session: AsyncSession) -> List[UserResponse]:
    stmt = select(User).order_by(User.user_id).execution_options(populate_existing=True)
    return [UserResponse.model_validate(user) for user in (await session.execute(stmt)).scalars().all()]


async def get_user(user_id: int, session: AsyncSession) -> UserResponse:
    return UserResponse.model_validate(await _load_user(user_id, session))


async def admin_update_user(
    user_id: int, req: AdminUpdateUserRequest, acting_admin: User, session: AsyncSession
) -> UserResponse:
    changes = req.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        raise BadRequestError("No valid fields to update")
    if user_id == acting_admin.user_id and changes.get("is_active") is False:
        raise BadRequestError("You cannot disable your own profile")

    async with transaction(session, "Update user"):
        user = await _load_user(user_id, session)
        if "role" in changes:
            user.role = changes["role"].value
        if "is_active" in changes:
            user.is_active = changes["is_active"]
    return UserResponse.model_validate(user)


async def delete_user(user_id: int, acting_admin: User, session: AsyncSession):
    """
    Delete a user and everything hanging off it.

    Event owners take their events (with all bookings on them) along; every
    user loses their own bookings, payments and refresh tokens.
    """
    if user_id == acting_admin.user_id:
        raise BadRequestError("You cannot delete your own profile")

    async with transaction(session, "Delete user"):
        user = await _load_user(user_id, session)
        if user.role == UserRole.ADMIN.value:
            admins = await session.execute(
                select(func.count()).select_from(User).where(User.role == UserRole.ADMIN.value)
            )
            if admins.scalar_one() <= 1:
                raise BadRequestError("Cannot delete the last admin user")

        # Owned events go regardless of the current role
        event_ids = (
            await session.execute(select(Event.event_id).where(Event.organizer_id == user_id))
        ).scalars().all()
        await purge_events(list(event_ids), session)

        # Bookings on other events: give their seats back before removing them
        booking_ids = select(Booking.booking_id).where(Booking.user_id == user_id)
        await _release_held_seats(user_id, session)
        await session.execute(delete(Payment).where(Payment.booking_id.in_(booking_ids)))
        await session.execute(delete(BookedSeat).where(BookedSeat.booking_id.in_(booking_ids)))
        await session.execute(delete(Booking).where(Booking.user_id == user_id))
        await session.execute(delete(RefreshToken).where(RefreshToken.user_id == user_id))
        await session.delete(user)

    logger.info(f"User {user_id} deleted by admin {acting_admin.user_id}")


async def _release_held_seats(user_id: int, session: AsyncSession):
    held = await session.execute(
        select(Booking.booking_id, Booking.event_id).where(
            Booking.user_id == user_id, Booking.status != BookingStatus.CANCELLED.value
        )
    )
    for booking_id, event_id in held.all():
        seat_ids = await seat_ledger.get_booking_seat_ids(session, booking_id)
        if not seat_ids:
            continue
        await seat_ledger.release_seats(session, seat_ids)
        await seat_ledger.return_availability(session, event_id, len(seat_ids))
