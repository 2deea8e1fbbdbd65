from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from .database import get_session
from .exceptions import ForbiddenError, UnauthorizedError
from .models import User, UserRole
from .security import decode_access_token
from .services.users import get_user_by_id

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    session: AsyncSession = Depends(get_session),
) -> User:
    """Resolve the bearer token to an active user."""
    if credentials is None:
        raise UnauthorizedError("You are not logged in. Please log in to get access.")

    payload = decode_access_token(credentials.credentials)
    if not payload or "sub" not in payload:
        raise UnauthorizedError("Invalid or expired token")

    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        raise UnauthorizedError("Invalid or expired token") from None

    user = await get_user_by_id(user_id, session)
    if user is None:
        raise UnauthorizedError("The user belonging to this token no longer exists")
    if not user.is_active:
        raise UnauthorizedError("This account has been deactivated")
    return user


def require_roles(*roles: UserRole):
    allowed = {role.value for role in roles}

    def checker(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed:
            raise ForbiddenError("You do not have permission to perform this action")
        return user

    return checker


require_admin = require_roles(UserRole.ADMIN)
require_organizer = require_roles(UserRole.ORGANIZER, UserRole.ADMIN)
