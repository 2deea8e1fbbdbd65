from typing import Optional

from fastapi import APIRouter, Cookie, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import ENVIRONMENT, REFRESH_COOKIE_NAME, REFRESH_TOKEN_EXPIRE_DAYS
from ..database import get_session
from ..dependencies import get_current_user
from ..models import User
from ..schemas import (
    AuthResult,
    ChangePasswordRequest,
    ForgotPasswordRequest,
    ForgotPasswordResult,
    LoginRequest,
    MessageResult,
    RegisterRequest,
    ResetPasswordRequest,
    TokenResult,
    UpdateMeRequest,
    UserResponse,
    UserResult,
)
from ..services import users as user_service

router = APIRouter(prefix="/auth", tags=["Authentication"])


def set_refresh_cookie(response: Response, refresh_token: str):
    response.set_cookie(
        REFRESH_COOKIE_NAME,
        refresh_token,
        httponly=True,
        secure=ENVIRONMENT == "production",
        samesite="strict",
        max_age=REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60,
    )


async def _login_response(user: User, response: Response, session: AsyncSession) -> AuthResult:
    token, refresh_token = await user_service.issue_tokens(user, session)
    set_refresh_cookie(response, refresh_token)
    return AuthResult(user=UserResponse.model_validate(user), token=token)


@router.post("/register", response_model=AuthResult, status_code=status.HTTP_201_CREATED)
async def register(req: RegisterRequest, response: Response, session: AsyncSession = Depends(get_session)):
    user = await user_service.create_user(req, session)
    return await _login_response(user, response, session)


@router.post("/login", response_model=AuthResult)
async def login(req: LoginRequest, response: Response, session: AsyncSession = Depends(get_session)):
    user = await user_service.authenticate(req.email, req.password, session)
    return await _login_response(user, response, session)


@router.post("/logout", response_model=MessageResult)
async def logout(
    response: Response,
    refresh_token: Optional[str] = Cookie(None, alias=REFRESH_COOKIE_NAME),
    session: AsyncSession = Depends(get_session),
):
    await user_service.revoke_refresh_token(refresh_token, session)
    response.delete_cookie(REFRESH_COOKIE_NAME)
    return {"message": "Logged out successfully"}


@router.post("/refresh-token", response_model=TokenResult)
async def refresh_token(
    refresh_token: Optional[str] = Cookie(None, alias=REFRESH_COOKIE_NAME),
    session: AsyncSession = Depends(get_session),
):
    return {"token": await user_service.refresh_access_token(refresh_token, session)}


@router.get("/me", response_model=UserResult)
async def get_me(user: User = Depends(get_current_user)):
    return {"user": UserResponse.model_validate(user)}


@router.patch("/me", response_model=UserResult)
async def update_me(
    req: UpdateMeRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    user = await user_service.update_profile(user, req, session)
    return {"user": UserResponse.model_validate(user)}


@router.patch("/change-password", response_model=AuthResult)
async def change_password(
    req: ChangePasswordRequest,
    response: Response,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    await user_service.change_password(user, req.current_password, req.new_password, session)
    return await _login_response(user, response, session)


@router.post("/forgot-password", response_model=ForgotPasswordResult)
async def forgot_password(req: ForgotPasswordRequest, session: AsyncSession = Depends(get_session)):
    """
    Start a password reset.

    Mail delivery is handled outside this service, so the reset link is
    returned to the caller.
    """
    reset_url = await user_service.start_password_reset(req.email, session)
    return {"message": "Password reset token generated", "reset_url": reset_url}


@router.patch("/reset-password/{token}", response_model=AuthResult)
async def reset_password(
    token: str,
    req: ResetPasswordRequest,
    response: Response,
    session: AsyncSession = Depends(get_session),
):
    user = await user_service.reset_password(token, req.new_password, session)
    return await _login_response(user, response, session)
