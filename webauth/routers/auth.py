"""
Authentication router: session issuance, logout and password management.

Endpoints (mounted under /api/v1/users):
  POST  /signup                 Register and get a session
  POST  /login                  Authenticate and get a session
  GET   /logout                 Overwrite the session cookie
  POST  /forgot-password        Email a password reset link
  PATCH /reset-password/{token} Set a new password with the emailed token
  PATCH /update-my-password     Change password (logged in)
  GET   /me                     Current user (logged in)
  GET   /session                Current user if the cookie is valid, else null

Every endpoint that logs a user in responds the same way: the JWT is set
as an httpOnly "jwt" cookie AND returned in the body as
{"status": "success", "token": ..., "data": {"user": ...}}, so browsers
and API clients can both carry the session.

Security audit notes:
  - Plaintext passwords exist only in memory during request processing.
  - The response user schema never includes the password hash or reset fields.
  - The raw reset token only ever leaves the server inside the email.
"""

from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from webauth.config import settings
from webauth.database import get_db
from webauth.dependencies import SESSION_COOKIE, get_current_user, get_optional_user
from webauth.mailer import Mailer, get_mailer
from webauth.models.user import User
from webauth.schemas.auth import (
    AuthResponse,
    ForgotPasswordRequest,
    MessageResponse,
    ResetPasswordRequest,
    UpdatePasswordRequest,
    UserData,
    UserLoginRequest,
    UserSignupRequest,
)
from webauth.schemas.user import (
    SessionData,
    SessionResponse,
    UserDetailData,
    UserDetailResponse,
    UserResponse,
)
from webauth.services import auth_service

router = APIRouter()

LOGGED_OUT_COOKIE_VALUE = "loggedout"


def site_url(request: Request) -> str:
    """Base URL of the public site, without a trailing slash."""
    return (settings.FRONTEND_URL or str(request.base_url)).rstrip("/")


def send_token(response: Response, user: User, token: str) -> AuthResponse:
    """Set the session cookie on `response` and build the JSON body."""
    response.set_cookie(
        key=SESSION_COOKIE,
        value=token,
        expires=datetime.now(timezone.utc) + timedelta(days=settings.JWT_COOKIE_EXPIRES_IN),
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )
    return AuthResponse(
        token=token,
        data=UserData(user=UserResponse.model_validate(user)),
    )


@router.post(
    "/signup",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new user",
)
async def signup(
    body: UserSignupRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    """
    Register a new user, send the welcome email and log them in.

    - **name**: Required, 1-100 characters
    - **email**: Must be a valid email format and not already registered
    - **password**: Minimum 8 characters
    - **passwordConfirm**: Must equal password
    """
    user, token = await auth_service.signup(
        db=db,
        mailer=mailer,
        name=body.name,
        email=body.email,
        password=body.password,
        welcome_url=f"{site_url(request)}/me",
    )
    return send_token(response, user, token)


@router.post(
    "/login",
    response_model=AuthResponse,
    summary="Authenticate and get a session",
)
async def login(
    body: UserLoginRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    """
    Authenticate with email and password.

    The returned token can be sent as a bearer header:

        Authorization: Bearer <token>

    or carried by the "jwt" cookie set on this response.
    """
    user, token = await auth_service.login(
        db=db,
        email=body.email,
        password=body.password,
    )
    return send_token(response, user, token)


@router.get(
    "/logout",
    response_model=MessageResponse,
    response_model_exclude_none=True,
    summary="Log out",
)
async def logout(response: Response):
    """
    Replace the session cookie with a placeholder that expires in 10 seconds.

    httpOnly cookies cannot be deleted from the browser, so the server
    overwrites it instead.
    """
    response.set_cookie(
        key=SESSION_COOKIE,
        value=LOGGED_OUT_COOKIE_VALUE,
        expires=datetime.now(timezone.utc) + timedelta(seconds=10),
        httponly=True,
    )
    return MessageResponse()


@router.post(
    "/forgot-password",
    response_model=MessageResponse,
    summary="Email a password reset link",
)
async def forgot_password(
    body: ForgotPasswordRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    await auth_service.forgot_password(
        db=db,
        mailer=mailer,
        email=body.email,
        reset_url_for=lambda token: str(request.url_for("reset_password", token=token)),
    )
    return MessageResponse(message="Token sent to email!")


@router.patch(
    "/reset-password/{token}",
    response_model=AuthResponse,
    summary="Reset password with an emailed token",
)
async def reset_password(
    token: str,
    body: ResetPasswordRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    """Set a new password and log the user in. The token can only be used once."""
    user, session_token = await auth_service.reset_password(
        db=db,
        raw_token=token,
        new_password=body.password,
    )
    return send_token(response, user, session_token)


@router.patch(
    "/update-my-password",
    response_model=AuthResponse,
    summary="Change the current user's password",
)
async def update_password(
    body: UpdatePasswordRequest,
    response: Response,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Change password after confirming the current one.

    A new session token is issued. Older tokens are rejected once their
    "iat" second is earlier than the recorded change time, which is stamped
    one second before the change.
    """
    user, token = await auth_service.update_password(
        db=db,
        user_id=current_user.id,
        current_password=body.password_current,
        new_password=body.password,
    )
    return send_token(response, user, token)


@router.get(
    "/me",
    response_model=UserDetailResponse,
    summary="Get the current user",
)
async def get_me(current_user: User = Depends(get_current_user)):
    return UserDetailResponse(
        data=UserDetailData(user=UserResponse.model_validate(current_user)),
    )


@router.get(
    "/session",
    response_model=SessionResponse,
    summary="Check whether the session cookie belongs to a logged-in user",
)
async def get_session(user: User | None = Depends(get_optional_user)):
    """Never fails: visitors without a valid session get `user: null`."""
    return SessionResponse(
        data=SessionData(user=UserResponse.model_validate(user) if user else None),
    )
