"""
Authentication service: signup, login and password management logic.

This module contains the core auth logic, separated from HTTP concerns.
The router calls these functions and turns the results into responses
(session cookie + JSON body). Errors are raised as AppError subclasses.

Signup flow:
  1. Reject an already-registered email
  2. Hash the password and create the User
  3. Send the welcome email
  4. Return a JWT so the user is immediately logged in

Login flow:
  1. Require both email and password
  2. Look up the user and verify the password
  3. Return a JWT

Password reset flow:
  1. forgot_password stores a hashed, time-limited token and emails the
     raw token; if the email cannot be sent the token is cleared again
  2. reset_password looks the user up by the token hash, rejects expired
     tokens, sets the new password and clears the token

Security notes:
  - Login returns the same error for "wrong password" and "email not found"
  - Passwords and tokens are never logged
"""

import logging
import uuid
from collections.abc import Callable
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from webauth.exceptions import (
    DuplicateEmailError,
    EmailDeliveryError,
    IncorrectPasswordError,
    InvalidCredentialsError,
    InvalidResetTokenError,
    MissingCredentialsError,
    UserNotFoundError,
)
from webauth.mailer import Mailer
from webauth.models.user import User, UserRole
from webauth.security import create_access_token, hash_reset_token

logger = logging.getLogger(__name__)


def sign_token(user: User) -> str:
    """Issue a session JWT for `user`; "sub" carries the user id."""
    return create_access_token(data={"sub": str(user.id)})


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == email.lower()))
    return result.scalar_one_or_none()


async def signup(
    db: AsyncSession,
    mailer: Mailer,
    name: str,
    email: str,
    password: str,
    welcome_url: str,
) -> tuple[User, str]:
    """
    Register a new user, send the welcome email and log them in.

    Args:
        db: Database session.
        mailer: Transactional email sender.
        name: Display name.
        email: User's email (must be unique).
        password: Plaintext password (hashed before storage).
        welcome_url: Link to the user's account page, included in the email.

    Returns:
        Tuple of (User instance, JWT token string).

    Raises:
        DuplicateEmailError: If the email is already registered.
    """
    if await get_user_by_email(db, email) is not None:
        raise DuplicateEmailError(email)

    user = User(name=name, email=email.lower(), role=UserRole.USER)
    user.set_password(password)
    db.add(user)
    # Flush so user.id and the column defaults are assigned. A concurrent
    # signup with the same email trips the unique index here.
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise DuplicateEmailError(email)
    logger.info("New user signed up: %s", user.id)

    await mailer.send_welcome(user, welcome_url)

    return user, sign_token(user)


async def login(
    db: AsyncSession,
    email: str | None,
    password: str | None,
) -> tuple[User, str]:
    """
    Authenticate a user and return a JWT token.

    Raises:
        MissingCredentialsError: If email or password is missing.
        InvalidCredentialsError: If email doesn't exist or password is wrong.
    """
    if not email or not password:
        raise MissingCredentialsError()

    user = await get_user_by_email(db, email)

    # Same error for both cases, prevents user enumeration
    if user is None or not user.correct_password(password):
        logger.info("Failed login attempt for %s", email)
        raise InvalidCredentialsError()

    return user, sign_token(user)


async def forgot_password(
    db: AsyncSession,
    mailer: Mailer,
    email: str,
    reset_url_for: Callable[[str], str],
) -> None:
    """
    Generate a password reset token and email the reset link.

    The link is built by `reset_url_for(raw_token)`. Only the token's hash
    is stored on the user.

    Raises:
        UserNotFoundError: If no user has this email. No token is generated.
        EmailDeliveryError: If the email could not be sent. The reset token
            fields are cleared before raising.
    """
    user = await get_user_by_email(db, email)
    if user is None:
        raise UserNotFoundError()

    reset_token = user.create_password_reset_token()
    await db.flush()

    try:
        await mailer.send_password_reset(user, reset_url_for(reset_token))
    except Exception:
        logger.exception("Password reset email to user %s failed", user.id)
        user.clear_password_reset_token()
        await db.flush()
        raise EmailDeliveryError()

    logger.info("Password reset requested for user %s", user.id)


async def reset_password(
    db: AsyncSession,
    raw_token: str,
    new_password: str,
) -> tuple[User, str]:
    """
    Set a new password using an emailed reset token.

    Raises:
        InvalidResetTokenError: If no user holds this token or it has expired.
            The password is left unchanged.
    """
    result = await db.execute(
        select(User).where(
            User.password_reset_token == hash_reset_token(raw_token),
            User.password_reset_expires > datetime.now(timezone.utc),
        )
    )
    user = result.scalar_one_or_none()

    if user is None:
        raise InvalidResetTokenError()

    user.set_password(new_password)
    user.clear_password_reset_token()
    await db.flush()
    logger.info("Password reset completed for user %s", user.id)

    return user, sign_token(user)


async def update_password(
    db: AsyncSession,
    user_id: uuid.UUID,
    current_password: str,
    new_password: str,
) -> tuple[User, str]:
    """
    Change the password of a logged-in user after re-checking the current one.

    Returns a fresh token. Tokens whose "iat" second is earlier than the
    recorded change time (stamped one second back) stop working.

    Raises:
        IncorrectPasswordError: If `current_password` is wrong. The stored
            password is left unchanged.
    """
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one()

    if not user.correct_password(current_password):
        raise IncorrectPasswordError()

    user.set_password(new_password)
    await db.flush()
    logger.info("Password changed for user %s", user.id)

    return user, sign_token(user)
