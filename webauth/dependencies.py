"""
FastAPI dependencies for authentication and authorization.

Dependencies are reusable functions that FastAPI injects into route
handlers. They form a chain that enforces both authentication and
role-based access control:

  get_current_user (token -> User)               [protect]
      └── restrict_to(*roles) (User -> User)     [role check]
  get_optional_user (cookie -> User | None)      [isLoggedIn]

The session token is read from the "Authorization: Bearer <token>" header
first and from the "jwt" cookie second, so both API clients and browsers
are served by the same routes.

Every protected endpoint declares one of these as a parameter. If the
dependency fails (invalid token, wrong role, ...) the request is rejected
before the route handler runs.
"""

import logging
import uuid

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from jose import ExpiredSignatureError, JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from webauth.database import get_db
from webauth.exceptions import (
    InvalidTokenError,
    NotAuthenticatedError,
    PasswordChangedError,
    PermissionDeniedError,
    TokenExpiredError,
    UserNoLongerExistsError,
)
from webauth.models.user import User, UserRole
from webauth.security import decode_access_token

logger = logging.getLogger(__name__)

SESSION_COOKIE = "jwt"

# auto_error=False: a missing header is not an error yet, the cookie is
# checked next. tokenUrl is used by Swagger UI's "Authorize" button.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/users/login", auto_error=False)


def _decode(token: str) -> tuple[uuid.UUID, int]:
    """Verify a token and return (user id, issued-at seconds)."""
    try:
        payload = decode_access_token(token)
    except ExpiredSignatureError:
        raise TokenExpiredError()
    except JWTError:
        raise InvalidTokenError()

    try:
        return uuid.UUID(payload["sub"]), int(payload["iat"])
    except (KeyError, TypeError, ValueError):
        raise InvalidTokenError()


async def _resolve_user(token: str, db: AsyncSession) -> User:
    user_id, issued_at = _decode(token)

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if user is None:
        raise UserNoLongerExistsError()

    if user.changed_password_after(issued_at):
        raise PasswordChangedError()

    return user


async def get_current_user(
    request: Request,
    bearer_token: str | None = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Resolve the session token to a User (the "protect" guard).

    Raises:
        NotAuthenticatedError: No token in header or cookie.
        InvalidTokenError / TokenExpiredError: Token fails verification.
        UserNoLongerExistsError: The token's user was deleted.
        PasswordChangedError: The password changed after the token was issued.
    """
    token = bearer_token or request.cookies.get(SESSION_COOKIE)
    if not token:
        raise NotAuthenticatedError()

    user = await _resolve_user(token, db)
    request.state.user = user
    return user


async def get_optional_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> User | None:
    """
    Resolve the session cookie to a User if there is a valid one.

    Used by pages that render differently for logged-in visitors. Never
    raises: a missing, invalid or stale cookie simply yields None.
    """
    token = request.cookies.get(SESSION_COOKIE)
    if not token:
        return None

    try:
        user = await _resolve_user(token, db)
    except (InvalidTokenError, TokenExpiredError, UserNoLongerExistsError, PasswordChangedError):
        return None

    request.state.user = user
    return user


def restrict_to(*roles: UserRole):
    """
    Build a dependency that only lets users with one of `roles` through.

    Usage:
        @router.get("/", dependencies=[Depends(restrict_to(UserRole.ADMIN))])

    Raises:
        PermissionDeniedError: If the current user's role is not allowed.
    """
    allowed = set(roles)

    async def role_checker(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed:
            logger.info("User %s (%s) denied: requires %s", user.id, user.role.value,
                        sorted(r.value for r in allowed))
            raise PermissionDeniedError()
        return user

    return role_checker
