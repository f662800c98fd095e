"""
Operational error classes and FastAPI exception handlers.

Service and dependency code raises AppError subclasses without importing
HTTP response concepts. The handlers registered here translate them into a
single JSON envelope:

    {"status": "fail" | "error", "message": "...", "error_type": "..."}

"fail" is used for 4xx responses, "error" for 5xx. Anything that is not an
AppError is a programmer error: it is logged with its traceback and the
client only sees a generic 500.

Exception hierarchy:
    AppError (base, status_code 500)
    ├── MissingCredentialsError   400
    ├── InvalidResetTokenError    400
    ├── InvalidCredentialsError   401
    ├── NotAuthenticatedError     401
    ├── InvalidTokenError         401
    ├── TokenExpiredError         401
    ├── UserNoLongerExistsError   401
    ├── PasswordChangedError      401
    ├── IncorrectPasswordError    401
    ├── PermissionDeniedError     403
    ├── UserNotFoundError         404
    ├── DuplicateEmailError       409
    └── EmailDeliveryError        500
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Base exception
# ---------------------------------------------------------------------------

class AppError(Exception):
    """
    Base class for operational errors.

    Attributes:
        detail: Human-readable message returned to the client.
        status_code: HTTP status code of the response.
        error_type: Short machine-readable tag.
    """

    status_code: int = 500
    error_type: str = "app_error"

    def __init__(self, detail: str = "An error occurred", status_code: int | None = None):
        self.detail = detail
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.detail)


# ---------------------------------------------------------------------------
# Authentication errors
# ---------------------------------------------------------------------------

class MissingCredentialsError(AppError):
    status_code = 400
    error_type = "missing_credentials"

    def __init__(self):
        super().__init__("Please provide email and password")


class InvalidCredentialsError(AppError):
    """Raised when login credentials are incorrect."""

    status_code = 401
    error_type = "invalid_credentials"

    def __init__(self):
        super().__init__("Incorrect email or password")


class NotAuthenticatedError(AppError):
    status_code = 401
    error_type = "not_authenticated"

    def __init__(self):
        super().__init__("You are not logged in. Please log in to get access")


class InvalidTokenError(AppError):
    status_code = 401
    error_type = "invalid_token"

    def __init__(self):
        super().__init__("Invalid token. Please log in again")


class TokenExpiredError(AppError):
    status_code = 401
    error_type = "token_expired"

    def __init__(self):
        super().__init__("Your token has expired. Please log in again")


class UserNoLongerExistsError(AppError):
    """Raised when a structurally valid token belongs to a deleted user."""

    status_code = 401
    error_type = "user_no_longer_exists"

    def __init__(self):
        super().__init__("The user belonging to this token no longer exists")


class PasswordChangedError(AppError):
    """Raised when the password changed after the token was issued."""

    status_code = 401
    error_type = "password_changed"

    def __init__(self):
        super().__init__("User recently changed password. Please log in again")


class IncorrectPasswordError(AppError):
    status_code = 401
    error_type = "incorrect_password"

    def __init__(self):
        super().__init__("Your current password is wrong")


class PermissionDeniedError(AppError):
    status_code = 403
    error_type = "permission_denied"

    def __init__(self):
        super().__init__("You do not have permission to perform this action")


# ---------------------------------------------------------------------------
# Account errors
# ---------------------------------------------------------------------------

class UserNotFoundError(AppError):
    status_code = 404
    error_type = "user_not_found"

    def __init__(self, detail: str = "There is no user with that email address"):
        super().__init__(detail)


class DuplicateEmailError(AppError):
    """Raised when attempting to register with an email that's already in use."""

    status_code = 409
    error_type = "duplicate_email"

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"Email {email} is already registered")


class InvalidResetTokenError(AppError):
    status_code = 400
    error_type = "invalid_reset_token"

    def __init__(self):
        super().__init__("Token is invalid or has expired")


class EmailDeliveryError(AppError):
    status_code = 500
    error_type = "email_delivery_failed"

    def __init__(self):
        super().__init__("There was an error sending the email. Try again later")


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

def _error_response(status_code: int, message: str, error_type: str) -> JSONResponse:
    status = "fail" if 400 <= status_code < 500 else "error"
    return JSONResponse(
        status_code=status_code,
        content={"status": status, "message": message, "error_type": error_type},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register exception handlers with the FastAPI application.

    This is called once during app creation in main.py.
    """

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
        return _error_response(exc.status_code, exc.detail, exc.error_type)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        messages = [error["msg"] for error in exc.errors()]
        return _error_response(
            400,
            "Invalid input data. " + ". ".join(messages),
            "validation_error",
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        response = _error_response(exc.status_code, str(exc.detail), "http_error")
        if exc.headers:
            response.headers.update(exc.headers)
        return response

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error_response(500, "Something went very wrong!", "internal_error")
