"""
Pydantic schemas for authentication endpoints.

Request bodies accept the camelCase field names used by the web client
(passwordConfirm, passwordCurrent) as well as their snake_case equivalents.
If a field is malformed FastAPI rejects the request before our code runs;
the exception handlers render that as a 400 "Invalid input data" response.
"""

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from webauth.schemas.user import UserResponse


class _PasswordPair(BaseModel):
    """A new password plus its confirmation; both must match."""
    model_config = ConfigDict(populate_by_name=True)

    password: str = Field(min_length=8)
    password_confirm: str = Field(alias="passwordConfirm")

    @model_validator(mode="after")
    def passwords_match(self):
        if self.password != self.password_confirm:
            raise ValueError("Passwords are not the same")
        return self


class UserSignupRequest(_PasswordPair):
    """Request body for POST /signup."""
    name: str = Field(min_length=1, max_length=100)
    email: EmailStr

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, value: str) -> str:
        return value.lower()


class UserLoginRequest(BaseModel):
    """
    Request body for POST /login.

    Both fields are optional at the schema level: a missing email or
    password is reported by the login service as a 400, not as a
    validation error.
    """
    email: str | None = None
    password: str | None = None


class ForgotPasswordRequest(BaseModel):
    """Request body for POST /forgot-password."""
    email: EmailStr

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, value: str) -> str:
        return value.lower()


class ResetPasswordRequest(_PasswordPair):
    """Request body for PATCH /reset-password/{token}."""


class UpdatePasswordRequest(_PasswordPair):
    """Request body for PATCH /update-my-password."""
    password_current: str = Field(alias="passwordCurrent")


class UserData(BaseModel):
    user: UserResponse


class AuthResponse(BaseModel):
    """Response body for every endpoint that issues a session token."""
    status: str = "success"
    token: str
    data: UserData


class MessageResponse(BaseModel):
    status: str = "success"
    message: str | None = None
